from __future__ import annotations

from ..extensions import db
from appointly.time_utils import to_utc_z


class Coupon(db.Model):
    """
    Discount coupon with a validity window.

    Redemption rules live outside this engine; the window is validated with
    the shared time-range rules on creation.
    """
    __tablename__ = "coupons"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "code", name="uq_coupons_tenant_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)

    valid_start_at = db.Column(db.DateTime(timezone=True), nullable=False)
    valid_end_at = db.Column(db.DateTime(timezone=True), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "code": self.code,
            "discount_cents": self.discount_cents,
            "valid_start_at": to_utc_z(self.valid_start_at),
            "valid_end_at": to_utc_z(self.valid_end_at),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Campaign(db.Model):
    """Marketing campaign with a validity window."""
    __tablename__ = "campaigns"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    start_at = db.Column(db.DateTime(timezone=True), nullable=False)
    end_at = db.Column(db.DateTime(timezone=True), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "description": self.description,
            "start_at": to_utc_z(self.start_at),
            "end_at": to_utc_z(self.end_at),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
