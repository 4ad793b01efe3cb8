from __future__ import annotations

from ..extensions import db
from appointly.time_utils import to_utc_z, fmt_clock


class Tenant(db.Model):
    """
    Multi-tenant root: every salon/clinic is a Tenant.

    WHY: Shared-database multi-tenancy with strict isolation.
    Staff, services, customers and bookings belong to exactly one tenant.
    No data and no conflict check may cross tenant boundaries.

    Business hours double as the default working window for staff who
    have no weekly schedule row for a given weekday.
    """
    __tablename__ = "tenants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    timezone = db.Column(db.String(64), nullable=False, default="UTC")

    # Business hours (NULL = open all day)
    business_start_time = db.Column(db.Time, nullable=True)
    business_end_time = db.Column(db.Time, nullable=True)
    break_start_time = db.Column(db.Time, nullable=True)
    break_end_time = db.Column(db.Time, nullable=True)

    # Gap kept free after every confirmed booking of a staff member
    booking_buffer_minutes = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} name={self.name!r}>"

    def business_hours_dict(self) -> dict:
        return {
            "business_start_time": fmt_clock(self.business_start_time),
            "business_end_time": fmt_clock(self.business_end_time),
            "break_start_time": fmt_clock(self.break_start_time),
            "break_end_time": fmt_clock(self.break_end_time),
            "booking_buffer_minutes": self.booking_buffer_minutes,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "timezone": self.timezone,
            **self.business_hours_dict(),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
