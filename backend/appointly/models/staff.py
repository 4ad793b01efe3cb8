from __future__ import annotations

from ..extensions import db
from appointly.time_utils import to_utc_z, fmt_clock


staff_service_categories = db.Table(
    "staff_service_categories",
    db.Column("staff_id", db.Integer, db.ForeignKey("staff.id"), primary_key=True),
    db.Column("category_id", db.Integer, db.ForeignKey("service_categories.id"), primary_key=True),
)


class Staff(db.Model):
    """
    A person who performs appointments.

    Only ACTIVE + is_bookable staff are candidates for auto-assignment.
    Category affinity is optional: staff with no categories can perform
    every service.
    """
    __tablename__ = "staff"
    __table_args__ = (
        db.Index("ix_staff_tenant_status", "tenant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    display_name = db.Column(db.String(120), nullable=True)

    # Status: ACTIVE, INACTIVE
    status = db.Column(db.String(16), nullable=False, default="ACTIVE")
    is_bookable = db.Column(db.Boolean, nullable=False, default=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    tenant = db.relationship("Tenant", backref=db.backref("staff", lazy=True))
    categories = db.relationship(
        "ServiceCategory",
        secondary=staff_service_categories,
        lazy="selectin",
        backref=db.backref("staff", lazy=True),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def effective_name(self) -> str:
        return self.display_name or self.name

    @property
    def is_available(self) -> bool:
        return self.status == "ACTIVE" and bool(self.is_bookable)

    def can_perform(self, category_id: int | None) -> bool:
        if category_id is None or not self.categories:
            return True
        return any(c.id == category_id for c in self.categories)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "display_name": self.display_name,
            "effective_name": self.effective_name,
            "status": self.status,
            "is_bookable": self.is_bookable,
            "sort_order": self.sort_order,
            "category_ids": [c.id for c in self.categories],
            "created_at": to_utc_z(self.created_at),
        }


class StaffSchedule(db.Model):
    """
    Recurring weekly working hours, one row per staff per weekday.

    day_of_week follows Python's date.weekday(): 0=Monday .. 6=Sunday.
    """
    __tablename__ = "staff_schedules"
    __table_args__ = (
        db.UniqueConstraint("staff_id", "day_of_week", name="uq_staff_schedules_staff_day"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=False, index=True)
    day_of_week = db.Column(db.Integer, nullable=False)

    is_working_day = db.Column(db.Boolean, nullable=False, default=True)
    start_time = db.Column(db.Time, nullable=True)
    end_time = db.Column(db.Time, nullable=True)
    break_start_time = db.Column(db.Time, nullable=True)
    break_end_time = db.Column(db.Time, nullable=True)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    staff = db.relationship("Staff", backref=db.backref("schedules", lazy=True))

    def to_dict(self) -> dict:
        return {
            "day_of_week": self.day_of_week,
            "is_working_day": self.is_working_day,
            "start_time": fmt_clock(self.start_time),
            "end_time": fmt_clock(self.end_time),
            "break_start_time": fmt_clock(self.break_start_time),
            "break_end_time": fmt_clock(self.break_end_time),
        }


class StaffLeave(db.Model):
    """
    Approved leave for one date.

    A multi-day request is stored as one row per date. Partial-day leave
    carries start_time/end_time; full-day leave leaves them NULL.
    """
    __tablename__ = "staff_leaves"
    __table_args__ = (
        db.UniqueConstraint("staff_id", "leave_date", name="uq_staff_leaves_staff_date"),
        db.Index("ix_staff_leaves_tenant_date", "tenant_id", "leave_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=False, index=True)
    leave_date = db.Column(db.Date, nullable=False)

    # Leave type: PERSONAL, SICK, VACATION, ANNUAL, OTHER
    leave_type = db.Column(db.String(16), nullable=False, default="PERSONAL")
    reason = db.Column(db.String(200), nullable=True)

    is_full_day = db.Column(db.Boolean, nullable=False, default=True)
    start_time = db.Column(db.Time, nullable=True)
    end_time = db.Column(db.Time, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    staff = db.relationship("Staff", backref=db.backref("leaves", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "staff_id": self.staff_id,
            "leave_date": self.leave_date.isoformat(),
            "leave_type": self.leave_type,
            "reason": self.reason,
            "is_full_day": self.is_full_day,
            "start_time": fmt_clock(self.start_time),
            "end_time": fmt_clock(self.end_time),
            "created_at": to_utc_z(self.created_at),
        }
