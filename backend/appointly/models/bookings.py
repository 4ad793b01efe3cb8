from __future__ import annotations

from ..extensions import db
from appointly.time_utils import to_utc_z, fmt_clock


# Callers see PENDING as PENDING_CONFIRMATION; storage keeps the short name
EXTERNAL_STATUS_NAMES = {"PENDING": "PENDING_CONFIRMATION"}


class Booking(db.Model):
    """
    One appointment request/commitment.

    LIFECYCLE:
        PENDING -> CONFIRMED -> COMPLETED
        PENDING -> CANCELLED
        CONFIRMED -> CANCELLED
        CONFIRMED -> NO_SHOW

    PENDING is a non-binding hold: it never occupies a slot and may overlap
    anything. Only CONFIRMED rows take part in conflict detection.

    IMMUTABLE FIELDS: end_time is always derived from start_time plus the
    snapshotted duration_minutes. Bookings are never deleted; cancellation
    is a status change.

    The partial unique index is a storage backstop for the confirm gate:
    two CONFIRMED rows can never share (tenant, staff, date, start_time).
    Partial overlaps are caught by the conflict checker under the slot guard.
    """
    __tablename__ = "bookings"
    __table_args__ = (
        db.Index("ix_bookings_tenant_staff_date_status", "tenant_id", "staff_id", "booking_date", "status"),
        db.Index("ix_bookings_tenant_date", "tenant_id", "booking_date"),
        db.Index(
            "uq_bookings_confirmed_slot",
            "tenant_id", "staff_id", "booking_date", "start_time",
            unique=True,
            sqlite_where=db.text("status = 'CONFIRMED'"),
            postgresql_where=db.text("status = 'CONFIRMED'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    service_item_id = db.Column(db.Integer, db.ForeignKey("service_items.id"), nullable=False)
    # NULL only while PENDING (auto-assigned at confirm)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=True)

    booking_date = db.Column(db.Date, nullable=False)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False)

    # Status: PENDING, CONFIRMED, COMPLETED, CANCELLED, NO_SHOW
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)

    customer_note = db.Column(db.Text, nullable=True)
    store_note = db.Column(db.Text, nullable=True)
    cancel_reason = db.Column(db.Text, nullable=True)

    # Origin of the request: WEB, CHAT, ADMIN
    source = db.Column(db.String(16), nullable=False, default="WEB")

    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("bookings", lazy=True))
    service_item = db.relationship("ServiceItem")
    staff = db.relationship("Staff", backref=db.backref("bookings", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Booking id={self.id} tenant_id={self.tenant_id} status={self.status}>"

    @property
    def external_status(self) -> str:
        return EXTERNAL_STATUS_NAMES.get(self.status, self.status)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "status": self.external_status,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "service_item_id": self.service_item_id,
            "service_name": self.service_item.name if self.service_item else None,
            "staff_id": self.staff_id,
            "staff_name": self.staff.effective_name if self.staff else None,
            "booking_date": self.booking_date.isoformat(),
            "start_time": fmt_clock(self.start_time),
            "end_time": fmt_clock(self.end_time),
            "duration_minutes": self.duration_minutes,
            "customer_note": self.customer_note,
            "store_note": self.store_note,
            "cancel_reason": self.cancel_reason,
            "source": self.source,
            "confirmed_at": to_utc_z(self.confirmed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "completed_at": to_utc_z(self.completed_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_calendar_event(self) -> dict:
        return {
            "id": self.id,
            "title": self.service_item.name if self.service_item else f"Booking {self.id}",
            "start": f"{self.booking_date.isoformat()}T{fmt_clock(self.start_time)}",
            "end": f"{self.booking_date.isoformat()}T{fmt_clock(self.end_time)}",
            "status": self.external_status,
            "staff_id": self.staff_id,
            "staff_name": self.staff.effective_name if self.staff else None,
            "customer_name": self.customer.name if self.customer else None,
        }


class BookingEvent(db.Model):
    """
    Append-only record of booking lifecycle transitions.

    WHY: Outbox for the notification collaborator and audit history.
    Written inside the same DB transaction as the transition it records;
    never updated or deleted.
    """
    __tablename__ = "booking_events"
    __table_args__ = (
        db.Index("ix_booking_events_tenant_occurred", "tenant_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, index=True)

    # booking.created, booking.confirmed, booking.updated, booking.cancelled, ...
    event_type = db.Column(db.String(64), nullable=False, index=True)
    from_status = db.Column(db.String(16), nullable=True)
    to_status = db.Column(db.String(16), nullable=False)
    staff_id = db.Column(db.Integer, nullable=True)
    reason = db.Column(db.Text, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    booking = db.relationship("Booking", backref=db.backref("events", lazy=True, order_by="BookingEvent.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "booking_id": self.booking_id,
            "event_type": self.event_type,
            "from_status": EXTERNAL_STATUS_NAMES.get(self.from_status, self.from_status),
            "to_status": EXTERNAL_STATUS_NAMES.get(self.to_status, self.to_status),
            "staff_id": self.staff_id,
            "reason": self.reason,
            "occurred_at": to_utc_z(self.occurred_at),
        }
