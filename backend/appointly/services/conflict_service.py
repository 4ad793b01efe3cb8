# Overview: Service-layer slot conflict detection between CONFIRMED bookings.

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from ..extensions import db
from ..models import Booking


# Only CONFIRMED bookings occupy a slot. PENDING, COMPLETED, CANCELLED and
# NO_SHOW never block a new confirmation.
BLOCKING_STATUSES = ("CONFIRMED",)


def intervals_overlap(a_start, a_end, b_start, b_end) -> bool:
    """Half-open overlap: touching edges (a_end == b_start) do not overlap."""
    return a_start < b_end and b_start < a_end


def _padded_end(day: date, end: time, buffer_minutes: int) -> datetime:
    return datetime.combine(day, end) + timedelta(minutes=buffer_minutes)


def find_conflicts(
    tenant_id: int,
    staff_id: int,
    day: date,
    start: time,
    end: time,
    *,
    exclude_booking_id: int | None = None,
    buffer_minutes: int = 0,
) -> list[Booking]:
    """
    CONFIRMED bookings of (tenant, staff, date) overlapping [start, end).

    With a buffer, both intervals are extended at their end by
    buffer_minutes before comparing, so two bookings are always at least
    buffer_minutes apart in either order.
    """
    q = db.session.query(Booking).filter(
        Booking.tenant_id == tenant_id,
        Booking.staff_id == staff_id,
        Booking.booking_date == day,
        Booking.status.in_(BLOCKING_STATUSES),
    )
    if exclude_booking_id is not None:
        q = q.filter(Booking.id != exclude_booking_id)

    new_start = datetime.combine(day, start)
    new_end = _padded_end(day, end, buffer_minutes)

    conflicts = []
    for b in q.order_by(Booking.start_time.asc(), Booking.id.asc()).all():
        b_start = datetime.combine(day, b.start_time)
        b_end = _padded_end(day, b.end_time, buffer_minutes)
        if intervals_overlap(new_start, new_end, b_start, b_end):
            conflicts.append(b)
    return conflicts


def has_conflict(
    tenant_id: int,
    staff_id: int,
    day: date,
    start: time,
    end: time,
    *,
    exclude_booking_id: int | None = None,
    buffer_minutes: int = 0,
) -> bool:
    return bool(find_conflicts(
        tenant_id, staff_id, day, start, end,
        exclude_booking_id=exclude_booking_id,
        buffer_minutes=buffer_minutes,
    ))
