# Overview: Append-only booking event outbox.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..extensions import db
from ..models import Booking, BookingEvent
from appointly.time_utils import utcnow


def append_booking_event(
    booking: Booking,
    *,
    event_type: str,
    from_status: str | None,
    reason: Optional[str] = None,
    occurred_at: Optional[datetime] = None,
) -> BookingEvent:
    """
    Append-only booking event.

    - No domain logic here.
    - No deletes/updates of existing events.
    - Flushed, not committed: the caller's transition and this event land
      in the same transaction.
    """
    ev = BookingEvent(
        tenant_id=booking.tenant_id,
        booking_id=booking.id,
        event_type=event_type,
        from_status=from_status,
        to_status=booking.status,
        staff_id=booking.staff_id,
        reason=reason,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(ev)
    db.session.flush()
    return ev


def list_booking_events(tenant_id: int, booking_id: int) -> list[BookingEvent]:
    return (
        db.session.query(BookingEvent)
        .filter_by(tenant_id=tenant_id, booking_id=booking_id)
        .order_by(BookingEvent.id.asc())
        .all()
    )
