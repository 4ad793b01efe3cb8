# Overview: Service-layer booking operations; creation, the confirm gate, transitions, edits and queries.

"""
Booking Service

================================================================================
PURPOSE: Own every write to a booking and guarantee no double-booking
================================================================================

FLOW:
    create   -> PENDING. No lock, no conflict check. Many PENDING requests may
                target the same slot.
    confirm  -> the single gate. Under the (tenant, staff, date) slot guard:
                re-read, check availability, check conflicts, write CONFIRMED.
    cancel / complete / no-show -> plain transitions protected by the
                booking's version_id (optimistic locking).
    update   -> edits. A schedule change on a CONFIRMED booking re-runs the
                confirm-time checks under the guard, excluding itself.

INVARIANTS:
1. No two CONFIRMED bookings of one staff member overlap (half-open).
2. Every CONFIRMED booking has a staff member.
3. end_time = start_time + duration_minutes, always derived here.
4. Every transition appends a BookingEvent in the same transaction.
5. A failed confirm leaves the booking PENDING with nothing written.
================================================================================
"""

from __future__ import annotations

from contextlib import nullcontext
from datetime import date, datetime, time

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Booking, Customer, ServiceItem, Staff, Tenant
from ..errors import (
    BookingEngineError,
    SlotConflictError,
    StaffUnavailableError,
    StateTransitionError,
    TimeRangeError,
    ValidationError,
)
from ..validation import VALID_SOURCES, coerce_date, coerce_optional_int, coerce_optional_text, coerce_time
from appointly.time_utils import add_minutes, fmt_clock, local_now, utcnow
from .assignment_service import assign_staff
from .availability_service import is_staff_available
from .booking_lifecycle import external_status, is_terminal, normalize_status, require_transition
from .concurrency import run_with_retry, slot_guard
from .conflict_service import find_conflicts
from .event_service import append_booking_event
from .tenant_service import require_in_tenant, resolve_reference, validate_tenant_active
from .time_range import validate_range


UPDATABLE_FIELDS = {"customer_note", "store_note", "staff_id", "booking_date", "start_time", "service_item_id"}


def _retry_options() -> dict:
    return {
        "attempts": current_app.config.get("CONFIRM_RETRY_ATTEMPTS", 3),
        "backoff_base": current_app.config.get("CONFIRM_RETRY_BACKOFF_SECONDS", 0.05),
    }


def _reload(tenant_id: int, booking_id: int) -> Booking:
    # populate_existing: the identity map may hold a copy read before the guard
    return (
        db.session.query(Booking)
        .filter_by(id=booking_id, tenant_id=tenant_id)
        .populate_existing()
        .one()
    )


def derive_end_time(day: date, start: time, duration_minutes: int) -> time:
    """
    start + duration on the same day.

    Raises:
        TimeRangeError: non-positive duration or the booking would run past midnight
    """
    end_dt = add_minutes(day, start, duration_minutes)
    if end_dt.date() != day:
        raise TimeRangeError(
            "booking time: booking must end on the day it starts",
            details={"start_time": fmt_clock(start), "duration_minutes": duration_minutes},
        )
    end = end_dt.time()
    validate_range(start, end, field="booking time")
    return end


def _ensure_not_past(tenant: Tenant, day: date, start: time) -> None:
    if datetime.combine(day, start) < local_now(tenant.timezone):
        raise ValidationError(
            "Cannot book a time in the past",
            details={"booking_date": day.isoformat(), "start_time": fmt_clock(start)},
        )


def _resolve_service(tenant_id: int, service_item_id: int) -> ServiceItem:
    service = resolve_reference(ServiceItem, service_item_id, tenant_id, label="Service")
    if not service.is_active:
        raise ValidationError("Service is not available for booking", details={"id": service_item_id})
    return service


def _check_slot(tenant: Tenant, booking: Booking, staff_id: int) -> None:
    """Availability then conflicts for booking's interval on staff_id. Call under slot_guard."""
    day, start, end = booking.booking_date, booking.start_time, booking.end_time

    if not is_staff_available(tenant.id, staff_id, day, start, end):
        raise StaffUnavailableError(
            "Staff member is not available for the requested time",
            details={
                "staff_id": staff_id,
                "date": day.isoformat(),
                "start_time": fmt_clock(start),
                "end_time": fmt_clock(end),
            },
        )

    conflicts = find_conflicts(
        tenant.id, staff_id, day, start, end,
        exclude_booking_id=booking.id,
        buffer_minutes=tenant.booking_buffer_minutes or 0,
    )
    if conflicts:
        raise SlotConflictError(
            "Time slot is already booked",
            details={
                "staff_id": staff_id,
                "date": day.isoformat(),
                "start_time": fmt_clock(start),
                "end_time": fmt_clock(end),
                "conflicting_booking_ids": [b.id for b in conflicts],
            },
        )


def _log_transition(booking: Booking, from_status: str | None) -> None:
    current_app.logger.info(
        "Booking %s %s -> %s (tenant %s)",
        booking.id,
        external_status(from_status) if from_status else "NEW",
        external_status(booking.status),
        booking.tenant_id,
    )


def create_booking(
    tenant_id: int,
    *,
    customer_id: int,
    service_item_id: int,
    booking_date: date,
    start_time: time,
    staff_id: int | None = None,
    customer_note: str | None = None,
    source: str = "WEB",
) -> Booking:
    """
    Record a booking request as PENDING.

    No lock and no conflict check: PENDING never occupies a slot.

    Raises:
        NotFoundError: service, customer or staff not in tenant
        ValidationError: inactive service, past time, bad source
        TimeRangeError: booking would cross midnight
    """
    tenant = validate_tenant_active(tenant_id)

    if customer_id is None or service_item_id is None:
        raise ValidationError("customer_id and service_item_id are required")
    if booking_date is None or start_time is None:
        raise ValidationError("booking_date and start_time are required")

    service = _resolve_service(tenant_id, service_item_id)
    customer = resolve_reference(Customer, customer_id, tenant_id, label="Customer")
    staff = resolve_reference(Staff, staff_id, tenant_id, label="Staff")

    source = (coerce_optional_text("source", source) or "WEB").upper()
    if source not in VALID_SOURCES:
        raise ValidationError(f"Invalid source '{source}'. Must be one of: {', '.join(sorted(VALID_SOURCES))}")
    customer_note = coerce_optional_text("customer_note", customer_note)

    _ensure_not_past(tenant, booking_date, start_time)
    end_time = derive_end_time(booking_date, start_time, service.duration_minutes)

    def _op() -> Booking:
        booking = Booking(
            tenant_id=tenant_id,
            customer_id=customer.id,
            service_item_id=service.id,
            staff_id=staff.id if staff is not None else None,
            booking_date=booking_date,
            start_time=start_time,
            end_time=end_time,
            duration_minutes=service.duration_minutes,
            status="PENDING",
            customer_note=customer_note,
            source=source,
        )
        db.session.add(booking)
        db.session.flush()
        append_booking_event(booking, event_type="booking.created", from_status=None)
        db.session.commit()
        return booking

    booking = run_with_retry(_op, **_retry_options())
    _log_transition(booking, None)
    return booking


def _confirm_on_staff(tenant: Tenant, booking_id: int, staff_id: int, day: date, *, auto_assigned: bool) -> Booking:
    """Guarded read-check-write of one confirm attempt on staff_id."""
    tenant_id = tenant.id

    def _op() -> Booking:
        with slot_guard(tenant_id, staff_id, day):
            try:
                b = _reload(tenant_id, booking_id)
                require_transition(b, "CONFIRMED")
                if (b.staff_id is not None and b.staff_id != staff_id) or b.booking_date != day:
                    raise StateTransitionError(
                        "Booking was rescheduled while confirming; retry",
                        details={"booking_id": b.id},
                    )

                from_status = b.status
                b.staff_id = staff_id
                _check_slot(tenant, b, staff_id)

                b.status = "CONFIRMED"
                b.confirmed_at = utcnow()
                append_booking_event(
                    b,
                    event_type="booking.confirmed",
                    from_status=from_status,
                    reason="auto-assigned" if auto_assigned else None,
                )
                db.session.commit()
            except IntegrityError:
                db.session.rollback()
                raise SlotConflictError(
                    "Time slot is already booked",
                    details={"staff_id": staff_id, "date": day.isoformat()},
                )
            except Exception:
                db.session.rollback()
                raise
        _log_transition(b, from_status)
        return b

    return run_with_retry(_op, **_retry_options())


def confirm_booking(tenant_id: int, booking_id: int) -> Booking:
    """
    PENDING -> CONFIRMED. The only gate that admits a booking into the calendar.

    Staff is auto-assigned when the booking has none. The availability and
    conflict checks and the write run under the slot guard, so concurrent
    confirms for one staff member's day are serialized and at most one of
    any overlapping set wins.

    Assignment itself runs before the guard. If a concurrent confirm takes
    the chosen staff member first, assignment runs again without them, so
    an auto-assigned confirm only fails when no candidate is left.

    Raises:
        StateTransitionError: not PENDING (re-confirm included)
        NoStaffAvailableError: auto-assignment found nobody
        StaffUnavailableError: specified staff off schedule or on leave
        SlotConflictError: overlapping CONFIRMED booking exists
    """
    booking = require_in_tenant(Booking, booking_id, tenant_id, label="Booking")
    require_transition(booking, "CONFIRMED")
    tenant = validate_tenant_active(tenant_id)
    day = booking.booking_date

    if booking.staff_id is not None:
        return _confirm_on_staff(tenant, booking_id, booking.staff_id, day, auto_assigned=False)

    start, end, service_item_id = booking.start_time, booking.end_time, booking.service_item_id
    lost: set[int] = set()
    while True:
        staff_id = assign_staff(
            tenant_id, day, start, end, service_item_id,
            exclude_booking_id=booking_id,
            exclude_staff_ids=lost,
        ).id
        try:
            return _confirm_on_staff(tenant, booking_id, staff_id, day, auto_assigned=True)
        except SlotConflictError:
            # StaffUnavailableError included: the pick went stale before the guard
            lost.add(staff_id)
            current_app.logger.info(
                "Booking %s lost staff %s to a concurrent confirm; reassigning (tenant %s)",
                booking_id, staff_id, tenant_id,
            )


def _apply_transition(
    tenant_id: int,
    booking_id: int,
    to_status: str,
    *,
    event_type: str,
    reason: str | None = None,
    on_apply=None,
) -> Booking:
    """
    Status change without a slot check.

    The status precondition is re-read on every attempt; a concurrent
    writer bumps version_id, the commit raises StaleDataError, and the
    retry sees the new status.
    """
    require_in_tenant(Booking, booking_id, tenant_id, label="Booking")

    def _op() -> Booking:
        b = _reload(tenant_id, booking_id)
        require_transition(b, to_status)
        from_status = b.status
        b.status = to_status
        if on_apply is not None:
            on_apply(b)
        append_booking_event(b, event_type=event_type, from_status=from_status, reason=reason)
        db.session.commit()
        _log_transition(b, from_status)
        return b

    try:
        return run_with_retry(_op, **_retry_options())
    except BookingEngineError:
        db.session.rollback()
        raise


def cancel_booking(tenant_id: int, booking_id: int, reason: str | None = None) -> Booking:
    """PENDING or CONFIRMED -> CANCELLED. Frees the slot for later confirms."""
    def _apply(b: Booking) -> None:
        b.cancel_reason = reason
        b.cancelled_at = utcnow()

    return _apply_transition(
        tenant_id, booking_id, "CANCELLED",
        event_type="booking.cancelled", reason=reason, on_apply=_apply,
    )


def complete_booking(tenant_id: int, booking_id: int) -> Booking:
    def _apply(b: Booking) -> None:
        b.completed_at = utcnow()

    return _apply_transition(
        tenant_id, booking_id, "COMPLETED",
        event_type="booking.completed", on_apply=_apply,
    )


def mark_no_show(tenant_id: int, booking_id: int) -> Booking:
    """CONFIRMED -> NO_SHOW; bumps the customer's no-show counter in the same transaction."""
    def _apply(b: Booking) -> None:
        db.session.query(Customer).filter_by(id=b.customer_id, tenant_id=tenant_id).update(
            {Customer.no_show_count: Customer.no_show_count + 1},
            synchronize_session=False,
        )

    return _apply_transition(
        tenant_id, booking_id, "NO_SHOW",
        event_type="booking.no_show", on_apply=_apply,
    )


def update_booking(tenant_id: int, booking_id: int, fields: dict) -> Booking:
    """
    Edit a non-terminal booking.

    end_time is always recomputed; it is never accepted from the caller.
    For a CONFIRMED booking any change to staff, date, start time or
    service re-runs the confirm checks against the new interval.

    Raises:
        ValidationError: unknown field, clearing staff on a CONFIRMED booking
        StateTransitionError: booking is terminal
        SlotConflictError / StaffUnavailableError: new interval not free
    """
    if not isinstance(fields, dict):
        raise ValidationError("Invalid JSON payload")
    unknown = sorted(set(fields) - UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}", details={"fields": unknown})

    booking = require_in_tenant(Booking, booking_id, tenant_id, label="Booking")
    if is_terminal(booking.status):
        raise StateTransitionError(
            f"Cannot edit booking {booking.id} in status {external_status(booking.status)}",
            details={"booking_id": booking.id, "status": external_status(booking.status)},
        )
    tenant = validate_tenant_active(tenant_id)

    notes = {
        key: coerce_optional_text(key, fields[key])
        for key in ("customer_note", "store_note")
        if key in fields
    }
    new_date = coerce_date("booking_date", fields["booking_date"]) if "booking_date" in fields else booking.booking_date
    new_start = coerce_time("start_time", fields["start_time"]) if "start_time" in fields else booking.start_time

    service = None
    if "service_item_id" in fields:
        service_item_id = coerce_optional_int("service_item_id", fields["service_item_id"])
        if service_item_id is None:
            raise ValidationError("service_item_id cannot be null")
        service = _resolve_service(tenant_id, service_item_id)
    new_duration = service.duration_minutes if service is not None else booking.duration_minutes

    new_staff_id = booking.staff_id
    if "staff_id" in fields:
        requested = coerce_optional_int("staff_id", fields["staff_id"])
        if requested is None:
            if booking.status == "CONFIRMED":
                raise ValidationError("A confirmed booking must keep a staff member")
            new_staff_id = None
        else:
            new_staff_id = resolve_reference(Staff, requested, tenant_id, label="Staff").id

    schedule_changed = (
        new_date != booking.booking_date
        or new_start != booking.start_time
        or new_duration != booking.duration_minutes
        or new_staff_id != booking.staff_id
        or (service is not None and service.id != booking.service_item_id)
    )
    new_end = booking.end_time
    if new_date != booking.booking_date or new_start != booking.start_time:
        _ensure_not_past(tenant, new_date, new_start)
    if schedule_changed:
        new_end = derive_end_time(new_date, new_start, new_duration)

    def _guard():
        if schedule_changed and new_staff_id is not None:
            return slot_guard(tenant_id, new_staff_id, new_date)
        return nullcontext()

    def _op() -> Booking:
        with _guard():
            try:
                b = _reload(tenant_id, booking_id)
                if is_terminal(b.status):
                    raise StateTransitionError(
                        f"Cannot edit booking {b.id} in status {external_status(b.status)}",
                        details={"booking_id": b.id, "status": external_status(b.status)},
                    )
                if new_staff_id is None and b.status == "CONFIRMED":
                    raise ValidationError("A confirmed booking must keep a staff member")

                for key, value in notes.items():
                    setattr(b, key, value)

                if schedule_changed:
                    b.booking_date = new_date
                    b.start_time = new_start
                    b.end_time = new_end
                    b.duration_minutes = new_duration
                    b.staff_id = new_staff_id
                    if service is not None:
                        b.service_item_id = service.id
                    if b.status == "CONFIRMED":
                        _check_slot(tenant, b, new_staff_id)

                append_booking_event(b, event_type="booking.updated", from_status=b.status)
                db.session.commit()
            except IntegrityError:
                db.session.rollback()
                raise SlotConflictError(
                    "Time slot is already booked",
                    details={"staff_id": new_staff_id, "date": new_date.isoformat()},
                )
            except Exception:
                db.session.rollback()
                raise
        return b

    return run_with_retry(_op, **_retry_options())


def get_booking(tenant_id: int, booking_id: int) -> Booking:
    return require_in_tenant(Booking, booking_id, tenant_id, label="Booking")


def list_bookings(
    tenant_id: int,
    *,
    status: str | None = None,
    day: date | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    staff_id: int | None = None,
    limit: int | None = None,
) -> list[Booking]:
    """Tenant-scoped booking list ordered by date, start time, id."""
    q = db.session.query(Booking).filter(Booking.tenant_id == tenant_id)

    if status:
        q = q.filter(Booking.status == normalize_status(status))
    if day is not None:
        q = q.filter(Booking.booking_date == day)
    if date_from is not None and date_to is not None and date_from > date_to:
        raise TimeRangeError(
            "date range: date_from must not be after date_to",
            details={"date_from": date_from.isoformat(), "date_to": date_to.isoformat()},
        )
    if date_from is not None:
        q = q.filter(Booking.booking_date >= date_from)
    if date_to is not None:
        q = q.filter(Booking.booking_date <= date_to)
    if staff_id is not None:
        q = q.filter(Booking.staff_id == staff_id)

    if limit is None:
        limit = current_app.config.get("BOOKING_LIST_LIMIT", 500)

    return (
        q.order_by(Booking.booking_date.asc(), Booking.start_time.asc(), Booking.id.asc())
        .limit(limit)
        .all()
    )


def get_calendar(tenant_id: int, date_from: date, date_to: date) -> list[dict]:
    """Non-cancelled bookings between two dates (inclusive) as calendar events."""
    if date_from is None or date_to is None:
        raise ValidationError("start and end dates are required")
    if date_from > date_to:
        raise TimeRangeError(
            "calendar range: start must not be after end",
            details={"start": date_from.isoformat(), "end": date_to.isoformat()},
        )

    bookings = (
        db.session.query(Booking)
        .filter(
            Booking.tenant_id == tenant_id,
            Booking.booking_date >= date_from,
            Booking.booking_date <= date_to,
            Booking.status != "CANCELLED",
        )
        .order_by(Booking.booking_date.asc(), Booking.start_time.asc(), Booking.id.asc())
        .all()
    )
    return [b.to_calendar_event() for b in bookings]


def list_staff_day(tenant_id: int, staff_id: int, day: date) -> list[Booking]:
    """One staff member's PENDING and CONFIRMED bookings for a date."""
    require_in_tenant(Staff, staff_id, tenant_id, label="Staff")
    return (
        db.session.query(Booking)
        .filter(
            Booking.tenant_id == tenant_id,
            Booking.staff_id == staff_id,
            Booking.booking_date == day,
            Booking.status.in_(("PENDING", "CONFIRMED")),
        )
        .order_by(Booking.start_time.asc(), Booking.id.asc())
        .all()
    )
