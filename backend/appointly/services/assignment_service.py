# Overview: Service-layer staff auto-assignment for bookings confirmed without a staff member.

from __future__ import annotations

from datetime import date, time

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Booking, ServiceItem, Staff, Tenant
from ..errors import NoStaffAvailableError
from .availability_service import is_staff_available
from .conflict_service import has_conflict
from .staff_service import list_bookable_staff


def eligible_staff(tenant_id: int, service_item: ServiceItem | None) -> list[Staff]:
    """
    ACTIVE + bookable staff of the tenant who can perform the service.

    Staff without category affinities can perform every service.
    """
    roster = list_bookable_staff(tenant_id)
    category_id = service_item.category_id if service_item is not None else None
    return [s for s in roster if s.can_perform(category_id)]


def _confirmed_load(tenant_id: int, day: date, staff_ids: list[int]) -> dict[int, int]:
    if not staff_ids:
        return {}
    rows = (
        db.session.query(Booking.staff_id, func.count(Booking.id))
        .filter(
            Booking.tenant_id == tenant_id,
            Booking.booking_date == day,
            Booking.status == "CONFIRMED",
            Booking.staff_id.in_(staff_ids),
        )
        .group_by(Booking.staff_id)
        .all()
    )
    return {staff_id: count for staff_id, count in rows}


def assign_staff(
    tenant_id: int,
    day: date,
    start: time,
    end: time,
    service_item_id: int | None,
    *,
    exclude_booking_id: int | None = None,
    exclude_staff_ids=(),
) -> Staff:
    """
    Pick one staff member who is available and conflict-free for [start, end).

    Deterministic order: fewest CONFIRMED bookings that day, then
    sort_order, then id. Staff in exclude_staff_ids are never picked.

    Raises:
        NoStaffAvailableError: empty roster or nobody free. Never falls back
        to an unavailable or conflicting staff member.
    """
    service_item = None
    if service_item_id is not None:
        service_item = db.session.query(ServiceItem).filter_by(id=service_item_id, tenant_id=tenant_id).first()

    tenant = db.session.get(Tenant, tenant_id)
    buffer_minutes = tenant.booking_buffer_minutes if tenant is not None else 0

    candidates = [
        s for s in eligible_staff(tenant_id, service_item)
        if s.id not in exclude_staff_ids
        and is_staff_available(tenant_id, s.id, day, start, end)
        and not has_conflict(
            tenant_id, s.id, day, start, end,
            exclude_booking_id=exclude_booking_id,
            buffer_minutes=buffer_minutes,
        )
    ]

    if not candidates:
        raise NoStaffAvailableError(
            "No staff member is available for the requested time",
            details={"date": day.isoformat(), "start_time": start.strftime("%H:%M"), "end_time": end.strftime("%H:%M")},
        )

    load = _confirmed_load(tenant_id, day, [s.id for s in candidates])
    chosen = min(candidates, key=lambda s: (load.get(s.id, 0), s.sort_order, s.id))

    current_app.logger.info(
        "Auto-assigned staff %s for %s %s-%s (tenant %s, %d candidates)",
        chosen.id, day.isoformat(), start.strftime("%H:%M"), end.strftime("%H:%M"),
        tenant_id, len(candidates),
    )
    return chosen
