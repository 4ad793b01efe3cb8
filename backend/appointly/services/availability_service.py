# Overview: Service-layer staff availability; working windows, breaks and leave for one day.

"""
Staff Availability Index

Answers "can this staff member work [start, end) on this date?".

SOURCES (in order):
1. StaffSchedule row for the weekday. A non-working day has no window.
2. No row for the weekday: the tenant's business hours (and business break).
   A tenant without business hours is open the whole day.
3. The break of whichever window applies is cut out.
4. StaffLeave for the date: full-day leave empties the day, partial leave
   is cut out.

Inactive or non-bookable staff have no availability at all.

Intervals are half-open [start, end) pairs of datetime.time, sorted and
non-overlapping.
"""

from __future__ import annotations

from datetime import date, time

from ..extensions import db
from ..models import Staff, StaffLeave, StaffSchedule, Tenant
from ..errors import NotFoundError


Interval = tuple[time, time]

# Whole-day window; bookings never cross midnight so time.max is a safe end
WHOLE_DAY: Interval = (time.min, time.max)


def subtract_interval(intervals: list[Interval], cut_start: time, cut_end: time) -> list[Interval]:
    """Remove [cut_start, cut_end) from every interval."""
    result: list[Interval] = []
    for start, end in intervals:
        if cut_end <= start or end <= cut_start:
            result.append((start, end))
            continue
        if start < cut_start:
            result.append((start, cut_start))
        if cut_end < end:
            result.append((cut_end, end))
    return result


def _tenant_window(tenant: Tenant) -> tuple[Interval, Interval | None]:
    if tenant.business_start_time is None or tenant.business_end_time is None:
        window = WHOLE_DAY
    else:
        window = (tenant.business_start_time, tenant.business_end_time)

    brk = None
    if tenant.break_start_time is not None and tenant.break_end_time is not None:
        brk = (tenant.break_start_time, tenant.break_end_time)
    return window, brk


def get_working_window(tenant_id: int, staff: Staff, day: date) -> tuple[Interval, Interval | None] | None:
    """
    The (window, break) that applies to staff on day, or None for a day off.
    """
    schedule = (
        db.session.query(StaffSchedule)
        .filter_by(tenant_id=tenant_id, staff_id=staff.id, day_of_week=day.weekday())
        .first()
    )

    tenant = db.session.get(Tenant, tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant not found")

    if schedule is None:
        return _tenant_window(tenant)

    if not schedule.is_working_day:
        return None

    if schedule.start_time is None or schedule.end_time is None:
        window, brk = _tenant_window(tenant)
    else:
        window, brk = (schedule.start_time, schedule.end_time), None

    if schedule.break_start_time is not None and schedule.break_end_time is not None:
        brk = (schedule.break_start_time, schedule.break_end_time)

    return window, brk


def _load_staff(tenant_id: int, staff_id: int) -> Staff:
    staff = db.session.query(Staff).filter_by(id=staff_id, tenant_id=tenant_id).first()
    if staff is None:
        raise NotFoundError("Staff not found", details={"id": staff_id})
    return staff


def get_available_intervals(tenant_id: int, staff_id: int, day: date) -> list[Interval]:
    staff = _load_staff(tenant_id, staff_id)
    if not staff.is_available:
        return []

    resolved = get_working_window(tenant_id, staff, day)
    if resolved is None:
        return []

    window, brk = resolved
    intervals = [window]
    if brk is not None:
        intervals = subtract_interval(intervals, *brk)

    leaves = (
        db.session.query(StaffLeave)
        .filter_by(tenant_id=tenant_id, staff_id=staff.id, leave_date=day)
        .all()
    )
    for leave in leaves:
        if leave.is_full_day or leave.start_time is None or leave.end_time is None:
            return []
        intervals = subtract_interval(intervals, leave.start_time, leave.end_time)

    return sorted(i for i in intervals if i[0] < i[1])


def is_staff_available(tenant_id: int, staff_id: int, day: date, start: time, end: time) -> bool:
    """True if [start, end) fits entirely inside one available interval."""
    for i_start, i_end in get_available_intervals(tenant_id, staff_id, day):
        if i_start <= start and end <= i_end:
            return True
    return False
