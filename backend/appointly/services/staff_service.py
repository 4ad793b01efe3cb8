# Overview: Service-layer operations for staff, weekly schedules and leave.

"""
Staff Service

WHY: Staff records, their weekly working hours and their leave are the
inputs of the availability index. Every range entered here goes through
the shared time-range rules so a reversed schedule or leave window is
rejected the same way as any other range.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import ServiceCategory, Staff, StaffLeave, StaffSchedule
from ..errors import DuplicateError, NotFoundError, ValidationError
from ..validation import (
    ModelValidationPolicy,
    coerce_date,
    coerce_time,
    enforce_rules_leave,
    enforce_rules_staff,
    validate_payload,
)
from appointly.time_utils import local_now
from .tenant_service import require_in_tenant, resolve_reference, validate_tenant_active
from .time_range import validate_nested, validate_optional_window, validate_range


STAFF_POLICY = ModelValidationPolicy(
    writable_fields={"name", "display_name", "status", "is_bookable", "sort_order"},
    required_on_create={"name"},
)

SCHEDULE_FIELDS = {"day_of_week", "is_working_day", "start_time", "end_time", "break_start_time", "break_end_time"}
LEAVE_FIELDS = {"leave_date", "leave_dates", "leave_type", "reason", "is_full_day", "start_time", "end_time"}

# Upper bound for a single leave request
MAX_LEAVE_DAYS = 60


def _resolve_categories(tenant_id: int, category_ids) -> list[ServiceCategory]:
    if category_ids is None:
        return []
    if not isinstance(category_ids, list):
        raise ValidationError("category_ids must be a list")
    return [resolve_reference(ServiceCategory, cid, tenant_id, label="Service category") for cid in category_ids]


def create_staff(tenant_id: int, payload: dict) -> Staff:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    category_ids = payload.pop("category_ids", None)

    patch = validate_payload(model=Staff, payload=payload, policy=STAFF_POLICY, partial=False)
    enforce_rules_staff(patch)

    staff = Staff(tenant_id=tenant_id, **patch)
    staff.categories = _resolve_categories(tenant_id, category_ids)
    db.session.add(staff)
    db.session.commit()
    return staff


def update_staff(tenant_id: int, staff_id: int, payload: dict) -> Staff:
    staff = require_in_tenant(Staff, staff_id, tenant_id, label="Staff")

    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    has_categories = "category_ids" in payload
    category_ids = payload.pop("category_ids", None)

    patch = validate_payload(model=Staff, payload=payload, policy=STAFF_POLICY, partial=True)
    enforce_rules_staff(patch)

    for k, v in patch.items():
        setattr(staff, k, v)
    if has_categories:
        staff.categories = _resolve_categories(tenant_id, category_ids)

    db.session.commit()
    return staff


def list_staff(tenant_id: int, *, include_inactive: bool = True) -> list[Staff]:
    q = db.session.query(Staff).filter_by(tenant_id=tenant_id)
    if not include_inactive:
        q = q.filter_by(status="ACTIVE")
    return q.order_by(Staff.sort_order.asc(), Staff.id.asc()).all()


def list_bookable_staff(tenant_id: int) -> list[Staff]:
    """ACTIVE staff who take bookings, in roster order."""
    return (
        db.session.query(Staff)
        .filter_by(tenant_id=tenant_id, status="ACTIVE", is_bookable=True)
        .order_by(Staff.sort_order.asc(), Staff.id.asc())
        .all()
    )


def get_staff(tenant_id: int, staff_id: int) -> Staff:
    return require_in_tenant(Staff, staff_id, tenant_id, label="Staff")


def _parse_schedule_entry(entry: dict) -> dict:
    if not isinstance(entry, dict):
        raise ValidationError("Each schedule entry must be an object")
    unknown = sorted(set(entry) - SCHEDULE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    if "day_of_week" not in entry:
        raise ValidationError("day_of_week is required")
    day_of_week = entry["day_of_week"]
    if isinstance(day_of_week, bool) or not isinstance(day_of_week, int) or not 0 <= day_of_week <= 6:
        raise ValidationError("day_of_week must be an integer 0 (Monday) to 6 (Sunday)")

    is_working_day = entry.get("is_working_day", True)
    if not isinstance(is_working_day, bool):
        raise ValidationError("is_working_day must be true or false")

    parsed = {
        "day_of_week": day_of_week,
        "is_working_day": is_working_day,
        "start_time": None,
        "end_time": None,
        "break_start_time": None,
        "break_end_time": None,
    }
    if not is_working_day:
        return parsed

    for key in ("start_time", "end_time", "break_start_time", "break_end_time"):
        if entry.get(key) is not None:
            parsed[key] = coerce_time(key, entry[key])

    has_hours = validate_optional_window(parsed["start_time"], parsed["end_time"], field="working hours")
    has_break = validate_optional_window(parsed["break_start_time"], parsed["break_end_time"], field="break")

    if has_hours and has_break:
        validate_nested(
            parsed["start_time"], parsed["end_time"],
            parsed["break_start_time"], parsed["break_end_time"],
            field="working hours", inner_field="break",
        )
    elif has_hours:
        validate_range(parsed["start_time"], parsed["end_time"], field="working hours")
    elif has_break:
        validate_range(parsed["break_start_time"], parsed["break_end_time"], field="break")

    return parsed


def update_schedule(tenant_id: int, staff_id: int, entries: list) -> list[StaffSchedule]:
    """
    Upsert weekly schedule rows.

    All entries are validated before anything is written; one bad day
    rejects the whole request.
    """
    staff = require_in_tenant(Staff, staff_id, tenant_id, label="Staff")
    if not isinstance(entries, list) or not entries:
        raise ValidationError("schedules must be a non-empty list")

    parsed = [_parse_schedule_entry(e) for e in entries]
    days = [p["day_of_week"] for p in parsed]
    if len(days) != len(set(days)):
        raise ValidationError("day_of_week must not repeat")

    existing = {
        s.day_of_week: s
        for s in db.session.query(StaffSchedule).filter_by(tenant_id=tenant_id, staff_id=staff.id).all()
    }
    for p in parsed:
        row = existing.get(p["day_of_week"])
        if row is None:
            row = StaffSchedule(tenant_id=tenant_id, staff_id=staff.id, day_of_week=p["day_of_week"])
            db.session.add(row)
        for k, v in p.items():
            setattr(row, k, v)

    db.session.commit()
    return get_schedule(tenant_id, staff.id)


def get_schedule(tenant_id: int, staff_id: int) -> list[StaffSchedule]:
    require_in_tenant(Staff, staff_id, tenant_id, label="Staff")
    return (
        db.session.query(StaffSchedule)
        .filter_by(tenant_id=tenant_id, staff_id=staff_id)
        .order_by(StaffSchedule.day_of_week.asc())
        .all()
    )


def _leave_dates(payload: dict) -> list[date]:
    if "leave_dates" in payload and payload["leave_dates"] is not None:
        raw = payload["leave_dates"]
        if not isinstance(raw, list) or not raw:
            raise ValidationError("leave_dates must be a non-empty list")
        dates = [coerce_date("leave_dates", d) for d in raw]
    elif payload.get("leave_date") is not None:
        dates = [coerce_date("leave_date", payload["leave_date"])]
    else:
        raise ValidationError("leave_date or leave_dates is required")

    dates = sorted(set(dates))
    if len(dates) > MAX_LEAVE_DAYS:
        raise ValidationError(f"A leave request cannot exceed {MAX_LEAVE_DAYS} days")
    return dates


def create_leaves(tenant_id: int, staff_id: int, payload: dict) -> list[StaffLeave]:
    """
    Record leave for one or more dates.

    Partial-day leave needs start_time < end_time. Dates that already have
    leave are skipped, not overwritten. Past dates are rejected.
    """
    tenant = validate_tenant_active(tenant_id)
    staff = require_in_tenant(Staff, staff_id, tenant_id, label="Staff")

    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    unknown = sorted(set(payload) - LEAVE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    dates = _leave_dates(payload)
    today = local_now(tenant.timezone).date()
    past = [d for d in dates if d < today]
    if past:
        raise ValidationError(
            "Cannot record leave for a past date",
            details={"dates": [d.isoformat() for d in past]},
        )

    rules = {"leave_type": str(payload.get("leave_type") or "PERSONAL")}
    enforce_rules_leave(rules)

    is_full_day = payload.get("is_full_day", True)
    if not isinstance(is_full_day, bool):
        raise ValidationError("is_full_day must be true or false")

    start_time = end_time = None
    if not is_full_day:
        start_time = coerce_time("start_time", payload.get("start_time")) if payload.get("start_time") is not None else None
        end_time = coerce_time("end_time", payload.get("end_time")) if payload.get("end_time") is not None else None
        validate_range(start_time, end_time, field="leave time")

    reason = payload.get("reason")
    if reason is not None:
        reason = str(reason).strip()[:200] or None

    already = {
        leave.leave_date
        for leave in db.session.query(StaffLeave)
        .filter(StaffLeave.tenant_id == tenant_id, StaffLeave.staff_id == staff.id, StaffLeave.leave_date.in_(dates))
        .all()
    }

    created = []
    for d in dates:
        if d in already:
            continue
        leave = StaffLeave(
            tenant_id=tenant_id,
            staff_id=staff.id,
            leave_date=d,
            leave_type=rules["leave_type"],
            reason=reason,
            is_full_day=is_full_day,
            start_time=start_time,
            end_time=end_time,
        )
        db.session.add(leave)
        created.append(leave)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateError("Leave already recorded for one of the dates")
    return created


def list_leaves(
    tenant_id: int,
    staff_id: int,
    *,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[StaffLeave]:
    require_in_tenant(Staff, staff_id, tenant_id, label="Staff")
    q = db.session.query(StaffLeave).filter_by(tenant_id=tenant_id, staff_id=staff_id)
    if date_from is not None:
        q = q.filter(StaffLeave.leave_date >= date_from)
    if date_to is not None:
        q = q.filter(StaffLeave.leave_date <= date_to)
    return q.order_by(StaffLeave.leave_date.asc()).all()


def delete_leave(tenant_id: int, staff_id: int, leave_id: int) -> None:
    """
    Remove one leave row. The date becomes bookable again at once.

    Raises:
        NotFoundError: staff or leave not in tenant, or leave of another staff member
    """
    staff = require_in_tenant(Staff, staff_id, tenant_id, label="Staff")
    leave = (
        db.session.query(StaffLeave)
        .filter_by(id=leave_id, tenant_id=tenant_id, staff_id=staff.id)
        .first()
    )
    if leave is None:
        raise NotFoundError("Leave not found", details={"id": leave_id, "staff_id": staff.id})

    leave_date = leave.leave_date
    db.session.delete(leave)
    db.session.commit()
    current_app.logger.info(
        "Removed leave %s (%s) for staff %s (tenant %s)",
        leave_id, leave_date.isoformat(), staff.id, tenant_id,
    )


def delete_leave_by_date(tenant_id: int, staff_id: int, leave_date: date) -> int:
    """Remove the leave recorded for one date. Returns how many rows went (0 or 1)."""
    staff = require_in_tenant(Staff, staff_id, tenant_id, label="Staff")
    removed = (
        db.session.query(StaffLeave)
        .filter_by(tenant_id=tenant_id, staff_id=staff.id, leave_date=leave_date)
        .delete(synchronize_session="fetch")
    )
    db.session.commit()
    if removed:
        current_app.logger.info(
            "Removed leave on %s for staff %s (tenant %s)",
            leave_date.isoformat(), staff.id, tenant_id,
        )
    return removed
