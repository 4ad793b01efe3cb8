# Overview: Flask API routes for staff, schedules, leave and availability.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_tenant
from ..errors import BookingEngineError, ValidationError
from ..services import availability_service, booking_service, staff_service
from ..validation import coerce_date
from appointly.time_utils import fmt_clock


staff_bp = Blueprint("staff", __name__, url_prefix="/api/staff")


def _error(e: BookingEngineError):
    return jsonify(e.to_dict()), e.status_code


@staff_bp.post("")
@require_tenant
def create_staff_route():
    payload = request.get_json(silent=True) or {}
    try:
        staff = staff_service.create_staff(g.tenant_id, payload)
        return jsonify({"staff": staff.to_dict()}), 201
    except BookingEngineError as e:
        return _error(e)


@staff_bp.get("")
@require_tenant
def list_staff_route():
    include_inactive = request.args.get("include_inactive", "true").lower() != "false"
    staff = staff_service.list_staff(g.tenant_id, include_inactive=include_inactive)
    return jsonify({"staff": [s.to_dict() for s in staff]})


@staff_bp.get("/bookable")
@require_tenant
def list_bookable_staff_route():
    """ACTIVE staff who take bookings; the roster offered to customers."""
    staff = staff_service.list_bookable_staff(g.tenant_id)
    return jsonify({"staff": [s.to_dict() for s in staff]})


@staff_bp.get("/<int:staff_id>")
@require_tenant
def get_staff_route(staff_id: int):
    try:
        staff = staff_service.get_staff(g.tenant_id, staff_id)
        return jsonify({"staff": staff.to_dict()})
    except BookingEngineError as e:
        return _error(e)


@staff_bp.patch("/<int:staff_id>")
@require_tenant
def update_staff_route(staff_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        staff = staff_service.update_staff(g.tenant_id, staff_id, payload)
        return jsonify({"staff": staff.to_dict()})
    except BookingEngineError as e:
        return _error(e)


@staff_bp.put("/<int:staff_id>/schedule")
@require_tenant
def update_schedule_route(staff_id: int):
    payload = request.get_json(silent=True) or {}
    # Accept either a bare list or {"schedules": [...]}
    entries = payload.get("schedules") if isinstance(payload, dict) else payload
    try:
        rows = staff_service.update_schedule(g.tenant_id, staff_id, entries)
        return jsonify({"schedules": [r.to_dict() for r in rows]})
    except BookingEngineError as e:
        return _error(e)


@staff_bp.get("/<int:staff_id>/schedule")
@require_tenant
def get_schedule_route(staff_id: int):
    try:
        rows = staff_service.get_schedule(g.tenant_id, staff_id)
        return jsonify({"schedules": [r.to_dict() for r in rows]})
    except BookingEngineError as e:
        return _error(e)


@staff_bp.post("/<int:staff_id>/leaves")
@require_tenant
def create_leaves_route(staff_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        leaves = staff_service.create_leaves(g.tenant_id, staff_id, payload)
        return jsonify({"leaves": [leave.to_dict() for leave in leaves]}), 201
    except BookingEngineError as e:
        return _error(e)


@staff_bp.get("/<int:staff_id>/leaves")
@require_tenant
def list_leaves_route(staff_id: int):
    try:
        date_from = request.args.get("date_from")
        date_to = request.args.get("date_to")
        leaves = staff_service.list_leaves(
            g.tenant_id,
            staff_id,
            date_from=coerce_date("date_from", date_from) if date_from else None,
            date_to=coerce_date("date_to", date_to) if date_to else None,
        )
        return jsonify({"leaves": [leave.to_dict() for leave in leaves]})
    except BookingEngineError as e:
        return _error(e)


@staff_bp.delete("/<int:staff_id>/leaves/<int:leave_id>")
@require_tenant
def delete_leave_route(staff_id: int, leave_id: int):
    try:
        staff_service.delete_leave(g.tenant_id, staff_id, leave_id)
        return jsonify({"message": "Leave removed"}), 200
    except BookingEngineError as e:
        return _error(e)


@staff_bp.delete("/<int:staff_id>/leaves")
@require_tenant
def delete_leave_by_date_route(staff_id: int):
    """
    Remove the leave on one date. Removing a date with no leave is not an error.

    Query: ?date=YYYY-MM-DD (required)
    """
    try:
        raw = request.args.get("date")
        if not raw:
            raise ValidationError("date is required")
        removed = staff_service.delete_leave_by_date(g.tenant_id, staff_id, coerce_date("date", raw))
        return jsonify({"message": "Leave removed" if removed else "No leave on that date", "removed": removed}), 200
    except BookingEngineError as e:
        return _error(e)


@staff_bp.get("/<int:staff_id>/availability")
@require_tenant
def availability_route(staff_id: int):
    """
    Free intervals for one date, plus the bookings already placed on it.

    Query: ?date=YYYY-MM-DD (required)
    """
    try:
        raw = request.args.get("date")
        if not raw:
            raise ValidationError("date is required")
        day = coerce_date("date", raw)

        staff_service.get_staff(g.tenant_id, staff_id)
        intervals = availability_service.get_available_intervals(g.tenant_id, staff_id, day)
        bookings = booking_service.list_staff_day(g.tenant_id, staff_id, day)

        return jsonify({
            "staff_id": staff_id,
            "date": day.isoformat(),
            "intervals": [{"start": fmt_clock(s), "end": fmt_clock(e)} for s, e in intervals],
            "bookings": [b.to_dict() for b in bookings],
        })
    except BookingEngineError as e:
        return _error(e)
