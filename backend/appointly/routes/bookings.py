# Overview: Flask API routes for bookings; parses input and returns JSON responses.

"""
Booking Routes

TENANCY:
- Every route requires the tenant header (require_tenant).
- A booking id owned by another tenant answers 403 and leaves a security event.

Business errors come back as {"error", "code", "details"} with their 4xx status.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_tenant
from ..errors import BookingEngineError, ValidationError
from ..services import booking_service, event_service
from ..validation import coerce_date, coerce_optional_int, coerce_time


bookings_bp = Blueprint("bookings", __name__, url_prefix="/api/bookings")

CREATE_FIELDS = {"customer_id", "service_item_id", "staff_id", "booking_date", "start_time", "customer_note", "source"}


def _error(e: BookingEngineError):
    return jsonify(e.to_dict()), e.status_code


def _optional_date_arg(name: str):
    raw = request.args.get(name)
    return coerce_date(name, raw) if raw else None


@bookings_bp.post("")
@require_tenant
def create_booking_route():
    data = request.get_json(silent=True) or {}

    try:
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON payload")
        unknown = sorted(set(data) - CREATE_FIELDS)
        if unknown:
            # end_time and status are derived, never accepted
            raise ValidationError(f"Field not allowed: {', '.join(unknown)}", details={"fields": unknown})

        for key in ("customer_id", "service_item_id", "booking_date", "start_time"):
            if data.get(key) is None:
                raise ValidationError(f"{key} is required")

        booking = booking_service.create_booking(
            g.tenant_id,
            customer_id=coerce_optional_int("customer_id", data["customer_id"]),
            service_item_id=coerce_optional_int("service_item_id", data["service_item_id"]),
            staff_id=coerce_optional_int("staff_id", data.get("staff_id")),
            booking_date=coerce_date("booking_date", data["booking_date"]),
            start_time=coerce_time("start_time", data["start_time"]),
            customer_note=data.get("customer_note"),
            source=data.get("source") or "WEB",
        )
        return jsonify({"booking": booking.to_dict()}), 201
    except BookingEngineError as e:
        return _error(e)


@bookings_bp.get("")
@require_tenant
def list_bookings_route():
    try:
        limit = coerce_optional_int("limit", request.args.get("limit"))
        bookings = booking_service.list_bookings(
            g.tenant_id,
            status=request.args.get("status"),
            day=_optional_date_arg("date"),
            date_from=_optional_date_arg("date_from"),
            date_to=_optional_date_arg("date_to"),
            staff_id=coerce_optional_int("staff_id", request.args.get("staff_id")),
            limit=limit,
        )
        return jsonify({"bookings": [b.to_dict() for b in bookings]})
    except BookingEngineError as e:
        return _error(e)


@bookings_bp.get("/calendar")
@require_tenant
def calendar_route():
    try:
        events = booking_service.get_calendar(
            g.tenant_id,
            _optional_date_arg("start"),
            _optional_date_arg("end"),
        )
        return jsonify({"events": events})
    except BookingEngineError as e:
        return _error(e)


@bookings_bp.get("/<int:booking_id>")
@require_tenant
def get_booking_route(booking_id: int):
    try:
        booking = booking_service.get_booking(g.tenant_id, booking_id)
        return jsonify({"booking": booking.to_dict()})
    except BookingEngineError as e:
        return _error(e)


@bookings_bp.get("/<int:booking_id>/events")
@require_tenant
def booking_events_route(booking_id: int):
    try:
        booking_service.get_booking(g.tenant_id, booking_id)
        events = event_service.list_booking_events(g.tenant_id, booking_id)
        return jsonify({"events": [ev.to_dict() for ev in events]})
    except BookingEngineError as e:
        return _error(e)


@bookings_bp.patch("/<int:booking_id>")
@require_tenant
def update_booking_route(booking_id: int):
    data = request.get_json(silent=True) or {}

    try:
        booking = booking_service.update_booking(g.tenant_id, booking_id, data)
        return jsonify({"booking": booking.to_dict()})
    except BookingEngineError as e:
        return _error(e)


@bookings_bp.post("/<int:booking_id>/confirm")
@require_tenant
def confirm_booking_route(booking_id: int):
    try:
        booking = booking_service.confirm_booking(g.tenant_id, booking_id)
        return jsonify({"booking": booking.to_dict()})
    except BookingEngineError as e:
        return _error(e)


@bookings_bp.post("/<int:booking_id>/cancel")
@require_tenant
def cancel_booking_route(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = data.get("reason")

    try:
        booking = booking_service.cancel_booking(g.tenant_id, booking_id, reason=reason)
        return jsonify({"booking": booking.to_dict()})
    except BookingEngineError as e:
        return _error(e)


@bookings_bp.post("/<int:booking_id>/complete")
@require_tenant
def complete_booking_route(booking_id: int):
    try:
        booking = booking_service.complete_booking(g.tenant_id, booking_id)
        return jsonify({"booking": booking.to_dict()})
    except BookingEngineError as e:
        return _error(e)


@bookings_bp.post("/<int:booking_id>/no-show")
@require_tenant
def no_show_route(booking_id: int):
    try:
        booking = booking_service.mark_no_show(g.tenant_id, booking_id)
        return jsonify({"booking": booking.to_dict()})
    except BookingEngineError as e:
        return _error(e)
