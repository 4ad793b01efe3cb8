# Overview: Service-layer operations for tenant settings; business hours, break and booking buffer.

from __future__ import annotations

from ..extensions import db
from ..models import Tenant
from ..errors import ValidationError
from ..validation import coerce_optional_int, coerce_time
from .tenant_service import get_tenant
from .time_range import validate_nested, validate_optional_window, validate_range


BUSINESS_HOURS_FIELDS = {
    "business_start_time",
    "business_end_time",
    "break_start_time",
    "break_end_time",
    "booking_buffer_minutes",
}

MAX_BUFFER_MINUTES = 240


def get_business_hours(tenant_id: int) -> Tenant:
    return get_tenant(tenant_id)


def update_business_hours(tenant_id: int, payload: dict) -> Tenant:
    """
    Partial update of business hours.

    Merged values are validated together: the break must sit inside the
    business hours when both are set. Sending null clears a window.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    unknown = sorted(set(payload) - BUSINESS_HOURS_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    tenant = get_tenant(tenant_id)

    merged = {
        "business_start_time": tenant.business_start_time,
        "business_end_time": tenant.business_end_time,
        "break_start_time": tenant.break_start_time,
        "break_end_time": tenant.break_end_time,
    }
    for key in merged:
        if key in payload:
            merged[key] = None if payload[key] is None else coerce_time(key, payload[key])

    has_hours = validate_optional_window(merged["business_start_time"], merged["business_end_time"], field="business hours")
    has_break = validate_optional_window(merged["break_start_time"], merged["break_end_time"], field="break")

    if has_hours and has_break:
        validate_nested(
            merged["business_start_time"], merged["business_end_time"],
            merged["break_start_time"], merged["break_end_time"],
            field="business hours", inner_field="break",
        )
    elif has_hours:
        validate_range(merged["business_start_time"], merged["business_end_time"], field="business hours")
    elif has_break:
        validate_range(merged["break_start_time"], merged["break_end_time"], field="break")

    if "booking_buffer_minutes" in payload:
        buffer_minutes = coerce_optional_int("booking_buffer_minutes", payload["booking_buffer_minutes"])
        if buffer_minutes is None:
            buffer_minutes = 0
        if not 0 <= buffer_minutes <= MAX_BUFFER_MINUTES:
            raise ValidationError(f"booking_buffer_minutes must be between 0 and {MAX_BUFFER_MINUTES}")
        tenant.booking_buffer_minutes = buffer_minutes

    for k, v in merged.items():
        setattr(tenant, k, v)

    db.session.commit()
    return tenant
