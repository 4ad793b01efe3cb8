from __future__ import annotations
from datetime import date, datetime, time

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Integer, String, Text, Time
from sqlalchemy.orm import DeclarativeMeta

from appointly.errors import ValidationError
from appointly.time_utils import parse_clock_time, parse_iso_date, parse_iso_datetime


# Longest bookable service: one full day
MAX_DURATION_MINUTES = 24 * 60

# Maximum price: 9,999,999.99 in minor units
MAX_PRICE_CENTS = 999_999_999

VALID_LEAVE_TYPES = {"PERSONAL", "SICK", "VACATION", "ANNUAL", "OTHER"}
VALID_STAFF_STATUSES = {"ACTIVE", "INACTIVE"}
VALID_SOURCES = {"WEB", "CHAT", "ADMIN"}


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(key: str, value: Any) -> int:
    # bool is a subclass of int
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    # DateTime is checked before Date: it is not a subclass, but keep the order explicit
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, Date):
        return coerce_date(col.key, value)

    if isinstance(coltype, Time):
        return coerce_time(col.key, value)

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def coerce_date(key: str, value: Any) -> date:
    """'YYYY-MM-DD' or date -> date."""
    if isinstance(value, datetime):
        raise ValidationError(f"{key} must be a date (YYYY-MM-DD)")
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            d = parse_iso_date(value)
        except ValueError:
            raise ValidationError(f"{key} must be a date (YYYY-MM-DD)")
        if d is None:
            raise ValidationError(f"{key} must be a date (YYYY-MM-DD)")
        return d
    raise ValidationError(f"{key} must be a date (YYYY-MM-DD)")


def coerce_time(key: str, value: Any) -> time:
    """'HH:MM' or time -> time (seconds dropped, no timezone)."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if isinstance(value, str):
        try:
            t = parse_clock_time(value)
        except ValueError:
            raise ValidationError(f"{key} must be a time (HH:MM)")
        if t is None:
            raise ValidationError(f"{key} must be a time (HH:MM)")
        return t.replace(second=0, microsecond=0)
    raise ValidationError(f"{key} must be a time (HH:MM)")


def coerce_optional_int(key: str, value: Any) -> int | None:
    if value is None:
        return None
    return _coerce_int(key, value)


def coerce_optional_text(key: str, value: Any) -> str | None:
    """Free-text field: None stays None, strings are stripped, anything else is rejected."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value.strip()


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}", details={"field": k})
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}", details={"field": k})

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_service_item(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "duration_minutes" in patch and patch["duration_minutes"] is not None:
        duration = patch["duration_minutes"]
        if duration <= 0:
            raise ValidationError("duration_minutes must be > 0")
        if duration > MAX_DURATION_MINUTES:
            raise ValidationError(f"duration_minutes cannot exceed {MAX_DURATION_MINUTES}")

    if "price_cents" in patch and patch["price_cents"] is not None:
        price = patch["price_cents"]
        if price < 0:
            raise ValidationError("price_cents must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS}")


def enforce_rules_staff(patch: dict) -> None:
    if "status" in patch and patch["status"] is not None:
        patch["status"] = patch["status"].upper()
        if patch["status"] not in VALID_STAFF_STATUSES:
            raise ValidationError(
                f"Invalid status '{patch['status']}'. Must be one of: {', '.join(sorted(VALID_STAFF_STATUSES))}"
            )


def enforce_rules_leave(patch: dict) -> None:
    if "leave_type" in patch and patch["leave_type"] is not None:
        patch["leave_type"] = patch["leave_type"].upper()
        if patch["leave_type"] not in VALID_LEAVE_TYPES:
            raise ValidationError(
                f"Invalid leave_type '{patch['leave_type']}'. Must be one of: {', '.join(sorted(VALID_LEAVE_TYPES))}"
            )
