# Overview: Shared start/end validation used by every surface that accepts a time range.

"""
Time Range Validation

WHY: Staff schedules, staff leave, tenant business hours, coupon validity
windows and campaign validity windows all accept "start before end" and
"inner window inside outer window" input. They must reject a reversed range
the same way, so they all depend on this module instead of comparing
values themselves.

RULES:
1. start < end, strictly. Equal instants are invalid, not a zero-length range.
2. Nested windows: outer_start <= inner_start < inner_end <= outer_end.
3. Values may be time, date or datetime, but both sides of a comparison
   must be the same kind.

Every rejection raises TimeRangeError (a ValidationError).
"""

from __future__ import annotations

from ..errors import TimeRangeError, ValidationError


def validate_range(start, end, *, field: str = "time range") -> None:
    """
    Reject unless start < end.

    Raises:
        ValidationError: a bound is missing
        TimeRangeError: start >= end
    """
    if start is None or end is None:
        raise ValidationError(f"{field}: start and end are required")

    if type(start) is not type(end):
        raise ValidationError(f"{field}: start and end must be the same kind of value")

    if not start < end:
        raise TimeRangeError(
            f"{field}: start must be before end",
            details={"field": field, "start": start.isoformat(), "end": end.isoformat()},
        )


def validate_nested(
    outer_start,
    outer_end,
    inner_start,
    inner_end,
    *,
    field: str = "time range",
    inner_field: str = "inner window",
) -> None:
    """
    Validate an outer range and an inner window contained in it.

    Typical use: a break inside working hours.
    """
    validate_range(outer_start, outer_end, field=field)
    validate_range(inner_start, inner_end, field=inner_field)

    if not (outer_start <= inner_start and inner_end <= outer_end):
        raise TimeRangeError(
            f"{inner_field} must fall within {field}",
            details={
                "field": inner_field,
                "outer_start": outer_start.isoformat(),
                "outer_end": outer_end.isoformat(),
                "inner_start": inner_start.isoformat(),
                "inner_end": inner_end.isoformat(),
            },
        )


def validate_optional_window(start, end, *, field: str) -> bool:
    """
    Both-or-neither check for optional windows.

    Returns True when the window is set, False when both bounds are None.
    """
    if start is None and end is None:
        return False
    if start is None or end is None:
        raise ValidationError(f"{field}: both start and end must be set, or neither")
    return True
