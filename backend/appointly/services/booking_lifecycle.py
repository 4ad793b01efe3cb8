# Overview: Booking status state machine; the closed status set and the legal transitions.

"""
Booking Lifecycle

================================================================================
PURPOSE: Enforce the PENDING -> CONFIRMED -> COMPLETED lifecycle for bookings
================================================================================

STATE MACHINE:
    PENDING -> CONFIRMED -> COMPLETED
    PENDING -> CANCELLED
    CONFIRMED -> CANCELLED
    CONFIRMED -> NO_SHOW

    PENDING:   Request received. Does NOT occupy a slot; may overlap anything.
    CONFIRMED: Committed slot. Participates in conflict detection.
    COMPLETED, CANCELLED, NO_SHOW: Terminal and immutable.

RULES (NON-NEGOTIABLE):
1. Only the transitions above exist. Anything else is a StateTransitionError.
2. Same-state transitions are errors too: re-confirming a CONFIRMED booking
   fails instead of silently succeeding.
3. PENDING -> CONFIRMED is the only transition that runs the conflict check.
4. Terminal bookings are never edited again.

Externally PENDING is shown as PENDING_CONFIRMATION. Both spellings are
accepted on input.
================================================================================
"""

from __future__ import annotations

from ..errors import StateTransitionError, ValidationError
from ..models.bookings import EXTERNAL_STATUS_NAMES


VALID_STATUSES = {"PENDING", "CONFIRMED", "COMPLETED", "CANCELLED", "NO_SHOW"}
TERMINAL_STATUSES = {"COMPLETED", "CANCELLED", "NO_SHOW"}

VALID_TRANSITIONS = {
    ("PENDING", "CONFIRMED"),
    ("PENDING", "CANCELLED"),
    ("CONFIRMED", "COMPLETED"),
    ("CONFIRMED", "CANCELLED"),
    ("CONFIRMED", "NO_SHOW"),
}

_INTERNAL_STATUS_NAMES = {v: k for k, v in EXTERNAL_STATUS_NAMES.items()}


def normalize_status(status: str) -> str:
    """
    Map an external or internal status name to the internal name.

    Raises:
        ValidationError: unknown status
    """
    if not isinstance(status, str):
        raise ValidationError("status must be a string")
    s = status.strip().upper()
    s = _INTERNAL_STATUS_NAMES.get(s, s)
    if s not in VALID_STATUSES:
        allowed = sorted(VALID_STATUSES | set(_INTERNAL_STATUS_NAMES))
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(allowed)}",
            details={"status": status},
        )
    return s


def external_status(status: str) -> str:
    return EXTERNAL_STATUS_NAMES.get(status, status)


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(from_status: str, to_status: str) -> bool:
    """
    Check if a state transition is valid according to the lifecycle rules.

    Unlike a no-op-friendly lifecycle, from == to is NOT allowed.
    """
    return (from_status, to_status) in VALID_TRANSITIONS


def require_transition(booking, to_status: str) -> None:
    """
    Raise StateTransitionError unless booking.status -> to_status is legal.
    """
    if not can_transition(booking.status, to_status):
        raise StateTransitionError(
            f"Cannot move booking {booking.id} from "
            f"{external_status(booking.status)} to {external_status(to_status)}",
            details={
                "booking_id": booking.id,
                "status": external_status(booking.status),
                "requested": external_status(to_status),
            },
        )
