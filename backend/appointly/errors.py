# Overview: Business error taxonomy for the scheduling engine.

"""
Scheduling Engine Errors

Every error here is an expected business outcome. Routes translate them
into 4xx JSON bodies using ``status_code`` and ``code``; none of them may
surface as a 5xx. Only infrastructure failures (database unavailable after
retries) are server faults, and those are not modelled here.
"""

from __future__ import annotations


class BookingEngineError(Exception):
    """Base exception for all scheduling engine errors."""

    status_code = 400
    code = "BOOKING_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class ValidationError(BookingEngineError, ValueError):
    """400-level input problem."""

    status_code = 400
    code = "VALIDATION_ERROR"


class TimeRangeError(ValidationError):
    """
    A start/end pair is reversed, empty, or an inner window escapes its outer one.

    Shared by every surface that accepts a time range so they all reject
    the same way.
    """

    code = "INVALID_TIME_RANGE"


class NotFoundError(BookingEngineError):
    """Id does not resolve within the caller's tenant."""

    status_code = 404
    code = "NOT_FOUND"


class StateTransitionError(BookingEngineError):
    """Operation is illegal for the booking's current status."""

    status_code = 409
    code = "INVALID_STATE"


class SlotConflictError(BookingEngineError):
    """A CONFIRMED booking already occupies an overlapping interval."""

    status_code = 409
    code = "SLOT_CONFLICT"


class StaffUnavailableError(SlotConflictError):
    """The staff member is off schedule or on leave for the requested interval."""

    code = "STAFF_UNAVAILABLE"


class NoStaffAvailableError(BookingEngineError):
    """Auto-assignment found no eligible, conflict-free staff member."""

    status_code = 409
    code = "NO_STAFF_AVAILABLE"


class TenantIsolationError(BookingEngineError):
    """Request targeted a resource owned by another tenant."""

    status_code = 403
    code = "TENANT_ISOLATION"


class DuplicateError(BookingEngineError):
    """409-level uniqueness conflict on reference data (e.g. duplicate coupon code)."""

    status_code = 409
    code = "DUPLICATE"
