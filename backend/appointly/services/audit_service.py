# Overview: Service-layer operations for the security audit trail.

from __future__ import annotations

from flask import current_app, has_request_context, request

from ..extensions import db
from ..models import SecurityEvent
from appointly.time_utils import utcnow


def log_security_event(
    *,
    event_type: str,
    tenant_id: int | None,
    resource: str | None = None,
    reason: str | None = None,
) -> SecurityEvent:
    """
    Append a security event and commit it immediately.

    The event must survive even though the request that triggered it is
    about to fail, so it is committed on its own. Call this before the
    caller has pending writes.
    """
    event = SecurityEvent(
        tenant_id=tenant_id,
        event_type=event_type,
        resource=resource,
        reason=reason,
        occurred_at=utcnow(),
    )
    if has_request_context():
        event.action = request.method
        event.ip_address = request.remote_addr
        event.user_agent = request.headers.get("User-Agent")

    db.session.add(event)
    db.session.commit()

    current_app.logger.warning(
        "Security event %s tenant=%s resource=%s: %s",
        event_type, tenant_id, resource, reason,
    )
    return event
