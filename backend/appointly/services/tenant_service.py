"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

WHY: Centralize tenant validation logic for reuse across services and routes.
Every request is scoped to a tenant, and cross-tenant access must be
explicitly denied.

SECURITY INVARIANTS:
1. Every request has g.tenant_id set (see decorators.require_tenant)
2. Ids targeted by an operation (e.g. the booking being confirmed) are
   checked with require_in_tenant: a foreign id is a TenantIsolationError,
   never a silent 404
3. Ids referenced inside a payload (e.g. service_item_id on create) are
   resolved with resolve_reference: anything outside tenant scope is NotFound
4. Cross-tenant access attempts are logged as security events

USAGE:
    from appointly.services.tenant_service import require_in_tenant

    booking = require_in_tenant(Booking, booking_id, g.tenant_id, label="Booking")
"""

from __future__ import annotations

from ..extensions import db
from ..models import Tenant
from ..errors import NotFoundError, TenantIsolationError
from .audit_service import log_security_event


def validate_tenant_active(tenant_id: int) -> Tenant:
    """
    Validate that a tenant exists and is active.

    Raises:
        NotFoundError if the tenant doesn't exist or is inactive
    """
    tenant = db.session.query(Tenant).filter_by(id=tenant_id).first()

    if not tenant or not tenant.is_active:
        raise NotFoundError("Tenant not found")

    return tenant


def get_tenant(tenant_id: int) -> Tenant:
    tenant = db.session.get(Tenant, tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant not found")
    return tenant


def require_in_tenant(model, entity_id: int, tenant_id: int, *, label: str, query=None):
    """
    Load an entity the caller wants to act on, enforcing tenant ownership.

    SECURITY: Core tenant isolation check for ids taken from the URL.

    Args:
        model: SQLAlchemy model with a tenant_id column
        entity_id: id from the request
        tenant_id: caller's tenant (g.tenant_id)
        label: human name for error messages ("Booking", "Staff")
        query: optional pre-built query (e.g. with FOR UPDATE applied)

    Raises:
        NotFoundError if the id doesn't exist anywhere
        TenantIsolationError if the id belongs to another tenant
    """
    q = query if query is not None else db.session.query(model)
    entity = q.filter(model.id == entity_id).first()

    if entity is None:
        raise NotFoundError(f"{label} not found", details={"id": entity_id})

    if entity.tenant_id != tenant_id:
        # CRITICAL: Cross-tenant access attempt
        owner_tenant_id = entity.tenant_id
        db.session.rollback()
        log_security_event(
            event_type="CROSS_TENANT_ACCESS_DENIED",
            tenant_id=tenant_id,
            resource=f"{model.__tablename__}:{entity_id}",
            reason=f"{label} {entity_id} belongs to tenant {owner_tenant_id}, not {tenant_id}",
        )
        raise TenantIsolationError(f"{label} is outside your tenant scope", details={"id": entity_id})

    return entity


def resolve_reference(model, entity_id: int | None, tenant_id: int, *, label: str):
    """
    Resolve an id referenced from a payload within tenant scope.

    Returns None if entity_id is None. A foreign or unknown id is NotFound.
    """
    if entity_id is None:
        return None

    entity = db.session.query(model).filter_by(id=entity_id, tenant_id=tenant_id).first()
    if entity is None:
        raise NotFoundError(f"{label} not found", details={"id": entity_id})
    return entity
