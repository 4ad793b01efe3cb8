# Overview: Request decorators for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g

from .extensions import db
from .models import Tenant


def _resolve_tenant(raw: str) -> Tenant | None:
    raw = raw.strip()
    if raw.isdigit():
        return db.session.get(Tenant, int(raw))
    return db.session.query(Tenant).filter_by(code=raw.upper()).first()


def require_tenant(f):
    """
    Establish tenant context from the tenant header.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.tenant_id: The tenant ID - REQUIRED by every service call
    - g.tenant: The Tenant row

    The header carries a tenant id or a tenant code.

    Returns 401 if the header is missing, 404 if the tenant doesn't exist
    or is inactive. Authentication itself happens upstream.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        header = current_app.config.get("TENANT_HEADER", "X-Tenant-ID")
        raw = request.headers.get(header)

        if not raw or not raw.strip():
            return jsonify({"error": f"{header} header is required", "code": "TENANT_REQUIRED", "details": {}}), 401

        tenant = _resolve_tenant(raw)
        if tenant is None or not tenant.is_active:
            return jsonify({"error": "Tenant not found", "code": "NOT_FOUND", "details": {}}), 404

        g.tenant_id = tenant.id
        g.tenant = tenant

        return f(*args, **kwargs)

    return decorated_function
