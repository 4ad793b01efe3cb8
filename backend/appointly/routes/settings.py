# Overview: Flask API routes for tenant settings; business hours and booking buffer.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_tenant
from ..errors import BookingEngineError
from ..services import settings_service


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/business-hours")
@require_tenant
def get_business_hours_route():
    try:
        tenant = settings_service.get_business_hours(g.tenant_id)
        return jsonify({"business_hours": tenant.business_hours_dict()})
    except BookingEngineError as e:
        return jsonify(e.to_dict()), e.status_code


@settings_bp.put("/business-hours")
@require_tenant
def update_business_hours_route():
    payload = request.get_json(silent=True) or {}
    try:
        tenant = settings_service.update_business_hours(g.tenant_id, payload)
        return jsonify({"business_hours": tenant.business_hours_dict()})
    except BookingEngineError as e:
        return jsonify(e.to_dict()), e.status_code
