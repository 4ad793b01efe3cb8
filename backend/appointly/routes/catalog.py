# Overview: Flask API routes for reference data needed to book; categories, services, customers.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_tenant
from ..errors import BookingEngineError
from ..services import catalog_service


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


@catalog_bp.post("/service-categories")
@require_tenant
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        category = catalog_service.create_category(g.tenant_id, payload)
        return jsonify({"category": category.to_dict()}), 201
    except BookingEngineError as e:
        return jsonify(e.to_dict()), e.status_code


@catalog_bp.get("/service-categories")
@require_tenant
def list_categories_route():
    categories = catalog_service.list_categories(g.tenant_id)
    return jsonify({"categories": [c.to_dict() for c in categories]})


@catalog_bp.post("/services")
@require_tenant
def create_service_route():
    payload = request.get_json(silent=True) or {}
    try:
        service = catalog_service.create_service(g.tenant_id, payload)
        return jsonify({"service": service.to_dict()}), 201
    except BookingEngineError as e:
        return jsonify(e.to_dict()), e.status_code


@catalog_bp.get("/services")
@require_tenant
def list_services_route():
    active_only = request.args.get("active_only", "false").lower() == "true"
    services = catalog_service.list_services(g.tenant_id, active_only=active_only)
    return jsonify({"services": [s.to_dict() for s in services]})


@catalog_bp.post("/customers")
@require_tenant
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        customer = catalog_service.create_customer(g.tenant_id, payload)
        return jsonify({"customer": customer.to_dict()}), 201
    except BookingEngineError as e:
        return jsonify(e.to_dict()), e.status_code


@catalog_bp.get("/customers")
@require_tenant
def list_customers_route():
    customers = catalog_service.list_customers(g.tenant_id, search=request.args.get("q"))
    return jsonify({"customers": [c.to_dict() for c in customers]})
