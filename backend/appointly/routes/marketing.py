# Overview: Flask API routes for coupons and campaigns.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_tenant
from ..errors import BookingEngineError
from ..services import marketing_service


marketing_bp = Blueprint("marketing", __name__, url_prefix="/api")


@marketing_bp.post("/coupons")
@require_tenant
def create_coupon_route():
    payload = request.get_json(silent=True) or {}
    try:
        coupon = marketing_service.create_coupon(g.tenant_id, payload)
        return jsonify({"coupon": coupon.to_dict()}), 201
    except BookingEngineError as e:
        return jsonify(e.to_dict()), e.status_code


@marketing_bp.get("/coupons")
@require_tenant
def list_coupons_route():
    coupons = marketing_service.list_coupons(g.tenant_id)
    return jsonify({"coupons": [c.to_dict() for c in coupons]})


@marketing_bp.post("/campaigns")
@require_tenant
def create_campaign_route():
    payload = request.get_json(silent=True) or {}
    try:
        campaign = marketing_service.create_campaign(g.tenant_id, payload)
        return jsonify({"campaign": campaign.to_dict()}), 201
    except BookingEngineError as e:
        return jsonify(e.to_dict()), e.status_code


@marketing_bp.get("/campaigns")
@require_tenant
def list_campaigns_route():
    campaigns = marketing_service.list_campaigns(g.tenant_id)
    return jsonify({"campaigns": [c.to_dict() for c in campaigns]})
