# Overview: Service-layer operations for coupons and campaigns (validity windows only).

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Campaign, Coupon
from ..errors import DuplicateError, ValidationError
from ..validation import ModelValidationPolicy, validate_payload
from .time_range import validate_range


COUPON_POLICY = ModelValidationPolicy(
    writable_fields={"name", "code", "discount_cents", "valid_start_at", "valid_end_at", "is_active"},
    required_on_create={"name", "valid_start_at", "valid_end_at"},
)

CAMPAIGN_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "start_at", "end_at", "is_active"},
    required_on_create={"name", "start_at", "end_at"},
)


def create_coupon(tenant_id: int, payload: dict) -> Coupon:
    patch = validate_payload(model=Coupon, payload=payload, policy=COUPON_POLICY, partial=False)
    validate_range(patch["valid_start_at"], patch["valid_end_at"], field="coupon validity")

    if patch.get("discount_cents") is not None and patch["discount_cents"] < 0:
        raise ValidationError("discount_cents must be >= 0")
    if patch.get("code"):
        patch["code"] = patch["code"].upper()
        if db.session.query(Coupon).filter_by(tenant_id=tenant_id, code=patch["code"]).first():
            raise DuplicateError(f"Coupon code {patch['code']} already exists")

    coupon = Coupon(tenant_id=tenant_id, **patch)
    db.session.add(coupon)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateError(f"Coupon code {patch.get('code')} already exists")
    return coupon


def list_coupons(tenant_id: int) -> list[Coupon]:
    return (
        db.session.query(Coupon)
        .filter_by(tenant_id=tenant_id)
        .order_by(Coupon.valid_start_at.asc(), Coupon.id.asc())
        .all()
    )


def create_campaign(tenant_id: int, payload: dict) -> Campaign:
    patch = validate_payload(model=Campaign, payload=payload, policy=CAMPAIGN_POLICY, partial=False)
    validate_range(patch["start_at"], patch["end_at"], field="campaign period")

    campaign = Campaign(tenant_id=tenant_id, **patch)
    db.session.add(campaign)
    db.session.commit()
    return campaign


def list_campaigns(tenant_id: int) -> list[Campaign]:
    return (
        db.session.query(Campaign)
        .filter_by(tenant_id=tenant_id)
        .order_by(Campaign.start_at.asc(), Campaign.id.asc())
        .all()
    )
