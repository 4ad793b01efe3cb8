# Overview: Service-layer operations for service categories, services and customers.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Customer, ServiceCategory, ServiceItem
from ..errors import DuplicateError
from ..validation import ModelValidationPolicy, enforce_rules_service_item, validate_payload
from .tenant_service import resolve_reference


CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name"},
    required_on_create={"name"},
)

SERVICE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category_id", "duration_minutes", "price_cents", "is_active"},
    required_on_create={"name", "duration_minutes"},
)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email"},
    required_on_create={"name"},
)


def create_category(tenant_id: int, payload: dict) -> ServiceCategory:
    patch = validate_payload(model=ServiceCategory, payload=payload, policy=CATEGORY_POLICY, partial=False)
    if db.session.query(ServiceCategory).filter_by(tenant_id=tenant_id, name=patch["name"]).first():
        raise DuplicateError(f"Service category {patch['name']} already exists")

    category = ServiceCategory(tenant_id=tenant_id, **patch)
    db.session.add(category)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateError(f"Service category {patch['name']} already exists")
    return category


def list_categories(tenant_id: int) -> list[ServiceCategory]:
    return (
        db.session.query(ServiceCategory)
        .filter_by(tenant_id=tenant_id)
        .order_by(ServiceCategory.name.asc())
        .all()
    )


def create_service(tenant_id: int, payload: dict) -> ServiceItem:
    patch = validate_payload(model=ServiceItem, payload=payload, policy=SERVICE_POLICY, partial=False)
    enforce_rules_service_item(patch)
    resolve_reference(ServiceCategory, patch.get("category_id"), tenant_id, label="Service category")

    service = ServiceItem(tenant_id=tenant_id, **patch)
    db.session.add(service)
    db.session.commit()
    return service


def list_services(tenant_id: int, *, active_only: bool = False) -> list[ServiceItem]:
    q = db.session.query(ServiceItem).filter_by(tenant_id=tenant_id)
    if active_only:
        q = q.filter_by(is_active=True)
    return q.order_by(ServiceItem.name.asc(), ServiceItem.id.asc()).all()


def create_customer(tenant_id: int, payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    customer = Customer(tenant_id=tenant_id, **patch)
    db.session.add(customer)
    db.session.commit()
    return customer


def list_customers(tenant_id: int, *, search: str | None = None) -> list[Customer]:
    q = db.session.query(Customer).filter_by(tenant_id=tenant_id)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(db.or_(Customer.name.ilike(like), Customer.phone.ilike(like)))
    return q.order_by(Customer.name.asc(), Customer.id.asc()).limit(500).all()
