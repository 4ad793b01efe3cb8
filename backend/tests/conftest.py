"""
Pytest fixtures for Appointly backend tests.

Provides test database setup, tenant isolation fixtures, and test client.
"""

from datetime import date, time

import pytest
from appointly import create_app
from appointly.extensions import db
from appointly.models import Tenant, Staff, ServiceCategory, ServiceItem, Customer
from appointly.services import booking_service


# Far enough ahead that "no booking in the past" never trips. A Sunday.
BOOKING_DAY = date(2099, 12, 13)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(test_config={
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CONFIRM_RETRY_BACKOFF_SECONDS': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Create Tenant A (first tenant)."""
    tenant = Tenant(name="Tenant A - Lotus Salon", code="LOTUS", is_active=True)
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Create Tenant B (second tenant)."""
    tenant = Tenant(name="Tenant B - Birch Clinic", code="BIRCH", is_active=True)
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def make_staff(db_session):
    """Factory: make_staff(tenant, name, **fields)."""
    def _make(tenant, name, **fields):
        staff = Staff(tenant_id=tenant.id, name=name, **fields)
        db_session.add(staff)
        db_session.commit()
        return staff
    return _make


@pytest.fixture(scope='function')
def alice(make_staff, tenant_a):
    return make_staff(tenant_a, "Alice", sort_order=1)


@pytest.fixture(scope='function')
def bob(make_staff, tenant_a):
    return make_staff(tenant_a, "Bob", sort_order=2)


@pytest.fixture(scope='function')
def category_a(db_session, tenant_a):
    category = ServiceCategory(tenant_id=tenant_a.id, name="Hair")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def service_a(db_session, tenant_a):
    """60-minute service in Tenant A."""
    service = ServiceItem(tenant_id=tenant_a.id, name="Haircut", duration_minutes=60, price_cents=50000)
    db_session.add(service)
    db_session.commit()
    return service


@pytest.fixture(scope='function')
def service_b(db_session, tenant_b):
    """30-minute service in Tenant B."""
    service = ServiceItem(tenant_id=tenant_b.id, name="Checkup", duration_minutes=30, price_cents=80000)
    db_session.add(service)
    db_session.commit()
    return service


@pytest.fixture(scope='function')
def customer_a(db_session, tenant_a):
    customer = Customer(tenant_id=tenant_a.id, name="Carol", phone="0912000111")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def customer_b(db_session, tenant_b):
    customer = Customer(tenant_id=tenant_b.id, name="Dave", phone="0912000222")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def make_booking(db_session, tenant_a, service_a, customer_a):
    """
    Factory: make_booking("10:00", staff=alice, day=BOOKING_DAY).

    Defaults to Tenant A, the 60-minute service and customer_a.
    """
    def _make(start="10:00", staff=None, day=BOOKING_DAY, tenant=None, service=None, customer=None):
        hh, mm = (int(p) for p in start.split(":"))
        return booking_service.create_booking(
            (tenant or tenant_a).id,
            customer_id=(customer or customer_a).id,
            service_item_id=(service or service_a).id,
            booking_date=day,
            start_time=time(hh, mm),
            staff_id=staff.id if staff is not None else None,
        )
    return _make


def tenant_headers(tenant) -> dict:
    """Helper to create tenant headers."""
    return {'X-Tenant-ID': str(tenant.id)}
