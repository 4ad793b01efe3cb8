# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that cross-tenant access is denied for core resources.

These tests create two tenants with their own staff, services and
customers, then verify that:
1. Tenant A cannot read or transition bookings of Tenant B
2. Referencing a foreign service, customer or staff id is NotFound
3. Lists and conflict checks never cross the tenant boundary
4. Security events are logged for cross-tenant access attempts
"""

from datetime import time

import pytest

from appointly.errors import NotFoundError, TenantIsolationError
from appointly.models import Booking, Customer, SecurityEvent, Staff
from appointly.services import booking_service, staff_service
from appointly.services.tenant_service import require_in_tenant, resolve_reference

from conftest import BOOKING_DAY, tenant_headers


@pytest.fixture
def booking_b(db_session, tenant_b, service_b, customer_b, make_booking):
    """PENDING booking owned by Tenant B."""
    return make_booking("10:00", tenant=tenant_b, service=service_b, customer=customer_b)


class TestTenantServiceHelpers:
    """Test tenant_service helper functions."""

    def test_require_in_tenant_valid(self, db_session, tenant_a, alice):
        assert require_in_tenant(Staff, alice.id, tenant_a.id, label="Staff").id == alice.id

    def test_require_in_tenant_cross_tenant(self, db_session, tenant_a, booking_b):
        """Booking from a different tenant raises TenantIsolationError."""
        with pytest.raises(TenantIsolationError):
            require_in_tenant(Booking, booking_b.id, tenant_a.id, label="Booking")

    def test_require_in_tenant_nonexistent(self, db_session, tenant_a):
        with pytest.raises(NotFoundError):
            require_in_tenant(Booking, 99999, tenant_a.id, label="Booking")

    def test_resolve_reference_hides_foreign_ids(self, db_session, tenant_a, customer_b):
        with pytest.raises(NotFoundError):
            resolve_reference(Customer, customer_b.id, tenant_a.id, label="Customer")
        assert resolve_reference(Customer, None, tenant_a.id, label="Customer") is None


class TestBookingIsolation:
    def test_confirm_foreign_booking_denied(self, db_session, tenant_a, booking_b):
        with pytest.raises(TenantIsolationError):
            booking_service.confirm_booking(tenant_a.id, booking_b.id)

        db_session.refresh(booking_b)
        assert booking_b.status == "PENDING"

    def test_cross_tenant_attempt_logged(self, db_session, tenant_a, booking_b):
        with pytest.raises(TenantIsolationError):
            booking_service.cancel_booking(tenant_a.id, booking_b.id)

        event = db_session.query(SecurityEvent).filter_by(event_type="CROSS_TENANT_ACCESS_DENIED").one()
        assert event.tenant_id == tenant_a.id
        assert event.resource == f"bookings:{booking_b.id}"

    def test_update_foreign_booking_denied(self, db_session, tenant_a, booking_b):
        with pytest.raises(TenantIsolationError):
            booking_service.update_booking(tenant_a.id, booking_b.id, {"store_note": "hijack"})

    def test_create_with_foreign_service(self, db_session, tenant_a, customer_a, service_b):
        with pytest.raises(NotFoundError):
            booking_service.create_booking(
                tenant_a.id,
                customer_id=customer_a.id,
                service_item_id=service_b.id,
                booking_date=BOOKING_DAY,
                start_time=time(10),
            )

    def test_create_with_foreign_staff(self, db_session, tenant_a, tenant_b, make_staff, make_booking):
        outsider = make_staff(tenant_b, "Outsider")
        with pytest.raises(NotFoundError):
            make_booking("10:00", staff=outsider)

    def test_list_is_tenant_scoped(self, db_session, tenant_a, tenant_b, booking_b, make_booking):
        mine = make_booking("10:00")
        assert [b.id for b in booking_service.list_bookings(tenant_a.id)] == [mine.id]
        assert [b.id for b in booking_service.list_bookings(tenant_b.id)] == [booking_b.id]

    def test_foreign_confirmed_booking_does_not_block(
        self, db_session, tenant_a, tenant_b, alice, make_staff, service_b, customer_b, make_booking
    ):
        their_staff = make_staff(tenant_b, "Their Staff")
        theirs = make_booking("10:00", staff=their_staff, tenant=tenant_b, service=service_b, customer=customer_b)
        booking_service.confirm_booking(tenant_b.id, theirs.id)

        mine = make_booking("10:00", staff=alice)
        assert booking_service.confirm_booking(tenant_a.id, mine.id).status == "CONFIRMED"


class TestStaffIsolation:
    def test_schedule_of_foreign_staff_denied(self, db_session, tenant_a, tenant_b, make_staff):
        outsider = make_staff(tenant_b, "Outsider")
        with pytest.raises(TenantIsolationError):
            staff_service.update_schedule(tenant_a.id, outsider.id, [
                {"day_of_week": 0, "start_time": "09:00", "end_time": "18:00"},
            ])


class TestHttpIsolation:
    def test_missing_tenant_header(self, client, db_session):
        response = client.get("/api/bookings")
        assert response.status_code == 401
        assert response.get_json()["code"] == "TENANT_REQUIRED"

    def test_unknown_tenant(self, client, db_session):
        response = client.get("/api/bookings", headers={"X-Tenant-ID": "424242"})
        assert response.status_code == 404

    def test_inactive_tenant(self, client, db_session, tenant_a):
        tenant_a.is_active = False
        db_session.commit()
        response = client.get("/api/bookings", headers=tenant_headers(tenant_a))
        assert response.status_code == 404

    def test_tenant_code_header(self, client, db_session, tenant_a):
        response = client.get("/api/bookings", headers={"X-Tenant-ID": "lotus"})
        assert response.status_code == 200

    def test_get_foreign_booking_forbidden(self, client, db_session, tenant_a, booking_b):
        response = client.get(f"/api/bookings/{booking_b.id}", headers=tenant_headers(tenant_a))
        assert response.status_code == 403
        assert response.get_json()["code"] == "TENANT_ISOLATION"

    def test_confirm_foreign_booking_forbidden(self, client, db_session, tenant_a, booking_b):
        response = client.post(f"/api/bookings/{booking_b.id}/confirm", headers=tenant_headers(tenant_a))
        assert response.status_code == 403
        assert db_session.query(SecurityEvent).count() == 1
