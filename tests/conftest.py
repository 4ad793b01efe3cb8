# Appointly Live-Server Test Suite - Shared Configuration and Fixtures
#
# This module provides:
# - Test server provisioning (ephemeral SQLite per test run)
# - Multi-tenant fixtures (two tenants, one client per tenant)
# - Failure message formatting
# - API-driven test data factory

import os
import sys
import time
import tempfile
import subprocess
import shutil
import itertools
from pathlib import Path
from datetime import date, timedelta
from typing import Generator, Optional, Dict, Any
from dataclasses import dataclass

import pytest
import httpx

# Add backend to path for imports
REPO_ROOT = Path(__file__).parent.parent
BACKEND_DIR = REPO_ROOT / "backend"
sys.path.insert(0, str(BACKEND_DIR))


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class TestConfig:
    """Test configuration with environment variable overrides."""
    backend_base_url: str = os.environ.get("TEST_BACKEND_URL", "http://127.0.0.1:5001")
    tenant_header: str = os.environ.get("TEST_TENANT_HEADER", "X-Tenant-ID")

    # Timeouts
    request_timeout: float = float(os.environ.get("TEST_REQUEST_TIMEOUT", "30"))
    server_startup_timeout: float = float(os.environ.get("TEST_SERVER_STARTUP_TIMEOUT", "30"))

    # Concurrency
    concurrent_clients: int = int(os.environ.get("TEST_CONCURRENT_CLIENTS", "8"))


# Far-future Sunday; never "in the past"
BOOKING_DAY = date(2099, 12, 13)


# =============================================================================
# FAILURE MESSAGE HELPER
# =============================================================================

class TestFailure(Exception):
    """
    Custom exception with detailed, human-readable failure messages.

    Structure:
    1. Scenario: What was being tested
    2. Expected: What should have happened
    3. Actual: What actually happened
    4. Likely Cause: Most probable reason for failure
    5. Code Location: Where to look in the codebase
    """

    def __init__(
        self,
        scenario: str,
        expected: str,
        actual: str,
        likely_cause: str,
        code_location: str,
        response: Optional[httpx.Response] = None,
        extra_context: Optional[Dict[str, Any]] = None
    ):
        self.scenario = scenario
        self.expected = expected
        self.actual = actual
        self.likely_cause = likely_cause
        self.code_location = code_location
        self.response = response
        self.extra_context = extra_context or {}

        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = [
            "",
            "=" * 80,
            "TEST FAILURE DETAILS",
            "=" * 80,
            f"SCENARIO: {self.scenario}",
            "-" * 80,
            f"EXPECTED: {self.expected}",
            f"ACTUAL: {self.actual}",
            "-" * 80,
            f"LIKELY CAUSE: {self.likely_cause}",
            f"CODE LOCATION: {self.code_location}",
        ]

        if self.response is not None:
            lines.extend([
                "-" * 80,
                f"HTTP STATUS: {self.response.status_code}",
                f"RESPONSE BODY: {self.response.text[:1000]}",
            ])

        if self.extra_context:
            lines.append("-" * 80)
            lines.append("EXTRA CONTEXT:")
            for key, value in self.extra_context.items():
                lines.append(f"  {key}: {value}")

        lines.append("=" * 80)
        return "\n".join(lines)


def assert_response(
    response: httpx.Response,
    expected_status: int,
    scenario: str,
    code_location: str,
    expected_code: Optional[str] = None
):
    """
    Assert HTTP response status and optionally the error code in the body.
    Raises TestFailure with detailed message on failure.
    """
    if response.status_code != expected_status:
        raise TestFailure(
            scenario=scenario,
            expected=f"HTTP {expected_status}",
            actual=f"HTTP {response.status_code}",
            likely_cause=_infer_cause(response),
            code_location=code_location,
            response=response
        )

    if expected_code is not None:
        actual_code = response.json().get("code")
        if actual_code != expected_code:
            raise TestFailure(
                scenario=scenario,
                expected=f"code {expected_code}",
                actual=f"code {actual_code}",
                likely_cause="Wrong error mapped in the route or service",
                code_location=code_location,
                response=response
            )


def _infer_cause(response: httpx.Response) -> str:
    """Infer likely cause from response status/body."""
    if response.status_code == 401:
        return "Tenant header missing"
    elif response.status_code == 403:
        return "Tenant isolation - the id belongs to another tenant"
    elif response.status_code == 404:
        return "Resource not found - wrong ID or wrong tenant context"
    elif response.status_code == 400:
        return "Invalid request - missing required field or validation failed"
    elif response.status_code == 409:
        return "Conflict - slot taken, illegal status transition or duplicate"
    elif response.status_code == 500:
        return "Server error - check backend logs for stack trace"
    elif response.status_code == 503:
        return "Database unavailable"
    else:
        return f"Unexpected status code {response.status_code}"


# =============================================================================
# HTTP CLIENT WITH TENANT CONTEXT
# =============================================================================

class APIClient:
    """
    HTTP client wrapper that sends the tenant header on every request.
    """

    def __init__(self, base_url: str, tenant_header: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.tenant_header = tenant_header
        self.client = httpx.Client(timeout=timeout)
        self.tenant: Optional[str] = None

    def _headers(self, extra: Optional[Dict] = None) -> Dict:
        headers = {"Content-Type": "application/json"}
        if self.tenant:
            headers[self.tenant_header] = self.tenant
        if extra:
            headers.update(extra)
        return headers

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.get(
            f"{self.base_url}{path}",
            headers=self._headers(),
            params=params,
            **kwargs
        )

    def post(self, path: str, json: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.post(
            f"{self.base_url}{path}",
            headers=self._headers(),
            json=json,
            **kwargs
        )

    def put(self, path: str, json: Any = None, **kwargs) -> httpx.Response:
        return self.client.put(
            f"{self.base_url}{path}",
            headers=self._headers(),
            json=json,
            **kwargs
        )

    def patch(self, path: str, json: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.patch(
            f"{self.base_url}{path}",
            headers=self._headers(),
            json=json,
            **kwargs
        )

    def close(self):
        """Close the HTTP client."""
        self.client.close()


# =============================================================================
# SERVER MANAGEMENT
# =============================================================================

class ServerManager:
    """
    Manages Flask backend server lifecycle for tests.
    """

    def __init__(self, config: TestConfig):
        self.config = config
        self.process: Optional[subprocess.Popen] = None
        self.db_file: Optional[Path] = None

    def start(self) -> bool:
        """Create the schema, then start the Flask server on it."""
        temp_dir = tempfile.mkdtemp(prefix="appointly_test_")
        self.db_file = Path(temp_dir) / "test_appointly.sqlite3"

        env = os.environ.copy()
        env["DATABASE_URL"] = f"sqlite:///{self.db_file}"

        self.initialize_db()

        port = self.config.backend_base_url.rsplit(":", 1)[-1].strip("/")
        self.process = subprocess.Popen(
            [sys.executable, "-m", "flask", "--app", "wsgi", "run", "--port", port],
            cwd=str(BACKEND_DIR),
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )

        return self._wait_for_server()

    def _wait_for_server(self) -> bool:
        """Wait for server to be responsive."""
        start_time = time.time()
        while time.time() - start_time < self.config.server_startup_timeout:
            try:
                response = httpx.get(f"{self.config.backend_base_url}/health", timeout=2.0)
                if response.status_code in (200, 503):  # 503 means degraded but running
                    return True
            except (httpx.ConnectError, httpx.TimeoutException):
                pass
            time.sleep(0.5)
        return False

    def stop(self):
        """Stop the Flask server and cleanup."""
        if self.process:
            self.process.terminate()
            try:
                self.process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self.process.kill()
            self.process = None

        if self.db_file and self.db_file.parent.exists():
            shutil.rmtree(self.db_file.parent, ignore_errors=True)

    def initialize_db(self):
        """Create the schema and the two test tenants by direct DB access."""
        from appointly import create_app
        from appointly.extensions import db
        from appointly.models import Tenant

        app = create_app(test_config={"SQLALCHEMY_DATABASE_URI": f"sqlite:///{self.db_file}"})

        with app.app_context():
            db.create_all()
            db.session.add_all([
                Tenant(name="Test Salon Alpha", code="ALPHA", is_active=True),
                Tenant(name="Test Clinic Beta", code="BETA", is_active=True),
            ])
            db.session.commit()
            db.session.remove()
            db.engine.dispose()


# =============================================================================
# TEST DATA FACTORY
# =============================================================================

class TestDataFactory:
    """
    Factory for creating test data via API calls.
    """

    # Shared across factories: every test in the session gets its own dates
    _day_offsets = itertools.count(1)

    def __init__(self, client: APIClient):
        self.client = client
        self._counter = 0

    def _next_id(self) -> int:
        self._counter += 1
        return self._counter

    def _expect(self, response: httpx.Response, status: int, scenario: str, code_location: str) -> Dict:
        if response.status_code == status:
            return response.json()
        raise TestFailure(
            scenario=scenario,
            expected=f"HTTP {status}",
            actual=f"HTTP {response.status_code}",
            likely_cause=_infer_cause(response),
            code_location=code_location,
            response=response
        )

    def create_staff(self, name: Optional[str] = None, sort_order: int = 0) -> Dict:
        n = self._next_id()
        response = self.client.post("/api/staff", json={"name": name or f"Staff {n}", "sort_order": sort_order})
        return self._expect(response, 201, "Create staff", "backend/appointly/routes/staff.py:create_staff_route")["staff"]

    def create_service(self, duration_minutes: int = 60) -> Dict:
        n = self._next_id()
        response = self.client.post("/api/services", json={
            "name": f"Service {n}",
            "duration_minutes": duration_minutes,
        })
        return self._expect(response, 201, "Create service", "backend/appointly/routes/catalog.py")["service"]

    def create_customer(self) -> Dict:
        n = self._next_id()
        response = self.client.post("/api/customers", json={"name": f"Customer {n}"})
        return self._expect(response, 201, "Create customer", "backend/appointly/routes/catalog.py")["customer"]

    def create_booking(
        self,
        service_id: int,
        customer_id: int,
        start_time: str,
        staff_id: Optional[int] = None,
        day: date = BOOKING_DAY,
    ) -> Dict:
        payload = {
            "service_item_id": service_id,
            "customer_id": customer_id,
            "booking_date": day.isoformat(),
            "start_time": start_time,
        }
        if staff_id is not None:
            payload["staff_id"] = staff_id
        response = self.client.post("/api/bookings", json=payload)
        return self._expect(
            response, 201, "Create booking",
            "backend/appointly/routes/bookings.py:create_booking_route",
        )["booking"]

    def fresh_day(self) -> date:
        """A distinct far-future date per call so tests never share a calendar."""
        return BOOKING_DAY + timedelta(days=next(self._day_offsets))


# =============================================================================
# PYTEST FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def test_config() -> TestConfig:
    """Provide test configuration."""
    return TestConfig()


@pytest.fixture(scope="session")
def server_manager(test_config: TestConfig) -> Generator[ServerManager, None, None]:
    """
    Manage test server lifecycle.
    Server is started once per test session.
    """
    manager = ServerManager(test_config)

    # For CI/external server mode, don't manage server
    if os.environ.get("TEST_EXTERNAL_SERVER"):
        yield manager
    else:
        if not manager.start():
            manager.stop()
            pytest.fail("Failed to start test server")
        yield manager
        manager.stop()


@pytest.fixture(scope="session")
def api_client(test_config: TestConfig, server_manager: ServerManager) -> Generator[APIClient, None, None]:
    client = APIClient(test_config.backend_base_url, test_config.tenant_header, timeout=test_config.request_timeout)
    yield client
    client.close()


@pytest.fixture
def client(api_client: APIClient) -> APIClient:
    """API client with no tenant context."""
    api_client.tenant = None
    return api_client


@pytest.fixture
def alpha_client(client: APIClient) -> APIClient:
    """API client scoped to tenant ALPHA."""
    client.tenant = "ALPHA"
    return client


@pytest.fixture
def beta_client(api_client: APIClient, test_config: TestConfig) -> Generator[APIClient, None, None]:
    """Separate API client scoped to tenant BETA."""
    beta = APIClient(test_config.backend_base_url, test_config.tenant_header, timeout=test_config.request_timeout)
    beta.tenant = "BETA"
    yield beta
    beta.close()


@pytest.fixture
def factory(alpha_client: APIClient) -> TestDataFactory:
    """Provide test data factory for tenant ALPHA."""
    return TestDataFactory(alpha_client)


# =============================================================================
# TEST MARKERS
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "smoke: Quick smoke tests for critical paths")
    config.addinivalue_line("markers", "bookings: Booking lifecycle tests")
    config.addinivalue_line("markers", "tenant: Multi-tenant isolation tests")
    config.addinivalue_line("markers", "concurrent: Concurrency tests")
