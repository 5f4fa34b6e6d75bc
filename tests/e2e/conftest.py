"""Shared fixtures for E2E tests.

Scenarios run against the full application with the in-memory backend.
"""

import pytest
from fastapi.testclient import TestClient

from marketplace_orders.main import app


@pytest.fixture
def e2e_client() -> TestClient:
    """Create test client tagged with a fixed request ID."""
    return TestClient(app, headers={"X-Request-ID": "e2e-test-request"})
