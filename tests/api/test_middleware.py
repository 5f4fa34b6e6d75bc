"""Tests for API middleware and error mapping."""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from marketplace_orders.api.middleware import status_for
from marketplace_orders.domain.exceptions import (
    AlreadyReviewedError,
    ConcurrentModificationError,
    DomainError,
    InvalidOrderError,
    NumberGenerationConflictError,
    OrderNotFoundError,
    OrderNumberExhaustedError,
)
from marketplace_orders.main import create_app


class TestRequestIdMiddleware:
    """Tests for request ID correlation middleware."""

    def test_generates_request_id_if_not_provided(self, client: TestClient) -> None:
        """Should generate request ID if not in request headers."""
        response = client.get("/health")
        assert response.status_code == 200
        assert "X-Request-ID" in response.headers
        # UUID format
        request_id = response.headers["X-Request-ID"]
        assert len(request_id) == 36

    def test_uses_provided_request_id(self, client: TestClient) -> None:
        """Should use request ID from request headers."""
        custom_id = "custom-request-id-12345"
        response = client.get(
            "/health",
            headers={"X-Request-ID": custom_id},
        )
        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == custom_id

    def test_error_envelope_carries_request_id(self, client: TestClient) -> None:
        """Error responses echo the request ID in the body."""
        response = client.get(f"/orders/{uuid4()}", headers={"X-Request-ID": "trace-404"})

        assert response.status_code == 404
        assert response.json()["request_id"] == "trace-404"
        assert response.headers["X-Request-ID"] == "trace-404"


class TestErrorHandling:
    """Tests for the error envelope."""

    def test_unknown_route(self, client: TestClient) -> None:
        """Framework 404s use the same envelope."""
        response = client.get("/no-such-route")

        assert response.status_code == 404
        data = response.json()
        assert data["error_code"] == "ERROR"
        assert data["message"] == "Not Found"
        assert data["details"] == {}

    def test_unhandled_exception(self) -> None:
        """Unexpected exceptions become a 500 INTERNAL_ERROR envelope."""
        app = create_app()

        @app.get("/boom")
        async def boom() -> None:
            raise RuntimeError("kaboom")

        client = TestClient(app, raise_server_exceptions=False)
        response = client.get("/boom", headers={"X-Request-ID": "trace-500"})

        assert response.status_code == 500
        data = response.json()
        assert data["error_code"] == "INTERNAL_ERROR"
        assert "kaboom" not in data["message"]
        assert data["request_id"] == "trace-500"


class TestStatusMapping:
    """Tests for domain error to HTTP status mapping."""

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (OrderNotFoundError("order-1"), 404),
            (AlreadyReviewedError("order-1", "customer"), 409),
            (ConcurrentModificationError("order-1", attempts=5), 409),
            (InvalidOrderError("Quantity must be at least 1", "quantity"), 422),
            (NumberGenerationConflictError("ORD202610160001", attempts=25), 503),
            (OrderNumberExhaustedError("ORD20261016", 9999), 503),
        ],
    )
    def test_status_for(self, error: DomainError, expected: int) -> None:
        """Each domain error maps to its HTTP status."""
        assert status_for(error) == expected

    def test_unmapped_domain_error(self) -> None:
        """Unmapped domain errors are bad requests."""
        assert status_for(DomainError("Something odd")) == 400
