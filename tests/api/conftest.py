"""Shared fixtures for API tests."""

from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from marketplace_orders.main import app


@pytest.fixture
def client() -> TestClient:
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def order_payload() -> dict[str, Any]:
    """Checkout input for the 50x1 + 25x2 example order."""
    return {
        "customer": "customer-1",
        "products": [
            {
                "product_ref": "PROD-001",
                "name": "Crystal Chandelier",
                "unit_price": "50.00",
                "quantity": 1,
                "seller_ref": "seller-lumen",
            },
            {
                "product_ref": "PROD-002",
                "name": "Brass Desk Lamp",
                "unit_price": "25.00",
                "quantity": 2,
                "seller_ref": "seller-brightside",
            },
        ],
        "shipping_address": {
            "name": "Ethan Popa",
            "phone": "+62 21 555 0101",
            "address": "Jl. Sudirman Kav. 52",
            "city": "Jakarta",
            "state": "DKI Jakarta",
            "country": "Indonesia",
            "zip": "12190",
        },
        "payment_method": "credit_card",
        "shipping_fee": "10",
        "marketplace_fee": "2",
        "taxes": "8.7",
    }


@pytest.fixture
def create_order(client: TestClient, order_payload: dict[str, Any]) -> Callable[..., dict[str, Any]]:
    """Create an order through the API and return its JSON body."""

    def _create(**overrides: Any) -> dict[str, Any]:
        response = client.post("/orders", json={**order_payload, **overrides})
        assert response.status_code == 201, response.text
        return response.json()

    return _create
