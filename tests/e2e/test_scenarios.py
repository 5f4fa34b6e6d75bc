"""E2E scenarios for the order lifecycle.

Covers the journeys an order takes through the API:
1. Fulfillment from checkout to reviews
2. Cancellation and refund
3. Delivered order refund
4. Reporting over a mixed set of orders
"""

from typing import Any

from fastapi import status


def make_checkout(
    customer: str = "customer-e2e",
    city: str = "Chandigarh",
    payment_method: str = "stripe",
) -> dict[str, Any]:
    """Build a checkout payload for a two-line order with default fees."""
    return {
        "customer": customer,
        "products": [
            {
                "product_ref": "PROD-101",
                "name": "Crystal Chandelier",
                "unit_price": "215.00",
                "quantity": 2,
                "seller_ref": "seller-lumen",
            },
            {
                "product_ref": "PROD-102",
                "name": "Edison Bulb Pack",
                "unit_price": "12.50",
                "quantity": 4,
                "seller_ref": "seller-brightside",
            },
        ],
        "shipping_address": {
            "name": "Ethan Popa",
            "phone": "+91 172 555 0199",
            "address": "Sector 17 Plaza",
            "city": city,
            "state": "Punjab",
            "country": "India",
            "zip": "160017",
        },
        "payment_method": payment_method,
    }


# ============================================================================
# Scenario 1: Fulfillment
# ============================================================================


class TestScenario1Fulfillment:
    """An order walks the whole fulfillment path."""

    def test_checkout_to_reviews(self, e2e_client):
        """Scenario 1: checkout, payment, dispatch, delivery and reviews."""
        created = e2e_client.post("/orders", json=make_checkout())
        assert created.status_code == status.HTTP_201_CREATED
        order = created.json()
        order_id = order["id"]

        # 2 x 215.00 + 4 x 12.50 with default fees
        assert order["summary"]["subtotal"] == "480.00"
        assert order["summary"]["marketplace_fee"] == "48.00"
        assert order["summary"]["taxes"] == "38.40"
        assert order["summary"]["total"] == "576.40"

        steps = [
            ("post", "payment", {"status": "completed", "transaction_id": "pi_3Nx"}),
            ("patch", "status", {"status": "processing", "actor": "seller-lumen"}),
            ("patch", "assign-driver", {"driver": "driver-7"}),
            ("patch", "status", {"status": "in_transit", "location": "Ambala hub"}),
            ("patch", "status", {"status": "out_for_delivery", "location": "Chandigarh"}),
            ("patch", "deliver", {"proof_of_delivery": "pod/signature.png"}),
        ]
        for method, path, body in steps:
            response = getattr(e2e_client, method)(f"/orders/{order_id}/{path}", json=body)
            assert response.status_code == status.HTTP_200_OK, response.text

        customer_review = e2e_client.post(
            f"/orders/{order_id}/review/customer",
            json={"rating": 5, "text": "Beautiful chandelier, arrived intact"},
        )
        driver_review = e2e_client.post(
            f"/orders/{order_id}/review/driver",
            json={"rating": 4, "text": "Polite and on time"},
        )
        assert customer_review.status_code == status.HTTP_201_CREATED
        assert driver_review.status_code == status.HTTP_201_CREATED

        final = e2e_client.get(f"/orders/{order_id}").json()
        assert final["status"] == "delivered"
        assert final["is_paid"] is True
        assert final["driver"] == "driver-7"
        assert final["proof_of_delivery"] == "pod/signature.png"
        assert final["version"] == 9

    def test_tracking_reads_as_a_timeline(self, e2e_client):
        """Scenario 1b: tracking history lists every change newest first."""
        order_id = e2e_client.post("/orders", json=make_checkout()).json()["id"]
        e2e_client.patch(f"/orders/{order_id}/status", json={"status": "processing"})
        e2e_client.patch(f"/orders/{order_id}/assign-driver", json={"driver": "driver-7"})
        e2e_client.patch(f"/orders/{order_id}/deliver", json={})

        entries = e2e_client.get(f"/orders/{order_id}/tracking").json()["entries"]

        assert [entry["sequence"] for entry in entries] == [4, 3, 2, 1]
        assert [entry["status"] for entry in entries] == [
            "delivered",
            "processing",
            "processing",
            "pending",
        ]
        assert entries[0]["updated_by"] == "driver-7"
        assert entries[-1]["description"] == "Order placed"

    def test_no_way_back(self, e2e_client):
        """Scenario 1c: delivered orders cannot move backward or be cancelled."""
        order_id = e2e_client.post("/orders", json=make_checkout()).json()["id"]
        e2e_client.patch(f"/orders/{order_id}/deliver", json={})

        backward = e2e_client.patch(f"/orders/{order_id}/status", json={"status": "in_transit"})
        cancel = e2e_client.patch(f"/orders/{order_id}/cancel", json={"reason": "Too late"})
        driver = e2e_client.patch(f"/orders/{order_id}/assign-driver", json={"driver": "driver-8"})

        assert backward.status_code == status.HTTP_409_CONFLICT
        assert backward.json()["details"]["allowed_transitions"] == ["refunded"]
        assert cancel.status_code == status.HTTP_409_CONFLICT
        assert driver.status_code == status.HTTP_409_CONFLICT


# ============================================================================
# Scenario 2: Cancellation and Refund
# ============================================================================


class TestScenario2CancelAndRefund:
    """A paid order is cancelled and refunded."""

    def test_cancel_then_refund(self, e2e_client):
        """Scenario 2: cancellation keeps its reason, refund flips payment."""
        order_id = e2e_client.post("/orders", json=make_checkout()).json()["id"]
        e2e_client.post(f"/orders/{order_id}/payment", json={"status": "completed"})
        e2e_client.patch(f"/orders/{order_id}/status", json={"status": "processing"})

        cancelled = e2e_client.patch(
            f"/orders/{order_id}/cancel",
            json={"reason": "Seller out of stock", "actor": "seller-lumen"},
        )
        refunded = e2e_client.post(
            f"/orders/{order_id}/refund", json={"reason": "Seller out of stock"}
        )

        assert cancelled.json()["status"] == "cancelled"
        assert refunded.status_code == status.HTTP_200_OK
        data = refunded.json()
        assert data["status"] == "refunded"
        assert data["payment_details"]["status"] == "refunded"
        assert data["cancel_reason"] == "Seller out of stock"
        assert data["refund_reason"] == "Seller out of stock"

    def test_refunded_is_terminal(self, e2e_client):
        """Scenario 2b: nothing moves a refunded order."""
        order_id = e2e_client.post("/orders", json=make_checkout()).json()["id"]
        e2e_client.patch(f"/orders/{order_id}/cancel", json={"reason": "Duplicate order"})
        e2e_client.post(f"/orders/{order_id}/refund", json={"reason": "Duplicate order"})

        again = e2e_client.post(f"/orders/{order_id}/refund", json={"reason": "Again"})
        payment = e2e_client.post(f"/orders/{order_id}/payment", json={"status": "completed"})
        fees = e2e_client.patch(f"/orders/{order_id}/summary", json={"discount": "5"})

        assert again.status_code == status.HTTP_409_CONFLICT
        assert again.json()["details"]["allowed_transitions"] == []
        assert payment.status_code == status.HTTP_409_CONFLICT
        assert fees.status_code == status.HTTP_409_CONFLICT


# ============================================================================
# Scenario 3: Delivered Refund
# ============================================================================


class TestScenario3DeliveredRefund:
    """A delivered order is returned and refunded."""

    def test_refund_after_delivery(self, e2e_client):
        """Scenario 3: reviews survive the refund."""
        order_id = e2e_client.post("/orders", json=make_checkout()).json()["id"]
        e2e_client.patch(f"/orders/{order_id}/deliver", json={})
        e2e_client.post(
            f"/orders/{order_id}/review/customer",
            json={"rating": 2, "text": "One arm was bent"},
        )

        refunded = e2e_client.post(
            f"/orders/{order_id}/refund", json={"reason": "Damaged in transit"}
        )

        data = refunded.json()
        assert data["status"] == "refunded"
        assert data["customer_review"]["rating"] == 2
        assert data["actual_delivery_date"] is not None


# ============================================================================
# Scenario 4: Reporting
# ============================================================================


class TestScenario4Reporting:
    """Stats, listing and search over several orders."""

    def test_mixed_orders(self, e2e_client):
        """Scenario 4: stats and filters agree with the lifecycle calls."""
        delivered = e2e_client.post("/orders", json=make_checkout(customer="customer-a")).json()
        cancelled = e2e_client.post(
            "/orders", json=make_checkout(customer="customer-b", city="Seoul")
        ).json()
        e2e_client.post(
            "/orders",
            json=make_checkout(customer="customer-a", payment_method="cash_on_delivery"),
        )
        e2e_client.patch(f"/orders/{delivered['id']}/deliver", json={})
        e2e_client.patch(f"/orders/{cancelled['id']}/cancel", json={"reason": "Changed mind"})

        stats = e2e_client.get("/orders/stats", params={"period": "day"}).json()
        assert stats["total_orders"] == 3
        assert stats["total_revenue"] == "1729.20"
        assert stats["average_order_value"] == "576.40"
        assert stats["delivered_orders"] == 1
        assert stats["cancelled_orders"] == 1
        assert stats["pending_orders"] == 1
        assert stats["delivery_rate"] == "33.33"

        customer_a = e2e_client.get("/orders", params={"customer": "customer-a"}).json()
        cash = e2e_client.get("/orders", params={"payment_method": "cash_on_delivery"}).json()
        seoul = e2e_client.get("/orders/search", params={"q": "seoul"}).json()

        assert customer_a["total"] == 2
        assert cash["total"] == 1
        assert [item["id"] for item in seoul["items"]] == [cancelled["id"]]
