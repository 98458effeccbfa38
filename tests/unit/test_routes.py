"""
API route tests with a mocked database.

Run: pytest tests/unit/test_routes.py -v
"""

import pytest
from decimal import Decimal
from unittest.mock import patch

from config.settings import settings

# Import test utilities
from tests.factories import CatalogFactory, OrderFactory


@pytest.fixture
def api(test_client_with_mock_db, seeded_db):
    for table, rows in CatalogFactory.tables().items():
        seeded_db.set_table_data(table, rows)
    return test_client_with_mock_db


class TestRootRoutes:
    """Tests for / and /health"""

    def test_root(self, api):
        """Should describe the API."""
        # Act
        response = api.get("/")

        # Assert
        assert response.status_code == 200
        assert response.json()["name"] == "Candy Shop API"

    def test_health_reports_database(self, api):
        """Should report a healthy mocked database."""
        # Act
        response = api.get("/health")

        # Assert
        assert response.status_code == 200
        assert response.json()["database"]["status"] == "healthy"


class TestPricingRoutes:
    """Tests for /api/pricing"""

    def test_quote(self, api):
        """Should return the priced breakdown."""
        # Act
        response = api.post("/api/pricing/quote", json={
            "category_id": "wedding-hearts",
            "packaging": [{"option_id": "jar-250", "quantity": 2}],
        })

        # Assert
        assert response.status_code == 200
        body = response.json()
        assert Decimal(str(body["total"])) == Decimal("30")
        assert Decimal(str(body["base_price"])) == Decimal("20")

    def test_unknown_category(self, api):
        """Should return 422 with the error envelope."""
        # Act
        response = api.post("/api/pricing/quote", json={
            "category_id": "nope",
            "packaging": [{"option_id": "jar-250", "quantity": 1}],
        })

        # Assert
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "UNKNOWN_CATEGORY"


class TestOrderRoutes:
    """Tests for /api/orders"""

    def test_unknown_order(self, api):
        """Should return 404 for an unknown order."""
        # Act
        response = api.get("/api/orders/missing")

        # Assert
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "ORDER_NOT_FOUND"

    def test_list_hides_archived(self, api, seeded_db):
        """Should hide archived orders by default."""
        # Arrange
        seeded_db.set_table_data("orders", [
            OrderFactory.create(),
            OrderFactory.create(status="archived"),
        ])

        # Act
        response = api.get("/api/orders")

        # Assert
        assert response.status_code == 200
        assert response.json()["total"] == 1


class TestProductionRoutes:
    """Tests for /api/production"""

    def test_past_date_assignment(self, api, seeded_db):
        """Should return 409 for a slot date in the past."""
        # Arrange
        order = OrderFactory.create()
        seeded_db.set_table_data("orders", [order])

        # Act
        response = api.post("/api/production/assignments", json={
            "order_id": order["id"],
            "slot_date": "2020-01-06",
            "slot_index": 1,
            "kg_assigned": 1,
        })

        # Assert
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "PAST_DATE_ASSIGNMENT"

    def test_weekend_block_status(self, api):
        """Should report the weekly default block for a Saturday."""
        # Act
        response = api.get("/api/production/blocks/2026-03-07")

        # Assert
        assert response.status_code == 200
        assert response.json()["blocked"] is True


class TestCheckoutRoutes:
    """Tests for /api/checkout"""

    def test_webhook_without_secret(self, api):
        """Should return 503 when the webhook secret is missing."""
        # Act
        with patch.object(settings, "woo_webhook_secret", None):
            response = api.post(
                "/api/checkout/woo/webhook",
                content=b"{}",
                headers={"x-wc-webhook-signature": "abc"},
            )

        # Assert
        assert response.status_code == 503

    def test_webhook_ping(self, api):
        """Should acknowledge the Woo delivery URL ping."""
        # Act
        response = api.get("/api/checkout/woo/webhook")

        # Assert
        assert response.json() == {"ok": True}
