"""
Unit tests for RefundService.

Run: pytest tests/unit/test_refund_service.py -v
Run with coverage: pytest tests/unit/test_refund_service.py --cov=services/refund_service
"""

import pytest
from unittest.mock import patch
from decimal import Decimal

# Import what we're testing
from services.refund_service import RefundService
from models.order import RefundRequest
from exceptions import ExternalServiceError, RefundNotAllowedError, ValidationError

# Import test utilities
from tests.factories import OrderFactory


@pytest.fixture
def square_order(seeded_db, mock_supabase) -> dict:
    row = OrderFactory.create_paid("square", total_price=30)
    mock_supabase.set_table_data("orders", [row])
    return row


class TestRefundServiceRefund:
    """Tests for RefundService.refund()"""

    def test_square_refund_full_total(self, square_order, mock_supabase):
        """Should refund the order total in cents and mark the order refunded."""
        # Arrange
        service = RefundService()

        # Act
        with patch("integrations.square.refund_payment") as refund_payment:
            order = service.refund(square_order["id"])

        # Assert
        refund_payment.assert_called_once_with(square_order["payment_transaction_id"], 3000, None)
        assert order.status == "refunded"
        assert order.refunded_at is not None
        assert mock_supabase.rows("orders")[0]["woo_order_status"] == "refunded"

    def test_paypal_partial_refund_with_reason(self, seeded_db, mock_supabase):
        """Should refund the requested amount on the PayPal capture."""
        # Arrange
        row = OrderFactory.create_paid("paypal", total_price=30)
        mock_supabase.set_table_data("orders", [row])
        service = RefundService()

        # Act
        with patch("integrations.paypal.refund_capture") as refund_capture:
            order = service.refund(row["id"], RefundRequest(amount=Decimal("10"), reason=" Damaged jar "))

        # Assert
        refund_capture.assert_called_once_with(row["payment_transaction_id"], Decimal("10"), "Damaged jar")
        assert order.refund_reason == "Damaged jar"

    def test_vendor_failure_leaves_order_untouched(self, square_order, mock_supabase):
        """Should propagate the provider error and change nothing locally."""
        # Arrange
        service = RefundService()
        declined = ExternalServiceError("square", "Refund declined")

        # Act & Assert
        with patch("integrations.square.refund_payment", side_effect=declined):
            with pytest.raises(ExternalServiceError):
                service.refund(square_order["id"])

        stored = mock_supabase.rows("orders")[0]
        assert stored["status"] == "pending"
        assert "refunded_at" not in stored

    def test_missing_payment_details(self, seeded_db, mock_supabase):
        """Should refuse orders without a provider transaction."""
        # Arrange
        row = OrderFactory.create()
        mock_supabase.set_table_data("orders", [row])

        # Act & Assert
        with pytest.raises(RefundNotAllowedError) as exc_info:
            RefundService().refund(row["id"])

        assert exc_info.value.message == "Refund failed: Missing payment details"

    def test_already_refunded(self, seeded_db, mock_supabase):
        """Should refuse a second refund."""
        # Arrange
        row = OrderFactory.create_paid("square", status="refunded")
        mock_supabase.set_table_data("orders", [row])

        # Act & Assert
        with patch("integrations.square.refund_payment") as refund_payment:
            with pytest.raises(RefundNotAllowedError):
                RefundService().refund(row["id"])

        refund_payment.assert_not_called()

    def test_non_positive_amount(self, square_order):
        """Should reject a zero refund amount."""
        with pytest.raises(ValidationError) as exc_info:
            RefundService().refund(square_order["id"], RefundRequest(amount=Decimal("0")))

        assert exc_info.value.code == "INVALID_REFUND_AMOUNT"

    def test_woo_status_failure_is_logged_only(self, seeded_db, mock_supabase):
        """Should still refund when the Woo status update fails."""
        # Arrange
        row = OrderFactory.create_paid("square", woo_order_id="812")
        mock_supabase.set_table_data("orders", [row])
        service = RefundService()

        # Act
        with patch("integrations.square.refund_payment"), \
                patch.object(service.woo, "update_order", side_effect=ExternalServiceError("woo", "down")) as update:
            order = service.refund(row["id"])

        # Assert
        update.assert_called_once_with("812", {"status": "refunded"})
        assert order.status == "refunded"

    def test_customer_is_emailed(self, square_order):
        """Should send the refund notice to the customer."""
        # Arrange
        service = RefundService()

        # Act
        with patch("integrations.square.refund_payment"), \
                patch.object(service.email_service, "send_customer_refund_email") as send:
            service.refund(square_order["id"])

        # Assert
        send.assert_called_once()
        assert send.call_args.args[0] == [square_order["customer_email"]]
        assert send.call_args.kwargs["amount"] == Decimal("30")

    def test_refunding_one_sibling_leaves_the_other(self, seeded_db, mock_supabase):
        """Should refund only the requested row of a split checkout."""
        # Arrange
        custom = OrderFactory.create_paid(
            "square", order_number="1000-a", total_price=30,
            payment_transaction_id="pay-1", woo_order_id="900",
        )
        premade = OrderFactory.create_premade(
            order_number="1000-b", status="pending", total_price=12,
            payment_provider="square", payment_transaction_id="pay-1",
            paid_at=custom["paid_at"], woo_order_id="900",
        )
        mock_supabase.set_table_data("orders", [custom, premade])
        service = RefundService()

        # Act
        with patch("integrations.square.refund_payment") as refund_payment, \
                patch.object(service.woo, "update_order"):
            service.refund(custom["id"])

        # Assert
        refund_payment.assert_called_once_with("pay-1", 3000, None)
        stored = {row["order_number"]: row for row in mock_supabase.rows("orders")}
        assert stored["1000-a"]["status"] == "refunded"
        assert stored["1000-b"]["status"] == "pending"
        assert stored["1000-b"].get("refunded_at") is None
