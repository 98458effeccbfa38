"""
Refund service.

Refunds a paid order through the provider that charged it. The order
row is only touched after the provider confirms the refund.
"""

from decimal import Decimal
from typing import Optional
import structlog

from config import get_supabase_client
from models.order import OrderRecord, OrderStatus, PaymentProvider, RefundRequest
from exceptions import (
    DatabaseError,
    ExternalServiceError,
    RefundNotAllowedError,
    ValidationError,
)
from integrations import paypal, square
from integrations.woo import get_woo_client
from services.order_service import get_order_service
from services.email_service import get_email_service
from utils.date_utils import utc_now

logger = structlog.get_logger(__name__)


class RefundService:
    """Provider refunds for paid orders."""

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "orders"
        self.order_service = get_order_service()
        self.email_service = get_email_service()
        self.woo = get_woo_client()

    def refund(self, order_id: str, request: Optional[RefundRequest] = None) -> OrderRecord:
        """
        Refund an order.

        Args:
            order_id: Order to refund
            request: Optional amount (defaults to total_price) and reason

        Returns:
            Updated order

        Raises:
            RefundNotAllowedError: Missing payment details or unsupported provider
            ValidationError: Amount is not positive
            ExternalServiceError: Provider rejected the refund (order unchanged)
        """
        request = request or RefundRequest()
        order = self.order_service.get(order_id)

        if not order.payment_provider or not order.payment_transaction_id:
            raise RefundNotAllowedError(order_id, "Missing payment details")
        if order.status == OrderStatus.REFUNDED.value:
            raise RefundNotAllowedError(order_id, "Order is already refunded")

        amount = request.amount if request.amount is not None else (order.total_price or Decimal("0"))
        if amount <= 0:
            raise ValidationError(
                "Refund amount must be greater than zero",
                code="INVALID_REFUND_AMOUNT",
                details={"order_id": order_id, "amount": float(amount)}
            )

        reason = (request.reason or "").strip() or None
        transaction_id = str(order.payment_transaction_id)

        if order.payment_provider == PaymentProvider.SQUARE.value:
            square.refund_payment(transaction_id, square.to_minor_units(amount), reason)
        elif order.payment_provider == PaymentProvider.PAYPAL.value:
            paypal.refund_capture(transaction_id, amount, reason)
        else:
            raise RefundNotAllowedError(order_id, f"Unsupported provider: {order.payment_provider}")

        logger.info(
            "order_refunded_with_provider",
            order_id=order_id,
            provider=order.payment_provider,
            amount=float(amount)
        )

        changes = {
            "status": OrderStatus.REFUNDED.value,
            "refunded_at": utc_now().isoformat(),
            "refund_reason": reason,
            "woo_order_status": "refunded",
        }
        try:
            result = self.db.table(self.table).update(changes).eq("id", order_id).execute()
        except Exception as e:
            # Provider refund already went through
            logger.error("refund_record_failed", order_id=order_id, provider=order.payment_provider, error=str(e))
            raise DatabaseError("update", str(e))

        refunded = OrderRecord(**result.data[0]) if result.data else order

        if order.woo_order_id:
            try:
                self.woo.update_order(str(order.woo_order_id), {"status": "refunded"})
            except ExternalServiceError as e:
                logger.warning("woo_refund_status_update_failed", order_id=order_id, error=e.message)

        if order.customer_email:
            self.email_service.send_customer_refund_email(
                [order.customer_email],
                order_number=order.order_number,
                amount=amount,
                payment_method=order.payment_method or order.payment_provider,
            )

        return refunded


# Singleton instance
_refund_service: Optional[RefundService] = None


def get_refund_service() -> RefundService:
    """Get or create RefundService instance."""
    global _refund_service
    if _refund_service is None:
        _refund_service = RefundService()
    return _refund_service
