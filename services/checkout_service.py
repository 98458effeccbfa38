"""
Checkout service.

Turns a customer cart into a WooCommerce order plus order rows:

1. build_context(): validate, price custom items, load premade
   products, allocate order numbers, build Woo line items and rows
2. charge (Square / PayPal) or create an unpaid Woo order
3. create the Woo order, insert the rows, email customer and staff

The Woo webhook later marks unpaid Woo orders as paid.
"""

import json
from datetime import date
from decimal import Decimal
from typing import Any, Optional
import structlog

from config import get_supabase_client
from config.settings import settings
from models.order import OrderStatus, PaymentProvider, PREMADE_DESIGN_TYPE, apply_category_rules
from models.pricing import PricingRequest, PackagingLine
from models.checkout import (
    CheckoutOrderPayload,
    CheckoutCustomer,
    CustomCartItem,
    SquarePaymentRequest,
    PayPalCreateRequest,
    PayPalCaptureRequest,
    PaymentFailureReport,
    WooBilling,
    WooLineItem,
    CheckoutContext,
    CheckoutResult,
)
from exceptions import (
    AppError,
    DatabaseError,
    ExternalServiceError,
    OrderNumberExhaustedError,
    ValidationError,
    PremadeNotFoundError,
    InvalidSignatureError,
)
from integrations import paypal, square
from integrations.woo import WooClient, get_woo_client, verify_webhook_signature
from services.pricing_service import get_pricing_service, to_cents
from services.catalog_service import get_catalog_service
from services.calendar_service import get_calendar_service
from services.order_service import get_order_service
from services.email_service import get_email_service
from utils.date_utils import utc_now, to_datetime
from utils.order_numbers import (
    CUSTOM_KIND,
    PREMADE_KIND,
    build_sibling_numbers,
    cart_row_numbers,
)

logger = structlog.get_logger(__name__)

ORDER_SOURCE = "roccandy-api"
PAID_WOO_STATUSES = ("processing", "completed")
GRAMS_PER_KG = Decimal("1000")


def number_rows(rows: list[dict], kinds: list[str], base: str) -> list[dict]:
    """Stamp each cart row with its own order number from one base."""
    return [{**row, "order_number": number} for row, number in zip(rows, cart_row_numbers(kinds, base))]


def build_billing(customer: CheckoutCustomer, pickup: bool) -> WooBilling:
    """Woo billing block; address fields are blank for pickup."""

    def address(value: Optional[str]) -> str:
        return "" if pickup else (value or "")

    return WooBilling(
        first_name=customer.first_name,
        last_name=customer.last_name,
        email=customer.email,
        phone=customer.phone,
        address_1=address(customer.address_line1),
        address_2=address(customer.address_line2),
        city=address(customer.suburb),
        state=address(customer.state),
        postcode=address(customer.postcode),
    )


def _customer_columns(customer: CheckoutCustomer, pickup: bool, payment_preference: Optional[str]) -> dict:
    def address(value: Optional[str]) -> Optional[str]:
        return None if pickup else (value or None)

    return {
        "customer_name": customer.full_name,
        "customer_email": customer.email,
        "first_name": customer.first_name,
        "last_name": customer.last_name,
        "phone": customer.phone,
        "organization_name": customer.organization_name or None,
        "address_line1": address(customer.address_line1),
        "address_line2": address(customer.address_line2),
        "suburb": address(customer.suburb),
        "postcode": address(customer.postcode),
        "state": address(customer.state),
        "location": "Pickup" if pickup else (customer.suburb or None),
        "pickup": pickup,
        "payment_method": payment_preference,
    }


class CheckoutService:
    """
    Checkout business logic.

    Handles pricing the cart, payment provider calls and the Woo order.
    """

    def __init__(self, woo_client: Optional[WooClient] = None):
        self.db = get_supabase_client()
        self.table = "orders"
        self.failures_table = "payment_failures"
        self.woo = woo_client or get_woo_client()
        self.pricing_service = get_pricing_service()
        self.catalog_service = get_catalog_service()
        self.calendar_service = get_calendar_service()
        self.order_service = get_order_service()
        self.email_service = get_email_service()

    # ===================
    # CONTEXT
    # ===================

    def build_context(self, payload: CheckoutOrderPayload, today: Optional[date] = None) -> CheckoutContext:
        """
        Price and number a cart without writing anything.

        Raises:
            ValidationError: Empty cart, blocked date, bad item
            PricingError: An item cannot be priced
            PremadeNotFoundError: Unknown premade product
        """
        if not payload.custom_items and not payload.premade_items:
            raise ValidationError("Cart is empty", code="EMPTY_CART")

        has_custom = bool(payload.custom_items)
        has_premade = bool(payload.premade_items)

        if has_custom and not settings.woo_custom_product_id:
            raise ExternalServiceError("woo", "Woo custom product ID is not configured")

        self.calendar_service.ensure_quote_date_available(payload.due_date)

        numbers = build_sibling_numbers(
            self.order_service.generate_order_number(),
            has_custom=has_custom,
            has_premade=has_premade,
        )
        customer_columns = _customer_columns(payload.customer, payload.pickup, payload.payment_preference)
        due_date = payload.due_date.isoformat() if payload.due_date else None

        line_items: list[WooLineItem] = []
        rows: list[dict[str, Any]] = []
        kinds: list[str] = []

        for item in payload.custom_items:
            line_item, row = self._custom_item(item, payload.due_date, today)
            line_items.append(line_item)
            kinds.append(CUSTOM_KIND)
            rows.append({
                **customer_columns,
                **row,
                "due_date": due_date,
                "status": OrderStatus.PENDING_PAYMENT.value,
                "made": False,
            })

        premade = self.catalog_service.get_premade_many([i.premade_id for i in payload.premade_items])
        for item in payload.premade_items:
            candy = premade.get(item.premade_id)
            if candy is None:
                raise PremadeNotFoundError(item.premade_id)
            if not candy.woo_product_id:
                raise ValidationError(
                    f"Premade item {candy.name} is not synced to Woo",
                    code="PREMADE_NOT_SYNCED",
                    details={"premade_id": candy.id}
                )

            total_price = to_cents(candy.price * item.quantity)
            line_items.append(WooLineItem(
                product_id=int(candy.woo_product_id),
                quantity=item.quantity,
                total=f"{total_price:.2f}",
            ))
            kinds.append(PREMADE_KIND)
            rows.append({
                **customer_columns,
                "title": candy.name,
                "order_description": candy.description,
                "design_type": PREMADE_DESIGN_TYPE,
                "design_text": candy.name,
                "due_date": due_date,
                "quantity": item.quantity,
                "total_weight_kg": float(candy.weight_g * item.quantity / GRAMS_PER_KG),
                "total_price": float(total_price),
                "status": OrderStatus.PENDING_PAYMENT.value,
                "made": False,
            })

        total_amount = sum((Decimal(li.total) for li in line_items), Decimal("0"))

        return CheckoutContext(
            billing=build_billing(payload.customer, payload.pickup),
            due_date=payload.due_date,
            pickup=payload.pickup,
            payment_preference=payload.payment_preference,
            line_items=line_items,
            order_payloads=number_rows(rows, kinds, numbers.base),
            row_kinds=kinds,
            base_order_number=numbers.base,
            custom_order_number=numbers.custom,
            premade_order_number=numbers.premade,
            total_amount=total_amount,
        )

    def _custom_item(
        self,
        item: CustomCartItem,
        due_date: Optional[date],
        today: Optional[date],
    ) -> tuple[WooLineItem, dict]:
        if not item.category_id or not item.packaging_option_id:
            raise ValidationError(
                "Custom item is missing category or packaging",
                code="CUSTOM_ITEM_INCOMPLETE"
            )

        breakdown = self.pricing_service.quote(
            PricingRequest(
                category_id=item.category_id,
                packaging=[PackagingLine(option_id=item.packaging_option_id, quantity=item.quantity)],
                labels_count=item.labels_count,
                due_date=due_date,
                extras=item.jacket_extras,
            ),
            today=today,
        )
        if breakdown.total <= 0:
            raise ValidationError("Custom item pricing failed", code="CUSTOM_ITEM_UNPRICED")

        title = item.title or None
        line_item = WooLineItem(
            product_id=settings.woo_custom_product_id,
            name=f"Custom order: {title}" if title else "Custom order",
            quantity=1,
            total=f"{breakdown.total:.2f}",
        )

        row = apply_category_rules({
            "title": title,
            "order_description": item.description or None,
            "category_id": item.category_id,
            "packaging_option_id": item.packaging_option_id,
            "quantity": item.quantity,
            "jar_lid_color": item.jar_lid_color,
            "labels_count": item.labels_count,
            "label_image_url": item.label_image_url,
            "label_type_id": item.label_type_id,
            "jacket": item.jacket,
            "jacket_type": item.jacket_type,
            "jacket_color_one": item.jacket_color_one,
            "jacket_color_two": item.jacket_color_two,
            "text_color": item.text_color,
            "heart_color": item.heart_color,
            "flavor": item.flavor,
            "logo_url": item.logo_url,
            "design_type": item.design_type,
            "design_text": item.design_text,
            "notes": "Ingredient labels requested." if item.ingredient_labels_opt_in else None,
            "total_weight_kg": float(breakdown.total_weight_kg),
            "total_price": float(breakdown.total),
        }, derive_jacket=bool(item.jacket) and not item.jacket_type)

        return line_item, row

    # ===================
    # PAYMENTS
    # ===================

    def pay_with_square(self, request: SquarePaymentRequest) -> CheckoutResult:
        """
        Charge a Square token, then record the paid order.

        Raises:
            ExternalServiceError: Charge declined or Woo unavailable
        """
        customer_email = request.order.customer.email
        context = self._context_or_log(request.order, PaymentProvider.SQUARE)
        amount_cents = square.to_minor_units(context.total_amount)

        if amount_cents <= 0:
            self.log_payment_failure("square", "amount", "Invalid order total.", customer_email, context.total_amount)
            raise ValidationError("Invalid order total", code="INVALID_ORDER_TOTAL")

        try:
            payment = square.create_payment(
                source_id=request.source_id,
                amount_cents=amount_cents,
                reference_id=context.base_order_number,
                verification_token=request.verification_token,
                buyer_email=customer_email,
            )
        except ExternalServiceError as e:
            self.log_payment_failure("square", "charge", e.message, customer_email, context.total_amount)
            raise

        method_title = request.title or "Square"
        return self._complete_paid_order(
            context,
            provider=PaymentProvider.SQUARE,
            transaction_id=payment["id"],
            method_title=method_title,
            customer_email=customer_email,
            payment_id=payment["id"],
        )

    def create_paypal_order(self, request: PayPalCreateRequest) -> CheckoutResult:
        """Create a PayPal order for the cart total; the buyer approves it client side."""
        context = self._context_or_log(request.order, PaymentProvider.PAYPAL)

        try:
            order = paypal.create_order(context.total_amount, reference_id=context.base_order_number)
        except ExternalServiceError as e:
            self.log_payment_failure(
                "paypal", "create", e.message, request.order.customer.email, context.total_amount
            )
            raise

        return CheckoutResult(
            order_number=context.base_order_number,
            paypal_order_id=order["id"],
            total_amount=context.total_amount,
        )

    def capture_paypal(self, request: PayPalCaptureRequest) -> CheckoutResult:
        """
        Capture an approved PayPal order, then record the paid order.

        The capture id (not the order id) is stored for refunds.
        """
        customer_email = request.order.customer.email

        try:
            capture = paypal.capture_order(request.paypal_order_id)
        except ExternalServiceError as e:
            self.log_payment_failure("paypal", "capture", e.message, customer_email)
            raise

        transaction_id = capture.get("capture_id") or capture["id"]
        context = self._context_or_log(request.order, PaymentProvider.PAYPAL)

        return self._complete_paid_order(
            context,
            provider=PaymentProvider.PAYPAL,
            transaction_id=transaction_id,
            method_title="PayPal",
            customer_email=customer_email,
            payment_id=transaction_id,
        )

    def create_pending_woo_order(self, payload: CheckoutOrderPayload) -> CheckoutResult:
        """
        Unpaid Woo order; the customer pays on the Woo payment page.

        Rows are stored as pending_payment with the payment URL.
        """
        context = self.build_context(payload)

        woo_order = self.woo.create_order(self._woo_order_payload(
            context,
            status="pending",
            set_paid=False,
            method=context.payment_preference,
        ))
        payment_url = woo_order.get("payment_url")
        if not payment_url:
            raise ExternalServiceError("woo", "Woo payment URL missing")

        order_number, _ = self._insert_rows(context, {
            "woo_order_id": str(woo_order["id"]),
            "woo_order_status": woo_order.get("status"),
            "woo_order_key": woo_order.get("order_key"),
            "woo_payment_url": payment_url,
        })

        logger.info("pending_woo_order_created", order_number=order_number, woo_order_id=woo_order["id"])
        return CheckoutResult(
            order_number=order_number,
            woo_order_id=str(woo_order["id"]),
            woo_order_key=woo_order.get("order_key"),
            payment_url=payment_url,
            total_amount=context.total_amount,
        )

    def _context_or_log(self, payload: CheckoutOrderPayload, provider: PaymentProvider) -> CheckoutContext:
        try:
            return self.build_context(payload)
        except AppError as e:
            self.log_payment_failure(provider.value, "server", e.message, payload.customer.email)
            raise

    def _woo_order_payload(
        self,
        context: CheckoutContext,
        status: str,
        set_paid: bool,
        method: Optional[str],
        method_title: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ) -> dict:
        billing = context.billing.to_row()
        due_date = context.due_date.isoformat() if context.due_date else ""

        payload = {
            "status": status,
            "set_paid": set_paid,
            "billing": billing,
            "shipping": billing,
            "line_items": [li.model_dump(exclude_none=True) for li in context.line_items],
            "meta_data": [
                {"key": "rc_source", "value": ORDER_SOURCE},
                {"key": "rc_due_date", "value": due_date},
                {"key": "rc_pickup", "value": "true" if context.pickup else "false"},
            ],
        }
        if due_date:
            payload["customer_note"] = f"Requested date: {due_date}"
        if method:
            payload["payment_method"] = method
            payload["meta_data"].append({"key": "rc_payment_provider", "value": method})
        if method_title:
            payload["payment_method_title"] = method_title
        if transaction_id:
            payload["transaction_id"] = transaction_id
        return payload

    def _complete_paid_order(
        self,
        context: CheckoutContext,
        provider: PaymentProvider,
        transaction_id: str,
        method_title: str,
        customer_email: str,
        payment_id: str,
    ) -> CheckoutResult:
        try:
            woo_order = self.woo.create_order(self._woo_order_payload(
                context,
                status="processing",
                set_paid=True,
                method=provider.value,
                method_title=method_title,
                transaction_id=transaction_id,
            ))
        except ExternalServiceError as e:
            self.log_payment_failure(provider.value, "woo", e.message, customer_email, context.total_amount)
            raise

        try:
            order_number, inserted = self._insert_rows(context, {
                "woo_order_id": str(woo_order["id"]),
                "woo_order_status": woo_order.get("status"),
                "woo_order_key": woo_order.get("order_key"),
                "woo_payment_url": None,
                "payment_method": method_title,
                "status": OrderStatus.PENDING.value,
                "paid_at": utc_now().isoformat(),
                "payment_provider": provider.value,
                "payment_transaction_id": transaction_id,
            })
        except OrderNumberExhaustedError as e:
            self.log_payment_failure(provider.value, "order", e.message, customer_email, context.total_amount)
            raise

        self._send_paid_emails(context, order_number, inserted or context.order_payloads, method_title, customer_email)

        logger.info(
            "checkout_paid",
            provider=provider.value,
            order_number=order_number,
            woo_order_id=woo_order["id"],
            total=float(context.total_amount)
        )
        return CheckoutResult(
            order_number=order_number,
            woo_order_id=str(woo_order["id"]),
            woo_order_key=woo_order.get("order_key"),
            payment_id=payment_id,
            total_amount=context.total_amount,
        )

    def _insert_rows(self, context: CheckoutContext, extra: dict) -> tuple[str, list[dict]]:
        """
        Insert the order rows, renumbering the cart on order number conflicts.

        The charge already happened, so database failures other than
        running out of numbers are logged only.

        Returns:
            (base order number used, inserted rows)

        Raises:
            OrderNumberExhaustedError: Every numbering attempt conflicted
        """
        def build_rows(base: str) -> list[dict]:
            return number_rows([{**row, **extra} for row in context.order_payloads], context.row_kinds, base)

        try:
            base, inserted = self.order_service.insert_with_number(build_rows, seed=context.base_order_number)
        except DatabaseError as e:
            logger.error(
                "checkout_order_insert_failed",
                order_number=context.base_order_number,
                rows=len(context.order_payloads),
                error=e.message
            )
            return context.base_order_number, []

        if base != context.base_order_number:
            logger.warning("checkout_order_renumbered", requested=context.base_order_number, order_number=base)
        return base, inserted

    def _send_paid_emails(
        self,
        context: CheckoutContext,
        order_number: str,
        rows: list[dict],
        method_title: str,
        customer_email: str,
    ) -> None:
        billing = context.billing
        self.email_service.send_customer_order_email(
            [customer_email],
            order_number=order_number,
            items=[
                {"title": row.get("title") or "Order item", "quantity": row.get("quantity") or 1}
                for row in rows
            ],
            total_price=context.total_amount,
            due_date=context.due_date.isoformat() if context.due_date else None,
            payment_method=method_title,
            pickup=context.pickup,
            address_parts=[billing.address_1, billing.address_2, billing.city, billing.state, billing.postcode],
        )

        recipients = self.email_service.orders_recipients()
        if not recipients:
            logger.warning("orders_email_not_configured", order_number=order_number)
            return
        for row in rows:
            self.email_service.send_order_email(recipients, row)

    # ===================
    # WEBHOOK
    # ===================

    def handle_woo_webhook(self, raw_body: bytes, signature: Optional[str]) -> dict:
        """
        Apply a Woo order webhook.

        Linked rows get the Woo status; on processing/completed with a
        paid date they become "pending" with paid_at set, and staff are
        emailed for rows that were not paid before.

        Returns:
            {"updated": number of rows touched}

        Raises:
            ExternalServiceError: Webhook secret not configured
            InvalidSignatureError: Signature mismatch
            ValidationError: Unparseable payload or missing order id
        """
        secret = settings.woo_webhook_secret
        if not secret:
            raise ExternalServiceError("woo", "Webhook secret is not configured")
        if not verify_webhook_signature(raw_body, signature, secret):
            logger.warning("woo_webhook_bad_signature")
            raise InvalidSignatureError("woo")

        try:
            payload = json.loads(raw_body)
        except ValueError:
            raise ValidationError("Invalid payload", code="INVALID_WEBHOOK_PAYLOAD")
        if not isinstance(payload, dict) or not payload.get("id"):
            raise ValidationError("Missing Woo order id", code="INVALID_WEBHOOK_PAYLOAD")

        woo_order_id = str(payload["id"])
        status = payload.get("status")
        paid_at = to_datetime(payload.get("date_paid"))
        paid = status in PAID_WOO_STATUSES and paid_at is not None

        try:
            orders = self.db.table(self.table).select("*").eq("woo_order_id", woo_order_id).execute().data
            if not orders:
                logger.info("woo_webhook_no_orders", woo_order_id=woo_order_id)
                return {"updated": 0}

            updates: dict[str, Any] = {"woo_order_status": status}
            if paid:
                updates["paid_at"] = paid_at.isoformat()
                updates["status"] = OrderStatus.PENDING.value
            if payload.get("payment_method_title"):
                updates["payment_method"] = payload["payment_method_title"]

            self.db.table(self.table).update(updates).eq("woo_order_id", woo_order_id).execute()

        except Exception as e:
            logger.error("woo_webhook_update_failed", woo_order_id=woo_order_id, error=str(e))
            raise DatabaseError("update", str(e))

        logger.info("woo_webhook_applied", woo_order_id=woo_order_id, status=status, rows=len(orders), paid=paid)

        newly_paid = [row for row in orders if not row.get("paid_at")]
        if paid and newly_paid:
            recipients = self.email_service.orders_recipients()
            for row in newly_paid:
                self.email_service.send_order_email(recipients, row)

        return {"updated": len(orders)}

    # ===================
    # FAILURES
    # ===================

    def log_payment_failure(
        self,
        provider: str,
        stage: str,
        message: str,
        customer_email: Optional[str] = None,
        order_total: Optional[Decimal] = None,
    ) -> None:
        """Best-effort insert into payment_failures."""
        logger.warning("payment_failed", provider=provider, stage=stage, error=message)
        try:
            self.db.table(self.failures_table).insert({
                "provider": provider,
                "stage": stage,
                "message": message,
                "customer_email": customer_email,
                "order_total": float(order_total) if order_total is not None else None,
            }).execute()
        except Exception as e:
            logger.error("payment_failure_log_failed", provider=provider, stage=stage, error=str(e))

    def report_failure(self, report: PaymentFailureReport) -> None:
        """Client-side failure forwarded by the checkout page."""
        self.log_payment_failure(
            report.provider,
            report.stage,
            report.message,
            report.customer_email,
            report.order_total,
        )


# Singleton instance
_checkout_service: Optional[CheckoutService] = None


def get_checkout_service() -> CheckoutService:
    """Get or create CheckoutService instance."""
    global _checkout_service
    if _checkout_service is None:
        _checkout_service = CheckoutService()
    return _checkout_service
