"""
Checkout API routes.

Payment endpoints are rate limited per client IP
(settings.payment_rate_limit).
"""

from fastapi import APIRouter, Request
import structlog

from config.settings import settings
from models.checkout import (
    CheckoutOrderPayload,
    SquarePaymentRequest,
    PayPalCreateRequest,
    PayPalCaptureRequest,
    PaymentFailureReport,
    CheckoutContext,
    CheckoutResult,
)
from services.checkout_service import get_checkout_service
from routes.common import handle_error, limiter

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/checkout", tags=["Checkout"])

WOO_SIGNATURE_HEADER = "x-wc-webhook-signature"


@router.post("/preview", response_model=CheckoutContext)
async def preview_checkout(body: CheckoutOrderPayload):
    """Price and number a cart without charging or storing anything."""
    try:
        return get_checkout_service().build_context(body)
    except Exception as e:
        return handle_error(e)


# ===================
# PAYMENTS
# ===================

@router.post("/square", response_model=CheckoutResult)
@limiter.limit(settings.payment_rate_limit)
async def pay_with_square(request: Request, body: SquarePaymentRequest):
    """
    Charge a Square token and record the paid order.

    Raises:
        503: Charge declined, Woo unavailable
        422: Invalid cart
        429: Too many payment attempts
    """
    try:
        return get_checkout_service().pay_with_square(body)
    except Exception as e:
        return handle_error(e)


@router.post("/paypal/orders", response_model=CheckoutResult)
@limiter.limit(settings.payment_rate_limit)
async def create_paypal_order(request: Request, body: PayPalCreateRequest):
    try:
        return get_checkout_service().create_paypal_order(body)
    except Exception as e:
        return handle_error(e)


@router.post("/paypal/capture", response_model=CheckoutResult)
@limiter.limit(settings.payment_rate_limit)
async def capture_paypal_order(request: Request, body: PayPalCaptureRequest):
    try:
        return get_checkout_service().capture_paypal(body)
    except Exception as e:
        return handle_error(e)


@router.post("/woo-order", response_model=CheckoutResult)
@limiter.limit(settings.payment_rate_limit)
async def create_woo_order(request: Request, body: CheckoutOrderPayload):
    """Unpaid Woo order; returns the Woo payment URL."""
    try:
        return get_checkout_service().create_pending_woo_order(body)
    except Exception as e:
        return handle_error(e)


@router.post("/failures", status_code=202)
async def report_payment_failure(body: PaymentFailureReport):
    """Client-side payment failure, logged best-effort."""
    try:
        get_checkout_service().report_failure(body)
        return {"ok": True}
    except Exception as e:
        return handle_error(e)


# ===================
# WEBHOOKS
# ===================

@router.post("/woo/webhook")
async def woo_webhook(request: Request):
    """
    WooCommerce order webhook.

    Raises:
        401: Signature mismatch
        422: Unparseable payload
    """
    try:
        raw_body = await request.body()
        signature = request.headers.get(WOO_SIGNATURE_HEADER)
        result = get_checkout_service().handle_woo_webhook(raw_body, signature)
        return {"ok": True, **result}
    except Exception as e:
        return handle_error(e)


@router.get("/woo/webhook")
async def woo_webhook_ping():
    """Woo pings the delivery URL when the webhook is saved."""
    return {"ok": True}
