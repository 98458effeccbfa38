"""
PayPal REST integration.

Client-credentials token, order create/capture and capture refunds.
Amounts travel as 2dp strings.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
import requests
import structlog

from config.settings import settings
from exceptions import ExternalServiceError

logger = structlog.get_logger(__name__)

REQUEST_TIMEOUT_SECONDS = 30


def format_amount(amount: Decimal) -> str:
    """Decimal("12.5") -> "12.50"."""
    return str(Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _api_url(path: str) -> str:
    return f"{settings.paypal_api_base.rstrip('/')}{path}"


def get_access_token() -> str:
    """
    Exchange client credentials for a bearer token.

    Raises:
        ExternalServiceError: Not configured or authentication failed
    """
    if not settings.paypal_configured:
        raise ExternalServiceError("paypal", "PayPal is not configured.")

    try:
        response = requests.post(
            _api_url("/v1/oauth2/token"),
            auth=(settings.paypal_client_id, settings.paypal_secret),
            data={"grant_type": "client_credentials"},
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        data = response.json()
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.error("paypal_token_failed", error=str(e))
        raise ExternalServiceError("paypal", "Unable to authenticate with PayPal.")

    if not response.ok or not data.get("access_token"):
        logger.error("paypal_token_rejected", status_code=response.status_code)
        raise ExternalServiceError("paypal", "Unable to authenticate with PayPal.")

    return data["access_token"]


def _post(path: str, payload: Optional[dict], default_error: str) -> dict:
    token = get_access_token()

    try:
        response = requests.post(
            _api_url(path),
            json=payload,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
    except requests.exceptions.RequestException as e:
        logger.error("paypal_request_failed", path=path, error=str(e))
        raise ExternalServiceError("paypal", default_error)

    try:
        data = response.json()
    except ValueError:
        data = {}

    if not response.ok or not data.get("id"):
        message = data.get("message") or default_error
        logger.error("paypal_request_rejected", path=path, status_code=response.status_code, error=message)
        raise ExternalServiceError("paypal", message, {"status_code": response.status_code})

    return data


def create_order(total_amount: Decimal, reference_id: Optional[str] = None) -> dict:
    """Create a CAPTURE-intent order for the cart total."""
    purchase_unit = {
        "amount": {
            "currency_code": settings.currency,
            "value": format_amount(total_amount),
        },
    }
    if reference_id:
        purchase_unit["reference_id"] = reference_id

    data = _post(
        "/v2/checkout/orders",
        {"intent": "CAPTURE", "purchase_units": [purchase_unit]},
        "Unable to create PayPal order.",
    )
    logger.info("paypal_order_created", paypal_order_id=data["id"])
    return data


def capture_order(paypal_order_id: str) -> dict:
    """
    Capture an approved order.

    Returns:
        dict with id, status and capture_id (used later for refunds)
    """
    data = _post(
        f"/v2/checkout/orders/{paypal_order_id}/capture",
        None,
        "Unable to capture PayPal order.",
    )

    capture_id = None
    units = data.get("purchase_units") or []
    if units:
        captures = (units[0].get("payments") or {}).get("captures") or []
        if captures:
            capture_id = captures[0].get("id")

    logger.info("paypal_order_captured", paypal_order_id=data["id"], capture_id=capture_id)
    return {"id": data["id"], "status": data.get("status"), "capture_id": capture_id}


def refund_capture(capture_id: str, amount: Decimal, reason: Optional[str] = None) -> dict:
    """Refund (part of) a captured payment."""
    payload = {
        "amount": {
            "value": format_amount(amount),
            "currency_code": settings.currency,
        },
    }
    if reason and reason.strip():
        payload["note_to_payer"] = reason.strip()

    data = _post(
        f"/v2/payments/captures/{capture_id}/refund",
        payload,
        "PayPal refund failed.",
    )
    logger.info("paypal_refund_completed", capture_id=capture_id, refund_id=data["id"])
    return data
