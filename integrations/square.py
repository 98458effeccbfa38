"""
Square payments integration.

Charges card/wallet tokens and refunds payments through the Square
REST API. Amounts are integer minor units (cents).
"""

import uuid
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
import requests
import structlog

from config.settings import settings
from exceptions import ExternalServiceError

logger = structlog.get_logger(__name__)

REQUEST_TIMEOUT_SECONDS = 30


def to_minor_units(amount: Decimal) -> int:
    """Dollars to cents, half-up: Decimal("33.005") -> 3301."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _headers() -> dict:
    return {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {settings.square_access_token}",
    }


def _first_error(data: dict, default: str) -> str:
    errors = data.get("errors") or []
    if errors and errors[0].get("detail"):
        return errors[0]["detail"]
    return default


def _post(path: str, payload: dict, default_error: str) -> dict:
    if not settings.square_configured:
        raise ExternalServiceError("square", "Square is not configured.")

    url = f"{settings.square_api_base.rstrip('/')}{path}"

    try:
        response = requests.post(url, json=payload, headers=_headers(), timeout=REQUEST_TIMEOUT_SECONDS)
    except requests.exceptions.RequestException as e:
        logger.error("square_request_failed", path=path, error=str(e))
        raise ExternalServiceError("square", default_error)

    try:
        data = response.json()
    except ValueError:
        data = {}

    if not response.ok:
        message = _first_error(data, default_error)
        logger.error("square_request_rejected", path=path, status_code=response.status_code, error=message)
        raise ExternalServiceError("square", message, {"status_code": response.status_code})

    return data


def create_payment(
    source_id: str,
    amount_cents: int,
    reference_id: Optional[str] = None,
    verification_token: Optional[str] = None,
    buyer_email: Optional[str] = None,
) -> dict:
    """
    Charge a payment source.

    Returns:
        Square payment object (id, status, ...)

    Raises:
        ExternalServiceError: Charge declined or Square unreachable
    """
    payload = {
        "source_id": source_id,
        "idempotency_key": str(uuid.uuid4()),
        "amount_money": {"amount": amount_cents, "currency": settings.currency},
        "location_id": settings.square_location_id,
        "autocomplete": True,
    }
    if verification_token:
        payload["verification_token"] = verification_token
    if buyer_email:
        payload["buyer_email_address"] = buyer_email
    if reference_id:
        payload["reference_id"] = reference_id
        payload["note"] = f"Roc Candy order {reference_id}"

    logger.info("square_payment_requested", amount_cents=amount_cents, reference_id=reference_id)
    data = _post("/v2/payments", payload, "Square payment failed.")

    payment = data.get("payment") or {}
    if not payment.get("id"):
        raise ExternalServiceError("square", _first_error(data, "Square payment failed."))

    logger.info("square_payment_completed", payment_id=payment["id"], status=payment.get("status"))
    return payment


def refund_payment(payment_id: str, amount_cents: int, reason: Optional[str] = None) -> dict:
    """
    Refund (part of) a Square payment.

    Returns:
        Square refund object (id, status)
    """
    payload = {
        "idempotency_key": str(uuid.uuid4()),
        "payment_id": payment_id,
        "amount_money": {"amount": amount_cents, "currency": settings.currency},
        "reason": (reason or "").strip() or "Customer refund",
    }

    logger.info("square_refund_requested", payment_id=payment_id, amount_cents=amount_cents)
    data = _post("/v2/refunds", payload, "Square refund failed.")

    refund = data.get("refund") or {}
    if not refund.get("id"):
        raise ExternalServiceError("square", _first_error(data, "Square refund failed."))

    logger.info("square_refund_completed", refund_id=refund["id"], status=refund.get("status"))
    return refund
