"""
Email service for order notifications.

Sends plain-text mail over SMTP:
- staff notification when an order is placed
- customer confirmation after payment
- customer notice after a refund

Sending is fire-and-forget: failures are logged and reported as False,
never raised into the order flow.
"""

import re
import smtplib
from email.mime.text import MIMEText
from decimal import Decimal
from typing import Any, Iterable, Optional
import structlog

from config.settings import settings

logger = structlog.get_logger(__name__)

SMTP_TIMEOUT_SECONDS = 20


def parse_email_list(value: Optional[str]) -> list[str]:
    """Split "a@x.com; b@x.com,c@x.com" into addresses."""
    if not value:
        return []
    return [item.strip() for item in re.split(r"[;,]", value) if item.strip()]


def _money(value: Any) -> str:
    if value is None or value == "":
        return "-"
    return f"${Decimal(str(value)):.2f}"


def _weight(value: Any) -> str:
    if value is None or value == "":
        return "-"
    kg = Decimal(str(value))
    return f"{kg:.2f} kg" if kg > 0 else "-"


def _number(order_number: Optional[str]) -> str:
    return f"#{order_number}" if order_number else "-"


class EmailService:
    """Service for sending emails via SMTP"""

    def __init__(self):
        self.enabled = settings.smtp_enabled
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.user = settings.smtp_user
        self.password = settings.smtp_password
        self.from_email = settings.smtp_from or settings.smtp_user
        self.secure = settings.smtp_secure if settings.smtp_secure is not None else self.port == 465

    @property
    def configured(self) -> bool:
        return bool(self.enabled and self.host and self.user and self.password and self.from_email)

    def orders_recipients(self) -> list[str]:
        """Staff addresses for order notifications."""
        return parse_email_list(settings.orders_email)

    def send(self, to: Iterable[str], subject: str, text_body: str) -> bool:
        """
        Send a plain-text email.

        Returns True if sent, False if skipped or failed.
        """
        recipients = [address for address in to if address]

        if not self.enabled:
            logger.warning("email_disabled", subject=subject)
            return False
        if not self.configured:
            logger.warning("email_not_configured", subject=subject)
            return False
        if not recipients:
            return False

        try:
            msg = MIMEText(text_body, "plain")
            msg["Subject"] = subject
            msg["From"] = self.from_email
            msg["To"] = ", ".join(recipients)

            if self.secure:
                server = smtplib.SMTP_SSL(self.host, self.port, timeout=SMTP_TIMEOUT_SECONDS)
            else:
                server = smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT_SECONDS)

            with server:
                if not self.secure:
                    server.starttls()
                server.login(self.user, self.password)
                server.sendmail(self.from_email, recipients, msg.as_string())

            logger.info("email_sent", subject=subject, recipients=len(recipients))
            return True

        except Exception as e:
            logger.error("email_send_failed", subject=subject, error=str(e))
            return False

    # ===================
    # ORDER EMAILS
    # ===================

    def send_order_email(self, to: Iterable[str], order: dict) -> bool:
        """Staff notification: "Order placed #1042"."""
        order_number = order.get("order_number")
        subject = f"Order placed #{order_number}" if order_number else "Order placed New order"

        lines = [
            f"Order #: {_number(order_number)}",
            f"Title: {order.get('title') or '-'}",
            f"Type: {order.get('design_type') or '-'}",
            f"Quantity: {order.get('quantity') if order.get('quantity') is not None else '-'}",
            f"Due date: {order.get('due_date') or '-'}",
            f"Customer: {order.get('customer_name') or '-'}",
            f"Customer email: {order.get('customer_email') or '-'}",
            f"Total weight: {_weight(order.get('total_weight_kg'))}",
            f"Total price: {_money(order.get('total_price'))}",
        ]
        if order.get("notes"):
            lines.append(f"Notes: {order['notes']}")

        return self.send(to, subject, "\n".join(lines))

    def send_customer_order_email(
        self,
        to: Iterable[str],
        order_number: Optional[str],
        items: list[dict],
        total_price: Optional[Decimal],
        due_date: Optional[str] = None,
        payment_method: Optional[str] = None,
        pickup: bool = False,
        address_parts: Optional[list[Optional[str]]] = None,
    ) -> bool:
        """Customer confirmation: "Order confirmation #1042"."""
        subject = f"Order confirmation #{order_number}" if order_number else "Order confirmation your order"
        delivery_label = "Pickup" if pickup else "Delivery"
        delivery_note = (
            "Pickup: We will contact you when your order is ready for collection."
            if pickup
            else "Delivery: We will contact you with delivery details once your order is ready."
        )
        address = ", ".join(part for part in (address_parts or []) if part)

        lines = [
            "Thanks for your order!",
            f"Order #: {_number(order_number)}",
            f"Payment method: {payment_method or '-'}",
            f"Due date: {due_date or '-'}",
            f"{delivery_label}: {address or '-'}",
            delivery_note,
            "",
            "Items:",
            *[f"- {item.get('quantity', 1)} x {item.get('title') or 'Order item'}" for item in items],
            "",
            f"Total: {_money(total_price)}",
        ]

        return self.send(to, subject, "\n".join(lines))

    def send_customer_refund_email(
        self,
        to: Iterable[str],
        order_number: Optional[str],
        amount: Optional[Decimal],
        payment_method: Optional[str] = None,
    ) -> bool:
        """Customer notice: "Refund processed #1042"."""
        subject = f"Refund processed #{order_number}" if order_number else "Refund processed your order"

        lines = [
            "A refund has been processed.",
            f"Order #: {_number(order_number)}",
            f"Amount: {_money(amount)}",
            f"Payment method: {payment_method or '-'}",
            "",
            "Please allow a few business days for the refund to appear on your statement.",
        ]

        return self.send(to, subject, "\n".join(lines))


# Singleton instance
_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get or create EmailService instance."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
