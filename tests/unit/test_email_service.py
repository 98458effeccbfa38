"""
Unit tests for EmailService.

Run: pytest tests/unit/test_email_service.py -v
"""

import pytest
from unittest.mock import patch
from decimal import Decimal

# Import what we're testing
from services.email_service import EmailService, parse_email_list


@pytest.fixture
def smtp_service() -> EmailService:
    service = EmailService()
    service.enabled = True
    service.host = "smtp.test"
    service.port = 587
    service.user = "shop@test"
    service.password = "secret"
    service.from_email = "shop@test"
    service.secure = False
    return service


class TestParseEmailList:
    """Tests for parse_email_list()"""

    def test_splits_on_commas_and_semicolons(self):
        """Should split and trim mixed separators."""
        assert parse_email_list(" a@x.com; b@x.com,c@x.com ,") == ["a@x.com", "b@x.com", "c@x.com"]

    def test_empty(self):
        """Should return no addresses for an empty value."""
        assert parse_email_list(None) == []


class TestEmailServiceSend:
    """Tests for EmailService.send()"""

    def test_disabled_skips(self):
        """Should skip sending when SMTP is disabled."""
        # Arrange
        service = EmailService()
        service.enabled = False

        # Act & Assert
        with patch("services.email_service.smtplib.SMTP") as smtp:
            assert service.send(["a@x.com"], "Hi", "Body") is False

        smtp.assert_not_called()

    def test_sends_with_starttls(self, smtp_service):
        """Should log in and send over STARTTLS."""
        # Act
        with patch("services.email_service.smtplib.SMTP") as smtp:
            sent = smtp_service.send(["a@x.com"], "Hi", "Body")

        # Assert
        assert sent is True
        server = smtp.return_value.__enter__.return_value
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("shop@test", "secret")

    def test_failure_returns_false(self, smtp_service):
        """Should swallow SMTP errors and report False."""
        with patch("services.email_service.smtplib.SMTP", side_effect=OSError("refused")):
            assert smtp_service.send(["a@x.com"], "Hi", "Body") is False


class TestEmailServiceTemplates:
    """Tests for the order email bodies"""

    def test_order_email_subject_and_body(self, smtp_service):
        """Should number the subject and format weight and price."""
        # Act
        with patch.object(smtp_service, "send", return_value=True) as send:
            smtp_service.send_order_email(["staff@x.com"], {
                "order_number": "1042-a",
                "title": "Sam & Alex",
                "total_weight_kg": 0.5,
                "total_price": 30,
            })

        # Assert
        to, subject, body = send.call_args.args
        assert subject == "Order placed #1042-a"
        assert "Total weight: 0.50 kg" in body
        assert "Total price: $30.00" in body

    def test_refund_email(self, smtp_service):
        """Should include the refunded amount."""
        # Act
        with patch.object(smtp_service, "send", return_value=True) as send:
            smtp_service.send_customer_refund_email(["c@x.com"], "1042", Decimal("12.5"), "Square")

        # Assert
        assert send.call_args.args[1] == "Refund processed #1042"
        assert "Amount: $12.50" in send.call_args.args[2]
