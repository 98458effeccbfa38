"""
Unit tests for the WooCommerce integration and premade product sync.

Run: pytest tests/unit/test_woo_integration.py -v
"""

import base64
import hashlib
import hmac
import pytest
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlsplit

# Import what we're testing
from integrations.woo import (
    TTLCache,
    WooClient,
    oauth_sign_url,
    stock_status_for,
    verify_webhook_signature,
)
from services.catalog_service import CatalogService
from exceptions import ExternalServiceError, PremadeNotFoundError

# Import test utilities
from tests.factories import PremadeFactory


def make_client(**overrides) -> WooClient:
    options = {
        "base_url": "https://shop.test/",
        "consumer_key": "ck_test",
        "consumer_secret": "cs_test",
        "auth_method": "query",
    }
    options.update(overrides)
    return WooClient(**options)


class TestVerifyWebhookSignature:
    """Tests for verify_webhook_signature()"""

    def test_valid_signature(self):
        """Should accept base64 HMAC-SHA256 of the raw body."""
        # Arrange
        body = b'{"id": 12}'
        signature = base64.b64encode(hmac.new(b"secret", body, hashlib.sha256).digest()).decode()

        # Act & Assert
        assert verify_webhook_signature(body, signature, "secret") is True

    def test_tampered_body(self):
        """Should reject a signature for a different body."""
        # Arrange
        signature = base64.b64encode(hmac.new(b"secret", b"{}", hashlib.sha256).digest()).decode()

        # Act & Assert
        assert verify_webhook_signature(b'{"id": 12}', signature, "secret") is False

    @pytest.mark.parametrize("signature,secret", [(None, "secret"), ("", "secret"), ("abc", "")])
    def test_missing_inputs(self, signature, secret):
        """Should reject missing signature or secret."""
        assert verify_webhook_signature(b"{}", signature, secret) is False


class TestOAuthSignUrl:
    """Tests for oauth_sign_url()"""

    def test_signature_is_deterministic(self):
        """Should produce the same URL for the same nonce and timestamp."""
        # Act
        first = oauth_sign_url("http://shop.test/wp-json/wc/v3/orders", "post", "ck", "cs", "n1", 1700000000)
        second = oauth_sign_url("http://shop.test/wp-json/wc/v3/orders", "POST", "ck", "cs", "n1", 1700000000)

        # Assert
        assert first == second

    def test_secret_changes_signature(self):
        """Should sign with the consumer secret."""
        # Act
        first = oauth_sign_url("http://shop.test/orders", "GET", "ck", "cs", "n1", 1700000000)
        second = oauth_sign_url("http://shop.test/orders", "GET", "ck", "other", "n1", 1700000000)

        # Assert
        assert parse_qs(urlsplit(first).query)["oauth_signature"] != parse_qs(urlsplit(second).query)["oauth_signature"]

    def test_keeps_existing_query(self):
        """Should keep existing query parameters alongside the OAuth ones."""
        # Act
        url = oauth_sign_url("http://shop.test/products/categories?search=Premade", "GET", "ck", "cs", "n1", 1)

        # Assert
        params = parse_qs(urlsplit(url).query)
        assert params["search"] == ["Premade"]
        assert params["oauth_consumer_key"] == ["ck"]
        assert params["oauth_signature_method"] == ["HMAC-SHA1"]
        assert params["oauth_timestamp"] == ["1"]


class TestWooClientRequest:
    """Tests for WooClient signing and request()"""

    def test_query_auth_appends_keys(self):
        """Should append consumer keys to https requests."""
        # Act
        url = make_client()._signed_url("orders", "POST")

        # Assert
        assert url.startswith("https://shop.test/wp-json/wc/v3/orders?")
        assert "consumer_key=ck_test" in url
        assert "consumer_secret=cs_test" in url

    def test_http_site_defaults_to_oauth(self):
        """Should pick OAuth for plain http sites."""
        # Act
        client = make_client(base_url="http://shop.test", auth_method=None)

        # Assert
        assert client.auth_method == "oauth"
        assert "oauth_signature=" in client._signed_url("orders", "GET")

    def test_unconfigured_client_refuses(self):
        """Should raise before any network call when keys are missing."""
        # Arrange
        client = make_client()
        client.consumer_key = None

        # Act & Assert
        with patch("integrations.woo.requests.request") as request:
            with pytest.raises(ExternalServiceError):
                client.request("GET", "orders")

        request.assert_not_called()

    def test_rejected_request_uses_woo_message(self):
        """Should surface Woo's error message on a non-2xx response."""
        # Arrange
        response = MagicMock(ok=False, status_code=401)
        response.json.return_value = {"message": "Invalid signature"}

        # Act & Assert
        with patch("integrations.woo.requests.request", return_value=response):
            with pytest.raises(ExternalServiceError) as exc_info:
                make_client().request("GET", "orders")

        assert exc_info.value.message == "Invalid signature"
        assert exc_info.value.details["status_code"] == 401


class TestTTLCache:
    """Tests for TTLCache"""

    def test_get_set_bust_clear(self):
        """Should store, drop one key and clear everything."""
        # Arrange
        cache = TTLCache(60)
        cache.set("a", 1)
        cache.set("b", 2)

        # Act & Assert
        assert cache.get("a") == 1
        cache.bust("a")
        assert cache.get("a") is None
        cache.clear()
        assert cache.get("b") is None

    def test_expired_entry(self):
        """Should drop entries past their expiry."""
        # Arrange
        cache = TTLCache(-1)
        cache.set("a", 1)

        # Act & Assert
        assert cache.get("a") is None

    def test_expiry_follows_monotonic_clock(self):
        """Should keep an entry until its TTL has passed on the monotonic clock."""
        # Arrange
        with patch("integrations.woo.time.monotonic", return_value=100.0) as clock:
            cache = TTLCache(60)
            cache.set("a", 1)

            # Act & Assert
            clock.return_value = 159.0
            assert cache.get("a") == 1
            clock.return_value = 161.0
            assert cache.get("a") is None


class TestWooClientCategories:
    """Tests for WooClient.ensure_category_id()"""

    def test_existing_category_is_cached(self):
        """Should look the category up once and serve repeats from cache."""
        # Arrange
        client = make_client()

        # Act
        with patch.object(client, "request", return_value=[{"id": 5, "name": "Premade"}]) as request:
            first = client.ensure_category_id("Premade")
            second = client.ensure_category_id(" premade ")

        # Assert
        assert first == second == 5
        request.assert_called_once()

    def test_missing_category_is_created(self):
        """Should create the category when no match is found."""
        # Arrange
        client = make_client()

        # Act
        with patch.object(client, "request", side_effect=[[{"id": 3, "name": "Premade Extras"}], {"id": 9}]) as request:
            category_id = client.ensure_category_id("Premade")

        # Assert
        assert category_id == 9
        assert request.call_args.args[:2] == ("POST", "products/categories")

    def test_blank_name(self):
        """Should reject a blank category name."""
        with pytest.raises(ExternalServiceError):
            make_client().ensure_category_id("  ")


class TestStockStatus:
    """Tests for stock_status_for()"""

    @pytest.mark.parametrize("availability,expected", [
        ("out_of_stock", "outofstock"),
        ("Backorder", "onbackorder"),
        ("preorder", "onbackorder"),
        ("in_stock", "instock"),
        (None, "instock"),
    ])
    def test_mapping(self, availability, expected):
        """Should map feed availability to Woo stock status."""
        assert stock_status_for(availability) == expected


class TestCatalogServiceSyncPremade:
    """Tests for CatalogService.sync_premade_to_woo()"""

    def test_sync_records_product_id(self, seeded_db, mock_supabase):
        """Should store the Woo product id and mark the row synced."""
        # Arrange
        premade = PremadeFactory.create()
        mock_supabase.set_table_data("premade_candies", [premade])
        woo = MagicMock()
        woo.upsert_product.return_value = "321"
        service = CatalogService(woo_client=woo)

        # Act
        result = service.sync_premade_to_woo(premade["id"])

        # Assert
        assert result.woo_product_id == "321"
        assert result.woo_sync_status == "synced"
        stored = mock_supabase.rows("premade_candies")[0]
        assert stored["woo_product_id"] == "321"
        assert stored["woo_sync_error"] is None
        assert woo.upsert_product.call_args.kwargs["name"] == premade["name"]

    def test_sync_failure_is_recorded(self, seeded_db, mock_supabase):
        """Should mark the row as errored and re-raise."""
        # Arrange
        premade = PremadeFactory.create()
        mock_supabase.set_table_data("premade_candies", [premade])
        woo = MagicMock()
        woo.upsert_product.side_effect = ExternalServiceError("woo", "Invalid price")
        service = CatalogService(woo_client=woo)

        # Act & Assert
        with pytest.raises(ExternalServiceError):
            service.sync_premade_to_woo(premade["id"])

        stored = mock_supabase.rows("premade_candies")[0]
        assert stored["woo_sync_status"] == "error"
        assert stored["woo_sync_error"] == "Invalid price"
        assert stored["woo_product_id"] is None

    def test_unknown_premade(self, seeded_db):
        """Should raise PremadeNotFoundError for an unknown id."""
        with pytest.raises(PremadeNotFoundError):
            CatalogService(woo_client=MagicMock()).sync_premade_to_woo("missing")
