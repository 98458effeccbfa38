"""
WooCommerce REST v3 integration.

Creates and updates orders, upserts premade products and resolves
product category ids. Requests are signed with query-string keys
(https sites) or OAuth 1.0a HMAC-SHA1 (http sites).
"""

import base64
import hashlib
import hmac
import secrets
import time
from decimal import Decimal
from typing import Any, Optional
from urllib.parse import quote, urlencode, urlsplit, parse_qsl
import requests
import structlog

from config.settings import settings
from exceptions import ExternalServiceError

logger = structlog.get_logger(__name__)

REQUEST_TIMEOUT_SECONDS = 20
API_PREFIX = "/wp-json/wc/v3"


# ===================
# TTL CACHE
# ===================

class TTLCache:
    """
    Small in-memory cache with per-entry expiry.

    Single process only, expiry on the monotonic clock. bust() drops one
    key, clear() everything.
    """

    def __init__(self, ttl_seconds: int):
        self.ttl_seconds = ttl_seconds
        self._entries: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if time.monotonic() > expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        expires_at = time.monotonic() + self.ttl_seconds
        self._entries[key] = (expires_at, value)

    def bust(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()


# ===================
# SIGNING
# ===================

def _percent_encode(value: str) -> str:
    return quote(str(value), safe="~")


def oauth_sign_url(
    url: str,
    method: str,
    consumer_key: str,
    consumer_secret: str,
    nonce: Optional[str] = None,
    timestamp: Optional[int] = None,
) -> str:
    """
    Return url with OAuth 1.0a (one-legged, HMAC-SHA1) query parameters.

    Woo accepts this over plain http where basic keys are refused.
    """
    parts = urlsplit(url)
    base_url = f"{parts.scheme}://{parts.netloc}{parts.path}"
    params = parse_qsl(parts.query, keep_blank_values=True)
    params += [
        ("oauth_consumer_key", consumer_key),
        ("oauth_nonce", nonce or secrets.token_hex(16)),
        ("oauth_signature_method", "HMAC-SHA1"),
        ("oauth_timestamp", str(timestamp or int(time.time()))),
        ("oauth_version", "1.0"),
    ]

    normalized = sorted((_percent_encode(k), _percent_encode(v)) for k, v in params)
    param_string = "&".join(f"{k}={v}" for k, v in normalized)
    base_string = "&".join([
        method.upper(),
        _percent_encode(base_url),
        _percent_encode(param_string),
    ])
    signing_key = f"{_percent_encode(consumer_secret)}&"
    digest = hmac.new(signing_key.encode(), base_string.encode(), hashlib.sha1).digest()
    signature = base64.b64encode(digest).decode()

    return f"{base_url}?{urlencode(params + [('oauth_signature', signature)])}"


def verify_webhook_signature(raw_body: bytes, signature: Optional[str], secret: str) -> bool:
    """Check X-WC-Webhook-Signature: base64(HMAC-SHA256(body, secret))."""
    if not signature or not secret:
        return False
    digest = hmac.new(secret.encode(), raw_body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode()
    return hmac.compare_digest(expected, signature.strip())


def stock_status_for(availability: Optional[str]) -> str:
    """Map feed availability to Woo stock_status."""
    value = (availability or "").lower()
    if value == "out_of_stock":
        return "outofstock"
    if value in ("backorder", "preorder"):
        return "onbackorder"
    return "instock"


# ===================
# CLIENT
# ===================

class WooClient:
    """Thin WooCommerce REST client."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        consumer_key: Optional[str] = None,
        consumer_secret: Optional[str] = None,
        auth_method: Optional[str] = None,
        category_cache: Optional[TTLCache] = None,
    ):
        self.base_url = (base_url or settings.woo_base_url or "").rstrip("/")
        self.consumer_key = consumer_key or settings.woo_consumer_key
        self.consumer_secret = consumer_secret or settings.woo_consumer_secret
        self.auth_method = (
            auth_method
            or settings.woo_auth_method
            or ("oauth" if self.base_url.startswith("http://") else "query")
        )
        self.category_cache = category_cache or TTLCache(settings.woo_category_cache_ttl_seconds)

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.consumer_key and self.consumer_secret)

    def _signed_url(self, path: str, method: str) -> str:
        url = f"{self.base_url}{API_PREFIX}/{path.lstrip('/')}"
        if self.auth_method == "oauth":
            return oauth_sign_url(url, method, self.consumer_key, self.consumer_secret)
        separator = "&" if "?" in url else "?"
        credentials = urlencode({
            "consumer_key": self.consumer_key,
            "consumer_secret": self.consumer_secret,
        })
        return f"{url}{separator}{credentials}"

    def request(self, method: str, path: str, body: Optional[dict] = None) -> Any:
        """
        Send a signed request and return the decoded JSON body.

        Raises:
            ExternalServiceError: Not configured, network failure or non-2xx
        """
        if not self.configured:
            raise ExternalServiceError("woo", "Woo sync is not configured.")

        url = self._signed_url(path, method)

        try:
            response = requests.request(
                method,
                url,
                json=body,
                headers={"Content-Type": "application/json"},
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.exceptions.RequestException as e:
            logger.error("woo_request_failed", method=method, path=path, error=str(e))
            raise ExternalServiceError("woo", f"Woo request failed: {e}")

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.ok:
            message = (data or {}).get("message") if isinstance(data, dict) else None
            message = message or f"Woo request failed ({response.status_code})."
            logger.error(
                "woo_request_rejected",
                method=method,
                path=path,
                status_code=response.status_code,
                error=message
            )
            raise ExternalServiceError("woo", message, {"status_code": response.status_code})

        return data

    # ===================
    # ORDERS
    # ===================

    def create_order(self, payload: dict) -> dict:
        """Create an order; returns id, status, order_key, payment_url."""
        data = self.request("POST", "orders", payload)
        logger.info("woo_order_created", woo_order_id=data.get("id"), status=data.get("status"))
        return data

    def update_order(self, woo_order_id: str, payload: dict) -> dict:
        data = self.request("PUT", f"orders/{woo_order_id}", payload)
        logger.info("woo_order_updated", woo_order_id=woo_order_id, status=payload.get("status"))
        return data

    # ===================
    # PRODUCTS
    # ===================

    def ensure_category_id(self, category_name: str) -> int:
        """
        Resolve a product category id by name, creating it if missing.

        Results are cached; creating a category invalidates the cache.
        """
        name = (category_name or "").strip()
        if not name:
            raise ExternalServiceError("woo", "Woo category name is required.")

        key = name.lower()
        cached = self.category_cache.get(key)
        if cached is not None:
            return cached

        matches = self.request("GET", f"products/categories?{urlencode({'search': name})}") or []
        match = next(
            (c for c in matches if str(c.get("name", "")).strip().lower() == key),
            None
        )
        if match:
            self.category_cache.set(key, match["id"])
            return match["id"]

        created = self.request("POST", "products/categories", {"name": name})
        # Category list changed; drop every cached lookup
        self.category_cache.clear()
        self.category_cache.set(key, created["id"])
        logger.info("woo_category_created", name=name, category_id=created["id"])
        return created["id"]

    def upsert_product(
        self,
        name: str,
        price: Decimal,
        description: str = "",
        woo_product_id: Optional[str] = None,
        short_description: Optional[str] = None,
        sale_price: Optional[Decimal] = None,
        image_url: Optional[str] = None,
        is_active: bool = True,
        sku: Optional[str] = None,
        weight_g: Optional[Decimal] = None,
        availability: Optional[str] = None,
        brand: Optional[str] = None,
        google_product_category: Optional[str] = None,
        product_condition: Optional[str] = None,
        category_name: Optional[str] = None,
    ) -> str:
        """
        Create or update a simple product.

        Returns:
            Woo product id as a string
        """
        meta_data = []
        if brand:
            meta_data.append({"key": "brand", "value": brand})
        if google_product_category:
            meta_data.append({"key": "google_product_category", "value": google_product_category})
        if product_condition:
            meta_data.append({"key": "condition", "value": product_condition})
        if availability:
            meta_data.append({"key": "availability", "value": availability})

        payload: dict[str, Any] = {
            "name": name,
            "type": "simple",
            "status": "publish" if is_active else "draft",
            "catalog_visibility": "visible" if is_active else "hidden",
            "regular_price": f"{Decimal(price):.2f}",
            "description": description,
            "short_description": short_description or description,
            "manage_stock": False,
            "stock_status": stock_status_for(availability),
            "images": [{"src": image_url, "alt": name}] if image_url else [],
        }
        if sale_price and sale_price > 0:
            payload["sale_price"] = f"{Decimal(sale_price):.2f}"
        if sku:
            payload["sku"] = sku
        if weight_g and weight_g > 0:
            payload["weight"] = str(Decimal(weight_g) / 1000)
        if meta_data:
            payload["meta_data"] = meta_data
        if category_name and category_name.strip():
            payload["categories"] = [{"id": self.ensure_category_id(category_name)}]

        if woo_product_id:
            data = self.request("PUT", f"products/{woo_product_id}", payload)
        else:
            data = self.request("POST", "products", payload)

        logger.info("woo_product_upserted", woo_product_id=data.get("id"), name=name)
        return str(data["id"])


# Singleton instance
_woo_client: Optional[WooClient] = None


def get_woo_client() -> WooClient:
    """Get or create WooClient instance."""
    global _woo_client
    if _woo_client is None:
        _woo_client = WooClient()
    return _woo_client
