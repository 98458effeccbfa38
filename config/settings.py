"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
Business knobs (pricing, slots, blocked weekdays) live in the
database `settings` row, not here - see services/settings_service.py.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Supabase service role key (for admin operations)"
    )

    # ===================
    # SHOP
    # ===================
    shop_timezone: str = Field(
        default="Australia/Sydney",
        description="IANA timezone used for 'today' in date rules"
    )
    currency: str = Field(
        default="AUD",
        min_length=3,
        max_length=3,
        description="Currency for charges and refunds"
    )
    order_number_start: int = Field(
        default=1000,
        ge=1,
        description="First order number when the orders table is empty"
    )
    order_number_max_attempts: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Insert attempts before an order number conflict is terminal"
    )
    payment_rate_limit: str = Field(
        default="20/5minutes",
        description="slowapi limit applied to payment endpoints per client IP"
    )

    # ===================
    # EMAIL (SMTP)
    # ===================
    smtp_enabled: bool = Field(
        default=True,
        description="Set false to skip all outgoing email"
    )
    smtp_host: Optional[str] = Field(None, description="SMTP host")
    smtp_port: int = Field(default=587, ge=1, le=65535, description="SMTP port")
    smtp_user: Optional[str] = Field(None, description="SMTP username")
    smtp_password: Optional[str] = Field(None, description="SMTP password")
    smtp_from: Optional[str] = Field(None, description="From address (defaults to smtp_user)")
    smtp_secure: Optional[bool] = Field(
        None,
        description="Use implicit TLS; defaults to true on port 465"
    )
    orders_email: str = Field(
        default="order@roccandy.com.au",
        description="Staff recipients for order notifications (comma or semicolon separated)"
    )

    # ===================
    # SQUARE
    # ===================
    square_access_token: Optional[str] = Field(None, description="Square access token")
    square_location_id: Optional[str] = Field(None, description="Square location ID")
    square_api_base: str = Field(
        default="https://connect.squareup.com",
        description="Square API base URL"
    )

    # ===================
    # PAYPAL
    # ===================
    paypal_client_id: Optional[str] = Field(None, description="PayPal REST client ID")
    paypal_secret: Optional[str] = Field(None, description="PayPal REST secret")
    paypal_api_base: str = Field(
        default="https://api-m.paypal.com",
        description="PayPal API base URL"
    )

    # ===================
    # WOOCOMMERCE
    # ===================
    woo_base_url: Optional[str] = Field(None, description="WooCommerce site URL")
    woo_consumer_key: Optional[str] = Field(None, description="Woo REST consumer key")
    woo_consumer_secret: Optional[str] = Field(None, description="Woo REST consumer secret")
    woo_auth_method: Optional[str] = Field(
        None,
        pattern="^(query|oauth)$",
        description="query or oauth; defaults to oauth for http:// sites"
    )
    woo_custom_product_id: Optional[int] = Field(
        None,
        description="Woo product used for custom candy line items"
    )
    woo_webhook_secret: Optional[str] = Field(None, description="Woo webhook signing secret")
    woo_category_cache_ttl_seconds: int = Field(
        default=3600,
        ge=0,
        description="TTL for cached Woo category ids"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def smtp_configured(self) -> bool:
        """Check if SMTP has enough configuration to send."""
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)

    @property
    def square_configured(self) -> bool:
        return bool(self.square_access_token and self.square_location_id)

    @property
    def paypal_configured(self) -> bool:
        return bool(self.paypal_client_id and self.paypal_secret)

    @property
    def woo_configured(self) -> bool:
        return bool(self.woo_base_url and self.woo_consumer_key and self.woo_consumer_secret)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
