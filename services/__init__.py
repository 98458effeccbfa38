"""
Business logic services.

Each service handles one domain area.
"""

from services.settings_service import SettingsService, get_settings_service
from services.catalog_service import CatalogService, get_catalog_service
from services.pricing_service import PricingService, get_pricing_service, calculate_pricing
from services.calendar_service import CalendarService, get_calendar_service
from services.slot_service import SlotService, get_slot_service, schedule_status
from services.email_service import EmailService, get_email_service
from services.order_service import OrderService, get_order_service
from services.refund_service import RefundService, get_refund_service
from services.checkout_service import CheckoutService, get_checkout_service

__all__ = [
    "SettingsService",
    "get_settings_service",
    "CatalogService",
    "get_catalog_service",
    "PricingService",
    "get_pricing_service",
    "calculate_pricing",
    "CalendarService",
    "get_calendar_service",
    "SlotService",
    "get_slot_service",
    "schedule_status",
    "EmailService",
    "get_email_service",
    "OrderService",
    "get_order_service",
    "RefundService",
    "get_refund_service",
    "CheckoutService",
    "get_checkout_service",
]
