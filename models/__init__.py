"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    TimestampMixin,
    store_value,
)
from models.catalog import (
    Category,
    WeightTier,
    PackagingOption,
    LabelRange,
    PremadeCandy,
    CatalogTables,
    PremadeSyncResponse,
)
from models.settings import (
    ShopSettings,
    ShopSettingsUpdate,
)
from models.pricing import (
    JacketExtraType,
    JacketExtra,
    PackagingLine,
    PricingRequest,
    PriceLine,
    PricingBreakdown,
)
from models.production import (
    ScheduleStatus,
    ProductionSlot,
    ProductionSlotUpsert,
    OrderSlot,
    SlotAssignmentRequest,
    SlotAssignmentResponse,
    ProductionBlock,
    BlockDateRequest,
    BlockStatusResponse,
    QuoteBlock,
    QuoteBlockCreate,
    ScheduleSlotView,
    ScheduleDay,
    OPEN_OVERRIDE_REASON,
    MANUAL_BLOCK_REASON,
    QUOTE_BLOCK_REASON,
)
from models.order import (
    OrderStatus,
    PaymentProvider,
    OrderCreate,
    OrderPatch,
    OrderRecord,
    OrderListResponse,
    PremadeSelection,
    ShipManyRequest,
    RefundRequest,
    merge_order,
    apply_category_rules,
    derive_jacket_type,
)
from models.checkout import (
    CheckoutCustomer,
    CustomCartItem,
    PremadeCartItem,
    CheckoutOrderPayload,
    SquarePaymentRequest,
    PayPalCreateRequest,
    PayPalCaptureRequest,
    PaymentFailureReport,
    WooBilling,
    WooLineItem,
    CheckoutContext,
    CheckoutResult,
)

__all__ = [
    # Base
    "BaseSchema",
    "TimestampMixin",
    "store_value",
    # Catalog
    "Category",
    "WeightTier",
    "PackagingOption",
    "LabelRange",
    "PremadeCandy",
    "CatalogTables",
    "PremadeSyncResponse",
    # Settings
    "ShopSettings",
    "ShopSettingsUpdate",
    # Pricing
    "JacketExtraType",
    "JacketExtra",
    "PackagingLine",
    "PricingRequest",
    "PriceLine",
    "PricingBreakdown",
    # Production
    "ScheduleStatus",
    "ProductionSlot",
    "ProductionSlotUpsert",
    "OrderSlot",
    "SlotAssignmentRequest",
    "SlotAssignmentResponse",
    "ProductionBlock",
    "BlockDateRequest",
    "BlockStatusResponse",
    "QuoteBlock",
    "QuoteBlockCreate",
    "ScheduleSlotView",
    "ScheduleDay",
    "OPEN_OVERRIDE_REASON",
    "MANUAL_BLOCK_REASON",
    "QUOTE_BLOCK_REASON",
    # Orders
    "OrderStatus",
    "PaymentProvider",
    "OrderCreate",
    "OrderPatch",
    "OrderRecord",
    "OrderListResponse",
    "PremadeSelection",
    "ShipManyRequest",
    "RefundRequest",
    "merge_order",
    "apply_category_rules",
    "derive_jacket_type",
    # Checkout
    "CheckoutCustomer",
    "CustomCartItem",
    "PremadeCartItem",
    "CheckoutOrderPayload",
    "SquarePaymentRequest",
    "PayPalCreateRequest",
    "PayPalCaptureRequest",
    "PaymentFailureReport",
    "WooBilling",
    "WooLineItem",
    "CheckoutContext",
    "CheckoutResult",
]
