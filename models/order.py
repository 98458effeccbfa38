"""
Order schemas and merge rules.
"""

from pydantic import Field
from typing import Any, Optional, Union
from enum import Enum
from decimal import Decimal
from datetime import date, datetime

from models.base import BaseSchema, TimestampMixin


class OrderStatus(str, Enum):
    """Lifecycle states of an order row."""
    PENDING_PAYMENT = "pending_payment"
    PENDING = "pending"
    UNASSIGNED = "unassigned"
    SCHEDULED = "scheduled"
    ARCHIVED = "archived"
    REFUNDED = "refunded"
    SHIPPED = "shipped"


class PaymentProvider(str, Enum):
    SQUARE = "square"
    PAYPAL = "paypal"


PREMADE_DESIGN_TYPE = "premade"
BRANDED_CATEGORY = "branded"
WEDDING_CATEGORY_PREFIX = "weddings"


# ===================
# SHARED FIELDS
# ===================

class OrderFields(BaseSchema):
    """Editable order columns. Everything is optional here."""

    title: Optional[str] = None
    order_description: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    organization_name: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    suburb: Optional[str] = None
    postcode: Optional[str] = None
    state: Optional[str] = None
    location: Optional[str] = None
    pickup: Optional[bool] = None

    category_id: Optional[str] = None
    packaging_option_id: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=0)
    jar_lid_color: Optional[str] = None
    labels_count: Optional[int] = Field(None, ge=0)
    label_type_id: Optional[str] = None
    label_image_url: Optional[str] = None
    logo_url: Optional[str] = None
    jacket: Optional[str] = None
    jacket_type: Optional[str] = None
    jacket_color_one: Optional[str] = None
    jacket_color_two: Optional[str] = None
    design_type: Optional[str] = None
    design_text: Optional[str] = None
    text_color: Optional[str] = None
    heart_color: Optional[str] = None
    flavor: Optional[str] = None

    due_date: Optional[date] = None
    total_price: Optional[Decimal] = Field(None, ge=0)
    payment_method: Optional[str] = None
    notes: Optional[str] = None


class PremadeSelection(BaseSchema):
    """Premade product added to an admin-created order."""

    premade_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)


class OrderCreate(OrderFields):
    """
    New order from the admin console or the public quote form.

    order_number seeds the number; leave it empty to allocate one.
    """

    order_number: Optional[str] = Field(None, description="Requested order number")
    total_weight_kg: Decimal = Field(..., description="Order weight in kg")
    status: Optional[OrderStatus] = Field(None, description="Defaults to pending")
    premade: list[PremadeSelection] = Field(default_factory=list, description="Premade add-ons")


class OrderPatch(OrderFields):
    """
    Partial update of an order.

    Fields present in the request overwrite (an explicit null clears the
    value); absent fields keep what is stored.
    """

    total_weight_kg: Optional[Decimal] = None
    status: Optional[OrderStatus] = None
    made: Optional[bool] = None
    created_at: Optional[datetime] = None


class OrderRecord(OrderFields, TimestampMixin):
    """Order row as stored."""

    id: str
    order_number: Optional[str] = None
    total_weight_kg: Decimal = Decimal("0")
    status: str = OrderStatus.PENDING.value
    made: bool = False
    woo_order_id: Optional[str] = None
    woo_order_status: Optional[str] = None
    woo_order_key: Optional[str] = None
    woo_payment_url: Optional[str] = None
    paid_at: Optional[datetime] = None
    payment_provider: Optional[str] = None
    payment_transaction_id: Optional[str] = None
    refunded_at: Optional[datetime] = None
    refund_reason: Optional[str] = None
    shipped_at: Optional[datetime] = None

    @property
    def is_premade(self) -> bool:
        return self.design_type == PREMADE_DESIGN_TYPE


class OrderListResponse(BaseSchema):
    """Order list wrapper."""

    data: list[OrderRecord]
    total: int


class ShipManyRequest(BaseSchema):
    order_ids: list[str] = Field(..., min_length=1)


class RefundRequest(BaseSchema):
    """Admin refund of a paid order."""

    amount: Optional[Decimal] = Field(None, description="Defaults to the order total")
    reason: Optional[str] = Field(None, description="Stored on the order and sent to the customer")


# ===================
# MERGE RULES
# ===================

def derive_jacket_type(jacket: Optional[str]) -> Optional[str]:
    """Jacket type shown on production sheets, from the jacket choice."""
    if jacket == "rainbow":
        return "rainbow"
    if jacket in ("two_colour", "two_colour_pinstripe"):
        return "two_colour"
    if jacket == "pinstripe":
        return "pinstripe"
    return None


def merge_order(
    existing: Union[OrderRecord, dict[str, Any]],
    patch: OrderPatch,
) -> dict[str, Any]:
    """
    Merge a patch onto a stored order.

    Keys the caller set on the patch win, including explicit None;
    every other column keeps its stored value. Category rules are
    applied to the merged result:

    - branded orders have no text colour
    - only weddings* categories carry a heart colour
    - jacket_type follows jacket unless the patch sets it
    """
    current = existing.to_row() if isinstance(existing, OrderRecord) else dict(existing)
    changes = patch.to_row(exclude_unset=True)
    merged = {**current, **changes}

    derive_jacket = "jacket" in changes and "jacket_type" not in changes
    return apply_category_rules(merged, derive_jacket=derive_jacket)


def apply_category_rules(row: dict[str, Any], derive_jacket: bool = False) -> dict[str, Any]:
    """Clear colours the row's category doesn't use, in place."""
    category_id = row.get("category_id")
    if category_id == BRANDED_CATEGORY:
        row["text_color"] = None
    if not (category_id or "").startswith(WEDDING_CATEGORY_PREFIX):
        row["heart_color"] = None
    if derive_jacket:
        row["jacket_type"] = derive_jacket_type(row.get("jacket"))
    return row
