"""
Checkout schemas: cart payloads, payment requests and results.
"""

from pydantic import Field
from typing import Any, Optional
from decimal import Decimal
from datetime import date

from models.base import BaseSchema
from models.pricing import JacketExtra


class CheckoutCustomer(BaseSchema):
    """Customer and delivery details from the checkout form."""

    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    phone: str = Field(default="")
    organization_name: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    suburb: Optional[str] = None
    postcode: Optional[str] = None
    state: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class CustomCartItem(BaseSchema):
    """Custom candy configured in the quote builder."""

    title: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[str] = None
    packaging_option_id: Optional[str] = None
    quantity: int = Field(..., ge=1)
    jar_lid_color: Optional[str] = None
    labels_count: Optional[int] = Field(None, ge=0)
    label_image_url: Optional[str] = None
    label_type_id: Optional[str] = None
    ingredient_labels_opt_in: bool = False
    jacket: Optional[str] = None
    jacket_type: Optional[str] = None
    jacket_color_one: Optional[str] = None
    jacket_color_two: Optional[str] = None
    text_color: Optional[str] = None
    heart_color: Optional[str] = None
    flavor: Optional[str] = None
    logo_url: Optional[str] = None
    design_type: Optional[str] = None
    design_text: Optional[str] = None
    jacket_extras: list[JacketExtra] = Field(default_factory=list)


class PremadeCartItem(BaseSchema):
    premade_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)


class CheckoutOrderPayload(BaseSchema):
    """Full cart submitted at checkout."""

    due_date: Optional[date] = None
    pickup: bool = False
    payment_preference: Optional[str] = None
    customer: CheckoutCustomer
    custom_items: list[CustomCartItem] = Field(default_factory=list)
    premade_items: list[PremadeCartItem] = Field(default_factory=list)


class SquarePaymentRequest(BaseSchema):
    """Card/wallet token from the Square Web Payments SDK plus the cart."""

    source_id: str = Field(..., min_length=1)
    verification_token: Optional[str] = None
    title: Optional[str] = None
    order: CheckoutOrderPayload


class PayPalCreateRequest(BaseSchema):
    order: CheckoutOrderPayload


class PayPalCaptureRequest(BaseSchema):
    paypal_order_id: str = Field(..., min_length=1)
    order: CheckoutOrderPayload


class PaymentFailureReport(BaseSchema):
    """Client-side payment failure forwarded for logging."""

    provider: str = Field(..., min_length=1)
    stage: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    customer_email: Optional[str] = None
    order_total: Optional[Decimal] = None


# ===================
# CONTEXT / RESULTS
# ===================

class WooBilling(BaseSchema):
    first_name: str
    last_name: str
    email: str
    phone: str = ""
    address_1: str = ""
    address_2: str = ""
    city: str = ""
    state: str = ""
    postcode: str = ""
    country: str = "AU"


class WooLineItem(BaseSchema):
    product_id: int
    name: Optional[str] = None
    quantity: int
    total: str = Field(..., description="Line total, 2dp string")


class CheckoutContext(BaseSchema):
    """Everything needed to charge and record one checkout."""

    billing: WooBilling
    due_date: Optional[date] = None
    pickup: bool = False
    payment_preference: Optional[str] = None
    line_items: list[WooLineItem]
    order_payloads: list[dict[str, Any]]
    row_kinds: list[str] = Field(default_factory=list)
    base_order_number: str
    custom_order_number: str
    premade_order_number: str
    total_amount: Decimal


class CheckoutResult(BaseSchema):
    """Returned to the client after a successful checkout step."""

    order_number: str
    woo_order_id: Optional[str] = None
    woo_order_key: Optional[str] = None
    payment_url: Optional[str] = None
    payment_id: Optional[str] = None
    paypal_order_id: Optional[str] = None
    total_amount: Decimal
