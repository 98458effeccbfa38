"""
Pricing request and breakdown schemas.
"""

from pydantic import Field
from typing import Optional
from enum import Enum
from decimal import Decimal
from datetime import date

from models.base import BaseSchema


class JacketExtraType(str, Enum):
    """Jacket surcharges. TWO_COLOUR_PINSTRIPE bills as two extras."""
    RAINBOW = "rainbow"
    TWO_COLOUR = "two_colour"
    PINSTRIPE = "pinstripe"
    TWO_COLOUR_PINSTRIPE = "two_colour_pinstripe"

    def billable(self) -> list["JacketExtraType"]:
        """Surcharges this request bills for."""
        if self is JacketExtraType.TWO_COLOUR_PINSTRIPE:
            return [JacketExtraType.TWO_COLOUR, JacketExtraType.PINSTRIPE]
        return [self]


# Settings column and display label per billable extra
JACKET_SURCHARGE_FIELDS = {
    JacketExtraType.RAINBOW: "jacket_rainbow",
    JacketExtraType.TWO_COLOUR: "jacket_two_colour",
    JacketExtraType.PINSTRIPE: "jacket_pinstripe",
}

JACKET_LABELS = {
    JacketExtraType.RAINBOW: "Rainbow jacket",
    JacketExtraType.TWO_COLOUR: "Two colour jacket",
    JacketExtraType.PINSTRIPE: "Pinstripe jacket",
}


class JacketExtra(BaseSchema):
    """One requested jacket extra."""

    jacket: JacketExtraType


class PackagingLine(BaseSchema):
    """Packaging option and how many packages."""

    option_id: str = Field(..., min_length=1, description="Packaging option UUID")
    quantity: float = Field(..., description="Number of packages")


class PricingRequest(BaseSchema):
    """Everything needed to price one custom item."""

    category_id: str = Field(..., description="Category slug")
    packaging: list[PackagingLine] = Field(..., description="Packaging lines")
    labels_count: Optional[int] = Field(None, ge=0, description="Custom labels requested")
    due_date: Optional[date] = Field(None, description="Requested date")
    extras: list[JacketExtra] = Field(default_factory=list, description="Jacket extras")


class PriceLine(BaseSchema):
    """Display line in a breakdown."""

    key: str = Field(..., description="Stable line key (base, packaging, labels, jacket_*, urgency, transaction_fee)")
    label: str = Field(..., description="Human-readable label")
    amount: Decimal = Field(..., description="Line amount")


class PricingBreakdown(BaseSchema):
    """Itemized price. Every component is rounded to cents."""

    base_price: Decimal
    packaging_price: Decimal
    labels_price: Decimal
    extras_price: Decimal
    urgency_fee: Decimal
    transaction_fee: Decimal
    total: Decimal
    total_weight_kg: Decimal
    items: list[PriceLine] = Field(default_factory=list)

    @property
    def subtotal(self) -> Decimal:
        """Goods total before urgency and transaction fees."""
        return self.base_price + self.packaging_price + self.labels_price + self.extras_price
