"""
Catalog schemas: categories, weight tiers, packaging, labels, premade candy.

These are read-mostly lookup tables maintained from the admin console.
"""

from pydantic import Field
from typing import Optional
from decimal import Decimal
from datetime import datetime

from models.base import BaseSchema


class Category(BaseSchema):
    """Candy category (e.g. "wedding-hearts", "branded")."""

    id: str = Field(..., description="Category slug")
    name: str = Field(..., description="Display name")


class WeightTier(BaseSchema):
    """
    Weight range to price mapping within a category.

    per_kg=True means price is multiplied by the order weight,
    otherwise price is a flat amount for the whole range.
    """

    id: str = Field(..., description="Tier UUID")
    category_id: str = Field(..., description="Owning category")
    min_kg: Decimal = Field(..., ge=0, description="Inclusive lower bound")
    max_kg: Decimal = Field(..., ge=0, description="Inclusive upper bound")
    price: Decimal = Field(..., ge=0, description="Flat price or price per kg")
    per_kg: bool = Field(default=False, description="Price is per kg")
    notes: Optional[str] = Field(None, description="Admin notes")

    def contains(self, weight_kg: Decimal) -> bool:
        return self.min_kg <= weight_kg <= self.max_kg


class PackagingOption(BaseSchema):
    """Packaging choice with its unit weight and unit price."""

    id: str = Field(..., description="Packaging option UUID")
    type: str = Field(..., description="Packaging type (jar, bag, ...)")
    size: str = Field(..., description="Size label")
    candy_weight_g: Decimal = Field(..., ge=0, description="Candy weight per package in grams")
    allowed_categories: list[str] = Field(default_factory=list, description="Category ids allowed")
    lid_colors: Optional[list[str]] = Field(None, description="Lid colours (jar types only)")
    label_type_ids: Optional[list[str]] = Field(None, description="Compatible label types")
    unit_price: Decimal = Field(..., ge=0, description="Price per package")
    max_packages: Optional[int] = Field(None, ge=1, description="Upper bound on quantity")

    @property
    def display_name(self) -> str:
        return f"{self.size} {self.type}".strip()


class LabelRange(BaseSchema):
    """Supplier label cost band: applies to counts up to upper_bound."""

    id: str = Field(..., description="Range UUID")
    upper_bound: int = Field(..., ge=1, description="Label count ceiling")
    range_cost: Decimal = Field(..., ge=0, description="Supplier cost at this band")


class PremadeCandy(BaseSchema):
    """Ready-made product sold alongside custom orders."""

    id: str = Field(..., description="Premade UUID")
    name: str = Field(..., description="Product name")
    description: str = Field(default="", description="Long description")
    weight_g: Decimal = Field(..., ge=0, description="Weight per unit in grams")
    price: Decimal = Field(..., ge=0, description="Unit price")
    approx_pcs: Optional[int] = Field(None, description="Approximate pieces per unit")
    image_path: Optional[str] = Field(None, description="Public image URL or storage path")
    is_active: bool = Field(default=True, description="Visible in the shop")
    sku: Optional[str] = Field(None, description="SKU")
    short_description: Optional[str] = Field(None)
    brand: Optional[str] = Field(None)
    google_product_category: Optional[str] = Field(None)
    product_condition: Optional[str] = Field(None)
    sale_price: Optional[Decimal] = Field(None, ge=0)
    availability: Optional[str] = Field(None, description="in_stock, out_of_stock, backorder, preorder")
    woo_product_id: Optional[str] = Field(None, description="Linked Woo product")
    woo_sync_status: Optional[str] = Field(None, description="synced or error")
    woo_last_sync_at: Optional[datetime] = Field(None)
    woo_sync_error: Optional[str] = Field(None)


class CatalogTables(BaseSchema):
    """Snapshot of every lookup table the pricing engine reads."""

    categories: list[Category] = Field(default_factory=list)
    weight_tiers: list[WeightTier] = Field(default_factory=list)
    packaging_options: list[PackagingOption] = Field(default_factory=list)
    label_ranges: list[LabelRange] = Field(default_factory=list)

    def category(self, category_id: str) -> Optional[Category]:
        return next((c for c in self.categories if c.id == category_id), None)

    def packaging_option(self, option_id: str) -> Optional[PackagingOption]:
        return next((p for p in self.packaging_options if p.id == option_id), None)

    def tiers_for(self, category_id: str) -> list[WeightTier]:
        """Tiers for a category, ascending by min_kg (first match wins)."""
        return sorted(
            (t for t in self.weight_tiers if t.category_id == category_id),
            key=lambda t: t.min_kg
        )


class PremadeSyncResponse(BaseSchema):
    """Result of pushing a premade candy to Woo."""

    premade_id: str
    woo_product_id: Optional[str] = None
    woo_sync_status: str
    woo_sync_error: Optional[str] = None
