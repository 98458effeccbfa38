"""
Shop settings schemas.

The `settings` table holds a single row of business knobs: lead time,
fees, jacket surcharges, label markup, slot counts and weekly blocked days.
"""

from pydantic import Field
from typing import Optional
from decimal import Decimal
from datetime import date

from models.base import BaseSchema
from utils.date_utils import weekday_field


class ShopSettings(BaseSchema):
    """The singleton settings row."""

    id: Optional[int] = Field(None, description="Row id")
    lead_time_days: int = Field(default=0, ge=0, description="Minimum days before a due date")
    urgency_fee: Decimal = Field(default=Decimal("0"), ge=0, description="Urgency surcharge percent")
    urgency_period_days: int = Field(default=0, ge=0, description="Urgency window in days")
    transaction_fee_percent: Decimal = Field(default=Decimal("0"), ge=0, description="Transaction fee percent")
    production_slots_per_day: int = Field(default=1, ge=1, description="Slots per production day")

    no_production_mon: bool = False
    no_production_tue: bool = False
    no_production_wed: bool = False
    no_production_thu: bool = False
    no_production_fri: bool = False
    no_production_sat: bool = True
    no_production_sun: bool = True

    jacket_rainbow: Decimal = Field(default=Decimal("0"), ge=0, description="Rainbow jacket surcharge")
    jacket_two_colour: Decimal = Field(default=Decimal("0"), ge=0, description="Two colour jacket surcharge")
    jacket_pinstripe: Decimal = Field(default=Decimal("0"), ge=0, description="Pinstripe jacket surcharge")

    max_total_kg: Decimal = Field(..., gt=0, description="Maximum kg per order and default slot capacity")

    labels_supplier_shipping: Decimal = Field(default=Decimal("0"), ge=0, description="Flat label shipping per order")
    labels_markup_multiplier: Decimal = Field(default=Decimal("1"), ge=0, description="Markup applied to label cost")
    labels_max_bulk: int = Field(default=0, ge=0, description="Largest label count priced automatically")

    orders_email: Optional[str] = Field(None)
    admin_email: Optional[str] = Field(None)
    enquiries_email: Optional[str] = Field(None)

    def is_default_blocked(self, day: date) -> bool:
        """Weekly default: is production off on this weekday?"""
        return bool(getattr(self, weekday_field(day)))


class ShopSettingsUpdate(BaseSchema):
    """
    Partial update of the settings row.

    Only provided fields are written.
    """

    lead_time_days: Optional[int] = Field(None, ge=0)
    urgency_fee: Optional[Decimal] = Field(None, ge=0)
    urgency_period_days: Optional[int] = Field(None, ge=0)
    transaction_fee_percent: Optional[Decimal] = Field(None, ge=0)
    production_slots_per_day: Optional[int] = Field(None, ge=1)
    no_production_mon: Optional[bool] = None
    no_production_tue: Optional[bool] = None
    no_production_wed: Optional[bool] = None
    no_production_thu: Optional[bool] = None
    no_production_fri: Optional[bool] = None
    no_production_sat: Optional[bool] = None
    no_production_sun: Optional[bool] = None
    jacket_rainbow: Optional[Decimal] = Field(None, ge=0)
    jacket_two_colour: Optional[Decimal] = Field(None, ge=0)
    jacket_pinstripe: Optional[Decimal] = Field(None, ge=0)
    max_total_kg: Optional[Decimal] = Field(None, gt=0)
    labels_supplier_shipping: Optional[Decimal] = Field(None, ge=0)
    labels_markup_multiplier: Optional[Decimal] = Field(None, ge=0)
    labels_max_bulk: Optional[int] = Field(None, ge=0)
    orders_email: Optional[str] = None
    admin_email: Optional[str] = None
    enquiries_email: Optional[str] = None
