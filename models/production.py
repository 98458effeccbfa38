"""
Production scheduling schemas: slots, assignments, blocks, quote blocks.
"""

from pydantic import Field, model_validator
from typing import Optional
from enum import Enum
from decimal import Decimal
from datetime import date

from models.base import BaseSchema


OPEN_OVERRIDE_REASON = "Open override"
MANUAL_BLOCK_REASON = "Manual block"
QUOTE_BLOCK_REASON = "Front-end block"


class ScheduleStatus(str, Enum):
    """Derived scheduling state shown in the admin order list."""
    ARCHIVED = "archived"
    UNASSIGNED = "unassigned"
    PENDING_COMPLETION = "pending completion"
    SCHEDULED = "scheduled"


# ===================
# SLOTS
# ===================

class ProductionSlot(BaseSchema):
    """One production slot on a day."""

    id: str = Field(..., description="Slot UUID")
    slot_date: date = Field(..., description="Production date")
    slot_index: int = Field(..., ge=1, description="1-based position within the day")
    capacity_kg: Decimal = Field(..., gt=0, description="Maximum kg producible in this slot")
    status: str = Field(default="open", description="Slot status")
    notes: Optional[str] = Field(None, description="Admin notes")


class ProductionSlotUpsert(BaseSchema):
    """Admin edit of a slot, addressed by (slot_date, slot_index)."""

    slot_date: date
    slot_index: int = Field(..., ge=1)
    capacity_kg: Optional[Decimal] = Field(None, gt=0, description="Defaults to max_total_kg")
    status: Optional[str] = Field(None, min_length=1)
    notes: Optional[str] = None


class OrderSlot(BaseSchema):
    """Assignment of part of an order's weight to a slot."""

    id: str = Field(..., description="Assignment UUID")
    order_id: str = Field(..., description="Order UUID")
    slot_id: str = Field(..., description="Slot UUID")
    kg_assigned: Decimal = Field(..., description="Kg produced in this slot")


class SlotAssignmentRequest(BaseSchema):
    """
    Assign (part of) an order to a slot.

    Address the slot either by slot_id or by slot_date + slot_index.
    assignment_id names the existing row being moved/replaced.
    """

    order_id: str = Field(..., min_length=1)
    assignment_id: Optional[str] = Field(None, description="Existing assignment to replace")
    slot_id: Optional[str] = Field(None, description="Existing slot UUID")
    slot_date: Optional[date] = Field(None, description="Slot date (with slot_index)")
    slot_index: Optional[int] = Field(None, description="Slot index (with slot_date)")
    kg_assigned: float = Field(..., description="Kg to assign")

    @model_validator(mode="after")
    def check_slot_address(self):
        """Require a slot id or a full (date, index) pair."""
        if not self.slot_id and (self.slot_date is None or self.slot_index is None):
            raise ValueError("Provide slot_id or both slot_date and slot_index")
        return self


class SlotAssignmentResponse(BaseSchema):
    """Result of an assignment: the row and the slot it landed in."""

    assignment: OrderSlot
    slot: ProductionSlot
    order_status: str


# ===================
# BLOCKS
# ===================

class ProductionBlock(BaseSchema):
    """
    Inclusive date range with a reason.

    Reason "Open override" re-opens a weekly-default blocked day;
    any other reason blocks production.
    """

    id: str
    start_date: date
    end_date: date
    reason: Optional[str] = None

    @property
    def is_open_override(self) -> bool:
        return self.reason == OPEN_OVERRIDE_REASON

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


class BlockDateRequest(BaseSchema):
    """Single-day calendar toggle."""

    date: date
    reason: Optional[str] = Field(None, description="Block reason (manual blocks only)")


class BlockStatusResponse(BaseSchema):
    """Whether production runs on a day and why."""

    date: date
    blocked: bool
    default_blocked: bool
    open_override: bool
    explicit_block: bool


class QuoteBlock(BaseSchema):
    """Date range customers cannot choose as a due date."""

    id: str
    start_date: date
    end_date: date
    reason: Optional[str] = None

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


class QuoteBlockCreate(BaseSchema):
    """New quote block; end_date defaults to start_date."""

    start_date: date
    end_date: Optional[date] = None
    reason: Optional[str] = Field(None, description="Defaults to 'Front-end block'")

    @model_validator(mode="after")
    def check_range(self):
        """end_date must not precede start_date."""
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("End date must be on or after start date")
        return self


# ===================
# SCHEDULE VIEW
# ===================

class ScheduleSlotView(BaseSchema):
    """A slot with its assignment (if any)."""

    slot: ProductionSlot
    assignment: Optional[OrderSlot] = None


class ScheduleDay(BaseSchema):
    """One calendar day of the production board."""

    date: date
    blocked: bool
    slots: list[ScheduleSlotView] = Field(default_factory=list)
