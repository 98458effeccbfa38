"""
Production API routes.

Slots and assignments, the production block calendar, quote blocks and
the schedule board.
"""

from datetime import date
from fastapi import APIRouter, Query
import structlog

from models.production import (
    ProductionSlot,
    ProductionSlotUpsert,
    SlotAssignmentRequest,
    SlotAssignmentResponse,
    BlockDateRequest,
    BlockStatusResponse,
    QuoteBlock,
    QuoteBlockCreate,
    ScheduleDay,
)
from services.slot_service import get_slot_service
from services.calendar_service import get_calendar_service
from routes.common import handle_error

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/production", tags=["Production"])


# ===================
# SCHEDULE
# ===================

@router.get("/schedule", response_model=list[ScheduleDay])
async def get_schedule(
    start: date = Query(..., description="First day (inclusive)"),
    end: date = Query(..., description="Last day (inclusive)"),
):
    """Production board: each day with blocked flag, slots and assignments."""
    try:
        return get_slot_service().get_schedule(start, end)
    except Exception as e:
        return handle_error(e)


# ===================
# SLOTS
# ===================

@router.put("/slots", response_model=ProductionSlot)
async def upsert_slot(data: ProductionSlotUpsert):
    """Create or edit the slot at (slot_date, slot_index)."""
    try:
        return get_slot_service().upsert_slot(data)
    except Exception as e:
        return handle_error(e)


@router.post("/assignments", response_model=SlotAssignmentResponse)
async def assign_order(data: SlotAssignmentRequest):
    """
    Assign kg of an order to a slot.

    Raises:
        409: Past date, slot occupied, slot capacity or order weight exceeded
        422: Invalid kg or slot index
        404: Order, slot or assignment not found
    """
    try:
        return get_slot_service().assign(data)
    except Exception as e:
        return handle_error(e)


@router.delete("/assignments/{assignment_id}")
async def unassign_order(assignment_id: str):
    try:
        status = get_slot_service().unassign(assignment_id)
        return {"assignment_id": assignment_id, "order_status": status}
    except Exception as e:
        return handle_error(e)


# ===================
# PRODUCTION BLOCKS
# ===================

@router.get("/blocks/{day}", response_model=BlockStatusResponse)
async def get_block_status(day: date):
    try:
        return get_calendar_service().block_status(day)
    except Exception as e:
        return handle_error(e)


@router.post("/blocks/open", response_model=BlockStatusResponse)
async def open_day(data: BlockDateRequest):
    """
    Re-open a day blocked by the weekly default.

    Raises:
        409: A manual block covers the day
    """
    try:
        return get_calendar_service().add_open_override(data.date)
    except Exception as e:
        return handle_error(e)


@router.post("/blocks/manual", response_model=BlockStatusResponse)
async def block_day(data: BlockDateRequest):
    try:
        return get_calendar_service().add_manual_block(data.date, data.reason)
    except Exception as e:
        return handle_error(e)


@router.delete("/blocks/manual/{day}", response_model=BlockStatusResponse)
async def unblock_day(day: date):
    try:
        return get_calendar_service().remove_manual_block(day)
    except Exception as e:
        return handle_error(e)


# ===================
# QUOTE BLOCKS
# ===================

@router.get("/quote-blocks", response_model=list[QuoteBlock])
async def list_quote_blocks():
    try:
        return get_calendar_service().list_quote_blocks()
    except Exception as e:
        return handle_error(e)


@router.post("/quote-blocks", response_model=QuoteBlock, status_code=201)
async def add_quote_block(data: QuoteBlockCreate):
    try:
        return get_calendar_service().add_quote_block(data)
    except Exception as e:
        return handle_error(e)


@router.delete("/quote-blocks/{block_id}", status_code=204)
async def remove_quote_block(block_id: str):
    try:
        get_calendar_service().remove_quote_block(block_id)
        return None  # 204 No Content
    except Exception as e:
        return handle_error(e)


@router.get("/quote-blocks/check")
async def check_quote_date(day: date = Query(..., description="Candidate due date")):
    """Whether customers may pick this due date."""
    try:
        blocked = get_calendar_service().is_quote_blocked(day)
        return {"date": day.isoformat(), "available": not blocked}
    except Exception as e:
        return handle_error(e)
