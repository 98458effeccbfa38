"""
Order API routes.

Admin order management plus the public quote submission.
"""

from fastapi import APIRouter, Query
from typing import Optional
import structlog

from models.order import (
    OrderCreate,
    OrderPatch,
    OrderRecord,
    OrderListResponse,
    ShipManyRequest,
    RefundRequest,
    OrderStatus,
)
from models.production import ScheduleStatus
from services.order_service import get_order_service
from services.refund_service import get_refund_service
from services.slot_service import get_slot_service
from routes.common import handle_error

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/orders", tags=["Orders"])


# ===================
# LIST / CREATE
# ===================

@router.get("", response_model=OrderListResponse)
async def list_orders(
    status: Optional[OrderStatus] = Query(None, description="Filter by status"),
    include_archived: bool = Query(False, description="Include archived orders"),
    design_type: Optional[str] = Query(None, description="Filter by design type"),
):
    """List orders, newest first. Archived orders are hidden by default."""
    try:
        service = get_order_service()
        orders = service.list_orders(
            status=status.value if status else None,
            include_archived=include_archived,
            design_type=design_type,
        )
        return OrderListResponse(data=orders, total=len(orders))

    except Exception as e:
        return handle_error(e)


@router.post("", response_model=OrderListResponse, status_code=201)
async def create_order(data: OrderCreate):
    """
    Create an order from the admin console.

    Premade selections are created as "-b" sibling rows.

    Raises:
        422: Weight missing or above the maximum
        409: No free order number after retries
    """
    try:
        service = get_order_service()
        orders = service.create(data)
        return OrderListResponse(data=orders, total=len(orders))

    except Exception as e:
        return handle_error(e)


@router.post("/place", response_model=OrderListResponse, status_code=201)
async def place_order(data: OrderCreate):
    """
    Customer quote submission.

    Raises:
        422: Due date unavailable, weight invalid
    """
    try:
        service = get_order_service()
        orders = service.place(data)
        return OrderListResponse(data=orders, total=len(orders))

    except Exception as e:
        return handle_error(e)


# ===================
# ADDITIONAL ITEMS
# ===================

@router.get("/additional-items", response_model=OrderListResponse)
async def list_additional_items():
    """Premade rows; shipped rows disappear 24h after shipping."""
    try:
        service = get_order_service()
        orders = service.list_additional_items()
        return OrderListResponse(data=orders, total=len(orders))

    except Exception as e:
        return handle_error(e)


@router.post("/additional-items/ship", response_model=OrderListResponse)
async def ship_additional_items(data: ShipManyRequest):
    try:
        service = get_order_service()
        orders = service.mark_many_shipped(data.order_ids)
        return OrderListResponse(data=orders, total=len(orders))

    except Exception as e:
        return handle_error(e)


# ===================
# SINGLE ORDER
# ===================

@router.get("/{order_id}", response_model=OrderRecord)
async def get_order(order_id: str):
    try:
        return get_order_service().get(order_id)
    except Exception as e:
        return handle_error(e)


@router.patch("/{order_id}", response_model=OrderRecord)
async def update_order(order_id: str, data: OrderPatch):
    """
    Partial update.

    Fields sent (including explicit nulls) overwrite; omitted fields are
    kept.
    """
    try:
        service = get_order_service()
        return service.update(order_id, data)

    except Exception as e:
        return handle_error(e)


@router.post("/{order_id}/archive", response_model=OrderRecord)
async def archive_order(order_id: str):
    try:
        return get_order_service().archive(order_id)
    except Exception as e:
        return handle_error(e)


@router.post("/{order_id}/unarchive", response_model=OrderRecord)
async def unarchive_order(order_id: str):
    try:
        return get_order_service().unarchive(order_id)
    except Exception as e:
        return handle_error(e)


@router.post("/{order_id}/ship", response_model=OrderRecord)
async def ship_order(order_id: str):
    try:
        return get_order_service().mark_shipped(order_id)
    except Exception as e:
        return handle_error(e)


@router.post("/{order_id}/refund", response_model=OrderRecord)
async def refund_order(order_id: str, data: Optional[RefundRequest] = None):
    """
    Refund through the provider that took the payment.

    Raises:
        422: Missing payment details, invalid amount
        503: Provider rejected the refund (order unchanged)
    """
    try:
        service = get_refund_service()
        return service.refund(order_id, data)

    except Exception as e:
        return handle_error(e)


@router.get("/{order_id}/schedule-status")
async def get_schedule_status(order_id: str):
    try:
        status: ScheduleStatus = get_slot_service().get_schedule_status(order_id)
        return {"order_id": order_id, "schedule_status": status.value}
    except Exception as e:
        return handle_error(e)
