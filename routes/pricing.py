"""
Pricing API routes.

Quotes are computed from the current catalog tables and settings and
are never stored.
"""

from fastapi import APIRouter
import structlog

from models.pricing import PricingRequest, PricingBreakdown
from services.pricing_service import get_pricing_service
from routes.common import handle_error

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/pricing", tags=["Pricing"])


@router.post("/quote", response_model=PricingBreakdown)
async def quote_price(request: PricingRequest):
    """
    Price one custom item.

    Raises:
        422: Unknown category/option, packaging rules, no weight tier,
             label count out of range
    """
    try:
        service = get_pricing_service()
        return service.quote(request)

    except Exception as e:
        return handle_error(e)
