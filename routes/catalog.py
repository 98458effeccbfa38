"""
Catalog API routes: pricing tables and premade candy.
"""

from fastapi import APIRouter, Query
import structlog

from models.catalog import CatalogTables, PremadeCandy, PremadeSyncResponse
from services.catalog_service import get_catalog_service
from routes.common import handle_error

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/catalog", tags=["Catalog"])


@router.get("/tables", response_model=CatalogTables)
async def get_tables():
    """Categories, weight tiers, packaging options and label ranges."""
    try:
        return get_catalog_service().get_tables()
    except Exception as e:
        return handle_error(e)


@router.get("/premade", response_model=list[PremadeCandy])
async def list_premade(
    active_only: bool = Query(False, description="Only active products")
):
    try:
        return get_catalog_service().list_premade(active_only=active_only)
    except Exception as e:
        return handle_error(e)


@router.get("/premade/{premade_id}", response_model=PremadeCandy)
async def get_premade(premade_id: str):
    try:
        return get_catalog_service().get_premade(premade_id)
    except Exception as e:
        return handle_error(e)


@router.post("/premade/{premade_id}/sync", response_model=PremadeSyncResponse)
async def sync_premade(premade_id: str):
    """
    Push a premade candy to WooCommerce.

    Raises:
        404: Premade not found
        503: Woo rejected the product (recorded on the row)
    """
    try:
        return get_catalog_service().sync_premade_to_woo(premade_id)
    except Exception as e:
        return handle_error(e)
