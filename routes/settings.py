"""
Settings API routes.

The shop settings row is pre-seeded. Only reads and updates are allowed.
"""

from fastapi import APIRouter
import structlog

from models.settings import ShopSettings, ShopSettingsUpdate
from services.settings_service import get_settings_service
from routes.common import handle_error

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/settings", tags=["Settings"])


@router.get("", response_model=ShopSettings)
async def get_settings():
    """
    Get the shop settings row.

    Raises:
        404: Settings row not seeded
    """
    try:
        service = get_settings_service()
        return service.get()

    except Exception as e:
        return handle_error(e)


@router.patch("", response_model=ShopSettings)
async def update_settings(data: ShopSettingsUpdate):
    """
    Update shop settings.

    Only fields present in the request are changed.
    """
    try:
        service = get_settings_service()
        return service.update(data)

    except Exception as e:
        return handle_error(e)
