"""
Settings service for the shop's business knobs.

The `settings` table holds exactly one row. It is pre-seeded, so only
reads and partial updates are allowed.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from models.settings import ShopSettings, ShopSettingsUpdate
from exceptions import (
    AppError,
    DatabaseError,
    SettingsNotFoundError,
)

logger = structlog.get_logger(__name__)


class SettingsService:
    """
    Settings business logic.

    Reads and updates the singleton settings row.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "settings"

    def get(self) -> ShopSettings:
        """
        Get the settings row.

        Returns:
            ShopSettings

        Raises:
            SettingsNotFoundError: If the row has not been seeded
        """
        logger.debug("getting_shop_settings")

        try:
            response = (
                self.db.table(self.table)
                .select("*")
                .order("id")
                .limit(1)
                .execute()
            )

            if not response.data:
                raise SettingsNotFoundError()

            return ShopSettings(**response.data[0])

        except AppError:
            raise
        except Exception as e:
            logger.error("shop_settings_get_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def update(self, data: ShopSettingsUpdate) -> ShopSettings:
        """
        Update the provided settings fields.

        Args:
            data: Fields to change

        Returns:
            Updated settings
        """
        current = self.get()
        changes = data.to_row(exclude_unset=True)

        if not changes:
            return current

        logger.info("updating_shop_settings", fields=sorted(changes.keys()))

        try:
            (
                self.db.table(self.table)
                .update(changes)
                .eq("id", current.id)
                .execute()
            )
        except Exception as e:
            logger.error("shop_settings_update_failed", error=str(e))
            raise DatabaseError("update", str(e))

        logger.info("shop_settings_updated", fields=sorted(changes.keys()))
        return self.get()


# Singleton instance
_settings_service: Optional[SettingsService] = None


def get_settings_service() -> SettingsService:
    """Get or create SettingsService instance."""
    global _settings_service
    if _settings_service is None:
        _settings_service = SettingsService()
    return _settings_service
