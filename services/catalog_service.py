"""
Catalog service for pricing lookup tables and premade candy.

Categories, weight tiers, packaging options and label ranges are small
tables edited from the admin console; they are read in full. Premade
candies are additionally pushed to WooCommerce as simple products.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from models.catalog import (
    Category,
    WeightTier,
    PackagingOption,
    LabelRange,
    PremadeCandy,
    CatalogTables,
    PremadeSyncResponse,
)
from exceptions import (
    DatabaseError,
    ExternalServiceError,
    PremadeNotFoundError,
)
from integrations.woo import WooClient, get_woo_client
from utils.date_utils import utc_now

logger = structlog.get_logger(__name__)

PREMADE_WOO_CATEGORY = "Premade Candy"


class CatalogService:
    """
    Catalog business logic.

    Read operations for the pricing tables plus premade Woo sync.
    """

    def __init__(self, woo_client: Optional[WooClient] = None):
        self.db = get_supabase_client()
        self.woo = woo_client or get_woo_client()

    # ===================
    # LOOKUP TABLES
    # ===================

    def _select_all(self, table: str) -> list[dict]:
        try:
            result = self.db.table(table).select("*").execute()
            return result.data or []
        except Exception as e:
            logger.error("catalog_select_failed", table=table, error=str(e))
            raise DatabaseError("select", str(e))

    def get_categories(self) -> list[Category]:
        return [Category(**row) for row in self._select_all("categories")]

    def get_weight_tiers(self) -> list[WeightTier]:
        return [WeightTier(**row) for row in self._select_all("weight_tiers")]

    def get_packaging_options(self) -> list[PackagingOption]:
        return [PackagingOption(**row) for row in self._select_all("packaging_options")]

    def get_label_ranges(self) -> list[LabelRange]:
        return [LabelRange(**row) for row in self._select_all("label_ranges")]

    def get_tables(self) -> CatalogTables:
        """
        Load every table the pricing engine reads.

        Returns:
            CatalogTables snapshot
        """
        tables = CatalogTables(
            categories=self.get_categories(),
            weight_tiers=self.get_weight_tiers(),
            packaging_options=self.get_packaging_options(),
            label_ranges=self.get_label_ranges(),
        )
        logger.debug(
            "catalog_tables_loaded",
            categories=len(tables.categories),
            tiers=len(tables.weight_tiers),
            packaging=len(tables.packaging_options),
            label_ranges=len(tables.label_ranges)
        )
        return tables

    # ===================
    # PREMADE
    # ===================

    def list_premade(self, active_only: bool = False) -> list[PremadeCandy]:
        """List premade candies, optionally only active ones."""
        try:
            query = self.db.table("premade_candies").select("*")
            if active_only:
                query = query.eq("is_active", True)
            result = query.order("name").execute()
            return [PremadeCandy(**row) for row in result.data]
        except Exception as e:
            logger.error("list_premade_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_premade(self, premade_id: str) -> PremadeCandy:
        """
        Get one premade candy.

        Raises:
            PremadeNotFoundError: If it doesn't exist
        """
        premade = self.get_premade_many([premade_id]).get(premade_id)
        if premade is None:
            raise PremadeNotFoundError(premade_id)
        return premade

    def get_premade_many(self, premade_ids: list[str]) -> dict[str, PremadeCandy]:
        """Premade candies keyed by id (missing ids are simply absent)."""
        unique_ids = list(dict.fromkeys(premade_ids))
        if not unique_ids:
            return {}

        try:
            result = (
                self.db.table("premade_candies")
                .select("*")
                .in_("id", unique_ids)
                .execute()
            )
            return {row["id"]: PremadeCandy(**row) for row in result.data}
        except Exception as e:
            logger.error("get_premade_many_failed", count=len(unique_ids), error=str(e))
            raise DatabaseError("select", str(e))

    def sync_premade_to_woo(self, premade_id: str) -> PremadeSyncResponse:
        """
        Push a premade candy to Woo and record the sync outcome.

        A Woo failure is recorded on the row (woo_sync_status="error")
        and then re-raised.

        Raises:
            PremadeNotFoundError: Unknown premade
            ExternalServiceError: Woo rejected the product
        """
        premade = self.get_premade(premade_id)
        logger.info("syncing_premade_to_woo", premade_id=premade_id, woo_product_id=premade.woo_product_id)

        try:
            woo_product_id = self.woo.upsert_product(
                name=premade.name,
                price=premade.price,
                description=premade.description,
                woo_product_id=premade.woo_product_id,
                short_description=premade.short_description,
                sale_price=premade.sale_price,
                image_url=premade.image_path,
                is_active=premade.is_active,
                sku=premade.sku,
                weight_g=premade.weight_g,
                availability=premade.availability,
                brand=premade.brand,
                google_product_category=premade.google_product_category,
                product_condition=premade.product_condition,
                category_name=PREMADE_WOO_CATEGORY,
            )
        except ExternalServiceError as e:
            self._record_sync(premade_id, {
                "woo_sync_status": "error",
                "woo_sync_error": e.message,
                "woo_last_sync_at": utc_now().isoformat(),
            })
            logger.warning("premade_woo_sync_failed", premade_id=premade_id, error=e.message)
            raise

        self._record_sync(premade_id, {
            "woo_product_id": woo_product_id,
            "woo_sync_status": "synced",
            "woo_sync_error": None,
            "woo_last_sync_at": utc_now().isoformat(),
        })

        logger.info("premade_synced_to_woo", premade_id=premade_id, woo_product_id=woo_product_id)
        return PremadeSyncResponse(
            premade_id=premade_id,
            woo_product_id=woo_product_id,
            woo_sync_status="synced",
        )

    def _record_sync(self, premade_id: str, changes: dict) -> None:
        try:
            self.db.table("premade_candies").update(changes).eq("id", premade_id).execute()
        except Exception as e:
            logger.error("premade_sync_record_failed", premade_id=premade_id, error=str(e))
            raise DatabaseError("update", str(e))


# Singleton instance
_catalog_service: Optional[CatalogService] = None


def get_catalog_service() -> CatalogService:
    """Get or create CatalogService instance."""
    global _catalog_service
    if _catalog_service is None:
        _catalog_service = CatalogService()
    return _catalog_service
