"""
Calendar service for production blocks and quote blocks.

Production calendar: a day is blocked when its weekday is blocked by
default and no "Open override" covers it, or when any other block row
covers it. Explicit blocks always win over overrides.

Quote calendar: independent ranges customers cannot pick as a due date.
"""

from datetime import date, timedelta
from typing import Optional
import structlog

from config import get_supabase_client
from models.settings import ShopSettings
from models.production import (
    ProductionBlock,
    BlockStatusResponse,
    QuoteBlock,
    QuoteBlockCreate,
    OPEN_OVERRIDE_REASON,
    MANUAL_BLOCK_REASON,
    QUOTE_BLOCK_REASON,
)
from exceptions import (
    AppError,
    DatabaseError,
    ConflictError,
    DateUnavailableError,
    QuoteBlockNotFoundError,
)
from services.settings_service import get_settings_service

logger = structlog.get_logger(__name__)


class CalendarService:
    """
    Production and quote calendar logic.

    Handles block lookups and the override / manual block toggles.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.blocks_table = "production_blocks"
        self.quote_table = "quote_blocks"
        self.settings_service = get_settings_service()

    # ===================
    # PRODUCTION BLOCKS
    # ===================

    def get_blocks(self, start: date, end: date) -> list[ProductionBlock]:
        """
        Get production blocks overlapping [start, end].

        Args:
            start: First day (inclusive)
            end: Last day (inclusive)

        Returns:
            List of blocks ordered by start_date
        """
        try:
            result = (
                self.db.table(self.blocks_table)
                .select("*")
                .lte("start_date", end.isoformat())
                .gte("end_date", start.isoformat())
                .order("start_date")
                .execute()
            )
            return [ProductionBlock(**row) for row in result.data]

        except Exception as e:
            logger.error("get_production_blocks_failed", start=str(start), end=str(end), error=str(e))
            raise DatabaseError("select", str(e))

    def block_status(self, day: date, shop_settings: Optional[ShopSettings] = None) -> BlockStatusResponse:
        """
        Resolve the production state of one day.

        blocked = (default_blocked AND NOT open_override) OR explicit_block
        """
        shop_settings = shop_settings or self.settings_service.get()
        blocks = self.get_blocks(day, day)
        return self._status_for(day, blocks, shop_settings)

    def is_blocked(self, day: date, shop_settings: Optional[ShopSettings] = None) -> bool:
        return self.block_status(day, shop_settings).blocked

    def blocked_days(self, start: date, end: date, shop_settings: Optional[ShopSettings] = None) -> set[date]:
        """All blocked days in [start, end] from a single block lookup."""
        shop_settings = shop_settings or self.settings_service.get()
        blocks = self.get_blocks(start, end)

        blocked = set()
        day = start
        while day <= end:
            if self._status_for(day, blocks, shop_settings).blocked:
                blocked.add(day)
            day += timedelta(days=1)
        return blocked

    def _status_for(
        self,
        day: date,
        blocks: list[ProductionBlock],
        shop_settings: ShopSettings
    ) -> BlockStatusResponse:
        covering = [b for b in blocks if b.covers(day)]
        default_blocked = shop_settings.is_default_blocked(day)
        open_override = any(b.is_open_override for b in covering)
        explicit_block = any(not b.is_open_override for b in covering)

        return BlockStatusResponse(
            date=day,
            blocked=(default_blocked and not open_override) or explicit_block,
            default_blocked=default_blocked,
            open_override=open_override,
            explicit_block=explicit_block,
        )

    def add_open_override(self, day: date) -> BlockStatusResponse:
        """
        Re-open a day that is blocked by the weekly default.

        Idempotent. Rejected while an explicit block covers the day.

        Raises:
            ConflictError: An explicit block covers the day
        """
        covering = self.get_blocks(day, day)

        if any(not b.is_open_override for b in covering):
            raise ConflictError(
                "Date has a manual block; remove it before opening the day",
                code="DATE_EXPLICITLY_BLOCKED",
                details={"date": day.isoformat()}
            )

        exact = [
            b for b in covering
            if b.is_open_override and b.start_date == day and b.end_date == day
        ]
        if not exact:
            self._insert_block(day, OPEN_OVERRIDE_REASON)
            logger.info("open_override_added", date=day.isoformat())

        return self.block_status(day)

    def add_manual_block(self, day: date, reason: Optional[str] = None) -> BlockStatusResponse:
        """
        Block production on a day.

        Open overrides for exactly this day are removed first, then a
        block row is inserted unless one already covers the day.
        """
        reason = (reason or "").strip() or MANUAL_BLOCK_REASON
        if reason == OPEN_OVERRIDE_REASON:
            reason = MANUAL_BLOCK_REASON

        try:
            (
                self.db.table(self.blocks_table)
                .delete()
                .eq("start_date", day.isoformat())
                .eq("end_date", day.isoformat())
                .eq("reason", OPEN_OVERRIDE_REASON)
                .execute()
            )
        except Exception as e:
            logger.error("remove_open_override_failed", date=day.isoformat(), error=str(e))
            raise DatabaseError("delete", str(e))

        covering = self.get_blocks(day, day)
        if not any(not b.is_open_override for b in covering):
            self._insert_block(day, reason)
            logger.info("manual_block_added", date=day.isoformat(), reason=reason)

        return self.block_status(day)

    def remove_manual_block(self, day: date) -> BlockStatusResponse:
        """Remove single-day explicit blocks on this day."""
        exact = [
            b for b in self.get_blocks(day, day)
            if not b.is_open_override and b.start_date == day and b.end_date == day
        ]

        if exact:
            try:
                (
                    self.db.table(self.blocks_table)
                    .delete()
                    .in_("id", [b.id for b in exact])
                    .execute()
                )
            except Exception as e:
                logger.error("remove_manual_block_failed", date=day.isoformat(), error=str(e))
                raise DatabaseError("delete", str(e))

            logger.info("manual_block_removed", date=day.isoformat(), count=len(exact))

        return self.block_status(day)

    def _insert_block(self, day: date, reason: str) -> None:
        try:
            self.db.table(self.blocks_table).insert({
                "start_date": day.isoformat(),
                "end_date": day.isoformat(),
                "reason": reason,
            }).execute()
        except Exception as e:
            logger.error("insert_production_block_failed", date=day.isoformat(), error=str(e))
            raise DatabaseError("insert", str(e))

    # ===================
    # QUOTE BLOCKS
    # ===================

    def list_quote_blocks(self) -> list[QuoteBlock]:
        try:
            result = self.db.table(self.quote_table).select("*").order("start_date").execute()
            return [QuoteBlock(**row) for row in result.data]
        except Exception as e:
            logger.error("list_quote_blocks_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def add_quote_block(self, data: QuoteBlockCreate) -> QuoteBlock:
        """
        Block a date range for customer due dates.

        end_date defaults to start_date.
        """
        end_date = data.end_date or data.start_date
        reason = data.reason or QUOTE_BLOCK_REASON

        try:
            result = self.db.table(self.quote_table).insert({
                "start_date": data.start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "reason": reason,
            }).execute()
        except Exception as e:
            logger.error("add_quote_block_failed", error=str(e))
            raise DatabaseError("insert", str(e))

        block = QuoteBlock(**result.data[0])
        logger.info("quote_block_added", block_id=block.id, start=str(block.start_date), end=str(block.end_date))
        return block

    def remove_quote_block(self, block_id: str) -> None:
        """
        Raises:
            QuoteBlockNotFoundError: Unknown block id
        """
        try:
            existing = self.db.table(self.quote_table).select("id").eq("id", block_id).execute()
            if not existing.data:
                raise QuoteBlockNotFoundError(block_id)

            self.db.table(self.quote_table).delete().eq("id", block_id).execute()
            logger.info("quote_block_removed", block_id=block_id)

        except AppError:
            raise
        except Exception as e:
            logger.error("remove_quote_block_failed", block_id=block_id, error=str(e))
            raise DatabaseError("delete", str(e))

    def is_quote_blocked(self, day: date) -> bool:
        try:
            result = (
                self.db.table(self.quote_table)
                .select("id")
                .lte("start_date", day.isoformat())
                .gte("end_date", day.isoformat())
                .limit(1)
                .execute()
            )
            return bool(result.data)
        except Exception as e:
            logger.error("quote_block_check_failed", date=day.isoformat(), error=str(e))
            raise DatabaseError("select", str(e))

    def ensure_quote_date_available(self, due_date: Optional[date]) -> None:
        """
        Raises:
            DateUnavailableError: due_date falls in a quote block
        """
        if due_date and self.is_quote_blocked(due_date):
            logger.info("due_date_unavailable", due_date=due_date.isoformat())
            raise DateUnavailableError(due_date.isoformat())


# Singleton instance
_calendar_service: Optional[CalendarService] = None


def get_calendar_service() -> CalendarService:
    """Get or create CalendarService instance."""
    global _calendar_service
    if _calendar_service is None:
        _calendar_service = CalendarService()
    return _calendar_service
