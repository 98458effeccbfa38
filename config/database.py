"""
Database connection management.

Provides the Supabase client singleton for database operations.
"""

from supabase import create_client, Client
from functools import lru_cache
from typing import Optional
import structlog

from config.settings import settings

logger = structlog.get_logger(__name__)


class DatabaseConnectionError(Exception):
    """Failed to connect to database."""
    pass


@lru_cache()
def get_supabase_client() -> Client:
    """
    Get cached Supabase client instance.

    Uses lru_cache to ensure only one client is created.
    Call get_supabase_client.cache_clear() to reconnect.

    Returns:
        Client: Supabase client

    Raises:
        DatabaseConnectionError: If the client cannot be created
    """
    try:
        logger.info(
            "connecting_to_supabase",
            url=settings.supabase_url[:30] + "..."  # Log partial URL only
        )

        key = settings.supabase_service_key or settings.supabase_key
        client = create_client(settings.supabase_url, key)

        logger.info("supabase_connected", status="success")
        return client

    except Exception as e:
        logger.error(
            "supabase_connection_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise DatabaseConnectionError(f"Failed to connect to Supabase: {e}") from e


# Convenience alias
db = get_supabase_client


def check_connection() -> dict:
    """
    Check database connection health.

    Returns:
        dict: Connection status with details
    """
    try:
        client = get_supabase_client()
        settings_rows = client.table("settings").select("id").limit(1).execute()
        orders = client.table("orders").select("id", count="exact").limit(1).execute()

        return {
            "status": "healthy",
            "settings_row": bool(settings_rows.data),
            "orders_count": orders.count,
        }

    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e)
        }


def reset_connection():
    """
    Reset the cached database connection.

    Call this if connection becomes stale or after config changes.
    """
    get_supabase_client.cache_clear()
    logger.info("database_connection_reset")


def is_unique_violation(error: Exception, column: Optional[str] = None) -> bool:
    """
    Check whether a PostgREST error is a unique constraint violation.

    Args:
        error: Exception raised by a Supabase query
        column: Optional column name that must appear in the message

    Returns:
        True for Postgres error 23505 (or a duplicate/unique message)
    """
    if getattr(error, "code", None) == "23505":
        return True
    message = (getattr(error, "message", None) or str(error)).lower()
    if column and column not in message:
        return False
    return "duplicate" in message or "unique" in message
