"""
Supabase connection for the order and catalog tables.

One client per process; services grab it in their constructor.
"""

from supabase import create_client, Client
from functools import lru_cache
import structlog

from config.settings import settings

logger = structlog.get_logger(__name__)

# Tables the application reads and writes
TABLES = ("orders", "order_items", "products")


class SupabaseConnectionError(Exception):
    """Could not create or reach the Supabase client."""
    pass


@lru_cache()
def get_supabase_client() -> Client:
    """
    Get cached Supabase client instance.

    The anon key is used: row-level security policies on orders and
    order_items decide what the bakery can write.
    Call get_supabase_client.cache_clear() to reconnect.

    Raises:
        SupabaseConnectionError: If the client cannot reach the orders table
    """
    try:
        logger.info(
            "connecting_to_supabase",
            url=settings.supabase_url[:30] + "..."  # Log partial URL only
        )

        client = create_client(settings.supabase_url, settings.supabase_key)
        client.table("orders").select("id").limit(1).execute()

        logger.info("supabase_connected")
        return client

    except Exception as e:
        logger.error(
            "supabase_connection_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise SupabaseConnectionError(f"Failed to connect to Supabase: {e}") from e


def check_connection() -> dict:
    """
    Row counts per table, used by /health and at startup.

    Returns:
        {"status": "healthy", "tables": {"orders": 12, ...}} or
        {"status": "unhealthy", "error": "..."} with the table that failed
    """
    counts = {}
    table = None
    try:
        client = get_supabase_client()
        for table in TABLES:
            result = client.table(table).select("id", count="exact").limit(1).execute()
            counts[table] = result.count

        return {"status": "healthy", "tables": counts}

    except Exception as e:
        return {
            "status": "unhealthy",
            "table": table,
            "error": str(e)
        }
