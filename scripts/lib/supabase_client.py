"""
Supabase Client Helper for Primer Analytics Hub.
Provides connection, raw SQL via RPC, table queries and full-refresh writes.

Usage:
    from scripts.lib.supabase_client import get_client, execute_sql, replace_table_rows

    client = get_client()
    rows = execute_sql("SELECT * FROM fivetran_views.closed_won_weekly")
    replace_table_rows("fellows", rows)
"""
from typing import Any, Dict, List, Optional

from scripts.lib import config
from scripts.lib.errors import ConfigError, DataFetchError, TableWriteError
from scripts.lib.logger import setup_logger
from scripts.lib.utils import batched

logger = setup_logger(__name__)

_client = None


def get_client():
    """Create and return a Supabase client (singleton)."""
    global _client
    if _client is not None:
        return _client

    if not config.SUPABASE_URL or not config.SUPABASE_KEY:
        raise ConfigError(
            "SUPABASE_URL",
            "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set in .env",
        )

    from supabase import create_client
    _client = create_client(config.SUPABASE_URL, config.SUPABASE_KEY)
    logger.info("Supabase client connected to %s", config.SUPABASE_URL)
    return _client


def reset_client() -> None:
    """Drop the cached client (used when credentials change)."""
    global _client
    _client = None


def extract_rows(data: Any) -> List[Dict]:
    """
    Normalise an RPC payload into a list of row dicts.

    The SQL RPC returns either a plain array, an object wrapping the rows
    under ``rows`` or ``result``, or a single object for one-row results.
    """
    if data is None:
        return []
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("rows", "result"):
            if isinstance(data.get(key), list):
                return data[key]
        return [data]
    logger.warning("Unexpected RPC payload type: %s", type(data).__name__)
    return []


def execute_sql(sql: str, client=None) -> List[Dict]:
    """
    Execute raw SQL through the generic SQL RPC function.

    Args:
        sql: SQL statement text.
        client: Optional Supabase client (defaults to the shared singleton).

    Returns:
        List of row dicts (empty when the query produced no rows).

    Raises:
        DataFetchError: if the RPC call fails.
    """
    client = client or get_client()
    logger.debug("Executing SQL via %s:\n%s", config.SQL_RPC_FUNCTION, sql)
    try:
        result = client.rpc(config.SQL_RPC_FUNCTION, {"query_text": sql}).execute()
    except Exception as e:
        logger.error("SQL execution failed: %s", e)
        raise DataFetchError(config.SQL_RPC_FUNCTION, str(e)) from e
    return extract_rows(result.data)


def query_table(
    table: str,
    select: str = "*",
    filters: Dict[str, Any] = None,
    in_filters: Dict[str, List[Any]] = None,
    order_by: str = None,
    desc: bool = True,
    limit: Optional[int] = None,
    client=None,
) -> List[Dict]:
    """
    Query a Supabase table with optional filters and ordering.

    Args:
        table: Table name.
        select: Columns to select (default "*").
        filters: Dict of column=value equality filters.
        in_filters: Dict of column=[values] membership filters.
        order_by: Column to order by.
        desc: Descending order (default True).
        limit: Max rows to return (None for no limit).
        client: Optional Supabase client.

    Returns:
        List of row dicts.

    Raises:
        DataFetchError: if the query fails.
    """
    client = client or get_client()
    try:
        query = client.table(table).select(select)

        for col, val in (filters or {}).items():
            query = query.eq(col, val)
        for col, values in (in_filters or {}).items():
            query = query.in_(col, values)

        if order_by:
            query = query.order(order_by, desc=desc)
        if limit:
            query = query.limit(limit)

        result = query.execute()
        return result.data or []
    except Exception as e:
        logger.error("Supabase query failed on %s: %s", table, e)
        raise DataFetchError(table, str(e)) from e


def insert_rows(table: str, rows: List[Dict], batch_size: int = None, client=None) -> int:
    """
    Insert rows in batches. Returns count of inserted rows.

    Raises:
        TableWriteError: on the first failing batch.
    """
    if not rows:
        return 0

    client = client or get_client()
    batch_size = batch_size or config.SYNC_BATCH_SIZE
    total = 0
    for batch in batched(rows, batch_size):
        try:
            client.table(table).insert(batch).execute()
        except Exception as e:
            logger.error(
                "Insert failed on %s after %d rows: %s", table, total, e,
            )
            raise TableWriteError("insert", table, str(e)) from e
        total += len(batch)
    logger.info("Inserted %d rows into %s", total, table)
    return total


def replace_table_rows(
    table: str,
    rows: List[Dict],
    key_column: str = "id",
    batch_size: int = None,
    client=None,
) -> int:
    """
    Full refresh: delete every existing row, then insert *rows*.

    The delete is filtered on ``key_column IS NOT NULL`` because PostgREST
    refuses unfiltered deletes. Not transactional: a failed insert leaves the
    table partially filled until the next run.

    Returns:
        Number of rows inserted.
    """
    client = client or get_client()
    try:
        client.table(table).delete().not_.is_(key_column, "null").execute()
    except Exception as e:
        logger.error("Clearing %s failed: %s", table, e)
        raise TableWriteError("delete", table, str(e)) from e
    logger.info("Cleared existing rows from %s", table)
    return insert_rows(table, rows, batch_size=batch_size, client=client)


def upsert_rows(
    table: str,
    rows: List[Dict],
    on_conflict: str,
    batch_size: int = None,
    client=None,
) -> int:
    """
    Upsert rows in batches on the *on_conflict* column(s).

    Returns:
        Number of rows written.

    Raises:
        TableWriteError: on the first failing batch.
    """
    if not rows:
        return 0

    client = client or get_client()
    batch_size = batch_size or config.SYNC_BATCH_SIZE
    total = 0
    for batch in batched(rows, batch_size):
        try:
            client.table(table).upsert(batch, on_conflict=on_conflict).execute()
        except Exception as e:
            logger.error("Upsert failed on %s after %d rows: %s", table, total, e)
            raise TableWriteError("upsert", table, str(e)) from e
        total += len(batch)
    logger.info("Upserted %d rows into %s", total, table)
    return total
