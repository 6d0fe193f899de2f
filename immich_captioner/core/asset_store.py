"""
Immich Database Access
======================

Reads candidate assets from, and writes descriptions back to, the Immich
PostgreSQL database. The schema belongs to Immich; this module only issues
one SELECT shape per run mode and one UPDATE.

Tables used:
- asset: id, type ('IMAGE'/'VIDEO'), "createdAt"
- asset_exif: "assetId", description

Dependencies:
- psycopg2: PostgreSQL driver
"""

import logging
from typing import Callable, Iterable, List, Optional

import psycopg2

from . import config
from .exceptions import StoreConnectError, StoreQueryError, StoreWriteError
from .session import RunMode

# ============================================================================
# QUERIES
# ============================================================================

# Undescribed images, newest first. The exclusion clause drops assets that
# already failed during this process; psycopg2 renders the list as an array.
UNDESCRIBED_QUERY = """
    SELECT a.id
    FROM asset a
    JOIN asset_exif ae ON a.id = ae."assetId"
    WHERE (ae.description IS NULL OR ae.description = '')
    AND a.type = 'IMAGE'
    AND a.id::text <> ALL(%s::text[])
    ORDER BY a."createdAt" DESC
    LIMIT %s
"""

RECENT_QUERY = """
    SELECT a.id
    FROM asset a
    WHERE a.type = 'IMAGE'
    ORDER BY a."createdAt" DESC
    LIMIT %s
"""

UPDATE_DESCRIPTION = 'UPDATE asset_exif SET description = %s WHERE "assetId" = %s'


class AssetStore:
    """
    Candidate source and description writer backed by one connection.

    The connection runs in autocommit mode: each query and each UPDATE is its
    own transaction, so a watch-mode process never sits idle inside an open
    transaction between polls.

    Usage:
        with AssetStore(dsn) as store:
            ids = store.next_batch(RunMode.NORMAL)
            store.write_description(ids[0], "A cat on a sofa...")
    """

    def __init__(self, dsn: str, connect: Callable = psycopg2.connect):
        """
        Args:
            dsn: PostgreSQL connection string
            connect: Connection factory (psycopg2.connect unless under test)
        """
        self.dsn = dsn
        self._connect = connect
        self.conn = None
        self.logger = logging.getLogger(__name__)

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def connect(self):
        """
        Open the database connection.

        Raises:
            StoreConnectError: If the server cannot be reached or rejects us.
        """
        if self.conn is not None:
            return
        try:
            self.conn = self._connect(self.dsn)
            self.conn.autocommit = True
        except psycopg2.Error as e:
            self.conn = None
            raise StoreConnectError(f"DB connect error: {e} (URL: {self.dsn})") from e
        self.logger.info("[DB] Connected")

    def _require_connection(self):
        if self.conn is None:
            raise StoreConnectError("database connection is not open")
        return self.conn

    # ------------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------------

    def next_batch(self, mode: RunMode, exclude: Optional[Iterable[str]] = None) -> List[str]:
        """
        Fetch the next batch of candidate asset ids, newest first.

        Normal/watch mode returns up to DESCRIBE_BATCH_SIZE images whose
        description is NULL or empty; benchmark mode returns the
        BENCHMARK_SAMPLE_SIZE most recent images regardless of description.

        Args:
            mode: Selected run mode
            exclude: Asset ids to leave out (normal/watch mode only)

        Returns:
            List of asset id strings; empty when nothing qualifies.

        Raises:
            StoreQueryError: If the query fails.
        """
        conn = self._require_connection()

        if mode is RunMode.BENCHMARK:
            query = RECENT_QUERY
            params = (config.BENCHMARK_SAMPLE_SIZE,)
        else:
            query = UNDESCRIBED_QUERY
            params = (sorted(exclude or []), config.DESCRIBE_BATCH_SIZE)

        try:
            with conn.cursor() as cur:
                cur.execute(query, params)
                rows = cur.fetchall()
        except psycopg2.Error as e:
            raise StoreQueryError(f"candidate query failed: {e}") from e

        ids = [str(row[0]) for row in rows]
        self.logger.debug(f"[DB] {mode.value} query returned {len(ids)} asset(s)")
        return ids

    # ------------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------------

    def write_description(self, asset_id: str, description: str):
        """
        Overwrite the description of one asset.

        There is no check that the description is still empty; the last
        writer wins.

        Raises:
            StoreWriteError: If the UPDATE fails.
        """
        conn = self._require_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(UPDATE_DESCRIPTION, (description, asset_id))
                updated = cur.rowcount
        except psycopg2.Error as e:
            raise StoreWriteError(f"description update failed: {e}") from e

        if updated == 0:
            self.logger.warning(f"[DB] No asset_exif row for {asset_id}; description not stored")

    def close(self):
        """Close the connection if open."""
        if self.conn is not None:
            try:
                self.conn.close()
            finally:
                self.conn = None
                self.logger.debug("[DB] Connection closed")
