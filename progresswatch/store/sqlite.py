from __future__ import annotations

import asyncio
import json
import logging
import re
from pathlib import Path

import aiosqlite

from ..exceptions import MalformedRecord, StoreUnavailable
from ..models import ProgressRecord
from .base import ProgressStore

logger = logging.getLogger("progresswatch.store.sqlite")

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,63}$")


class SqliteProgressStore(ProgressStore):
    """Reads progress rows from a SQLite database written by the producer.

    Expected schema::

        CREATE TABLE progress (
          job_id TEXT PRIMARY KEY,
          progress INTEGER NOT NULL,
          result TEXT  -- JSON, NULL until complete
        );

    The connection is opened read-only; the store never writes.
    """

    def __init__(self, db_path: str = "./progress.db", *, table: str = "progress", timeout: float = 30.0):
        if not _IDENTIFIER.match(table):
            raise ValueError(f"Invalid table name: {table!r}")
        self._db_path = db_path
        self._table = table
        self._timeout = timeout
        self._lock = asyncio.Lock()
        self._conn: aiosqlite.Connection | None = None

    async def _ensure(self) -> aiosqlite.Connection:
        """Ensure read-only connection is established."""
        if self._conn is None:
            uri = f"{Path(self._db_path).resolve().as_uri()}?mode=ro"
            self._conn = await aiosqlite.connect(uri, uri=True, timeout=self._timeout)
            self._conn.row_factory = aiosqlite.Row
            logger.info(f"Opened progress database {self._db_path}")
        return self._conn

    async def read(self, job_id: str) -> ProgressRecord | None:
        """Get record by job ID."""
        try:
            async with self._lock:
                cx = await self._ensure()
                cur = await cx.execute(
                    f"SELECT progress, result FROM {self._table} WHERE job_id = ?",
                    (job_id,),
                )
                row = await cur.fetchone()
                await cur.close()
        except aiosqlite.Error as e:
            raise StoreUnavailable(f"Cannot read {self._db_path}: {e}") from e

        if row is None:
            return None

        result = row["result"]
        if result is not None:
            try:
                result = json.loads(result)
            except (TypeError, ValueError) as e:
                raise MalformedRecord(f"Invalid result JSON for {job_id}: {e}") from e
        return ProgressRecord.from_dict({"progress": row["progress"], "result": result})

    async def close(self) -> None:
        """Close database connection."""
        if self._conn is not None:
            try:
                await self._conn.close()
            finally:
                self._conn = None
