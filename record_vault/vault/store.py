"""
Record Store — SQLite-backed persistence of sealed blobs keyed by string.

Async SQLite via SQLAlchemy 2.0 + aiosqlite:
    • Async engine with a bounded connection pool
    • ``open`` / ``ensure_schema`` / ``put`` / ``get`` on raw ``text()`` SQL

The store never sees plaintext and keeps no records in memory; every call
goes to the database. Writes are a single upsert statement, so concurrent
writers to the same key never observe a read-then-write window.

Security Note:
    Never log stored values. Only log record keys and operations.
"""
import os
import time
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Callable, Optional

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

from ..exceptions import StorageError

logger = logging.getLogger("record_vault.store")

MEMORY_LOCATION = ":memory:"

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_CREATE_TABLE = text("""
CREATE TABLE IF NOT EXISTS records (
    key TEXT PRIMARY KEY NOT NULL,
    value BLOB NOT NULL,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL
)
""")

_UPSERT_RECORD = text("""
INSERT INTO records (key, value, created_at, updated_at)
VALUES (:key, :value, :now, :now)
ON CONFLICT (key)
DO UPDATE SET value = excluded.value,
              updated_at = excluded.updated_at
""")

_SELECT_VALUE = text("""
SELECT value FROM records WHERE key = :key
""")

_SELECT_RECORD = text("""
SELECT key, value, created_at, updated_at FROM records WHERE key = :key
""")

_PING = text("SELECT 1")


def parse_location(location: str) -> str:
    """Turn a database URL or path into a sqlite database path.

    Accepts ``sqlite://relative.db``, ``sqlite:///abs/path.db``,
    ``sqlite::memory:``, ``:memory:`` and plain filesystem paths.
    Query strings (``?mode=rwc``) are ignored.
    """
    if not location:
        raise StorageError("Database location cannot be empty")
    path = location
    if path.startswith("sqlite://"):
        path = path[len("sqlite://"):]
    elif path.startswith("sqlite:"):
        path = path[len("sqlite:"):]
    path = path.split("?", 1)[0]
    if path in ("", MEMORY_LOCATION):
        return MEMORY_LOCATION
    return path


def engine_url(path: str) -> str:
    """Build the SQLAlchemy aiosqlite URL for a database path."""
    if path == MEMORY_LOCATION:
        return "sqlite+aiosqlite://"
    return f"sqlite+aiosqlite:///{path}"


def _file_pragmas(timeout: float):
    def on_connect(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode = WAL")
        cursor.execute(f"PRAGMA busy_timeout = {int(timeout * 1000)}")
        cursor.close()
    return on_connect


def create_engine_for(path: str, pool_size: int = 4, timeout: float = 5.0) -> AsyncEngine:
    """Create an async engine for ``path``.

    File databases get WAL mode and a busy timeout on every new connection.
    An in-memory database is private to one connection, so its pool holds
    exactly one.
    """
    memory = path == MEMORY_LOCATION
    engine = create_async_engine(
        engine_url(path),
        poolclass=AsyncAdaptedQueuePool,
        pool_size=1 if memory else max(1, pool_size),
        max_overflow=0,
        pool_timeout=timeout,
        connect_args={"timeout": timeout},
    )
    if not memory:
        event.listen(engine.sync_engine, "connect", _file_pragmas(timeout))
    return engine


@dataclass(frozen=True)
class Record:
    """One stored row."""

    key: str
    value: bytes = field(repr=False)
    created_at: int
    updated_at: int


class RecordStore:
    """Maps a string key to one opaque byte blob.

    ``put`` inserts or atomically overwrites ``value`` and ``updated_at``,
    leaving ``created_at`` untouched. ``get`` returns ``None`` for unknown
    keys. Storage failures raise ``StorageError`` with the cause chained and
    are never retried here.
    """

    def __init__(
        self,
        engine: Optional[AsyncEngine] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._engine = engine
        self._clock = clock

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Optional[AsyncEngine]:
        return self._engine

    @classmethod
    async def open(
        cls,
        location: str,
        pool_size: int = 4,
        clock: Callable[[], float] = time.time,
        timeout: float = 5.0,
    ) -> "RecordStore":
        """Connect to the database at ``location``, creating it if absent.

        Args:
            location: Database URL or path (see ``parse_location``).
            pool_size: Number of pooled connections for file databases.
            clock: Source of wall-clock seconds for record timestamps.
            timeout: Seconds to wait for a pooled connection or a locked database.

        Returns:
            An open RecordStore.

        Raises:
            StorageError: If the database cannot be opened.
        """
        path = parse_location(location)
        engine = None
        try:
            if path != MEMORY_LOCATION:
                os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
            engine = create_engine_for(path, pool_size=pool_size, timeout=timeout)
            async with engine.connect() as conn:
                await conn.execute(_PING)
        except (SQLAlchemyError, OSError) as err:
            if engine is not None:
                await engine.dispose()
            raise StorageError(
                f"Failed to connect to database: {location}"
            ) from err
        logger.info(
            "Record store opened: path=%s pool_size=%d",
            path, engine.sync_engine.pool.size(),
        )
        return cls(engine=engine, clock=clock)

    @asynccontextmanager
    async def _transaction(self, operation: str):
        if self._engine is None:
            raise StorageError("Record store is not open")
        try:
            async with self._engine.begin() as conn:
                yield conn
        except (SQLAlchemyError, OSError) as err:
            logger.error("Storage failure during %s: %s", operation, err)
            raise StorageError(f"Failed to {operation}") from err

    def _now(self) -> int:
        return int(self._clock())

    async def ensure_schema(self) -> None:
        """Create the records table if it does not exist yet."""
        async with self._transaction("create records table") as conn:
            await conn.execute(_CREATE_TABLE)
        logger.debug("Records schema ensured")

    async def put(self, key: str, value: bytes) -> None:
        """Insert or overwrite the blob stored under ``key``."""
        async with self._transaction("store record") as conn:
            await conn.execute(
                _UPSERT_RECORD,
                {"key": key, "value": bytes(value), "now": self._now()},
            )
        logger.debug("Record put: key=%s", key)

    async def get(self, key: str) -> Optional[bytes]:
        """Return the blob stored under ``key``, or None if absent."""
        async with self._transaction("retrieve record") as conn:
            result = await conn.execute(_SELECT_VALUE, {"key": key})
            row = result.mappings().first()
        if row is None:
            return None
        return bytes(row["value"])

    async def get_record(self, key: str) -> Optional[Record]:
        """Return the full row for ``key`` including timestamps."""
        async with self._transaction("retrieve record") as conn:
            result = await conn.execute(_SELECT_RECORD, {"key": key})
            row = result.mappings().first()
        if row is None:
            return None
        return Record(
            key=row["key"],
            value=bytes(row["value"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def close(self) -> None:
        """Dispose pooled connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.info("Record store closed")
