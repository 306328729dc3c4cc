"""
Tests for the SQLite record store.

Tests cover:
- Location parsing and database creation
- Schema creation idempotence
- Upsert semantics and timestamps
- Absent keys
- Lifecycle, cancellation and storage failure mapping
"""
import time
import asyncio
import sqlite3
from contextlib import asynccontextmanager

import pytest
from sqlalchemy import event, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from record_vault.exceptions import StorageError
from record_vault.vault.store import (
    MEMORY_LOCATION,
    RecordStore,
    engine_url,
    parse_location,
)

from .conftest import FakeClock


class BrokenConnection:
    """Connection whose every statement fails like a lost disk."""

    async def execute(self, statement, parameters=None):
        raise OperationalError(
            str(statement), parameters, sqlite3.OperationalError("disk I/O error"),
        )


class BrokenEngine:
    """Engine stand-in handing out only broken connections."""

    @asynccontextmanager
    async def begin(self):
        yield BrokenConnection()

    async def dispose(self):
        pass


def slow_statement():
    time.sleep(0.5)
    return 0


# --- Location parsing ---

class TestParseLocation:
    """Tests for database URL handling."""

    @pytest.mark.parametrize("location, expected", [
        ("sqlite://schedules.db", "schedules.db"),
        ("sqlite:///var/lib/records.db", "/var/lib/records.db"),
        ("sqlite://records.db?mode=rwc", "records.db"),
        ("sqlite::memory:", MEMORY_LOCATION),
        (":memory:", MEMORY_LOCATION),
        ("sqlite:data/records.db", "data/records.db"),
        ("/tmp/records.db", "/tmp/records.db"),
    ])
    def test_locations(self, location, expected):
        """Test URL and path forms resolve to a sqlite path."""
        assert parse_location(location) == expected

    def test_empty_location(self):
        """Test an empty location is rejected."""
        with pytest.raises(StorageError):
            parse_location("")

    def test_engine_urls(self):
        """Test paths map to aiosqlite engine URLs."""
        assert engine_url(MEMORY_LOCATION) == "sqlite+aiosqlite://"
        assert engine_url("/tmp/records.db") == "sqlite+aiosqlite:////tmp/records.db"
        assert engine_url("records.db") == "sqlite+aiosqlite:///records.db"


# --- Opening ---

class TestOpen:
    """Tests for connecting and schema management."""

    async def test_open_creates_database_file(self, tmp_path):
        """Test opening creates the file and missing parent directories."""
        path = tmp_path / "nested" / "dir" / "records.db"
        store = await RecordStore.open(str(path))
        try:
            assert store.is_open
            assert path.exists()
        finally:
            await store.close()

    async def test_file_database_uses_wal(self, store):
        """Test file databases run in WAL journal mode."""
        async with store.engine.connect() as conn:
            mode = (await conn.execute(text("PRAGMA journal_mode"))).scalar()
        assert mode.lower() == "wal"

    async def test_memory_database_uses_single_connection(self):
        """Test an in-memory database is pooled on exactly one connection."""
        store = await RecordStore.open("sqlite::memory:", pool_size=8)
        try:
            assert store.engine.sync_engine.pool.size() == 1
        finally:
            await store.close()

    async def test_memory_store(self):
        """Test put/get against an in-memory database."""
        store = await RecordStore.open("sqlite::memory:")
        try:
            await store.ensure_schema()
            await store.put("alice", b"blob")
            assert await store.get("alice") == b"blob"
        finally:
            await store.close()

    async def test_open_failure_raises_storage_error(self, tmp_path):
        """Test a location that cannot be opened raises StorageError."""
        with pytest.raises(StorageError) as exc_info:
            await RecordStore.open(str(tmp_path))
        assert isinstance(exc_info.value.__cause__, (SQLAlchemyError, OSError))

    async def test_ensure_schema_is_idempotent(self, store):
        """Test repeated schema creation keeps existing rows."""
        await store.put("alice", b"blob")
        await store.ensure_schema()
        await store.ensure_schema()
        assert await store.get("alice") == b"blob"

    async def test_data_survives_reopen(self, db_path, clock):
        """Test records persist across store instances."""
        first = await RecordStore.open(str(db_path), clock=clock)
        await first.ensure_schema()
        await first.put("alice", b"persisted")
        await first.close()

        second = await RecordStore.open(str(db_path), clock=clock)
        try:
            await second.ensure_schema()
            assert await second.get("alice") == b"persisted"
        finally:
            await second.close()


# --- Put / get ---

class TestPutGet:
    """Tests for upsert and lookup."""

    async def test_put_then_get(self, store):
        """Test binary values are returned unchanged."""
        await store.put("alice", b"\x00\x01binary\xff")
        assert await store.get("alice") == b"\x00\x01binary\xff"

    async def test_absent_key_returns_none(self, store):
        """Test unknown keys return None rather than raising."""
        assert await store.get("bob") is None
        assert await store.get_record("bob") is None

    async def test_overwrite_replaces_value(self, store):
        """Test a second put replaces the stored value."""
        await store.put("alice", b"first")
        await store.put("alice", b"second")
        assert await store.get("alice") == b"second"

    async def test_keys_are_independent(self, store):
        """Test writes to one key do not affect another."""
        await store.put("alice", b"a")
        await store.put("bob", b"b")
        assert await store.get("alice") == b"a"
        assert await store.get("bob") == b"b"

    async def test_first_write_sets_both_timestamps(self, store, clock):
        """Test the first write sets created_at and updated_at to now."""
        await store.put("alice", b"first")
        record = await store.get_record("alice")
        assert record.key == "alice"
        assert record.value == b"first"
        assert record.created_at == clock.now
        assert record.updated_at == clock.now

    async def test_second_write_keeps_created_at(self, store, clock):
        """Test overwriting advances updated_at and keeps created_at."""
        await store.put("alice", b"first")
        created = clock.now
        clock.advance(60)
        await store.put("alice", b"second")
        record = await store.get_record("alice")
        assert record.created_at == created
        assert record.updated_at == created + 60
        assert record.updated_at > record.created_at

    async def test_record_repr_hides_value(self, store):
        """Test the stored blob is not shown in the record repr."""
        await store.put("alice", b"secret-bytes")
        record = await store.get_record("alice")
        assert "secret-bytes" not in repr(record)

    async def test_concurrent_writes_different_keys(self, store):
        """Test parallel writes to distinct keys all land."""
        keys = [f"user-{i}" for i in range(20)]
        await asyncio.gather(*(store.put(k, k.encode()) for k in keys))
        values = await asyncio.gather(*(store.get(k) for k in keys))
        assert values == [k.encode() for k in keys]

    async def test_concurrent_writes_same_key(self, store):
        """Test parallel writes to one key leave one of the written values."""
        values = [f"v{i}".encode() for i in range(10)]
        await asyncio.gather(*(store.put("alice", v) for v in values))
        assert await store.get("alice") in values


# --- Lifecycle and failures ---

class TestFailures:
    """Tests for lifecycle misuse, cancellation and storage errors."""

    async def test_unopened_store(self):
        """Test every operation on an unopened store raises StorageError."""
        store = RecordStore()
        assert store.is_open is False
        with pytest.raises(StorageError):
            await store.put("alice", b"blob")
        with pytest.raises(StorageError):
            await store.get("alice")
        with pytest.raises(StorageError):
            await store.ensure_schema()

    async def test_closed_store(self, db_path):
        """Test a closed store refuses further operations."""
        store = await RecordStore.open(str(db_path))
        await store.close()
        with pytest.raises(StorageError):
            await store.get("alice")

    async def test_missing_table_is_storage_error(self, db_path):
        """Test writing before the schema exists raises StorageError."""
        store = await RecordStore.open(str(db_path))
        try:
            with pytest.raises(StorageError) as exc_info:
                await store.put("alice", b"blob")
            assert isinstance(exc_info.value.__cause__, SQLAlchemyError)
        finally:
            await store.close()

    async def test_io_failure_is_storage_error(self):
        """Test driver errors are wrapped with the cause chained."""
        store = RecordStore(engine=BrokenEngine(), clock=FakeClock())
        with pytest.raises(StorageError) as exc_info:
            await store.put("alice", b"blob")
        assert isinstance(exc_info.value.__cause__, OperationalError)
        assert isinstance(exc_info.value.__cause__.orig, sqlite3.OperationalError)
        with pytest.raises(StorageError):
            await store.get("alice")

    async def test_cancelled_put_leaves_store_usable(self, tmp_path, clock):
        """Test cancelling a put mid-statement does not poison the pool."""
        store = await RecordStore.open(
            str(tmp_path / "slow.db"), pool_size=1, clock=clock,
        )
        try:
            event.listen(
                store.engine.sync_engine, "connect",
                lambda dbapi_conn, record: dbapi_conn.create_function(
                    "slow", 0, slow_statement,
                ),
            )
            # reconnect so the pooled connection carries the slow() function
            await store.engine.dispose()
            await store.ensure_schema()
            async with store.engine.begin() as conn:
                await conn.execute(text(
                    "CREATE TRIGGER slow_insert BEFORE INSERT ON records "
                    "BEGIN SELECT slow(); END"
                ))

            task = asyncio.create_task(store.put("alice", b"cancelled"))
            await asyncio.sleep(0.1)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

            await store.put("bob", b"after")
            assert await store.get("bob") == b"after"
            assert await store.get("alice") in (None, b"cancelled")
        finally:
            await store.close()
