"""Shared fixtures for the record vault test-suite."""
import pytest

from record_vault.vault import RecordCipher, RecordService, RecordStore

TEST_SEED = "test-key-for-testing"


class FakeClock:
    """Controllable clock returning epoch seconds."""

    def __init__(self, start: int = 1_700_000_000):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: int = 1) -> None:
        self.now += seconds


@pytest.fixture
def cipher():
    """Create a RecordCipher initialized with a fixed test seed."""
    c = RecordCipher()
    c.initialize(TEST_SEED)
    return c


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "records.db"


@pytest.fixture
async def store(db_path, clock):
    """Open a RecordStore on a temporary SQLite file with the schema in place."""
    s = await RecordStore.open(f"sqlite://{db_path}", pool_size=2, clock=clock)
    await s.ensure_schema()
    yield s
    await s.close()


@pytest.fixture
def service(cipher, store):
    return RecordService(cipher, store)
