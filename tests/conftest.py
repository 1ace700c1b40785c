"""Shared test fixtures for celo-predict."""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cli.config_models import GameConfig, RetryConfig, StoreTTLConfig  # noqa: E402
from ledger import MemoryStore, PredictionLedger, SQLiteStore  # noqa: E402
from observability import metrics  # noqa: E402

USER = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"
T0 = 1_700_000_000_000  # ms


class FakeClock:
    """Controllable wall clock shared by a ledger and its store."""

    def __init__(self, start_ms: int = T0):
        self.now_ms = start_ms

    def ms(self) -> int:
        return self.now_ms

    def time(self) -> float:
        return self.now_ms / 1000

    def advance(self, ms: int) -> int:
        self.now_ms += ms
        return self.now_ms


# No backoff in tests
FAST_RETRY = RetryConfig(max_attempts=3, min_wait=0, max_wait=0)


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store(clock):
    return MemoryStore(clock=clock.time)


@pytest.fixture
def sqlite_store(tmp_path, clock):
    return SQLiteStore(tmp_path / "ledger.db", timeout=2.0, clock=clock.time)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, clock, tmp_path):
    """Each ledger test runs against both backends."""
    if request.param == "memory":
        return MemoryStore(clock=clock.time)
    return SQLiteStore(tmp_path / "ledger.db", timeout=2.0, clock=clock.time)


@pytest.fixture
def user():
    return USER


@pytest.fixture
def make_ledger(clock):
    """Factory: ledger over a given store with GameConfig overrides."""

    def _make(store, **game_overrides) -> PredictionLedger:
        return PredictionLedger(
            store,
            game=GameConfig(**game_overrides),
            ttl=StoreTTLConfig(),
            retry=FAST_RETRY,
            clock=clock.ms,
        )

    return _make


@pytest.fixture
def ledger(store, make_ledger):
    return make_ledger(store)
