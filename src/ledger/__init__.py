"""Prediction ledger: pending guesses, rate limits and win streaks for the price game."""

from .ledger import PredictionLedger
from .models import (
    Expired,
    NotFound,
    Prediction,
    RateLimited,
    StatsView,
    StorageFailure,
    Submitted,
    SweepReport,
    UserStats,
    Verification,
)
from .store import KeyValueStore, MemoryStore, SQLiteStore, StoreUnavailable, build_store
from .sweeper import SweepScheduler

__all__ = [
    "PredictionLedger",
    "Prediction",
    "UserStats",
    "StatsView",
    "Submitted",
    "Verification",
    "RateLimited",
    "NotFound",
    "Expired",
    "StorageFailure",
    "SweepReport",
    "KeyValueStore",
    "MemoryStore",
    "SQLiteStore",
    "StoreUnavailable",
    "build_store",
    "SweepScheduler",
]
