"""Dependency injection for FastAPI routes.

Each dependency is built once per process. Tests swap them through
app.dependency_overrides or reset_dependencies().
"""

from functools import lru_cache

import structlog

from cli.config import load_config_model
from cli.config_models import AppConfig
from ledger import KeyValueStore, PredictionLedger, build_store
from oracle import PriceOracle

logger = structlog.get_logger()


@lru_cache
def get_config() -> AppConfig:
    """Load config from $CELO_PREDICT_CONFIG / ./config.yaml / ~/.celo-predict/config.yaml."""
    return load_config_model()


@lru_cache
def get_store() -> KeyValueStore:
    return build_store(get_config().store)


@lru_cache
def get_ledger() -> PredictionLedger:
    config = get_config()
    return PredictionLedger(
        get_store(),
        game=config.game,
        ttl=config.store.ttl,
        retry=config.retry,
    )


@lru_cache
def get_oracle() -> PriceOracle:
    return PriceOracle(get_config().oracle)


def reset_dependencies() -> None:
    """Drop cached singletons. Used in tests and after config changes."""
    for dep in (get_config, get_store, get_ledger, get_oracle):
        dep.cache_clear()
