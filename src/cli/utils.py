"""Shared CLI utilities."""

import sys

import structlog
from rich.console import Console

console = Console()
logger = structlog.get_logger()


def get_components() -> dict:
    """Initialize config, store, ledger and oracle from the config file."""
    from cli.config import load_config_model
    from ledger import PredictionLedger, build_store
    from oracle import PriceOracle

    try:
        config = load_config_model()
    except ValueError as e:
        console.print(f"[red]Config error:[/] {e}")
        sys.exit(1)

    store = build_store(config.store)
    ledger = PredictionLedger(store, game=config.game, ttl=config.store.ttl, retry=config.retry)
    oracle = PriceOracle(config.oracle)

    return {
        "config": config,
        "store": store,
        "ledger": ledger,
        "oracle": oracle,
    }
