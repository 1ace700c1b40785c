"""CLI command modules."""

from .ledger import price, stats, sweep
from .server import serve, show_config

__all__ = [
    "price",
    "serve",
    "show_config",
    "stats",
    "sweep",
]
