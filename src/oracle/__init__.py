"""Price oracle client."""

from .coingecko import OracleError, PriceOracle, PriceQuote

__all__ = ["OracleError", "PriceOracle", "PriceQuote"]
