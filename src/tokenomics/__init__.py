"""Daily token-supply, price and liquidity indexer."""

__version__ = "1.0.0"
