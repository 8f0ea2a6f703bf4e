"""Execute TradingView webhook signals on crypto exchanges through ccxt."""

__version__ = "0.1.0"
