"""Spot vs. derivative market detection."""

from __future__ import annotations

from tv_executor.app.models import MarketType, ResolvedOrderContext, TradeSignal


def detect_market_type(symbol: str) -> MarketType:
    """Expects a normalized symbol; a settlement suffix marks a derivative."""
    return "swap" if ":" in symbol else "spot"


def resolve_market_type(signal: TradeSignal) -> MarketType:
    """Explicit marketType wins; "futures" is treated as the perpetual swap market."""
    if signal.market_type is not None:
        return "spot" if signal.market_type == "spot" else "swap"
    return detect_market_type(signal.symbol)


def resolve_context(signal: TradeSignal) -> ResolvedOrderContext:
    return ResolvedOrderContext(
        signal=signal,
        market_type=resolve_market_type(signal),
        symbol=signal.symbol,
    )
