"""Order quantity resolution from coin volume or USDT notional."""

from __future__ import annotations

from collections.abc import Callable

from tv_executor.app.errors import ExchangeError, error_code_of
from tv_executor.app.models import TradeSignal

AmountToPrecision = Callable[[str, float], "str | float"]


def needs_reference_price(signal: TradeSignal) -> bool:
    return signal.uses_notional


def raw_quantity(signal: TradeSignal, reference_price: float | None) -> float:
    """Quantity before exchange rounding. volumeUSDT takes priority over volume."""
    if signal.volume_usdt is not None:
        if reference_price is None or reference_price <= 0:
            raise ExchangeError(signal.exchange, "Could not determine current price for volumeUSDT sizing")
        return signal.volume_usdt / reference_price
    if signal.volume is None:
        raise ExchangeError(signal.exchange, "Neither volume nor volumeUSDT is usable")
    return signal.volume


def resolve_volume(
    signal: TradeSignal,
    reference_price: float | None,
    amount_to_precision: AmountToPrecision,
    symbol: str | None = None,
) -> float:
    symbol = symbol or signal.symbol
    qty = raw_quantity(signal, reference_price)
    try:
        rounded = float(amount_to_precision(symbol, qty))
    except Exception as exc:  # noqa: BLE001
        raise ExchangeError(
            signal.exchange,
            f"Failed to apply amount precision: {exc}",
            error_code_of(exc),
            exc,
        ) from exc

    if rounded <= 0:
        raise ExchangeError(signal.exchange, f"Order quantity {qty} rounds to zero for {symbol}")
    return rounded
