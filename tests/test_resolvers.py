from __future__ import annotations

import pytest

from tests.conftest import PASSPHRASE, FakeExchange, make_payload
from tv_executor.app.errors import ExchangeError
from tv_executor.app.market_resolver import detect_market_type, resolve_context, resolve_market_type
from tv_executor.app.signal_validator import validate_trade_signal
from tv_executor.app.volume_resolver import needs_reference_price, raw_quantity, resolve_volume


def _signal(**overrides):
    return validate_trade_signal(make_payload(**overrides), PASSPHRASE)


@pytest.mark.parametrize(
    "symbol, expected",
    [("BTC/USDT", "spot"), ("BTC/USDT:USDT", "swap"), ("BTCUSDT.P", "swap")],
)
def test_market_type_inferred_from_symbol(symbol, expected):
    assert resolve_market_type(_signal(symbol=symbol)) == expected


def test_detect_market_type_on_normalized_symbols():
    assert detect_market_type("ETH/USDT:USDT") == "swap"
    assert detect_market_type("ETH/USDT") == "spot"


@pytest.mark.parametrize("market_type, expected", [("spot", "spot"), ("futures", "swap"), ("swap", "swap")])
def test_explicit_market_type_wins(market_type, expected):
    signal = _signal(symbol="BTC/USDT:USDT" if expected == "spot" else "BTC/USDT", marketType=market_type)
    assert resolve_market_type(signal) == expected


def test_resolve_context_carries_normalized_symbol():
    context = resolve_context(_signal(symbol="SOLUSDT.P"))
    assert context.symbol == "SOL/USDT:USDT"
    assert context.market_type == "swap"
    assert context.exchange == "binance"


def test_coin_volume_is_rounded_to_precision():
    exchange = FakeExchange(precision=3)
    qty = resolve_volume(_signal(volume=0.01234), None, exchange.amount_to_precision)
    assert qty == pytest.approx(0.012)
    assert not needs_reference_price(_signal(volume=0.01234))


def test_notional_is_divided_by_reference_price():
    exchange = FakeExchange(precision=6)
    signal = _signal(volume=None, volumeUSDT=500)
    assert needs_reference_price(signal)
    assert resolve_volume(signal, 50000.0, exchange.amount_to_precision) == pytest.approx(0.01)


def test_notional_takes_priority_over_volume():
    exchange = FakeExchange(precision=6)
    qty = resolve_volume(_signal(volume=3, volumeUSDT=500), 50000.0, exchange.amount_to_precision)
    assert qty == pytest.approx(0.01)


def test_doubling_notional_doubles_raw_quantity():
    single = raw_quantity(_signal(volume=None, volumeUSDT=250), 40000.0)
    double = raw_quantity(_signal(volume=None, volumeUSDT=500), 40000.0)
    assert double == pytest.approx(2 * single)


@pytest.mark.parametrize("price", [None, 0.0, -1.0])
def test_notional_without_price_is_fatal(price):
    with pytest.raises(ExchangeError) as exc_info:
        resolve_volume(_signal(volume=None, volumeUSDT=500), price, FakeExchange().amount_to_precision)
    assert exc_info.value.exchange == "binance"


def test_quantity_rounding_to_zero_is_fatal():
    with pytest.raises(ExchangeError, match="rounds to zero"):
        resolve_volume(_signal(volume=0.0001), None, FakeExchange(precision=2).amount_to_precision)


def test_precision_errors_keep_broker_code():
    class InvalidOrder(Exception):
        pass

    def amount_to_precision(symbol, amount):
        raise InvalidOrder("amount must be greater than minimum amount precision")

    with pytest.raises(ExchangeError) as exc_info:
        resolve_volume(_signal(), None, amount_to_precision)
    assert exc_info.value.code == "InvalidOrder"
