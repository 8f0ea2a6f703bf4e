from __future__ import annotations

import contextlib
import math
from typing import Any

import pytest

from tv_executor.app.config import AppConfig, ExchangeConfig, ExchangeCredentials, SecurityConfig, TelegramConfig

PASSPHRASE = "X"


class RecordingLogger:
    """Collects log calls; accepts the loguru ``{}`` style used by the app."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str]] = []

    def _log(self, level: str, message: str, *args: object) -> None:
        self.records.append((level, message.format(*args) if args else message))

    def debug(self, message: str, *args: object) -> None:
        self._log("debug", message, *args)

    def info(self, message: str, *args: object) -> None:
        self._log("info", message, *args)

    def warning(self, message: str, *args: object) -> None:
        self._log("warning", message, *args)

    def error(self, message: str, *args: object) -> None:
        self._log("error", message, *args)

    def exception(self, message: str, *args: object) -> None:
        self._log("exception", message, *args)

    def messages(self, level: str) -> list[str]:
        return [text for lvl, text in self.records if lvl == level]


class FakeExchange:
    """In-memory stand-in for a ccxt async exchange."""

    def __init__(
        self,
        *,
        price: float | None = 50000.0,
        status: str = "closed",
        average: float | None = 50000.0,
        precision: int = 3,
        has: dict[str, Any] | None = None,
        fail: dict[str, Exception] | None = None,
    ) -> None:
        self.price = price
        self.status = status
        self.average = average
        self.precision = precision
        self.has: dict[str, Any] = {"setLeverage": True, "createStopOrder": True, "createOrder": True}
        self.has.update(has or {})
        self.fail = dict(fail or {})
        self.calls: list[tuple[str, tuple, dict]] = []
        self.closed = False

    @property
    def call_names(self) -> list[str]:
        return [name for name, _args, _kwargs in self.calls]

    def calls_to(self, name: str) -> list[tuple[tuple, dict]]:
        return [(args, kwargs) for call, args, kwargs in self.calls if call == name]

    def _record(self, name: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append((name, args, kwargs))
        if name in self.fail:
            raise self.fail[name]

    async def load_markets(self) -> dict:
        self._record("load_markets")
        return {}

    async def close(self) -> None:
        self.closed = True

    async def set_leverage(self, leverage, symbol=None, params=None) -> dict:
        self._record("set_leverage", leverage, symbol)
        return {"leverage": leverage}

    async def fetch_ticker(self, symbol: str) -> dict:
        self._record("fetch_ticker", symbol)
        return {"symbol": symbol, "last": self.price, "close": self.price}

    def amount_to_precision(self, symbol: str, amount: float) -> str:
        factor = 10**self.precision
        truncated = math.floor(round(amount * factor, 9)) / factor
        return f"{truncated:.{self.precision}f}"

    async def create_market_order(self, symbol, side, amount, price=None, params=None) -> dict:
        self._record("create_market_order", symbol, side, amount, params=params or {})
        return {"id": "entry-1", "status": self.status, "average": self.average, "amount": amount}

    async def create_limit_order(self, symbol, side, amount, price, params=None) -> dict:
        self._record("create_limit_order", symbol, side, amount, price, params=params or {})
        return {"id": "entry-1", "status": self.status, "average": None, "amount": amount, "price": price}

    async def create_stop_order(self, symbol, type, side, amount, price=None, triggerPrice=None, params=None) -> dict:
        self._record("create_stop_order", symbol, type, side, amount, price, triggerPrice, params=params or {})
        return {"id": "stop-1", "status": "open"}

    async def create_order(self, symbol, type, side, amount, price=None, params=None) -> dict:
        self._record("create_order", symbol, type, side, amount, price, params=params or {})
        return {"id": "stop-2", "status": "open"}


class FakeConnector:
    def __init__(self, exchange: FakeExchange | None = None, error: Exception | None = None) -> None:
        self.exchange = exchange or FakeExchange()
        self.error = error
        self.opened: list[tuple[str, str]] = []

    @contextlib.asynccontextmanager
    async def connect(self, exchange_id: str, market_type: str):
        self.opened.append((exchange_id, market_type))
        if self.error is not None:
            raise self.error
        try:
            yield self.exchange
        finally:
            await self.exchange.close()


class RecordingNotifier:
    def __init__(self, enabled: bool = True, error: Exception | None = None) -> None:
        self.enabled = enabled
        self.error = error
        self.sent: list[str] = []

    async def send(self, message: str) -> None:
        self.sent.append(message)
        if self.error is not None:
            raise self.error


def make_config(**exchange_overrides: Any) -> AppConfig:
    exchange = {
        "credentials": {"binance": ExchangeCredentials(api_key="key", secret="secret")},
        "order_timeout_sec": 5.0,
    }
    exchange.update(exchange_overrides)
    return AppConfig(
        exchange=ExchangeConfig(**exchange),
        telegram=TelegramConfig(),
        security=SecurityConfig(webhook_passphrase=PASSPHRASE),
    )


def make_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "exchange": "binance",
        "symbol": "BTC/USDT",
        "action": "buy",
        "orderType": "market",
        "volume": 0.01,
        "passphrase": PASSPHRASE,
    }
    payload.update(overrides)
    return {key: value for key, value in payload.items() if value is not None}


@pytest.fixture()
def logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture()
def config() -> AppConfig:
    return make_config()


@pytest.fixture()
def exchange() -> FakeExchange:
    return FakeExchange()
