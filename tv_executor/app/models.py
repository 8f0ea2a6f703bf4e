"""Domain models for webhook signals and execution results."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from tv_executor.app.errors import DomainError

ExchangeId = Literal["binance", "bybit", "okx", "bitget"]
TradeAction = Literal["buy", "sell"]
OrderType = Literal["market", "limit"]
SignalMarketType = Literal["spot", "futures", "swap"]
MarketType = Literal["spot", "swap"]
Direction = Literal["long", "short"]
OrderStatus = Literal["filled", "partial", "pending"]

SUPPORTED_EXCHANGES: tuple[str, ...] = ("binance", "bybit", "okx", "bitget")

SPOT_SYMBOL_RE = re.compile(r"^[A-Z0-9]+/[A-Z0-9]+$")
DERIVATIVE_SYMBOL_RE = re.compile(r"^[A-Z0-9]+/[A-Z0-9]+:[A-Z0-9]+$")
PERPETUAL_SYMBOL_RE = re.compile(r"^([A-Z0-9]+?)(USDT|USDC)\.P$")


def normalize_symbol(raw: str) -> str:
    """Return the canonical ``BASE/QUOTE[:SETTLE]`` form of a signal symbol.

    ``BTCUSDT.P`` becomes ``BTC/USDT:USDT``; slash forms are returned unchanged.
    Raises ValueError for anything outside the three accepted grammars.
    """
    if SPOT_SYMBOL_RE.match(raw) or DERIVATIVE_SYMBOL_RE.match(raw):
        return raw
    match = PERPETUAL_SYMBOL_RE.match(raw)
    if match:
        base, quote = match.group(1), match.group(2)
        return f"{base}/{quote}:{quote}"
    raise ValueError("Invalid symbol format (expected BTC/USDT, BTC/USDT:USDT, or BTCUSDT.P)")


class TradeSignal(BaseModel):
    """A validated, normalized TradingView alert."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    exchange: ExchangeId
    symbol: str
    action: TradeAction
    order_type: OrderType = Field(alias="orderType")
    passphrase: str = Field(min_length=1, repr=False)
    volume: float | None = Field(default=None, gt=0, strict=True, allow_inf_nan=False)
    volume_usdt: float | None = Field(default=None, gt=0, strict=True, allow_inf_nan=False, alias="volumeUSDT")
    market_type: SignalMarketType | None = Field(default=None, alias="marketType")
    direction: Direction | None = None
    leverage: float | None = Field(default=None, ge=1, le=125, strict=True, allow_inf_nan=False)
    reduce_only: bool | None = Field(default=None, strict=True, alias="reduceOnly")

    @field_validator("symbol")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        return normalize_symbol(value)

    @model_validator(mode="after")
    def _check_sizing(self) -> TradeSignal:
        if self.volume is None and self.volume_usdt is None:
            raise ValueError("Either volume or volumeUSDT must be specified")
        return self

    @property
    def uses_notional(self) -> bool:
        return self.volume_usdt is not None

    @property
    def is_long(self) -> bool:
        if self.direction is not None:
            return self.direction == "long"
        return self.action == "buy"


@dataclass(frozen=True, slots=True)
class ResolvedOrderContext:
    signal: TradeSignal
    market_type: MarketType
    symbol: str

    @property
    def exchange(self) -> str:
        return self.signal.exchange


@dataclass(frozen=True, slots=True)
class OrderResult:
    order_id: str
    exchange: str
    symbol: str
    action: TradeAction
    volume: float
    order_type: OrderType
    price: float | None
    executed_at: datetime
    status: OrderStatus
    market_type: MarketType | None = None
    leverage: float | None = None
    direction: Direction | None = None

    def to_payload(self) -> dict[str, object]:
        return {
            "orderId": self.order_id,
            "exchange": self.exchange,
            "symbol": self.symbol,
            "action": self.action,
            "volume": self.volume,
            "orderType": self.order_type,
            "price": self.price,
            "status": self.status,
            "executedAt": self.executed_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class ExecutionOutcome:
    """Exactly one of ``result`` or ``error`` is set."""

    result: OrderResult | None = None
    error: DomainError | None = None

    def __post_init__(self) -> None:
        if (self.result is None) == (self.error is None):
            raise ValueError("ExecutionOutcome needs exactly one of result or error")

    @property
    def ok(self) -> bool:
        return self.result is not None

    @classmethod
    def success(cls, result: OrderResult) -> ExecutionOutcome:
        return cls(result=result)

    @classmethod
    def failure(cls, error: DomainError) -> ExecutionOutcome:
        return cls(error=error)
