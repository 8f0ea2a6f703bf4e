"""Simulated exchange handle for paper mode.

Prices and precision come from the real exchange's public endpoints; orders are
filled in memory and never reach the exchange.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any


@dataclass(slots=True)
class PaperOrder:
    id: str
    symbol: str
    type: str
    side: str
    amount: float
    price: float | None
    status: str
    average: float | None
    reduce_only: bool = False
    trigger_price: float | None = None

    def to_ccxt(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "type": self.type,
            "side": self.side,
            "amount": self.amount,
            "price": self.price,
            "average": self.average,
            "status": self.status,
            "filled": self.amount if self.status == "closed" else 0.0,
            "reduceOnly": self.reduce_only,
            "triggerPrice": self.trigger_price,
            "timestamp": int(datetime.now(UTC).timestamp() * 1000),
        }


class PaperExchange:
    """ccxt-compatible surface used by the order engine."""

    VALID_SIDES = {"buy", "sell"}

    def __init__(self, market_data: Any, logger: Any | None = None) -> None:
        self._market_data = market_data
        self.id = getattr(market_data, "id", "paper")
        self.logger = logger
        self.has = {
            "setLeverage": True,
            "createStopOrder": True,
            "createOrder": True,
        }
        self.orders: dict[str, PaperOrder] = {}
        self.leverage_by_symbol: dict[str, float] = {}
        self._lock = asyncio.Lock()

    async def load_markets(self) -> dict[str, Any]:
        return await self._market_data.load_markets()

    async def close(self) -> None:
        await self._market_data.close()

    async def fetch_ticker(self, symbol: str) -> dict[str, Any]:
        return await self._market_data.fetch_ticker(symbol)

    def amount_to_precision(self, symbol: str, amount: float) -> str:
        return self._market_data.amount_to_precision(symbol, amount)

    async def set_leverage(self, leverage: float, symbol: str | None = None, params: dict | None = None) -> dict:
        if symbol is not None:
            self.leverage_by_symbol[symbol] = leverage
        return {"symbol": symbol, "leverage": leverage}

    async def create_market_order(
        self, symbol: str, side: str, amount: float, price: float | None = None, params: dict | None = None
    ) -> dict[str, Any]:
        return await self.create_order(symbol, "market", side, amount, price, params)

    async def create_limit_order(
        self, symbol: str, side: str, amount: float, price: float, params: dict | None = None
    ) -> dict[str, Any]:
        return await self.create_order(symbol, "limit", side, amount, price, params)

    async def create_stop_order(
        self,
        symbol: str,
        type: str,
        side: str,
        amount: float,
        price: float | None = None,
        triggerPrice: float | None = None,
        params: dict | None = None,
    ) -> dict[str, Any]:
        params = {**(params or {}), "triggerPrice": triggerPrice}
        return await self.create_order(symbol, type, side, amount, price, params)

    async def create_order(
        self,
        symbol: str,
        type: str,
        side: str,
        amount: float,
        price: float | None = None,
        params: dict | None = None,
    ) -> dict[str, Any]:
        params = params or {}
        if side not in self.VALID_SIDES:
            raise ValueError(f"invalid side {side!r}")
        if type == "limit" and price is None:
            raise ValueError("limit order requires price")

        trigger = params.get("triggerPrice") or params.get("stopPrice")
        last = None if trigger else await self._last_price(symbol)

        async with self._lock:
            # trigger orders rest until triggered
            status = "open"
            average: float | None = None
            if not trigger and type == "market":
                status, average = "closed", last
            elif not trigger and last is not None and self._limit_should_fill(side, last, float(price)):
                status, average = "closed", float(price)

            order = PaperOrder(
                id=str(uuid.uuid4()),
                symbol=symbol,
                type=type,
                side=side,
                amount=float(amount),
                price=price,
                status=status,
                average=average,
                reduce_only=bool(params.get("reduceOnly", False)),
                trigger_price=float(trigger) if trigger else None,
            )
            self.orders[order.id] = order

        if self.logger is not None:
            self.logger.info(
                "PaperExchange: {} {} {} qty={} price={} status={}",
                type,
                side,
                symbol,
                amount,
                average if average is not None else price,
                status,
            )
        return order.to_ccxt()

    async def _last_price(self, symbol: str) -> float | None:
        ticker = await self.fetch_ticker(symbol)
        price = ticker.get("last") or ticker.get("close")
        return float(price) if price else None

    @staticmethod
    def _limit_should_fill(side: str, current_price: float, limit_price: float) -> bool:
        return (side == "buy" and current_price <= limit_price) or (side == "sell" and current_price >= limit_price)
