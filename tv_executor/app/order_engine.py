"""Order execution state machine: leverage -> entry -> stop-loss."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from tv_executor.app.best_effort import best_effort
from tv_executor.app.config import ExchangeConfig
from tv_executor.app.errors import DomainError, ExchangeError, error_code_of
from tv_executor.app.models import OrderResult, OrderStatus, ResolvedOrderContext, TradeAction
from tv_executor.app.volume_resolver import needs_reference_price, resolve_volume


class ExecutionStep(StrEnum):
    LEVERAGE = "leverage"
    ENTRY = "entry"
    STOP_LOSS = "stop_loss"
    DONE = "done"


def limit_price_for(action: TradeAction, reference_price: float, offset: float) -> float:
    """Passive limit price: below the market for buys, above it for sells."""
    if action == "buy":
        return reference_price * (1 - offset)
    return reference_price * (1 + offset)


def stop_loss_price_for(entry_price: float, is_long: bool, offset: float) -> float:
    if is_long:
        return entry_price * (1 - offset)
    return entry_price * (1 + offset)


def opposite_action(action: TradeAction) -> TradeAction:
    return "sell" if action == "buy" else "buy"


class OrderExecutionEngine:
    """Places the orders for one resolved signal on an open exchange handle.

    Leverage and entry failures are fatal and raise ExchangeError. The stop-loss
    runs under the best-effort policy and never changes the returned result.
    """

    def __init__(self, config: ExchangeConfig, logger) -> None:
        self.config = config
        self.logger = logger

    async def execute(self, context: ResolvedOrderContext, exchange: Any) -> OrderResult:
        exchange_id = context.exchange
        timeout = self.config.order_timeout_sec
        step = ExecutionStep.LEVERAGE
        try:
            async with asyncio.timeout(timeout):
                self._enter(step, context)
                await self._leverage_step(context, exchange)
                step = ExecutionStep.ENTRY
                self._enter(step, context)
                result = await self._entry_step(context, exchange)
        except TimeoutError as exc:
            raise ExchangeError(
                exchange_id,
                f"{step} step timed out after {timeout}s",
                "RequestTimeout",
                exc,
            ) from exc

        self.logger.info(
            "OrderEngine: entry placed id={} {} {} qty={} price={} status={}",
            result.order_id,
            result.action,
            result.symbol,
            result.volume,
            result.price,
            result.status,
        )

        self._enter(ExecutionStep.STOP_LOSS, context)
        protection = asyncio.ensure_future(
            best_effort(self._protect(context, exchange, result), name="stop_loss", logger=self.logger)
        )
        try:
            await asyncio.shield(protection)
        except asyncio.CancelledError:
            # the entry is already filled: finish protecting it before giving up
            self.logger.warning("OrderEngine: cancelled after entry, completing stop-loss for {}", result.order_id)
            await asyncio.wait({protection})
            raise

        self._enter(ExecutionStep.DONE, context)
        return result

    def _enter(self, step: ExecutionStep, context: ResolvedOrderContext) -> None:
        self.logger.debug("OrderEngine: step={} exchange={} symbol={}", step, context.exchange, context.symbol)

    async def _leverage_step(self, context: ResolvedOrderContext, exchange: Any) -> None:
        leverage = context.signal.leverage
        if not leverage:
            return
        if not exchange.has.get("setLeverage"):
            self.logger.info("OrderEngine: {} does not support setLeverage, skipping", context.exchange)
            return

        value = int(leverage) if float(leverage).is_integer() else leverage
        try:
            await exchange.set_leverage(value, context.symbol)
        except Exception as exc:  # noqa: BLE001
            raise ExchangeError(
                context.exchange,
                f"Failed to set leverage: {exc}",
                error_code_of(exc),
                exc,
            ) from exc
        self.logger.info("OrderEngine: leverage set to {} for {}", value, context.symbol)

    async def _entry_step(self, context: ResolvedOrderContext, exchange: Any) -> OrderResult:
        order_type = context.signal.order_type
        try:
            if order_type == "market":
                return await self._market_entry(context, exchange)
            return await self._limit_entry(context, exchange)
        except DomainError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise ExchangeError(
                context.exchange,
                f"{order_type.capitalize()} order failed: {exc}",
                error_code_of(exc),
                exc,
            ) from exc

    async def _market_entry(self, context: ResolvedOrderContext, exchange: Any) -> OrderResult:
        signal = context.signal
        reference_price = None
        if needs_reference_price(signal):
            reference_price = await self._reference_price(context, exchange)

        qty = resolve_volume(signal, reference_price, exchange.amount_to_precision, context.symbol)
        order = await exchange.create_market_order(
            context.symbol,
            signal.action,
            qty,
            params=self._entry_params(context),
        )
        average = order.get("average")
        status: OrderStatus = "filled" if order.get("status") == "closed" else "partial"
        return self._build_result(context, order, qty, float(average) if average else None, status)

    async def _limit_entry(self, context: ResolvedOrderContext, exchange: Any) -> OrderResult:
        signal = context.signal
        reference_price = await self._reference_price(context, exchange)
        limit_price = limit_price_for(signal.action, reference_price, self.config.limit_order_offset)

        qty = resolve_volume(signal, limit_price, exchange.amount_to_precision, context.symbol)
        order = await exchange.create_limit_order(
            context.symbol,
            signal.action,
            qty,
            limit_price,
            params=self._entry_params(context),
        )
        status: OrderStatus = "filled" if order.get("status") == "closed" else "pending"
        return self._build_result(context, order, qty, limit_price, status)

    async def _reference_price(self, context: ResolvedOrderContext, exchange: Any) -> float:
        ticker = await exchange.fetch_ticker(context.symbol)
        price = ticker.get("last") or ticker.get("close")
        if not price or float(price) <= 0:
            raise ExchangeError(context.exchange, f"Could not determine current price for {context.symbol}")
        return float(price)

    @staticmethod
    def _entry_params(context: ResolvedOrderContext) -> dict[str, Any]:
        return {"reduceOnly": True} if context.signal.reduce_only else {}

    @staticmethod
    def _build_result(
        context: ResolvedOrderContext,
        order: dict[str, Any],
        qty: float,
        price: float | None,
        status: OrderStatus,
    ) -> OrderResult:
        signal = context.signal
        return OrderResult(
            order_id=str(order.get("id") or ""),
            exchange=signal.exchange,
            symbol=context.symbol,
            action=signal.action,
            volume=qty,
            order_type=signal.order_type,
            price=price,
            executed_at=datetime.now(UTC),
            status=status,
            market_type=context.market_type,
            leverage=signal.leverage,
            direction=signal.direction,
        )

    async def _protect(self, context: ResolvedOrderContext, exchange: Any, entry: OrderResult) -> dict | None:
        async with asyncio.timeout(self.config.order_timeout_sec):
            return await self._stop_loss_step(context, exchange, entry)

    async def _stop_loss_step(self, context: ResolvedOrderContext, exchange: Any, entry: OrderResult) -> dict | None:
        offset = self.config.stop_loss_offset
        if offset <= 0 or entry.price is None:
            return None

        stop_price = stop_loss_price_for(entry.price, context.signal.is_long, offset)
        side = opposite_action(entry.action)
        params: dict[str, Any] = {"reduceOnly": True}

        if exchange.has.get("createStopOrder"):
            order = await exchange.create_stop_order(
                context.symbol, "market", side, entry.volume, None, stop_price, params
            )
        elif exchange.has.get("createOrder"):
            order = await exchange.create_order(
                context.symbol,
                "market",
                side,
                entry.volume,
                None,
                {**params, "stopPrice": stop_price, "triggerPrice": stop_price},
            )
        else:
            self.logger.info("OrderEngine: {} has no stop order support, skipping stop-loss", context.exchange)
            return None

        self.logger.info(
            "OrderEngine: stop-loss placed id={} {} {} qty={} stop={}",
            order.get("id"),
            side,
            context.symbol,
            entry.volume,
            stop_price,
        )
        return order
