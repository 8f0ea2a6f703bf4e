"""Per-run ccxt exchange handles (live or paper)."""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator
from typing import Any

import ccxt.async_support as ccxt_async

from tv_executor.app.config import ExchangeConfig
from tv_executor.app.errors import ConfigurationError, ExchangeError, error_code_of
from tv_executor.app.models import MarketType
from tv_executor.app.paper_exchange import PaperExchange

PASSWORD_REQUIRED = {"okx"}


class ExchangeConnector:
    """Builds an authenticated exchange handle for one pipeline run.

    Handles are expensive (markets are loaded on creation) but are not cached
    across runs; callers close them through ``connect``.
    """

    def __init__(self, config: ExchangeConfig, mode: str = "live", logger: Any | None = None) -> None:
        self.config = config
        self.mode = mode
        self.logger = logger

    def _exchange_class(self, exchange_id: str):
        exchange_class = getattr(ccxt_async, exchange_id, None)
        if exchange_class is None:
            raise ExchangeError(exchange_id, f"Unsupported exchange: {exchange_id}")
        return exchange_class

    def _live_params(self, exchange_id: str, market_type: MarketType) -> dict[str, Any]:
        credentials = self.config.credentials.get(exchange_id)
        missing_key = f"{exchange_id.upper()}_API_KEY"
        if credentials is None:
            raise ConfigurationError(f"No credentials found for exchange: {exchange_id}", missing_key)
        if exchange_id in PASSWORD_REQUIRED and not credentials.password:
            raise ConfigurationError(
                f"Exchange {exchange_id} requires an API password",
                f"{exchange_id.upper()}_PASSWORD",
            )

        params: dict[str, Any] = {
            "apiKey": credentials.api_key,
            "secret": credentials.secret,
            "enableRateLimit": True,
            "options": {"defaultType": market_type},
        }
        if credentials.password:
            params["password"] = credentials.password
        return params

    async def open(self, exchange_id: str, market_type: MarketType) -> Any:
        exchange_class = self._exchange_class(exchange_id)
        if self.mode == "paper":
            params: dict[str, Any] = {"enableRateLimit": True, "options": {"defaultType": market_type}}
        else:
            params = self._live_params(exchange_id, market_type)

        exchange = exchange_class(params)
        if self.config.sandbox:
            exchange.set_sandbox_mode(True)
        if self.mode == "paper":
            exchange = PaperExchange(exchange, logger=self.logger)

        try:
            await exchange.load_markets()
        except Exception as exc:  # noqa: BLE001
            with contextlib.suppress(Exception):
                await exchange.close()
            raise ExchangeError(
                exchange_id,
                f"Failed to initialize exchange: {exc}",
                error_code_of(exc),
                exc,
            ) from exc

        if self.logger is not None:
            self.logger.debug("ExchangeConnector: opened {} type={} mode={}", exchange_id, market_type, self.mode)
        return exchange

    @contextlib.asynccontextmanager
    async def connect(self, exchange_id: str, market_type: MarketType) -> AsyncIterator[Any]:
        exchange = await self.open(exchange_id, market_type)
        try:
            yield exchange
        finally:
            try:
                await exchange.close()
            except Exception as exc:  # noqa: BLE001
                if self.logger is not None:
                    self.logger.warning("ExchangeConnector: close failed exchange={} err={}", exchange_id, exc)
