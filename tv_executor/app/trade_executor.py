"""Orchestration of one webhook signal from payload to outcome."""

from __future__ import annotations

from typing import Any

from tv_executor.app.config import AppConfig
from tv_executor.app.errors import DomainError, UnknownError, format_domain_error
from tv_executor.app.exchange_client import ExchangeConnector
from tv_executor.app.market_resolver import resolve_context
from tv_executor.app.models import ExecutionOutcome, OrderResult
from tv_executor.app.notifier import NotificationDispatcher, TelegramNotifier
from tv_executor.app.order_engine import OrderExecutionEngine
from tv_executor.app.signal_validator import SignalValidator


class TradeExecutor:
    """Validates a signal, executes it and reports the outcome.

    ``execute`` never raises a domain failure: every error is returned inside
    the ExecutionOutcome, anything unclassified as UnknownError.
    """

    def __init__(
        self,
        config: AppConfig,
        logger,
        connector: ExchangeConnector | None = None,
        engine: OrderExecutionEngine | None = None,
        dispatcher: NotificationDispatcher | None = None,
        validator: SignalValidator | None = None,
    ) -> None:
        self.config = config
        self.logger = logger
        self.validator = validator or SignalValidator(config.security.webhook_passphrase)
        self.connector = connector or ExchangeConnector(config.exchange, mode=config.mode, logger=logger)
        self.engine = engine or OrderExecutionEngine(config.exchange, logger)
        self.dispatcher = dispatcher or NotificationDispatcher(TelegramNotifier(config.telegram), logger)

    async def execute(self, payload: Any) -> ExecutionOutcome:
        try:
            result = await self._run(payload)
        except DomainError as exc:
            return await self._fail(exc)
        except Exception as exc:  # noqa: BLE001
            self.logger.exception("TradeExecutor: unexpected failure")
            return await self._fail(UnknownError(str(exc) or type(exc).__name__, exc))

        await self.dispatcher.notify_success(result)
        return ExecutionOutcome.success(result)

    async def _run(self, payload: Any) -> OrderResult:
        signal = self.validator.validate(payload)
        context = resolve_context(signal)
        self.logger.info(
            "TradeExecutor: signal {} {} {} type={} market={}",
            signal.exchange,
            signal.action,
            context.symbol,
            signal.order_type,
            context.market_type,
        )
        async with self.connector.connect(signal.exchange, context.market_type) as exchange:
            return await self.engine.execute(context, exchange)

    async def _fail(self, error: DomainError) -> ExecutionOutcome:
        self.logger.error("TradeExecutor: {}", format_domain_error(error))
        await self.dispatcher.notify_error(error)
        return ExecutionOutcome.failure(error)
