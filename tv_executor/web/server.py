"""HTTP surface: TradingView webhook and health check."""

from __future__ import annotations

import json
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger as default_logger

from tv_executor.app.config import AppConfig
from tv_executor.app.errors import CLIENT_ERROR_KINDS, AuthenticationError, DomainError, format_domain_error
from tv_executor.app.health import HealthMonitor
from tv_executor.app.models import ExecutionOutcome
from tv_executor.app.trade_executor import TradeExecutor


def status_code_for(error: DomainError) -> int:
    if isinstance(error, AuthenticationError):
        return 401
    if error.kind in CLIENT_ERROR_KINDS:
        return 400
    return 500


def outcome_response(outcome: ExecutionOutcome) -> JSONResponse:
    if outcome.result is not None:
        return JSONResponse(status_code=200, content={"success": True, **outcome.result.to_payload()})
    error = outcome.error
    return JSONResponse(
        status_code=status_code_for(error),
        content={"success": False, "error": format_domain_error(error)},
    )


def create_app(config: AppConfig, executor: TradeExecutor | None = None, logger: Any | None = None) -> FastAPI:
    if executor is None:
        executor = TradeExecutor(config, logger or default_logger)
    health_monitor = HealthMonitor(config)

    app = FastAPI(title="tv_executor")
    app.state.config = config
    app.state.executor = executor
    app.state.health = health_monitor

    @app.get("/health")
    async def health() -> dict[str, object]:
        return health_monitor.snapshot()

    @app.post("/webhook")
    async def webhook(request: Request) -> JSONResponse:
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return JSONResponse(
                status_code=400,
                content={"success": False, "error": "Validation Error: request body is not valid JSON"},
            )
        outcome = await executor.execute(payload)
        return outcome_response(outcome)

    return app
