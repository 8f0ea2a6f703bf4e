"""Application entrypoint."""

from __future__ import annotations

import argparse
from pathlib import Path

import uvicorn

from tv_executor.app.config import AppConfig, load_config
from tv_executor.app.errors import ConfigurationError, format_domain_error
from tv_executor.app.logger import setup_logger
from tv_executor.app.trade_executor import TradeExecutor
from tv_executor.web.server import create_app


def _log_startup(config: AppConfig, logger) -> None:
    logger.info("TV executor starting on {}:{}", config.server.host, config.server.port)
    logger.info("Environment: {} mode: {}", config.server.environment, config.mode)
    logger.info("Telegram notifications: {}", "ENABLED" if config.telegram.enabled else "DISABLED")
    logger.info("Configured exchanges: {}", ", ".join(config.configured_exchanges) or "none")


def run(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="TradingView webhook order executor")
    parser.add_argument("--config", default="config.yml", help="Path to YAML config file")
    parser.add_argument("--log-dir", default="logs", help="Directory for rotating log files")
    args = parser.parse_args(argv)

    try:
        config = load_config(Path(args.config))
    except ConfigurationError as exc:
        logger = setup_logger(args.log_dir)
        logger.error("Failed to load config: {}", format_domain_error(exc))
        return 1

    logger = setup_logger(args.log_dir, config.server.environment)
    _log_startup(config, logger)

    app = create_app(config, TradeExecutor(config, logger))
    uvicorn.run(app, host=config.server.host, port=config.server.port, log_config=None)
    return 0


if __name__ == "__main__":
    raise SystemExit(run())
