"""Configuration loading and validation."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from tv_executor.app.errors import ConfigurationError
from tv_executor.app.models import SUPPORTED_EXCHANGES


class ServerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    environment: str = Field(default="production", pattern=r"^(development|production|test)$")


class ExchangeCredentials(BaseModel):
    model_config = ConfigDict(extra="forbid")

    api_key: str = Field(min_length=1)
    secret: str = Field(min_length=1)
    password: str | None = None


class ExchangeConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    credentials: dict[str, ExchangeCredentials] = Field(default_factory=dict)
    order_timeout_sec: float = Field(default=30.0, gt=0)
    stop_loss_offset: float = Field(default=0.0, ge=0, lt=1)
    limit_order_offset: float = Field(default=0.001, ge=0, lt=1)
    sandbox: bool = False

    @model_validator(mode="after")
    def _known_exchanges(self) -> ExchangeConfig:
        unknown = sorted(set(self.credentials) - set(SUPPORTED_EXCHANGES))
        if unknown:
            raise ValueError(f"unsupported exchanges in credentials: {', '.join(unknown)}")
        return self


class TelegramConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    bot_token: str = ""
    chat_id: str = ""

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.chat_id)


class SecurityConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    webhook_passphrase: str = Field(min_length=1)


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mode: str = Field(default="live", pattern=r"^(paper|live)$")
    server: ServerConfig = Field(default_factory=ServerConfig)
    exchange: ExchangeConfig = Field(default_factory=ExchangeConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    security: SecurityConfig

    @property
    def configured_exchanges(self) -> list[str]:
        return sorted(self.exchange.credentials)


_SCALAR_ENV: dict[str, tuple[str, ...]] = {
    "MODE": ("mode",),
    "HOST": ("server", "host"),
    "PORT": ("server", "port"),
    "ENVIRONMENT": ("server", "environment"),
    "ORDER_TIMEOUT_SEC": ("exchange", "order_timeout_sec"),
    "STOP_LOSS_OFFSET": ("exchange", "stop_loss_offset"),
    "LIMIT_ORDER_OFFSET": ("exchange", "limit_order_offset"),
    "EXCHANGE_SANDBOX": ("exchange", "sandbox"),
    "TELEGRAM_BOT_TOKEN": ("telegram", "bot_token"),
    "TELEGRAM_CHAT_ID": ("telegram", "chat_id"),
    "WEBHOOK_PASSPHRASE": ("security", "webhook_passphrase"),
}


def _set_path(data: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    node = data
    for key in path[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    node[path[-1]] = value


def _apply_env(data: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    for env_key, path in _SCALAR_ENV.items():
        value = env.get(env_key)
        if value:
            _set_path(data, path, value)

    for exchange_id in SUPPORTED_EXCHANGES:
        prefix = exchange_id.upper()
        api_key = env.get(f"{prefix}_API_KEY")
        secret = env.get(f"{prefix}_SECRET")
        if not api_key or not secret:
            continue
        creds: dict[str, Any] = {"api_key": api_key, "secret": secret}
        if password := env.get(f"{prefix}_PASSWORD"):
            creds["password"] = password
        _set_path(data, ("exchange", "credentials", exchange_id), creds)
    return data


def load_config(path: str | Path | None = "config.yml", env: Mapping[str, str] | None = None) -> AppConfig:
    """Load YAML config (optional) and overlay environment variables.

    Environment values win over file values. ``.env`` in the working directory
    is loaded first when ``env`` is not given explicitly.
    """
    raw_data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw_data = yaml.safe_load(fh) or {}

    if env is None:
        load_dotenv()
        env = os.environ

    data = _apply_env(raw_data, env)
    if not (data.get("security") or {}).get("webhook_passphrase"):
        raise ConfigurationError("Missing required webhook passphrase", "WEBHOOK_PASSPHRASE")

    try:
        return AppConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid config: {exc}") from exc
