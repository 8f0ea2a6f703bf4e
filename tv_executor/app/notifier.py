"""Telegram notifications about execution outcomes."""

from __future__ import annotations

import asyncio
import json
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from tv_executor.app.best_effort import best_effort
from tv_executor.app.config import TelegramConfig
from tv_executor.app.errors import DomainError, NotificationError, format_domain_error
from tv_executor.app.models import OrderResult

TELEGRAM_API_URL = "https://api.telegram.org"


def format_success_message(order: OrderResult) -> str:
    side = "🟢" if order.action == "buy" else "🔴"
    status = "✅" if order.status == "filled" else "⏳"
    price = f"{order.price:.8f}" if order.price else "Market"
    lines = [
        f"{side} *Order Executed* {status}",
        "",
        f"*Exchange:* {order.exchange.upper()}",
        f"*Symbol:* `{order.symbol}`",
        f"*Action:* {order.action.upper()}",
        f"*Volume:* {order.volume}",
        f"*Type:* {order.order_type}",
        f"*Price:* {price}",
        f"*Status:* {order.status}",
        f"*Order ID:* `{order.order_id}`",
        f"*Time:* {order.executed_at.isoformat()}",
    ]
    return "\n".join(lines)


def format_error_message(error: DomainError) -> str:
    return f"❌ *Order Failed*\n\n{format_domain_error(error)}"


class TelegramNotifier:
    """Sends plain messages through the Telegram Bot API."""

    def __init__(self, config: TelegramConfig, timeout_sec: float = 8.0, base_url: str = TELEGRAM_API_URL) -> None:
        self.config = config
        self.timeout_sec = timeout_sec
        self.base_url = base_url.rstrip("/")

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    async def send(self, message: str) -> None:
        if not self.enabled:
            return
        url = f"{self.base_url}/bot{self.config.bot_token}/sendMessage"
        payload = json.dumps(
            {"chat_id": self.config.chat_id, "text": message, "parse_mode": "Markdown"}
        ).encode("utf-8")
        req = Request(url=url, data=payload, method="POST", headers={"Content-Type": "application/json"})
        try:
            await asyncio.to_thread(self._post, req)
        except NotificationError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise NotificationError(f"Failed to send Telegram notification: {exc}", exc) from exc

    def _post(self, req: Request) -> None:
        try:
            with urlopen(req, timeout=self.timeout_sec) as response:
                status = getattr(response, "status", 200)
                if status >= 300:
                    raise NotificationError(f"Telegram API error: {status}")
        except HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace")
            raise NotificationError(f"Telegram API error: {exc.code} - {body}", exc) from exc
        except URLError as exc:
            raise NotificationError(f"Telegram API unreachable: {exc.reason}", exc) from exc


class NotificationDispatcher:
    """Fire-and-forget reporting; delivery problems never reach the caller."""

    def __init__(self, notifier: TelegramNotifier, logger: Any | None = None) -> None:
        self.notifier = notifier
        self.logger = logger

    async def notify_success(self, order: OrderResult) -> None:
        if not self.notifier.enabled:
            return
        await best_effort(self.notifier.send(format_success_message(order)), name="notify_success", logger=self.logger)

    async def notify_error(self, error: DomainError) -> None:
        if not self.notifier.enabled:
            return
        await best_effort(self.notifier.send(format_error_message(error)), name="notify_error", logger=self.logger)
