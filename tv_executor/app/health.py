"""Process health snapshot for the /health endpoint."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import UTC, datetime

from tv_executor.app.config import AppConfig


@dataclass(slots=True)
class HealthStatus:
    status: str = "ok"
    started_monotonic: float = field(default_factory=time.monotonic)


class HealthMonitor:
    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.status = HealthStatus()

    def uptime(self) -> float:
        return time.monotonic() - self.status.started_monotonic

    def snapshot(self) -> dict[str, object]:
        return {
            "status": self.status.status,
            "timestamp": datetime.now(UTC).isoformat(),
            "uptime": round(self.uptime(), 3),
            "mode": self.config.mode,
            "telegram": "ENABLED" if self.config.telegram.enabled else "DISABLED",
            "exchanges": self.config.configured_exchanges,
        }
