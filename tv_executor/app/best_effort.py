"""Policy for steps whose failure must never change the pipeline result."""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Any, TypeVar

T = TypeVar("T")


async def best_effort(step: Awaitable[T], *, name: str, logger: Any | None = None) -> T | None:
    """Await ``step`` and absorb any Exception it raises.

    Cancellation is not an Exception and still propagates.
    """
    try:
        return await step
    except Exception as exc:  # noqa: BLE001
        if logger is not None and hasattr(logger, "warning"):
            logger.warning("best_effort: step={} failed and was absorbed err={}", name, exc)
        return None
