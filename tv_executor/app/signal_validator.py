"""Validation and authentication of incoming webhook signals."""

from __future__ import annotations

import hmac
from collections.abc import Mapping
from typing import Any

import pydantic

from tv_executor.app.errors import AuthenticationError, ValidationError
from tv_executor.app.models import TradeSignal


class SignalValidator:
    """Turn a raw webhook payload into a TradeSignal or reject it."""

    def __init__(self, expected_passphrase: str) -> None:
        self.expected_passphrase = expected_passphrase

    def validate(self, payload: Any) -> TradeSignal:
        if not isinstance(payload, Mapping):
            raise ValidationError("Invalid signal structure: expected a JSON object", value=type(payload).__name__)

        self.authenticate(payload.get("passphrase"))

        try:
            return TradeSignal.model_validate(dict(payload))
        except pydantic.ValidationError as exc:
            raise self._to_domain_error(exc) from exc

    def authenticate(self, passphrase: Any) -> None:
        if not isinstance(passphrase, str) or not hmac.compare_digest(
            passphrase.encode("utf-8"), self.expected_passphrase.encode("utf-8")
        ):
            raise AuthenticationError("Invalid passphrase")

    @staticmethod
    def _to_domain_error(exc: pydantic.ValidationError) -> ValidationError:
        problems: list[str] = []
        first_field: str | None = None
        first_value: Any = None
        for err in exc.errors():
            field = ".".join(str(part) for part in err.get("loc", ())) or "signal"
            message = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
            problems.append(f"{field}: {message}")
            if first_field is None:
                first_field = field
                # model-level errors carry the whole payload, passphrase included
                first_value = err.get("input") if err.get("loc") else None
        return ValidationError(
            f"Invalid signal structure: {'; '.join(problems)}",
            field=first_field,
            value=first_value,
        )


def validate_trade_signal(payload: Any, expected_passphrase: str) -> TradeSignal:
    return SignalValidator(expected_passphrase).validate(payload)
