"""Domain error taxonomy shared by every pipeline component."""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base of the closed set of failures that may leave the pipeline."""

    kind = "DomainError"

    def __init__(self, message: str, original_error: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ValidationError(DomainError):
    kind = "ValidationError"

    def __init__(self, message: str, field: str | None = None, value: Any = None) -> None:
        super().__init__(message)
        self.field = field
        self.value = value


class AuthenticationError(DomainError):
    kind = "AuthenticationError"


class ExchangeError(DomainError):
    kind = "ExchangeError"

    def __init__(
        self,
        exchange: str,
        message: str,
        code: str | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.exchange = exchange
        self.code = code


class ConfigurationError(DomainError):
    kind = "ConfigurationError"

    def __init__(self, message: str, missing_key: str | None = None) -> None:
        super().__init__(message)
        self.missing_key = missing_key


class NotificationError(DomainError):
    kind = "NotificationError"


class UnknownError(DomainError):
    kind = "UnknownError"


CLIENT_ERROR_KINDS = frozenset({ValidationError.kind, AuthenticationError.kind})


def error_code_of(exc: BaseException) -> str:
    """Broker errors are identified by their class name (ccxt.InsufficientFunds, ...)."""
    return type(exc).__name__


def format_domain_error(error: DomainError) -> str:
    """Render a domain error as one human-readable line."""
    match error:
        case ValidationError():
            suffix = f" (field: {error.field})" if error.field else ""
            return f"Validation Error: {error.message}{suffix}"
        case AuthenticationError():
            return f"Authentication Error: {error.message}"
        case ExchangeError():
            suffix = f" (code: {error.code})" if error.code else ""
            return f"Exchange Error [{error.exchange}]: {error.message}{suffix}"
        case ConfigurationError():
            suffix = f" (missing: {error.missing_key})" if error.missing_key else ""
            return f"Configuration Error: {error.message}{suffix}"
        case NotificationError():
            return f"Notification Error: {error.message}"
        case _:
            return f"Unknown Error: {error.message}"
