"""Typed exception hierarchy for exchange operations.

Transport failures are not exceptions: the request pipeline returns ``None``
when no response could be obtained. Everything below is raised only once a
body exists, or when a capability is missing altogether.
"""

from __future__ import annotations


class ExchangeError(Exception):
    """Base class for all exchange-related errors."""


class NotSupportedError(ExchangeError, NotImplementedError):
    """The exchange does not implement the requested capability."""

    def __init__(self, exchange: str, operation: str):
        super().__init__(f"{exchange} does not support {operation}")
        self.exchange = exchange
        self.operation = operation


class DecodeError(ExchangeError, ValueError):
    """Response body could not be parsed into the requested shape."""

    def __init__(self, message: str, body: str | None = None):
        super().__init__(message)
        self.body = body


class ExchangeAPIError(ExchangeError):
    """Exchange reported an error inside an otherwise readable response."""

    def __init__(self, exchange: str, message: str, status: int | None = None):
        super().__init__(f"{exchange}: {message}")
        self.exchange = exchange
        self.message = message
        self.status = status
