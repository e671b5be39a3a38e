"""Error taxonomy for the page session layer."""

from __future__ import annotations

from typing import Any


class PageDevtoolsError(Exception):
    """Base class for errors surfaced to a single tool invocation."""


class CdpConnectionError(PageDevtoolsError):
    """Command dispatch or connection establishment failed."""

    def __init__(self, message: str, *, code: int | None = None, method: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.method = method

    @classmethod
    def from_protocol_error(cls, error: Any, *, method: str | None = None) -> CdpConnectionError:
        if isinstance(error, dict):
            msg = error.get("message")
            code = error.get("code")
            data = error.get("data")
            text = str(msg) if msg else "Protocol error"
            if isinstance(data, str) and data:
                text = f"{text}: {data}"
            return cls(text, code=code if isinstance(code, int) else None, method=method)
        return cls(str(error) or "Protocol error", method=method)


class EvaluationError(PageDevtoolsError):
    """The page threw while evaluating an expression."""


class NotFoundError(PageDevtoolsError):
    """Selector, node or focused element could not be resolved."""


class InvalidArgumentsError(PageDevtoolsError):
    pass


class PageTimeoutError(PageDevtoolsError):
    pass


__all__ = [
    "CdpConnectionError",
    "EvaluationError",
    "InvalidArgumentsError",
    "NotFoundError",
    "PageDevtoolsError",
    "PageTimeoutError",
]
