"""Exception hierarchy for asd-context."""

from __future__ import annotations


class ContextEngineError(Exception):
    """Base exception for all asd-context errors."""


class ParseError(ContextEngineError):
    """Raised when a header block cannot be parsed on the strict path."""

    def __init__(self, message: str, source: str = "") -> None:
        super().__init__(message)
        self.source = source


class ConfigError(ContextEngineError):
    """Raised when a configuration file exists but cannot be loaded."""

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class InjectionError(ContextEngineError):
    """Raised when a context injection request cannot be completed.

    Always carries the elapsed time and the underlying cause message.
    """

    def __init__(
        self,
        cause: str,
        *,
        elapsed_ms: float = 0.0,
        stage: str = "",
    ) -> None:
        super().__init__(f"Context injection failed after {round(elapsed_ms)}ms: {cause}")
        self.cause = cause
        self.elapsed_ms = elapsed_ms
        self.stage = stage


class TriggerError(ContextEngineError):
    """Raised by a trigger handler when a context or state write fails."""


__all__ = [
    "ContextEngineError",
    "ParseError",
    "ConfigError",
    "InjectionError",
    "TriggerError",
]
