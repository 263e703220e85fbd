"""Exception types raised by the consent gate."""
from __future__ import annotations


class ConsentGateError(RuntimeError):
    """Base class for consent gate failures."""


class AdapterError(ConsentGateError):
    """Raised when a CMP adapter does not provide the full capability set."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            "CMP adapter is missing required operations: " + ", ".join(self.missing)
        )


class ConfigError(ConsentGateError):
    """Raised when the consent gate configuration cannot be loaded."""


class ScriptEvaluationError(ConsentGateError):
    """Raised (and recorded) when a blocked inline script fails to run."""

    def __init__(self, key: str | None, message: str) -> None:
        self.key = key
        super().__init__(message)
