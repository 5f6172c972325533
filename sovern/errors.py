"""Exceptions raised by the belief engine.

Direct store and tracker calls raise these synchronously. Batch entry points
(the update applier) catch them per item and report instead of raising.
"""

from typing import Any


class BeliefEngineError(Exception):
    """Base class for all belief engine errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}
        full_message = message
        if self.context:
            details = ", ".join(f"{k}={v}" for k, v in self.context.items())
            full_message = f"{message} [{details}]"
        super().__init__(full_message)


class ValidationError(BeliefEngineError):
    """Malformed input to a mutation: empty stance, self-connection, unusable weight."""


class NotFoundError(BeliefEngineError):
    """An id or stance that does not exist in the owning store."""


class AlreadyResolvedError(BeliefEngineError):
    """A tension that was already resolved was resolved again."""
