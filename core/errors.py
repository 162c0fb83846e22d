"""Engine error taxonomy.

All errors are raised synchronously by the operation that detects them and
are never retried internally.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for engine errors."""


class NotFound(EngineError):
    """A definition, step or log was not found by id."""


class Disabled(EngineError):
    """The action definition exists but is disabled."""


class InvalidInput(EngineError):
    """A mandatory companion field is missing, or the variant/step combination is wrong."""


class ValidationError(EngineError):
    """Submitted form data violates a field's constraints.

    Attributes:
        label: Human label of the offending field.
    """

    def __init__(self, label: str, message: str) -> None:
        super().__init__(message)
        self.label = label
