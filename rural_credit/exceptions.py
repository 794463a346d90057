"""Custom exception hierarchy for the rural credit engine.

Every public operation validates its input at the entry boundary and raises one
of these errors before any numeric work starts. Each error carries the
offending field and the violated constraint so the calling layer can render a
message without parsing the text.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class RuralCreditError(Exception):
    """Base exception for all engine errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        constraint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.field = field
        self.constraint = constraint

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": str(self),
            "field": self.field,
            "constraint": self.constraint,
        }


class InvalidRateError(RuralCreditError):
    """Raised when a rate is negative or outside its domain."""


class InvalidTermError(RuralCreditError):
    """Raised for a non-positive principal or term, or paid periods beyond the term."""


class InvalidFactorError(RuralCreditError):
    """Raised when a TCR auxiliary factor is missing or invalid."""


class InvalidChainError(RuralCreditError):
    """Raised when a contract chain is empty or malformed."""


class EmptySeriesError(RuralCreditError, UserWarning):
    """Warning category for a post-fixed TCR computed without index variations.

    This is never raised. The engine issues it through :mod:`warnings` and
    proceeds with FAM = 1 (no monetary correction).
    """
