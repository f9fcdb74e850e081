"""
Error types for bundle observation handling.

Correction application does not raise to the solver loop directly; it returns a
CorrectionResult so the caller decides whether to abort the iteration.
"""

from dataclasses import dataclass
from typing import Optional


class BundleObservationError(Exception):
    """Base class for all bundle observation errors."""


class ConfigurationError(BundleObservationError):
    """A parameter family is solved but the object it needs is missing."""


class DimensionError(BundleObservationError):
    """A vector does not match the observation's parameter count."""


class ObservationCorrectionError(BundleObservationError):
    """Raised when a failed correction result is escalated by the caller."""

    def __init__(self, message: str, error_kind: Optional[str] = None):
        super().__init__(message)
        self.error_kind = error_kind


@dataclass
class CorrectionResult:
    """
    Outcome of applying one correction slice to an observation.

    Attributes:
        success: True if every step completed and corrections were accumulated
        error_kind: Name of the exception class that stopped the update
        message: Human readable description including the observation number
    """
    success: bool
    error_kind: Optional[str] = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls) -> "CorrectionResult":
        return cls(success=True)

    @classmethod
    def failed(cls, error: Exception, message: str) -> "CorrectionResult":
        return cls(success=False, error_kind=type(error).__name__, message=message)

    def raise_for_error(self) -> None:
        """Raise ObservationCorrectionError if this result is a failure."""
        if not self.success:
            raise ObservationCorrectionError(self.message, self.error_kind)
