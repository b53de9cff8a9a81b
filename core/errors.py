"""
Error taxonomy for the scoring engine.

Per-modality errors are raised by extractors and collaborators and caught at
the orchestrator boundary, where they become zero weight plus a warning.
Only an unobtainable anchor fails an assessment.
"""

from typing import Optional

from .enums import Modality


class AssessmentError(Exception):
    """
    Base class for scoring-engine errors.

    Attributes:
        modality: Modality the failure is scoped to (None = whole assessment)
        retryable: Whether re-supplying the input may succeed
    """

    retryable = False

    def __init__(self, message: str, modality: Optional[Modality] = None):
        super().__init__(message)
        self.modality = modality

    def __str__(self) -> str:
        base = super().__str__()
        if self.modality is not None:
            return f"[{self.modality.value}] {base}"
        return base


class InsufficientDataError(AssessmentError):
    """No usable input for a modality."""
    retryable = False


class FeatureExtractionError(AssessmentError):
    """Decoding or signal processing failed; retry with re-supplied input."""
    retryable = True


class ExternalServiceError(AssessmentError):
    """A collaborator call failed after its bounded attempts."""
    retryable = True

    def __init__(
        self,
        message: str,
        modality: Optional[Modality] = None,
        attempts: int = 1
    ):
        super().__init__(message, modality)
        self.attempts = attempts
