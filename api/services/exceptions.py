"""Domain errors raised by the assessment services.

Endpoints translate these into API errors. Adaptation and suggestion
failures never surface here; they become fallbacks.
"""

from typing import Optional


class AssessmentError(Exception):
    """Base class for assessment flow errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AssessmentValidationError(AssessmentError):
    """Answer does not satisfy the question's rule; blocks progression."""

    def __init__(self, message: str, question_number: int, field: Optional[str] = None):
        self.question_number = question_number
        self.field = field
        super().__init__(message)


class InvalidTransitionError(AssessmentError):
    """Requested move is not allowed from the current state."""


class AssessmentCompletedError(AssessmentError):
    """Assessment is already completed and frozen."""

    def __init__(self, message: str = "This assessment has already been submitted"):
        super().__init__(message)


class AssessmentAccessError(AssessmentError):
    """Assessment does not belong to the caller's chapter."""


class SubmissionFailedError(AssessmentError):
    """Marking the assessment completed failed; the candidate stays on Q5."""

    def __init__(
        self,
        message: str = "We couldn't submit your assessment. Please try again.",
    ):
        super().__init__(message)


class RelevanceRejectedError(AssessmentError):
    """AI draft ignored the scenario the candidate described."""

    def __init__(
        self,
        message: str = (
            "AI Help couldn't adapt to your specific problem. "
            "Please write in your own words or try again."
        ),
    ):
        super().__init__(message)


class AIHelpError(AssessmentError):
    """AI help is unavailable or its preconditions are not met."""

    def __init__(self, message: str = "Failed to get AI suggestions. Please try again."):
        super().__init__(message)
