"""Exceptions raised by the assessment core."""
from __future__ import annotations


class AssessmentError(Exception):
    """Base class for assessment core failures."""


class InvalidQuestionData(AssessmentError, ValueError):
    def __init__(self, question_id: object, reason: str):
        super().__init__(f"question {question_id!r} is not scoreable: {reason}")
        self.question_id = question_id
        self.reason = reason


class AlreadySubmitted(AssessmentError):
    """A second submit trigger reached an attempt that is already closed."""


class AttemptClosed(AssessmentError):
    """Answers can no longer change for this attempt."""


class PersistenceError(AssessmentError):
    """Storing a computed result failed; the result is kept for a retry."""


class ProviderUnavailable(AssessmentError):
    """No question provider produced a usable question set."""
