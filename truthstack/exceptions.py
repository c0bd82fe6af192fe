"""Exceptions raised by the TruthStack pipeline."""

from typing import List, Optional

from .models.schemas import ModelAttempt


class TruthStackError(Exception):
    """Base class for pipeline errors."""


class EmptyResponseError(TruthStackError):
    """The backend answered without any text."""


class GenerationCancelledError(TruthStackError):
    """A superseded request stopped before trying its next model."""


class AllModelsFailedError(TruthStackError):
    """Every backend model identifier failed for one request.

    Carries the per-model attempts and the last underlying error, which is
    what gets surfaced to the user.
    """

    def __init__(
        self,
        attempts: List[ModelAttempt],
        last_error: Optional[BaseException] = None
    ):
        self.attempts = attempts
        self.last_error = last_error
        self.last_model = attempts[-1].model if attempts else None
        super().__init__(
            f"Analysis failed on all {len(attempts)} model(s); "
            f"last error from {self.last_model}: {last_error}"
        )
