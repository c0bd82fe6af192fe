"""Model fallback driver: walks an ordered list of backend models."""

import logging
from enum import Enum
from typing import Callable, List, Optional

from ..config import settings
from ..exceptions import AllModelsFailedError, EmptyResponseError, GenerationCancelledError
from ..models.schemas import ClaimImage, GenerationOutcome, ModelAttempt
from .llm_service import LLMService

logger = logging.getLogger(__name__)


class FallbackState(str, Enum):
    """Lifecycle of one fallback run."""
    IDLE = "idle"
    ATTEMPTING = "attempting"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


class ModelFallbackDriver:
    """Tries backend model identifiers in priority order until one answers.

    Backend model names are retired on the provider's schedule, so a single
    failing identifier must never fail the request. Any exception from the
    LLM service (network, quota, unknown model, timeout, empty response)
    counts as a failure of that identifier and moves on to the next one.
    The first success is returned and later identifiers are not tried.
    When all fail, AllModelsFailedError carries the last error.

    A driver instance tracks the state of its most recent run; use one
    instance per request when observing `state` from another thread.
    """

    def __init__(
        self,
        llm_service: Optional[LLMService] = None,
        models: Optional[List[str]] = None
    ):
        """Initialize the driver.

        Args:
            llm_service: LLM service used for every attempt
            models: Model identifiers, most preferred first (defaults to settings)
        """
        self.llm_service = llm_service or LLMService()
        self.models = list(models) if models is not None else settings.analysis_models()
        self.state = FallbackState.IDLE
        self.current_index: Optional[int] = None
        self.attempts: List[ModelAttempt] = []

    def _start(self, models: Optional[List[str]]) -> List[str]:
        chain = list(models) if models is not None else self.models
        if not chain:
            raise ValueError("At least one backend model identifier is required")
        self.state = FallbackState.IDLE
        self.current_index = None
        self.attempts = []
        return chain

    def _begin_attempt(self, index: int, model: str, should_stop: Optional[Callable[[], bool]]):
        if should_stop is not None and should_stop():
            logger.info(f"Request superseded, not attempting {model}")
            self.state = FallbackState.IDLE
            raise GenerationCancelledError(f"Cancelled before attempting {model}")
        self.state = FallbackState.ATTEMPTING
        self.current_index = index
        logger.info(f"Attempting backend model: {model}")

    def _record_failure(self, model: str, error: Exception):
        logger.warning(f"Backend model {model} failed: {error}")
        self.attempts.append(ModelAttempt(model=model, error=str(error) or type(error).__name__))

    def _succeed(self, model: str, text: str) -> GenerationOutcome:
        self.attempts.append(ModelAttempt(model=model))
        self.state = FallbackState.SUCCESS
        logger.info(f"Backend model {model} answered ({len(text)} chars)")
        return GenerationOutcome(text=text, model=model, attempts=list(self.attempts))

    def _exhaust(self, last_error: Optional[Exception]) -> AllModelsFailedError:
        self.state = FallbackState.EXHAUSTED
        logger.error(f"All {len(self.attempts)} backend models failed")
        return AllModelsFailedError(list(self.attempts), last_error)

    def generate(
        self,
        prompt: str,
        image: Optional[ClaimImage] = None,
        models: Optional[List[str]] = None,
        should_stop: Optional[Callable[[], bool]] = None
    ) -> GenerationOutcome:
        """Generate with the first backend model that succeeds.

        Args:
            prompt: Prompt text
            image: Optional inline image
            models: Override the configured model list for this call
            should_stop: Polled before each attempt; True cancels the run

        Returns:
            GenerationOutcome with the raw text and the model that produced it

        Raises:
            AllModelsFailedError: If every model failed
            GenerationCancelledError: If should_stop() returned True
        """
        chain = self._start(models)
        last_error: Optional[Exception] = None

        for index, model in enumerate(chain):
            self._begin_attempt(index, model, should_stop)
            try:
                text = self.llm_service.generate(prompt, model=model, image=image)
                if not text or not text.strip():
                    raise EmptyResponseError(f"Model {model} returned an empty response")
            except Exception as e:
                last_error = e
                self._record_failure(model, e)
                continue
            return self._succeed(model, text)

        raise self._exhaust(last_error) from last_error

    async def agenerate(
        self,
        prompt: str,
        image: Optional[ClaimImage] = None,
        models: Optional[List[str]] = None,
        should_stop: Optional[Callable[[], bool]] = None
    ) -> GenerationOutcome:
        """Async version of generate."""
        chain = self._start(models)
        last_error: Optional[Exception] = None

        for index, model in enumerate(chain):
            self._begin_attempt(index, model, should_stop)
            try:
                text = await self.llm_service.agenerate(prompt, model=model, image=image)
                if not text or not text.strip():
                    raise EmptyResponseError(f"Model {model} returned an empty response")
            except Exception as e:
                last_error = e
                self._record_failure(model, e)
                continue
            return self._succeed(model, text)

        raise self._exhaust(last_error) from last_error
