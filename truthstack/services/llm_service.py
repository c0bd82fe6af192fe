"""LLM service wrapper for OpenAI-compatible chat completion backends."""

import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAI

from ..config import settings
from ..exceptions import EmptyResponseError
from ..models.schemas import ClaimImage

logger = logging.getLogger(__name__)


class LLMService:
    """Client handle for the generation backend.

    Construct once at process start and pass it to the pipeline. The model
    identifier is chosen per call so that the fallback driver can walk a
    list of models over a single client.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None
    ):
        """Initialize the LLM service.

        Args:
            api_key: Backend API key (defaults to settings)
            base_url: OpenAI-compatible endpoint (defaults to settings)
            temperature: Temperature for generation (defaults to settings)
            max_tokens: Maximum tokens per response (defaults to settings)
            timeout: Per-request timeout in seconds (defaults to settings)
        """
        self.api_key = api_key or settings.LLM_API_KEY
        self.base_url = base_url or settings.LLM_BASE_URL
        self.temperature = temperature if temperature is not None else settings.LLM_TEMPERATURE
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS
        self.timeout = timeout or settings.LLM_TIMEOUT_SECONDS

        if not self.api_key:
            raise ValueError("LLM API key is required. Set LLM_API_KEY environment variable.")

        self.client = OpenAI(api_key=self.api_key, base_url=self.base_url, timeout=self.timeout)
        self._async_client: Optional[AsyncOpenAI] = None

    @property
    def async_client(self) -> AsyncOpenAI:
        """Lazy load the async client."""
        if self._async_client is None:
            self._async_client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout
            )
        return self._async_client

    @staticmethod
    def build_messages(prompt: str, image: Optional[ClaimImage] = None) -> List[Dict[str, Any]]:
        """Build the chat messages for a prompt with an optional inline image."""
        if image is None:
            return [{"role": "user", "content": prompt}]

        return [{
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": image.to_data_url()}},
            ],
        }]

    def _extract_text(self, response: Any, model: str) -> str:
        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content or not content.strip():
            raise EmptyResponseError(f"Model {model} returned an empty response")
        return content

    def generate(
        self,
        prompt: str,
        model: str,
        image: Optional[ClaimImage] = None,
        temperature: Optional[float] = None
    ) -> str:
        """Generate a text response from one backend model.

        Args:
            prompt: Full prompt text
            model: Backend model identifier
            image: Optional inline image
            temperature: Override default temperature

        Returns:
            Raw generated text

        Raises:
            EmptyResponseError: If the backend returned no text
        """
        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=self.build_messages(prompt, image),
                temperature=temperature if temperature is not None else self.temperature,
                max_tokens=self.max_tokens
            )
            return self._extract_text(response, model)

        except Exception as e:
            logger.error(f"LLM generation failed on {model}: {e}")
            raise

    async def agenerate(
        self,
        prompt: str,
        model: str,
        image: Optional[ClaimImage] = None,
        temperature: Optional[float] = None
    ) -> str:
        """Async version of generate."""
        try:
            response = await self.async_client.chat.completions.create(
                model=model,
                messages=self.build_messages(prompt, image),
                temperature=temperature if temperature is not None else self.temperature,
                max_tokens=self.max_tokens
            )
            return self._extract_text(response, model)

        except Exception as e:
            logger.error(f"Async LLM generation failed on {model}: {e}")
            raise
