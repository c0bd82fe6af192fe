"""Debate Agent for short Pro/Con transcripts about a claim."""

import json
import logging
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from ..config import settings
from ..models.schemas import DebateTurn
from ..parsing.tags import strip_code_fences
from ..services.fallback import ModelFallbackDriver
from ..services.llm_service import LLMService

logger = logging.getLogger(__name__)

_TURNS = TypeAdapter(List[DebateTurn])


class DebateAgent:
    """Agent that scripts a lively two-persona debate about a claim.

    This is optional enrichment: any failure yields an empty transcript and
    never reaches the primary analysis.
    """

    PROMPT = """Generate a lively, short debate script about: "{topic}".
Characters:
1. "Pro" (Advocate/Believer)
2. "Con" (Skeptic/Scientist)

Format: JSON Array of objects.
[
  {{"speaker": "Pro", "text": "..."}},
  {{"speaker": "Con", "text": "..."}}
]
Length: {turns} turns total. Keep it punchy and realistic.
Output ONLY valid JSON."""

    def __init__(
        self,
        llm_service: Optional[LLMService] = None,
        models: Optional[List[str]] = None,
        turns: int = 6
    ):
        """Initialize the Debate Agent.

        Args:
            llm_service: LLM service instance for API calls
            models: Model identifiers to try (defaults to settings)
            turns: Number of turns to ask for
        """
        self.llm_service = llm_service or LLMService()
        self.models = models if models is not None else settings.debate_models()
        self.turns = turns

    def build_prompt(self, topic: str) -> str:
        return self.PROMPT.format(topic=topic.replace('"', "'"), turns=self.turns)

    def parse_turns(self, raw_text: str) -> List[DebateTurn]:
        """Parse a JSON array of turns, or return [] if it is malformed."""
        text = strip_code_fences(raw_text or "").strip()
        try:
            return _TURNS.validate_python(json.loads(text))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Debate transcript malformed: {e}")
            return []

    def debate(self, topic: str) -> List[DebateTurn]:
        """Generate a debate transcript.

        Args:
            topic: Claim or topic to debate

        Returns:
            Ordered list of turns, empty on any failure
        """
        driver = ModelFallbackDriver(self.llm_service, models=self.models)

        try:
            outcome = driver.generate(self.build_prompt(topic))
        except Exception as e:
            logger.warning(f"Debate generation failed: {e}")
            return []

        turns = self.parse_turns(outcome.text)
        logger.info(f"Generated debate with {len(turns)} turns")
        return turns

    async def adebate(self, topic: str) -> List[DebateTurn]:
        """Async version of debate."""
        driver = ModelFallbackDriver(self.llm_service, models=self.models)

        try:
            outcome = await driver.agenerate(self.build_prompt(topic))
        except Exception as e:
            logger.warning(f"Debate generation failed: {e}")
            return []

        turns = self.parse_turns(outcome.text)
        logger.info(f"Generated debate with {len(turns)} turns")
        return turns
