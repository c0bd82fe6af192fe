"""Analyst Agent: prompt construction and response decoding."""

import logging
import warnings
from typing import Optional, Union

from ..config import settings
from ..models.schemas import Claim, DecodedSections, PromptContract
from ..parsing.decoders import (
    decode_assumptions,
    decode_bias,
    decode_category,
    decode_key_reasons,
    decode_legacy_verdict,
    decode_points,
    decode_questions,
    decode_sources,
    decode_text,
    decode_verdict,
)
from ..parsing.tags import extract_section

logger = logging.getLogger(__name__)


class AnalystAgent:
    """Agent responsible for the analysis prompt and its tag contract.

    The prompt asks the backend to answer in a fixed set of tags; `decode`
    turns whatever came back into DecodedSections, falling back to defaults
    for every section that is missing or malformed.
    """

    STRUCTURED_PROMPT = """You are TruthStack, a careful claim-analysis engine.
Analyze the claim: "{claim}"

INSTRUCTIONS:
1. Analyze the claim (and the image, if one is attached).
2. Restate the claim precisely and list the assumptions it depends on.
3. Identify logical fallacies, missing context or lack of evidence.
4. Only cite sources you are confident exist. If you cannot cite any, say so.
5. Format your response using STRICT XML TAGS exactly as below.

OUTPUT FORMAT:

<normalized_claim>
One precise, neutral sentence restating what is being claimed.
</normalized_claim>

<assumptions>
- One hidden assumption per line
</assumptions>

<investigation>
Use rich markdown.
- Start with a header "### The Deep Dive"
- Use bullet points for key facts and **bold** for emphasis.
- If there is numerical data, include a markdown table.
- Do NOT include the final verdict here.
</investigation>

<key_reasons>
- 3 to 5 key factors that determined the verdict, one per line
</key_reasons>

<reasoning>
Two or three sentences connecting the key factors to the verdict.
</reasoning>

<verdict>
STATUS: TRUE | FALSE | MISLEADING | UNVERIFIED
CONFIDENCE: a number between 0.0 and 1.0
SUMMARY: 2-3 short sentences.
</verdict>

<change_verdict>
One or two sentences on what evidence would change this verdict.
</change_verdict>

<questions>
<q>Short, intriguing follow-up question 1?</q>
<q>Short, intriguing follow-up question 2?</q>
<q>Short, intriguing follow-up question 3?</q>
</questions>

<bias>
{{"politicalScore": 0, "scientificDeviation": 0, "emotionalCharge": 0, "commercialInterest": 0, "framingNotes": "one sentence"}}
Scores are integers from 0 to 100: politicalScore (0 neutral, 100 extreme),
scientificDeviation (0 consensus, 100 pseudoscience), emotionalCharge
(0 calm, 100 hysterical), commercialInterest (0 none, 100 clear sales motive).
Output valid JSON only inside this tag.
</bias>

<category>
ONE of: Politics, Health, Technology, Science, Culture, Economics, History, Other
</category>

<sources>
List 3-5 credible sources that support this analysis.
<s url="https://example.com">Source Title</s>
<s url="">Organization Name (when no link is known)</s>
</sources>
"""

    # Deprecated: earlier contract without normalized_claim, assumptions,
    # key_reasons, change_verdict or labelled verdict lines.
    LEGACY_PROMPT = """You are TruthStack, an analysis engine.
Analyze the claim: "{claim}"

INSTRUCTIONS:
1. Analyze the claim (and image if provided) using your internal knowledge base.
2. Identify logical fallacies or lack of evidence.
3. Format your response using STRICT XML TAGS.

OUTPUT FORMAT:

<investigation>
Rich markdown deep dive. Do NOT include the final verdict here.
</investigation>

<reasoning>
<point>Factor 1: Brief explanation</point>
<point>Factor 2: Brief explanation</point>
</reasoning>

<verdict>
ONE word status (TRUE/FALSE/MISLEADING) followed by 2-3 short summary sentences.
</verdict>

<questions>
<q>Question 1?</q>
<q>Question 2?</q>
<q>Question 3?</q>
</questions>

<bias>
{{"politicalScore": 50, "scientificDeviation": 0, "emotionalCharge": 20, "commercialInterest": 10}}
</bias>

<category>
ONE of: Politics, Health, Technology, Science, Culture, Economics, History, Other.
</category>

<sources>
<s url="https://example.com">Source Title</s>
<s url="">Organization/Domain Name</s>
</sources>
"""

    def __init__(self, contract: Optional[Union[PromptContract, str]] = None):
        """Initialize the Analyst Agent.

        Args:
            contract: Prompt contract to use (defaults to settings)
        """
        self.contract = PromptContract(contract or settings.PROMPT_CONTRACT)

        if self.contract == PromptContract.LEGACY:
            warnings.warn(
                "The legacy prompt contract is deprecated; use 'structured'.",
                DeprecationWarning,
                stacklevel=2,
            )

    def build_prompt(self, claim: Claim) -> str:
        """Build the analysis prompt for a claim."""
        template = (
            self.LEGACY_PROMPT
            if self.contract == PromptContract.LEGACY
            else self.STRUCTURED_PROMPT
        )
        return template.format(claim=claim.text.replace('"', "'"))

    def decode(self, raw_text: str) -> DecodedSections:
        """Decode a raw backend response into typed sections.

        Never raises: missing sections get their defaults.

        Args:
            raw_text: Raw text returned by the backend

        Returns:
            DecodedSections for the assembler
        """
        if self.contract == PromptContract.LEGACY:
            sections = self._decode_legacy(raw_text)
        else:
            sections = self._decode_structured(raw_text)

        logger.info(
            f"Decoded sections: investigation={sections.investigation is not None}, "
            f"status={sections.verdict.status.value}, sources={len(sections.sources)}, "
            f"questions={len(sections.questions)}, bias={sections.bias is not None}"
        )
        if sections.investigation is None:
            logger.warning(f"Missing investigation section in raw text: {raw_text[:200]}...")
        return sections

    def _decode_common(self, raw_text: str) -> dict:
        return {
            "investigation": decode_text(extract_section(raw_text, "investigation")),
            "questions": decode_questions(extract_section(raw_text, "questions")),
            "bias": decode_bias(extract_section(raw_text, "bias")),
            "sources": decode_sources(extract_section(raw_text, "sources")),
            "category": decode_category(extract_section(raw_text, "category")),
        }

    def _decode_structured(self, raw_text: str) -> DecodedSections:
        verdict_section = extract_section(raw_text, "verdict")
        if verdict_section is None:
            logger.warning("Missing verdict section, defaulting to UNVERIFIED")

        return DecodedSections(
            **self._decode_common(raw_text),
            reasoning=decode_text(extract_section(raw_text, "reasoning")),
            verdict=decode_verdict(verdict_section),
            normalized_claim=decode_text(extract_section(raw_text, "normalized_claim")),
            assumptions=decode_assumptions(extract_section(raw_text, "assumptions")),
            key_reasons=decode_key_reasons(extract_section(raw_text, "key_reasons")),
            change_verdict=decode_text(extract_section(raw_text, "change_verdict")),
        )

    def _decode_legacy(self, raw_text: str) -> DecodedSections:
        reasoning = extract_section(raw_text, "reasoning")
        points = decode_points(reasoning)

        return DecodedSections(
            **self._decode_common(raw_text),
            # Reasoning without <point> entries is kept as free text
            reasoning=None if points else decode_text(reasoning),
            key_reasons=points,
            verdict=decode_legacy_verdict(extract_section(raw_text, "verdict")),
        )
