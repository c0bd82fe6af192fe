"""Result Assembler: evidence guardrail and layer assembly."""

import logging
from typing import List, Optional

from ..config import settings
from ..models.schemas import (
    AnalysisResult,
    Claim,
    DecodedSections,
    Layer,
    LayerKind,
    PromptContract,
    Source,
    UsageRecord,
    Verdict,
    VerdictStatus,
)

logger = logging.getLogger(__name__)

INVESTIGATION_PENDING = "Analysis pending..."
VERDICT_PENDING = "Verdict pending..."
REASONING_PENDING = "Reasoning pending..."

LAYER_TITLES = {
    LayerKind.CLAIM: "The Claim",
    LayerKind.INVESTIGATION: "The Investigation",
    LayerKind.VERDICT: "The Verdict",
    LayerKind.REASONING: "The Why",
}


def apply_evidence_guardrail(
    verdict: Verdict,
    sources: List[Source],
    cap: Optional[float] = None
) -> Verdict:
    """Never let a verdict assert confidence without evidence.

    With no sources the status becomes UNVERIFIED and the confidence is
    capped, whatever the backend claimed. With sources the verdict is
    returned unchanged.

    Args:
        verdict: Verdict as decoded from the backend
        sources: Decoded source list
        cap: Confidence ceiling without sources (defaults to settings)

    Returns:
        The verdict to emit
    """
    if sources:
        return verdict

    cap = settings.NO_SOURCE_CONFIDENCE_CAP if cap is None else cap
    corrected = verdict.model_copy(update={
        "status": VerdictStatus.UNVERIFIED,
        "confidence": min(verdict.confidence, cap),
    })
    if corrected != verdict:
        logger.info(
            f"No sources cited: verdict {verdict.status.value} ({verdict.confidence:.2f}) "
            f"corrected to {corrected.status.value} ({corrected.confidence:.2f})"
        )
    return corrected


def _bullets(items: List[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


class ResultAssembler:
    """Builds the AnalysisResult for one successful backend response.

    Layers are always emitted in the order Claim, Investigation, Verdict,
    Reasoning, one of each, whatever sections the backend included.
    """

    def __init__(self, no_source_confidence_cap: Optional[float] = None):
        """Initialize the assembler.

        Args:
            no_source_confidence_cap: Confidence ceiling when no sources are cited
        """
        self.no_source_confidence_cap = (
            no_source_confidence_cap
            if no_source_confidence_cap is not None
            else settings.NO_SOURCE_CONFIDENCE_CAP
        )

    def assemble(
        self,
        claim: Claim,
        sections: DecodedSections,
        model_used: Optional[str] = None,
        contract: PromptContract = PromptContract.STRUCTURED,
        processing_time_seconds: Optional[float] = None
    ) -> AnalysisResult:
        """Assemble the typed result.

        Args:
            claim: The submitted claim
            sections: Decoded sections of the backend response
            model_used: Backend model identifier that answered
            contract: Prompt contract the response was decoded with
            processing_time_seconds: Elapsed time for the analysis

        Returns:
            AnalysisResult with layers in fixed order
        """
        verdict = apply_evidence_guardrail(
            sections.verdict,
            sections.sources,
            cap=self.no_source_confidence_cap
        )

        layers = [
            self._claim_layer(claim, sections),
            self._investigation_layer(sections),
            self._verdict_layer(verdict),
            self._reasoning_layer(sections),
        ]

        return AnalysisResult(
            claim=claim.text,
            layers=layers,
            sources=list(sections.sources),
            suggested_questions=list(sections.questions),
            confidence_score=verdict.confidence,
            key_reasons=list(sections.key_reasons) or None,
            what_would_change=sections.change_verdict,
            verdict=verdict,
            category=sections.category,
            bias=sections.bias,
            normalized_claim=sections.normalized_claim,
            assumptions=list(sections.assumptions),
            model_used=model_used,
            contract=contract,
            processing_time_seconds=processing_time_seconds,
        )

    def _claim_layer(self, claim: Claim, sections: DecodedSections) -> Layer:
        parts = [claim.text]
        if sections.normalized_claim:
            parts.append(f"**Normalized claim:** {sections.normalized_claim}")
        if sections.assumptions:
            parts.append("**Assumptions:**\n" + _bullets(sections.assumptions))

        return Layer(
            id="layer-claim",
            kind=LayerKind.CLAIM,
            title=LAYER_TITLES[LayerKind.CLAIM],
            content="\n\n".join(parts),
        )

    def _investigation_layer(self, sections: DecodedSections) -> Layer:
        return Layer(
            id="layer-investigation",
            kind=LayerKind.INVESTIGATION,
            title=LAYER_TITLES[LayerKind.INVESTIGATION],
            content=sections.investigation or INVESTIGATION_PENDING,
            bias_data=sections.bias,
        )

    def _verdict_layer(self, verdict: Verdict) -> Layer:
        # First line is the status, the rest is the summary
        return Layer(
            id="layer-verdict",
            kind=LayerKind.VERDICT,
            title=LAYER_TITLES[LayerKind.VERDICT],
            content=f"{verdict.status.value}\n{verdict.summary or VERDICT_PENDING}",
        )

    def _reasoning_layer(self, sections: DecodedSections) -> Layer:
        parts = []
        if sections.reasoning:
            parts.append(sections.reasoning)
        if sections.key_reasons:
            parts.append(_bullets(sections.key_reasons))

        return Layer(
            id="layer-reasoning",
            kind=LayerKind.REASONING,
            title=LAYER_TITLES[LayerKind.REASONING],
            content="\n\n".join(parts) or REASONING_PENDING,
        )


def build_usage_record(result: AnalysisResult, has_image: bool = False) -> UsageRecord:
    """Summarize an assembled result for the usage recorder."""
    status = result.verdict.status.value if result.verdict else VerdictStatus.UNVERIFIED.value
    return UsageRecord(
        claim=result.claim,
        verdict=status.split()[0],
        category=result.category,
        source_count=len(result.sources),
        has_image=has_image,
        model=result.model_used or "unknown",
    )
