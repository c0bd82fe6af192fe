"""Data models for TruthStack."""

from .schemas import (
    AnalysisResult,
    AnalyzeRequest,
    BiasProfile,
    Claim,
    ClaimImage,
    DebateRequest,
    DebateResponse,
    DebateTurn,
    DecodedSections,
    GenerationOutcome,
    Layer,
    LayerKind,
    ModelAttempt,
    PromptContract,
    Source,
    StreamEvent,
    UsageRecord,
    UsageSummary,
    Verdict,
    VerdictStatus,
)

__all__ = [
    "AnalysisResult",
    "AnalyzeRequest",
    "BiasProfile",
    "Claim",
    "ClaimImage",
    "DebateRequest",
    "DebateResponse",
    "DebateTurn",
    "DecodedSections",
    "GenerationOutcome",
    "Layer",
    "LayerKind",
    "ModelAttempt",
    "PromptContract",
    "Source",
    "StreamEvent",
    "UsageRecord",
    "UsageSummary",
    "Verdict",
    "VerdictStatus",
]
