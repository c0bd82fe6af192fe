"""Pydantic data models for the TruthStack analysis pipeline."""

import math
import re
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

IMAGE_ONLY_PROMPT = "Analyze the validity and bias of this image."

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[^,]*)?,(?P<data>.*)$", re.DOTALL)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VerdictStatus(str, Enum):
    """Truth determination emitted in the verdict layer."""
    TRUE = "TRUE"
    FALSE = "FALSE"
    MISLEADING = "MISLEADING"
    UNVERIFIED = "UNVERIFIED"


class LayerKind(str, Enum):
    """Kind of a presentational layer, in display order."""
    CLAIM = "claim"
    INVESTIGATION = "investigation"
    VERDICT = "verdict"
    REASONING = "reasoning"


class PromptContract(str, Enum):
    """Tag set the analysis prompt asks the backend to emit.

    STRUCTURED is canonical. LEGACY is the earlier, smaller tag set and is
    kept only as a deprecated compatibility mode.
    """
    STRUCTURED = "structured"
    LEGACY = "legacy"


class ClaimImage(BaseModel):
    """Inline image attached to a claim (base64 payload, opaque to the pipeline)."""

    mime_type: str = Field(default="image/png", description="MIME type of the image")
    data: str = Field(..., min_length=1, description="Base64-encoded image bytes")

    class Config:
        frozen = True

    @classmethod
    def from_data_url(cls, value: str) -> "ClaimImage":
        """Build an image from a data URL or a bare base64 string."""
        match = _DATA_URL_RE.match(value.strip())
        if match:
            return cls(
                mime_type=match.group("mime") or "image/png",
                data=match.group("data"),
            )
        return cls(data=value.strip())

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


class Claim(BaseModel):
    """A user-submitted statement to analyze, optionally with an image."""

    text: str = Field(..., description="The claim text")
    image: Optional[ClaimImage] = Field(default=None, description="Attached image")

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "text": "Drinking 8 glasses of water a day is essential.",
                "image": None,
            }
        }

    @model_validator(mode="before")
    @classmethod
    def default_image_prompt(cls, data: Any) -> Any:
        """Fill in a prompt for image-only submissions."""
        if isinstance(data, dict):
            text = data.get("text")
            if text is None:
                text = ""
            if not isinstance(text, str):
                raise ValueError("Claim text must be a string")
            text = text.strip()
            if not text and data.get("image") is not None:
                text = IMAGE_ONLY_PROMPT
            if not text:
                raise ValueError("A claim needs text or an image")
            data = {**data, "text": text}
        return data

    @property
    def has_image(self) -> bool:
        return self.image is not None


class Source(BaseModel):
    """A citation emitted by the backend. `uri` may be empty for named organizations."""

    title: str = Field(..., description="Source title or organization name")
    uri: str = Field(default="", description="Link to the source, empty when unknown")

    class Config:
        frozen = True


class Verdict(BaseModel):
    """Decoded truth determination."""

    status: VerdictStatus = Field(default=VerdictStatus.UNVERIFIED)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    summary: str = Field(default="")

    class Config:
        frozen = True

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, value: Any) -> float:
        try:
            value = float(value)
        except OverflowError:
            return 1.0 if value > 0 else 0.0
        except (TypeError, ValueError):
            return 0.0
        if math.isnan(value):
            return 0.0
        return max(0.0, min(1.0, value))


class BiasProfile(BaseModel):
    """Bias scores (0-100) along fixed axes, decoded from the bias section."""

    political_score: int = Field(..., alias="politicalScore", ge=0, le=100)
    scientific_deviation: int = Field(..., alias="scientificDeviation", ge=0, le=100)
    emotional_charge: int = Field(..., alias="emotionalCharge", ge=0, le=100)
    commercial_interest: int = Field(..., alias="commercialInterest", ge=0, le=100)
    framing_notes: Optional[str] = Field(default=None, alias="framingNotes")

    class Config:
        frozen = True
        populate_by_name = True

    @field_validator(
        "political_score",
        "scientific_deviation",
        "emotional_charge",
        "commercial_interest",
        mode="before",
    )
    @classmethod
    def clamp_score(cls, value: Any) -> int:
        if isinstance(value, bool):
            raise ValueError("score must be numeric")
        try:
            score = float(value)
        except (TypeError, ValueError, OverflowError):
            raise ValueError("score must be numeric")
        if math.isnan(score):
            raise ValueError("score must be numeric")
        return int(round(max(0.0, min(100.0, score))))


class DebateTurn(BaseModel):
    """One turn of a Pro/Con debate transcript."""

    speaker: Literal["Pro", "Con"]
    text: str


class Layer(BaseModel):
    """One presentational unit of the displayed analysis stack."""

    id: str = Field(..., description="Stable layer identifier")
    kind: LayerKind = Field(..., description="Layer kind")
    title: str = Field(..., description="Display title")
    content: str = Field(default="", description="Markdown content")
    is_loading: bool = Field(default=False, description="Placeholder shown while analyzing")
    bias_data: Optional[BiasProfile] = Field(default=None, description="Bias metrics")
    debate: Optional[List[DebateTurn]] = Field(default=None, description="Debate transcript")

    class Config:
        frozen = True


class DecodedSections(BaseModel):
    """Typed values decoded from one raw backend response."""

    investigation: Optional[str] = None
    reasoning: Optional[str] = None
    verdict: Verdict = Field(default_factory=Verdict)
    normalized_claim: Optional[str] = None
    assumptions: List[str] = Field(default_factory=list)
    key_reasons: List[str] = Field(default_factory=list)
    change_verdict: Optional[str] = None
    questions: List[str] = Field(default_factory=list)
    bias: Optional[BiasProfile] = None
    sources: List[Source] = Field(default_factory=list)
    category: str = "Other"


class AnalysisResult(BaseModel):
    """Complete analysis for one claim, assembled once and never mutated."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    claim: str = Field(..., description="The analyzed claim text")
    layers: List[Layer] = Field(default_factory=list, description="Layers in display order")
    sources: List[Source] = Field(default_factory=list, description="Citations as emitted")
    suggested_questions: List[str] = Field(default_factory=list)
    confidence_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    key_reasons: Optional[List[str]] = None
    what_would_change: Optional[str] = None
    verdict: Optional[Verdict] = Field(default=None, description="Guardrail-adjusted verdict")
    category: str = Field(default="Other")
    bias: Optional[BiasProfile] = None
    normalized_claim: Optional[str] = None
    assumptions: List[str] = Field(default_factory=list)
    model_used: Optional[str] = Field(default=None, description="Backend model that answered")
    contract: PromptContract = Field(default=PromptContract.STRUCTURED)
    created_at: datetime = Field(default_factory=_utcnow)
    processing_time_seconds: Optional[float] = None

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "claim": "The Great Wall of China is visible from space.",
                "layers": [],
                "sources": [{"title": "NASA", "uri": "https://www.nasa.gov"}],
                "suggested_questions": ["What can astronauts actually see from orbit?"],
                "confidence_score": 0.9,
                "category": "Science",
            }
        }

    def layer(self, kind: LayerKind) -> Optional[Layer]:
        """Return the first layer of the given kind."""
        for layer in self.layers:
            if layer.kind == kind:
                return layer
        return None


class ModelAttempt(BaseModel):
    """One generation attempt against a backend model identifier."""

    model: str
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class GenerationOutcome(BaseModel):
    """Raw text from the first model that answered, with the attempt trail."""

    text: str
    model: str
    attempts: List[ModelAttempt] = Field(default_factory=list)


class UsageRecord(BaseModel):
    """Summary of one completed analysis, written to the usage sink."""

    claim: str
    verdict: str
    category: str
    source_count: int = Field(..., ge=0)
    has_image: bool = False
    model: str
    timestamp: datetime = Field(default_factory=_utcnow)


class UsageSummary(BaseModel):
    """Aggregated usage records for the usage view."""

    total: int = 0
    with_image: int = 0
    by_category: Dict[str, int] = Field(default_factory=dict)
    by_verdict: Dict[str, int] = Field(default_factory=dict)
    by_model: Dict[str, int] = Field(default_factory=dict)
    recent: List[UsageRecord] = Field(default_factory=list)


# API Request/Response Models

class AnalyzeRequest(BaseModel):
    """Request model for the analysis endpoints."""

    text: str = Field(default="", description="The claim to analyze")
    image: Optional[str] = Field(
        default=None,
        description="Optional image as a data URL or bare base64 string",
    )

    class Config:
        json_schema_extra = {
            "example": {
                "text": "Drinking 8 glasses of water a day is essential.",
            }
        }

    def to_claim(self) -> Claim:
        image = ClaimImage.from_data_url(self.image) if self.image else None
        return Claim(text=self.text, image=image)


class DebateRequest(BaseModel):
    """Request model for the debate endpoint."""

    topic: str = Field(..., min_length=1, description="Claim or topic to debate")


class DebateResponse(BaseModel):
    """Response model for the debate endpoint."""

    topic: str
    turns: List[DebateTurn] = Field(default_factory=list)


class StreamEvent(BaseModel):
    """Event model for SSE streaming."""

    event_type: str = Field(..., description="Type of event")
    data: Dict[str, Any] = Field(default_factory=dict, description="Event data")
    timestamp: datetime = Field(default_factory=_utcnow)
