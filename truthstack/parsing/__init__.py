"""Tag extraction and section decoding for backend responses."""

from .tags import extract_all, extract_section, strip_code_fences
from .decoders import (
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

__all__ = [
    "extract_all",
    "extract_section",
    "strip_code_fences",
    "decode_assumptions",
    "decode_bias",
    "decode_category",
    "decode_key_reasons",
    "decode_legacy_verdict",
    "decode_points",
    "decode_questions",
    "decode_sources",
    "decode_text",
    "decode_verdict",
]
