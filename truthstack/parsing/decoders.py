"""Section decoders for tag-structured backend responses.

Every decoder takes the raw inner text of one section (or None when the tag
was missing) and returns a typed value. None of them raise: a malformed or
missing section degrades to the documented default so that one bad tag never
aborts the whole analysis.
"""

import json
import logging
import re
from typing import List, Optional

from pydantic import ValidationError

from ..models.schemas import BiasProfile, Source, Verdict, VerdictStatus
from .tags import extract_all

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Other"

_SOURCE_RE = re.compile(r"<s\b([^>]*)>(.*?)</s\s*>", re.IGNORECASE | re.DOTALL)
_URL_ATTR_RE = re.compile(r"""\burl\s*=\s*(?:"([^"]*)"|'([^']*)')""", re.IGNORECASE)

# Labels may be wrapped in markdown bold, e.g. "**STATUS:** TRUE"
_STATUS_RE = re.compile(r"STATUS\s*\**\s*:\s*\**\s*([A-Za-z_]+)", re.IGNORECASE)
_CONFIDENCE_RE = re.compile(r"CONFIDENCE\s*\**\s*:\s*\**\s*([^\s*]+)", re.IGNORECASE)
_SUMMARY_RE = re.compile(r"SUMMARY\s*\**\s*:\s*\**(.*)", re.IGNORECASE | re.DOTALL)

_BULLET_RE = re.compile(r"^\s*(?:[-*•–]|\d+[.)])\s+")
_WORD_RE = re.compile(r"[A-Za-z_]+")


def decode_text(section: Optional[str]) -> Optional[str]:
    """Trimmed section text, or None when absent or blank."""
    if section is None:
        return None
    text = section.strip()
    return text or None


def decode_questions(section: Optional[str]) -> List[str]:
    """Decode repeated `<q>...</q>` entries into trimmed strings."""
    questions = []
    for entry in extract_all(section, "q"):
        question = entry.strip()
        if question:
            questions.append(question)
    return questions


def decode_sources(section: Optional[str]) -> List[Source]:
    """Decode repeated `<s url="...">Title</s>` entries, in citation order."""
    if not section:
        return []

    sources = []
    for attrs, body in _SOURCE_RE.findall(section):
        url_match = _URL_ATTR_RE.search(attrs)
        title = " ".join(body.split())
        if url_match is None or not title:
            logger.debug(f"Skipping malformed source entry: {attrs!r} {body[:50]!r}")
            continue
        uri = url_match.group(1) if url_match.group(1) is not None else url_match.group(2)
        sources.append(Source(title=title, uri=uri.strip()))
    return sources


def _parse_status(token: Optional[str]) -> VerdictStatus:
    if not token:
        return VerdictStatus.UNVERIFIED
    try:
        return VerdictStatus(token.strip().upper())
    except ValueError:
        logger.debug(f"Unknown verdict status {token!r}, using UNVERIFIED")
        return VerdictStatus.UNVERIFIED


def _parse_confidence(token: Optional[str]) -> float:
    if not token:
        return 0.0
    raw = token.strip().rstrip(".,;")
    percent = raw.endswith("%")
    try:
        value = float(raw.rstrip("%"))
    except ValueError:
        logger.debug(f"Non-numeric confidence {token!r}, using 0.0")
        return 0.0
    if percent:
        value /= 100.0
    return value


def decode_verdict(section: Optional[str]) -> Verdict:
    """Decode the labelled STATUS / CONFIDENCE / SUMMARY lines of a verdict.

    Each label is matched independently. Missing status is UNVERIFIED,
    missing or non-numeric confidence is 0.0 and missing summary is empty.
    Confidence is clamped to [0, 1]; a trailing percent sign is honoured.
    """
    if not section:
        return Verdict()

    status_match = _STATUS_RE.search(section)
    confidence_match = _CONFIDENCE_RE.search(section)
    summary_match = _SUMMARY_RE.search(section)

    return Verdict(
        status=_parse_status(status_match.group(1) if status_match else None),
        confidence=_parse_confidence(confidence_match.group(1) if confidence_match else None),
        summary=summary_match.group(1).strip() if summary_match else "",
    )


def decode_legacy_verdict(section: Optional[str]) -> Verdict:
    """Decode a legacy verdict: a one-word status followed by a summary.

    Deprecated together with the legacy prompt contract. Confidence is not
    part of that contract and is always 0.0.
    """
    text = decode_text(section)
    if text is None:
        return Verdict()

    word = _WORD_RE.search(text)
    if word is None:
        return Verdict(summary=text)
    summary = text[word.end():].lstrip(" *.:-–—").strip()
    return Verdict(status=_parse_status(word.group(0)), summary=summary)


def decode_bias(section: Optional[str]) -> Optional[BiasProfile]:
    """Decode the embedded JSON bias object, or None when it is unusable."""
    text = decode_text(section)
    if text is None:
        return None

    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end < start:
        logger.warning("Bias section has no JSON object, skipping bias profile")
        return None

    try:
        payload = json.loads(text[start:end + 1])
        if not isinstance(payload, dict):
            raise ValueError("bias payload is not an object")
        return BiasProfile.model_validate(payload)
    except (ValueError, ValidationError) as e:
        # json.JSONDecodeError is a ValueError
        logger.warning(f"Failed to parse bias JSON: {e}")
        return None


def _decode_lines(section: Optional[str]) -> List[str]:
    if not section:
        return []
    items = []
    for line in section.splitlines():
        item = _BULLET_RE.sub("", line, count=1).strip()
        if item:
            items.append(item)
    return items


def decode_key_reasons(section: Optional[str]) -> List[str]:
    """Split a line-bulleted section into reasons, dropping bullets and blanks."""
    return _decode_lines(section)


def decode_assumptions(section: Optional[str]) -> List[str]:
    """Split a line-bulleted assumptions section."""
    return _decode_lines(section)


def decode_points(section: Optional[str]) -> List[str]:
    """Decode legacy `<point>...</point>` reasoning entries."""
    return [point.strip() for point in extract_all(section, "point") if point.strip()]


def decode_category(section: Optional[str]) -> str:
    """First non-empty line of the category section, "Other" by default."""
    for line in (section or "").splitlines():
        category = line.strip().strip(".*").strip()
        if category:
            return category
    return DEFAULT_CATEGORY
