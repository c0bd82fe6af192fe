"""Tag extraction over raw generated text.

The backend is asked to wrap each part of its answer in a fixed set of tags.
Generated markup is routinely near-but-not-quite valid, so this is a scrape,
not a parser: the first opening tag of a given name is paired with the first
matching closing tag after it, and anything in between is content.
"""

import re
from functools import lru_cache
from typing import List, Optional, Pattern

_FENCE_RE = re.compile(r"```[\w+-]*[ \t]*")


def strip_code_fences(text: str) -> str:
    """Remove markdown code fence markers (```xml, ```json, ```)."""
    return _FENCE_RE.sub("", text)


@lru_cache(maxsize=64)
def _tag_pattern(tag: str) -> Pattern[str]:
    name = re.escape(tag)
    return re.compile(
        rf"<{name}(?:\s[^>]*)?>(.*?)</{name}\s*>",
        re.IGNORECASE | re.DOTALL,
    )


def extract_section(text: Optional[str], tag: str) -> Optional[str]:
    """Return the inner text of the first `<tag>...</tag>` pair, or None.

    Matching is case-insensitive and spans newlines. Code fences around the
    payload are ignored.
    """
    if not text:
        return None
    match = _tag_pattern(tag).search(strip_code_fences(text))
    if match is None:
        return None
    return match.group(1)


def extract_all(text: Optional[str], tag: str) -> List[str]:
    """Return the inner text of every `<tag>...</tag>` pair, left to right."""
    if not text:
        return []
    return _tag_pattern(tag).findall(strip_code_fences(text))
