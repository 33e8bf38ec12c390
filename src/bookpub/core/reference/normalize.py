"""Identifier normalization and section range expansion"""

import re


_QUOTES_RE = re.compile(r"['\"]")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_RANGE_RE = re.compile(r"^\s*(\d+)\s*-\s*(\d+)\s*$")


def normalize_identifier(text: str) -> str:
    """Lowercase, drop quotes, fold every other non-alphanumeric run to one hyphen, trim hyphens.

    Digits are preserved verbatim. Idempotent and total: '' maps to ''.
    """
    text = _QUOTES_RE.sub("", text or "").lower()
    return _NON_ALNUM_RE.sub("-", text).strip("-")


def expand_range(token: str) -> list[str]:
    """Expand '4-9' to ['4', ..., '9']; anything else (including '9-4') comes back as [token]."""
    m = _RANGE_RE.match(token)
    if not m:
        return [token]
    start, end = int(m.group(1)), int(m.group(2))
    if start > end:
        return [token]
    return [str(i) for i in range(start, end + 1)]


def expand_range_list(text: str) -> list[str]:
    """Split on ',' and expand each part in order, e.g. '4-6,8' -> ['4', '5', '6', '8']."""
    result: list[str] = []
    for part in text.split(","):
        part = part.strip()
        if part:
            result.extend(expand_range(part))
    return result
