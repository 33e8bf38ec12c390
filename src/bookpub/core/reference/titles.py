"""Canonical book-title lookup: YAML title table loader and resolver"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from bookpub.core.reference.normalize import normalize_identifier


DEFAULT_TITLE_MAP = Path(__file__).resolve().parents[2] / "data" / "book_title_map.yml"


@dataclass(frozen=True)
class TitleEntry:
    display: str
    canonical_long: str
    canonical_short: str


def load_title_table(path: Optional[Path] = None) -> list[TitleEntry]:
    """Read a YAML list of {display, canonical-long, canonical-short} mappings.

    Defaults to the bundled table. Raises ValueError naming the file on bad YAML or entries.
    """
    path = Path(path) if path else DEFAULT_TITLE_MAP
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or []
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid title map {path}: {e}") from e
    if not isinstance(data, list):
        raise ValueError(f"Invalid title map {path}: expected a list, got {type(data).__name__}")

    entries = []
    for i, item in enumerate(data):
        try:
            entries.append(TitleEntry(
                display=str(item["display"]),
                canonical_long=str(item["canonical-long"]),
                canonical_short=str(item["canonical-short"]),
            ))
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid title map {path}: entry {i} is missing {e}") from e
    return entries


class CanonicalNameResolver:
    """Map free-form title text to a normalized canonical-long identifier.

    Built once from an explicit table. Lookup keys are the normalized long, short and
    display forms of each entry in table order; the first entry to claim a key keeps it.
    """

    def __init__(self, entries: list[TitleEntry]):
        self._lookup: dict[str, str] = {}
        for entry in entries:
            canonical = normalize_identifier(entry.canonical_long)
            for form in (entry.canonical_long, entry.canonical_short, entry.display):
                key = normalize_identifier(form)
                if key and key not in self._lookup:
                    self._lookup[key] = canonical

    @classmethod
    def from_file(cls, path: Optional[Path] = None) -> "CanonicalNameResolver":
        return cls(load_title_table(path))

    def __len__(self) -> int:
        return len(self._lookup)

    def resolve(self, text: str) -> str:
        """Exact key hit, else first substring match either way, else the normalized input."""
        normalized = normalize_identifier(text)
        if not normalized:
            return normalized
        if normalized in self._lookup:
            return self._lookup[normalized]
        for key, canonical in self._lookup.items():
            if normalized in key or key in normalized:
                return canonical
        return normalized
