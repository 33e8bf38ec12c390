"""Parser for [[book::...]] reference macros

Grammar of a macro body (references separated by comma + space):

    [<collection> |] <title> [<chapter>[:<section>[,<section-range>...]]] [| <version>...]

with an optional trailing ``| <version>...`` shared by every reference in the body.
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional

from bookpub.core.models import BookReference, Tag
from bookpub.core.reference.normalize import expand_range_list, normalize_identifier
from bookpub.core.reference.titles import CanonicalNameResolver


MACRO_RE = re.compile(r"\[\[book::(.+?)\]\]", re.DOTALL)
_DELIMITERS_RE = re.compile(r"^\[\[book::|\]\]$")

_PIPE_SEP_RE = re.compile(r"\s+\|\s+")
_REF_SEP_RE = re.compile(r", ")
_BARE_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_VERSION_LIST_RE = re.compile(r"^[A-Za-z0-9_-]+(\s+[A-Za-z0-9_-]+)*$")
_INT_RE = re.compile(r"^\d+$")

# '<word(s)> <digits>' anywhere, or an identifier directly followed by a number
_CHAPTER_NUMBER_RE = re.compile(r"\s+\d+(\s|$|:)|^[A-Za-z0-9_-]+\s+\d+")
# chapter:section, or digits-led chapter alone; titles are lazy so multi-word titles survive
_CHAPTER_SECTION_RE = re.compile(r"^(?P<title>.+?)\s+(?P<chapter>[A-Za-z0-9_-]+):(?P<section>.+)$")
_CHAPTER_RE = re.compile(r"^(?P<title>.+?)\s+(?P<chapter>\d[A-Za-z0-9_-]*)$")
_EMBEDDED_COLLECTION_RE = re.compile(r"^(?P<collection>[A-Za-z0-9_-]+)\s+\|\s+(?P<title>.+)$")

# signals that the text before a trailing pipe is a complete reference
_COMPLETE_REF_RES = (re.compile(r":\d+"), re.compile(r"\d+\s*:"), re.compile(r"\s+\d+(\s|$)"))
_MULTI_REF_RE = re.compile(r",\s+[^,]+$")


def _quoted_mask(text: str) -> list[bool]:
    """Per-character flag: True inside a quoted span.

    A quote opens at the start of a token and closes on the same quote character,
    so apostrophes inside words (Young's) do not open a span.
    """
    mask = []
    open_quote = None
    for i, ch in enumerate(text):
        if open_quote:
            mask.append(True)
            if ch == open_quote:
                open_quote = None
        elif ch in "\"'" and (i == 0 or text[i - 1].isspace() or text[i - 1] in "|,"):
            open_quote = ch
            mask.append(True)
        else:
            mask.append(False)
    return mask


def _split_unquoted(text: str, pattern: re.Pattern) -> list[str]:
    """Split text on pattern matches that start outside quoted spans; parts are stripped."""
    mask = _quoted_mask(text)
    parts, start = [], 0
    for m in pattern.finditer(text):
        if not mask[m.start()]:
            parts.append(text[start:m.start()].strip())
            start = m.end()
    parts.append(text[start:].strip())
    return [p for p in parts if p]


def _last_unquoted_pipe(text: str) -> int:
    mask = _quoted_mask(text)
    for i in range(len(text) - 1, -1, -1):
        if text[i] == "|" and not mask[i]:
            return i
    return -1


def _version_list(text: str) -> tuple[str, ...]:
    return tuple(v for v in (normalize_identifier(t) for t in text.split()) if v)


def _has_chapter_number(segment: str) -> bool:
    return bool(_CHAPTER_NUMBER_RE.search(segment))


def _is_bare_identifier(segment: str) -> bool:
    return bool(_BARE_IDENTIFIER_RE.match(segment))


@dataclass(frozen=True)
class PipeSplit:
    """Outcome of classifying the ' | ' segments of a single reference."""
    main: str
    collection: Optional[str] = None
    versions: tuple[str, ...] = ()


@dataclass(frozen=True)
class PipeRule:
    name: str
    applies: Callable[[list[str]], bool]
    split: Callable[[list[str]], PipeSplit]


# Ordered; the first rule whose predicate holds wins. A chapter number before a single
# pipe beats the collection reading, and a bare token before a pipe is always a
# collection, never a one-word title followed by a version.
PIPE_RULES: tuple[PipeRule, ...] = (
    PipeRule(
        "single",
        lambda s: len(s) == 1,
        lambda s: PipeSplit(main=s[0]),
    ),
    PipeRule(
        "title-chapter-version",
        lambda s: len(s) == 2 and _has_chapter_number(s[0]),
        lambda s: PipeSplit(main=s[0], versions=_version_list(s[1])),
    ),
    PipeRule(
        "collection-title",
        lambda s: len(s) == 2 and _is_bare_identifier(s[0]),
        lambda s: PipeSplit(main=s[1], collection=normalize_identifier(s[0])),
    ),
    PipeRule(
        "unsplit",
        lambda s: len(s) == 2,
        lambda s: PipeSplit(main=" | ".join(s)),
    ),
    PipeRule(
        "collection-title-version",
        lambda s: len(s) > 2 and _is_bare_identifier(s[0]),
        lambda s: PipeSplit(
            main=" | ".join(s[1:-1]),
            collection=normalize_identifier(s[0]),
            versions=_version_list(s[-1]),
        ),
    ),
    PipeRule(
        "title-version",
        lambda s: len(s) > 2,
        lambda s: PipeSplit(main=" | ".join(s[:-1]), versions=_version_list(s[-1])),
    ),
)


def classify_segments(segments: list[str]) -> tuple[str, PipeSplit]:
    """Apply PIPE_RULES in order; returns (rule name, split)."""
    for rule in PIPE_RULES:
        if rule.applies(segments):
            return rule.name, rule.split(segments)
    return "empty", PipeSplit(main="")


def find_wikilinks(text: str) -> list[str]:
    """Return every [[book::...]] macro in text, in order of appearance."""
    return [m.group(0) for m in MACRO_RE.finditer(text or "")]


def reference_to_tags(ref: BookReference) -> list[Tag]:
    """Project a reference onto search tags: C?, T, c?, s*, v* in that order."""
    tags: list[Tag] = []
    if ref.collection:
        tags.append(("C", ref.collection))
    tags.append(("T", ref.title))
    if ref.chapter:
        tags.append(("c", ref.chapter))
    tags.extend(("s", s) for s in ref.sections)
    tags.extend(("v", v) for v in ref.versions)
    return tags


class ReferenceParser:
    """Turns macro text into BookReferences using an injected title resolver.

    Titles are canonicalized through the resolver, except that a bare integer title in
    [1, numeric_title_max] under numeric_collection is kept verbatim (numbered, not
    named, books such as surahs).
    """

    def __init__(
        self,
        resolver: CanonicalNameResolver,
        numeric_collection: str = "quran",
        numeric_title_max: int = 114,
        ):
        self.resolver = resolver
        self.numeric_collection = normalize_identifier(numeric_collection)
        self.numeric_title_max = numeric_title_max

    @classmethod
    def from_settings(cls, settings) -> "ReferenceParser":
        return cls(
            CanonicalNameResolver.from_file(settings.title_map),
            numeric_collection=settings.numeric_collection,
            numeric_title_max=settings.numeric_title_max,
        )

    def _resolve_title(self, text: str, collection: Optional[str]) -> str:
        text = text.strip()
        if (
            collection == self.numeric_collection
            and _INT_RE.match(text)
            and 1 <= int(text) <= self.numeric_title_max
        ):
            return text
        return self.resolver.resolve(text)

    def parse_single_reference(
        self,
        content: str,
        inherited_collection: Optional[str] = None,
        inherited_versions: tuple[str, ...] = (),
        ) -> Optional[BookReference]:
        """Parse one reference. Returns None only when there is nothing to parse."""
        content = (content or "").strip()
        if not content:
            return None

        split = PipeSplit(main=content)
        if not inherited_collection:
            _, split = classify_segments(_split_unquoted(content, _PIPE_SEP_RE))
        collection = split.collection or inherited_collection
        main = split.main.strip()

        m = _CHAPTER_SECTION_RE.match(main) or _CHAPTER_RE.match(main)
        title_text = m.group("title").strip() if m else main
        chapter = normalize_identifier(m.group("chapter")) if m else None
        section_text = m.groupdict().get("section") if m else None

        embedded = _EMBEDDED_COLLECTION_RE.match(title_text)
        if embedded and not collection:
            collection = normalize_identifier(embedded.group("collection"))
            title_text = embedded.group("title")

        title = self._resolve_title(title_text, collection)
        if not title:
            return None

        sections: tuple[str, ...] = ()
        if section_text:
            # hierarchical paths (part-2:1846-1849) flatten before range expansion
            expanded = expand_range_list(section_text.replace(":", "-"))
            sections = tuple(s for s in (normalize_identifier(x) for x in expanded) if s)

        return BookReference(
            collection=collection or None,
            title=title,
            chapter=chapter or None,
            sections=sections,
            versions=split.versions or tuple(inherited_versions),
        )

    def _split_global_version(self, content: str) -> tuple[str, tuple[str, ...]]:
        """Detach a trailing '| version...' shared by every reference, if there is one."""
        idx = _last_unquoted_pipe(content)
        if idx < 0:
            return content, ()
        before, after = content[:idx].strip(), content[idx + 1:].strip()
        if not _VERSION_LIST_RE.match(after):
            return content, ()
        complete = any(r.search(before) for r in _COMPLETE_REF_RES)
        if complete or _MULTI_REF_RE.search(before):
            return before, _version_list(after)
        return content, ()

    def parse_wikilink(self, raw: str) -> list[BookReference]:
        """Parse a [[book::...]] macro into references; empty bodies yield []."""
        content = _DELIMITERS_RE.sub("", (raw or "").strip()).strip()
        if not content:
            return []

        content, global_versions = self._split_global_version(content)

        references: list[BookReference] = []
        collection: Optional[str] = None
        versions = global_versions
        for ref_text in _split_unquoted(content, _REF_SEP_RE):
            ref = self.parse_single_reference(ref_text, collection, versions)
            if ref is None:
                continue
            references.append(ref)
            if ref.collection:
                collection = ref.collection
            if ref.versions:
                versions = ref.versions
        return references

    def parse_text(self, text: str) -> list[BookReference]:
        """Parse every macro found in a body of text, in order."""
        return [ref for macro in find_wikilinks(text) for ref in self.parse_wikilink(macro)]
