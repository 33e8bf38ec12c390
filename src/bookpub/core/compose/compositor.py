"""Assemble a resolved content graph into one document with root-only metadata"""

import re
from typing import Optional

from bookpub.core.compose.headings import MAX_DEPTH, classify, renumber_headings
from bookpub.core.models import AssembledDocument, ContentNode, ResolvedGraph, Section, Tag


_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_YEAR_RE = re.compile(r"(\d{4})")
_MARKER_RE = re.compile(r"^\s*(=+|#+)\s+")


def title_case(identifier: str) -> str:
    """'the-great-gatsby' -> 'The Great Gatsby'."""
    return " ".join(w[:1].upper() + w[1:].lower() for w in re.split(r"[-_\s]+", identifier or "") if w)


def revision_date(published_on: str) -> str:
    """ISO dates keep their YYYY-MM-DD part, bare years become YYYY-01-01, anything else is kept."""
    published_on = published_on.strip()
    if m := _ISO_DATE_RE.match(published_on):
        return m.group(0)
    if m := _YEAR_RE.search(published_on):
        return f"{m.group(1)}-01-01"
    return published_on


def _present(value: Optional[str]) -> bool:
    return bool(value and value.strip())


class DocumentCompositor:
    """Builds AssembledDocuments: front matter, one metadata block at the true root, sections.

    Section depth is the node's nominal depth (see classify) plus its nesting below
    the root, capped at max_depth; embedded headings are renumbered beneath it.
    """

    def __init__(
        self,
        markup: str = "asciidoc",
        preview_length: int = 60,
        default_version: str = "",
        max_depth: int = MAX_DEPTH,
        ):
        self.markup = markup
        self.preview_length = preview_length
        self.default_version = default_version
        self.max_depth = max_depth

    @classmethod
    def from_settings(cls, settings) -> "DocumentCompositor":
        return cls(
            markup=settings.body_markup,
            preview_length=settings.preview_length,
            default_version=settings.default_version,
            max_depth=settings.max_heading_depth,
        )

    # --- titles ---

    def document_title(self, root: ContentNode, root_ref: Optional[str] = None) -> str:
        for candidate in (root.first("title"), root.first("T"), title_case(root.d or "")):
            if _present(candidate):
                return candidate.strip()
        return root_ref or root.id[:8]

    def preview(self, body: str) -> str:
        """First non-blank line of body without heading markers, truncated with '...'."""
        for line in (body or "").splitlines():
            text = " ".join(_MARKER_RE.sub("", line).split())
            if text:
                if len(text) > self.preview_length:
                    return text[:self.preview_length].rstrip() + "..."
                return text
        return ""

    def heading_text(self, node: ContentNode) -> str:
        """Title tag, else 'book chapter[:sections]', else a body preview."""
        title = node.first("title")
        if _present(title):
            return title.strip()
        book = node.first("T")
        if _present(book):
            chapter = node.first("c")
            if _present(chapter):
                sections = ", ".join(node.values("s"))
                return f"{book} {chapter}:{sections}" if sections else f"{book} {chapter}"
            return book
        return self.preview(node.body) or title_case(node.d or "") or "Section"

    # --- metadata ---

    def _version(self, root: ContentNode) -> str:
        return root.first("version") or self.default_version or ""

    def _summary(self, root: ContentNode) -> str:
        return root.first("summary") or root.first("description") or ""

    def _author(self, root: ContentNode) -> str:
        return root.first("author") or root.first("p") or ""

    def front_matter(self, root: ContentNode, title: str) -> list[Tag]:
        """Document attributes from root tags; each only when present and non-blank."""
        version = self._version(root)
        published_on = root.first("published_on") or ""
        revdate = revision_date(published_on) if _present(published_on) else ""
        fields: list[Tag] = [
            ("title", title),
            ("author", self._author(root)),
            ("doctype", "book"),
            ("version", version),
            ("revnumber", version),
            ("pubdate", revdate),
            ("revdate", revdate),
            ("source", root.first("source") or ""),
            ("keywords", ", ".join(t for t in root.values("t") if t.strip())),
            ("summary", self._summary(root)),
            ("front-cover-image", root.first("image") or ""),
        ]
        return [(k, v.strip()) for k, v in fields if _present(v)]

    def metadata_block(self, root: ContentNode, title: str, root_ref: Optional[str] = None) -> list[Tag]:
        """Labelled 'Book Information' fields; built for the true root only."""
        fields: list[Tag] = [
            ("Title", title),
            ("Author", self._author(root)),
            ("Collection", root.first("C") or ""),
            ("Version", self._version(root)),
            ("Source", root.first("source") or ""),
            ("Published On", root.first("published_on") or ""),
            ("Topics", ", ".join(t for t in root.values("t") if t.strip())),
            ("Summary", root.first("summary") or ""),
            ("Description", root.first("description") or ""),
            ("Type", root.first("type") or ""),
            ("Reference", root_ref or ""),
        ]
        return [(k, v.strip()) for k, v in fields if _present(v)]

    # --- sections ---

    def _depth(self, node: ContentNode, nesting: int) -> int:
        return min(self.max_depth, classify(node) + nesting)

    def _section(self, node: ContentNode, nesting: int, children: tuple[Section, ...] = ()) -> Section:
        depth = self._depth(node, nesting)
        return Section(
            heading_depth=depth,
            heading_text=self.heading_text(node),
            body=renumber_headings(node.body, depth, self.markup, self.max_depth).strip(),
            node_id=node.id,
            children=children,
        )

    def sections(self, graph: ResolvedGraph, nesting: int = 0) -> list[Section]:
        """One section per resolved entry, in order; branches nest their own entries."""
        out = []
        for entry in graph.entries:
            if isinstance(entry, ResolvedGraph):
                children = tuple(self.sections(entry, nesting + 1))
                out.append(self._section(entry.root, nesting, children))
            else:
                out.append(self._section(entry, nesting))
        return out

    def assemble(
        self,
        graph: ResolvedGraph,
        is_true_root: bool = True,
        root_ref: Optional[str] = None,
        ) -> AssembledDocument:
        root = graph.root
        title = self.document_title(root, root_ref)
        return AssembledDocument(
            title=title,
            front_matter=tuple(self.front_matter(root, title)),
            metadata_block=tuple(self.metadata_block(root, title, root_ref)) if is_true_root else None,
            sections=tuple(self.sections(graph)),
        )
