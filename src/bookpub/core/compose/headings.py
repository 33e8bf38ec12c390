"""Heading depth classification and renumbering of headings embedded in node bodies"""

import re

from markdown_it import MarkdownIt

from bookpub.core.models import ContentNode, NodeKind


MIN_DEPTH = 3
MAX_DEPTH = 6

_ADOC_HEADING_RE = re.compile(r"^(={1,6}|#{1,6})([ \t]+)(\S.*)$")
# verbatim blocks whose contents are never headings
_ADOC_VERBATIM_RE = re.compile(r"^(-{4,}|\.{4,}|\+{4,}|/{4,}|`{3,}.*)$")
# blockquote and list markers that may precede a heading on its line
_MD_CONTAINER = r"(?:[ \t]*(?:>|[*+\-]|\d{1,9}[.)])(?=[ \t]|$)[ \t]*)*[ \t]*"
_MD_ATX_RE = re.compile(rf"^({_MD_CONTAINER})#{{1,6}}")
_MD_PREFIX_RE = re.compile(rf"^{_MD_CONTAINER}")


def classify(node: ContentNode) -> int:
    """Nominal heading depth: index 3, leaf with section tags 4, any other leaf 3."""
    if node.kind == NodeKind.leaf and node.values("s"):
        return 4
    return MIN_DEPTH


def target_level(level: int, section_depth: int, max_depth: int = MAX_DEPTH) -> int:
    """Embedded headings sit strictly below the section heading, never past max_depth."""
    return min(max_depth, max(level + 1, section_depth + 1))


def _renumber_asciidoc(lines: list[str], section_depth: int, max_depth: int) -> list[str]:
    out = []
    fence = None
    for line in lines:
        stripped = line.rstrip()
        if fence:
            if stripped == fence:
                fence = None
            out.append(line)
            continue
        if _ADOC_VERBATIM_RE.match(stripped):
            # ``` fences close on a bare ```; the others close on an identical line
            fence = "```" if stripped.startswith("```") else stripped
            out.append(line)
            continue
        m = _ADOC_HEADING_RE.match(line)
        if m:
            marker = m.group(1)
            level = target_level(len(marker), section_depth, max_depth)
            line = f"{marker[0] * level}{m.group(2)}{m.group(3)}"
        out.append(line)
    return out


def _make_parser() -> MarkdownIt:
    return MarkdownIt("commonmark")


def _renumber_markdown(lines: list[str], section_depth: int, max_depth: int) -> list[str]:
    """Rewrite ATX and setext headings located by markdown-it; code blocks are untouched.

    Only the heading marker changes, so blockquote and list prefixes survive.
    A setext heading becomes an ATX heading on its first line and its underline is dropped.
    """
    tokens = _make_parser().parse("\n".join(lines))
    replacements: dict[int, tuple[int, str]] = {}    # start line -> (end line, new text)
    for i, tok in enumerate(tokens):
        if tok.type != "heading_open" or not tok.map:
            continue
        start, end = tok.map
        level = target_level(int(tok.tag[1:]), section_depth, max_depth)
        if tok.markup.startswith("#"):
            new = _MD_ATX_RE.sub(lambda m: m.group(1) + "#" * level, lines[start], count=1)
        else:
            prefix = _MD_PREFIX_RE.match(lines[start]).group(0)
            new = f"{prefix}{'#' * level} {tokens[i + 1].content.replace(chr(10), ' ')}"
        replacements[start] = (end, new)

    out = []
    i = 0
    while i < len(lines):
        if i in replacements:
            end, new = replacements[i]
            out.append(new)
            i = max(end, i + 1)
        else:
            out.append(lines[i])
            i += 1
    return out


def renumber_headings(
    body: str,
    section_depth: int,
    markup: str = "asciidoc",
    max_depth: int = MAX_DEPTH,
    ) -> str:
    """Shift every embedded heading of level L to min(max_depth, max(L + 1, section_depth + 1))."""
    if not body:
        return body
    lines = body.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    if markup == "markdown":
        lines = _renumber_markdown(lines, section_depth, max_depth)
    else:
        lines = _renumber_asciidoc(lines, section_depth, max_depth)
    return "\n".join(lines)
