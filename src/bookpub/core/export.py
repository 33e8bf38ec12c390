"""Export: render AssembledDocuments as AsciiDoc or Markdown, plus sidecar JSON"""

import json
from pathlib import Path

import yaml

from bookpub.core.models import AssembledDocument, Section
from bookpub.core.reference.normalize import normalize_identifier


METADATA_HEADING = "Book Information"


def _flatten(sections: tuple[Section, ...]) -> list[Section]:
    """Depth-first: each section followed by its children."""
    out = []
    for s in sections:
        out.append(s)
        out.extend(_flatten(s.children))
    return out


def build_body(sections: tuple[Section, ...], marker: str) -> str:
    """Headings of marker * heading_depth, each followed by its renumbered body."""
    parts = []
    for s in _flatten(sections):
        parts.append(f"{marker * s.heading_depth} {s.heading_text}")
        if s.body:
            parts.append(s.body)
    return "\n\n".join(parts)


def build_asciidoc(doc: AssembledDocument) -> str:
    """Document header with attributes, the metadata section, then the sections."""
    header = [f"= {doc.title}"]
    header += [f":{k}: {v}" for k, v in doc.front_matter if k != "title"]
    parts = ["\n".join(header)]
    if doc.metadata_block:
        lines = ["[.book-metadata]", f"== {METADATA_HEADING}", ""]
        lines += [f"*{label}:* {value} +" for label, value in doc.metadata_block]
        lines[-1] = lines[-1].removesuffix(" +")
        parts.append("\n".join(lines))
    if body := build_body(doc.sections, "="):
        parts.append(body)
    return "\n\n".join(parts) + "\n"


def build_markdown(doc: AssembledDocument) -> str:
    """YAML front matter, then a title heading, the metadata section and the sections."""
    fm = yaml.safe_dump(dict(doc.front_matter), default_flow_style=False, allow_unicode=True, sort_keys=False)
    parts = [f"---\n{fm}---", f"# {doc.title}"]
    if doc.metadata_block:
        lines = [f"## {METADATA_HEADING}", ""]
        lines += [f"**{label}:** {value}  " for label, value in doc.metadata_block]
        lines[-1] = lines[-1].rstrip()
        parts.append("\n".join(lines))
    if body := build_body(doc.sections, "#"):
        parts.append(body)
    return "\n\n".join(parts) + "\n"


def _section_entry(s: Section) -> dict:
    return {
        "node_id": s.node_id,
        "heading_depth": s.heading_depth,
        "heading_text": s.heading_text,
        "children": [_section_entry(c) for c in s.children],
    }


def build_sidecar(doc: AssembledDocument) -> dict:
    """Minimal sidecar: title, front matter, metadata block and the section tree (no bodies)."""
    return {
        "title": doc.title,
        "front_matter": dict(doc.front_matter),
        "metadata": dict(doc.metadata_block) if doc.metadata_block is not None else None,
        "sections": [_section_entry(s) for s in doc.sections],
    }


def write_document(doc: AssembledDocument, output_dir: Path, fmt: str = "adoc") -> tuple[Path, Path]:
    """Write <slug>.<fmt> + <slug>.json under output_dir. Returns (doc_path, json_path)."""
    if fmt not in ("adoc", "md"):
        raise ValueError(f"Unsupported output format: {fmt!r} (expected 'adoc' or 'md')")
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    slug = normalize_identifier(doc.title) or "document"
    doc_path = output_dir / f"{slug}.{fmt}"
    json_path = output_dir / f"{slug}.json"

    content = build_asciidoc(doc) if fmt == "adoc" else build_markdown(doc)
    doc_path.write_text(content, encoding="utf-8")
    json_path.write_text(json.dumps(build_sidecar(doc), indent=2), encoding="utf-8")
    return doc_path, json_path
