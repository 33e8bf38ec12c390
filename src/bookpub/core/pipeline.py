"""Pipeline step functions: load, lookup and assemble orchestration"""

import logging
from pathlib import Path

from sqlmodel import Session

from bookpub.config import Settings
from bookpub.core.compose.compositor import DocumentCompositor
from bookpub.core.export import write_document
from bookpub.core.graph.resolver import GraphResolver
from bookpub.core.models import AssembledDocument, BookReference, ContentNode, Coordinate
from bookpub.core.reference.parser import ReferenceParser
from bookpub.crud.nodes import find_by_reference, get_by_coordinate, get_node, load_nodes_file, upsert_node
from bookpub.crud.sql_store import SqlContentStore


logger = logging.getLogger(__name__)


def run_load(engine, path: Path, index_kinds: tuple[int, ...] = (30040,)) -> dict[str, int]:
    """Import a YAML/JSON node file into the database. Returns per-status counts."""
    nodes = load_nodes_file(Path(path), index_kinds)
    counts = {"created": 0, "updated": 0, "unchanged": 0}
    with Session(engine) as session:
        for node in nodes:
            _, status = upsert_node(session, node)
            counts[status] += 1
        session.commit()
    logger.info("Loaded %d node(s) from %s", len(nodes), path)
    return counts


def find_root(engine, root: str, index_kinds: tuple[int, ...] = (30040,)) -> ContentNode | None:
    """Look a root up by coordinate ('kind:owner:d') or, failing that, by id."""
    with Session(engine) as session:
        coord = Coordinate.parse(root)
        if coord is not None:
            node = get_by_coordinate(session, coord, index_kinds)
            if node is not None:
                return node
        return get_node(session, root, index_kinds)


def assemble_root(engine, root: str, settings: Settings) -> AssembledDocument:
    """Resolve and assemble root; raises LookupError when root is not stored."""
    index_kinds = (settings.index_kind,)
    node = find_root(engine, root, index_kinds)
    if node is None:
        raise LookupError(f"Root node not found: {root}")
    resolver = GraphResolver.from_settings(SqlContentStore(engine, index_kinds), settings)
    graph = resolver.resolve(node)
    return DocumentCompositor.from_settings(settings).assemble(graph, is_true_root=True, root_ref=root)


def run_assemble(
    engine,
    root: str,
    settings: Settings,
    output_dir: Path,
    fmt: str,
    ) -> tuple[AssembledDocument, tuple[Path, Path]]:
    """Assemble root and write the document plus sidecar JSON to output_dir."""
    doc = assemble_root(engine, root, settings)
    return doc, write_document(doc, Path(output_dir), fmt)


def run_lookup(
    engine,
    macro: str,
    parser: ReferenceParser,
    index_kinds: tuple[int, ...] = (30040,),
    ) -> list[tuple[BookReference, list[ContentNode]]]:
    """Parse a macro and pair every reference with the stored nodes it matches."""
    refs = parser.parse_wikilink(macro)
    with Session(engine) as session:
        return [(ref, find_by_reference(session, ref, index_kinds)) for ref in refs]
