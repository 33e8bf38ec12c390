"""Content node persistence: upsert, id/coordinate/reference lookup, file import"""

import json
from pathlib import Path
from typing import Any, Iterable

import yaml
from pydantic import ValidationError
from sqlmodel import Session, select

from bookpub.core.models import BookReference, ContentNode, Coordinate, NodeKind
from bookpub.core.reference.normalize import normalize_identifier
from bookpub.crud.models import NodeRow


def row_to_node(row: NodeRow, index_kinds: Iterable[int] = (30040,)) -> ContentNode:
    return ContentNode(
        id=row.id,
        owner_key=row.owner_key,
        kind=NodeKind.index if row.kind in set(index_kinds) else NodeKind.leaf,
        kind_number=row.kind,
        tags=tuple((str(t[0]), str(t[1])) for t in row.tags or [] if len(t) >= 2),
        body=row.body or "",
        created_at=row.created_at,
    )


def node_from_dict(data: dict[str, Any], index_kinds: Iterable[int] = (30040,)) -> ContentNode:
    """Build a node from an event-shaped dict.

    Accepts both wire names (pubkey, content) and model names (owner_key, body).
    Tags are [key, value, ...] lists; anything after the value (relay hints) is dropped.
    """
    kind = int(data["kind"])
    tags = []
    for tag in data.get("tags") or []:
        if not isinstance(tag, (list, tuple)) or len(tag) < 2:
            raise ValueError(f"tag must be a [key, value] list, got {tag!r}")
        tags.append((str(tag[0]), str(tag[1])))
    return ContentNode(
        id=str(data["id"]),
        owner_key=str(data.get("owner_key") or data["pubkey"]),
        kind=NodeKind.index if kind in set(index_kinds) else NodeKind.leaf,
        kind_number=kind,
        tags=tuple(tags),
        body=data.get("body", data.get("content")) or "",
        created_at=int(data.get("created_at") or 0),
    )


def load_nodes_file(path: Path, index_kinds: Iterable[int] = (30040,)) -> list[ContentNode]:
    """Read a JSON (.json) or YAML (anything else) list of node dicts."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ValueError(f"Invalid node file {path}: {e}") from e
    if not isinstance(data, list):
        raise ValueError(f"Invalid node file {path}: expected a list of nodes")

    nodes = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise ValueError(f"Invalid node file {path}: entry {i} is not a mapping")
        try:
            nodes.append(node_from_dict(item, index_kinds))
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise ValueError(f"Invalid node file {path}: entry {i}: {e}") from e
    return nodes


def get_node(session: Session, node_id: str, index_kinds: Iterable[int] = (30040,)) -> ContentNode | None:
    """Return the node with the given id, or None if not found."""
    row = session.get(NodeRow, node_id)
    return row_to_node(row, index_kinds) if row else None


def get_by_coordinate(
    session: Session,
    coordinate: Coordinate,
    index_kinds: Iterable[int] = (30040,),
    ) -> ContentNode | None:
    """Return the newest node at a coordinate, or None if not found."""
    row = session.exec(
        select(NodeRow)
        .where(NodeRow.kind == coordinate.kind_number)
        .where(NodeRow.owner_key == coordinate.owner_key)
        .where(NodeRow.d == coordinate.d)
        .order_by(NodeRow.created_at.desc())
    ).first()
    return row_to_node(row, index_kinds) if row else None


def _matches(node: ContentNode, ref: BookReference) -> bool:
    def norm(key: str) -> set[str]:
        return {normalize_identifier(v) for v in node.values(key)}

    if ref.collection and ref.collection not in norm("C"):
        return False
    if ref.title not in norm("T"):
        return False
    if ref.chapter and ref.chapter not in norm("c"):
        return False
    if ref.sections and not norm("s") & set(ref.sections):
        return False
    if ref.versions and not norm("v") & set(ref.versions):
        return False
    return True


def find_by_reference(
    session: Session,
    ref: BookReference,
    index_kinds: Iterable[int] = (30040,),
    ) -> list[ContentNode]:
    """Nodes whose C/T/c tags match the reference; sections and versions match any-of.

    Rows are filtered in Python; JSON tag columns are not portable to index.
    """
    rows = session.exec(select(NodeRow).order_by(NodeRow.created_at, NodeRow.id)).all()
    nodes = (row_to_node(r, index_kinds) for r in rows)
    return [n for n in nodes if _matches(n, ref)]


def upsert_node(session: Session, node: ContentNode) -> tuple[NodeRow, str]:
    """Insert or replace a node by id.

    Returns (row, status) where status is 'created', 'updated', or 'unchanged'.
    Flushes but does not commit; caller controls the transaction.
    """
    if node.kind_number is None:
        raise ValueError(f"Node {node.id} has no kind number and cannot be stored")
    tags = [list(t) for t in node.tags]

    row = session.get(NodeRow, node.id)
    if row:
        if (row.kind, row.owner_key, row.tags, row.body, row.created_at) == (
            node.kind_number, node.owner_key, tags, node.body, node.created_at
        ):
            return row, "unchanged"
        row.kind = node.kind_number
        row.owner_key = node.owner_key
        row.d = node.d
        row.tags = tags
        row.body = node.body
        row.created_at = node.created_at
        session.add(row)
        session.flush()
        return row, "updated"

    row = NodeRow(
        id=node.id,
        kind=node.kind_number,
        owner_key=node.owner_key,
        d=node.d,
        tags=tags,
        body=node.body,
        created_at=node.created_at,
    )
    session.add(row)
    session.flush()
    return row, "created"
