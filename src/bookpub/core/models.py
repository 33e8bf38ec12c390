"""Data models shared by the reference parser, graph resolver and compositor"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


Tag = tuple[str, str]


class NodeKind(str, Enum):
    """Restrict content nodes to containers (index) and prose-bearing terminals (leaf)"""
    index = "index"
    leaf = "leaf"


class BookReference(BaseModel):
    """One normalized reference parsed out of a [[book::...]] macro."""
    model_config = ConfigDict(frozen=True)

    collection: Optional[str] = None
    title: str
    chapter: Optional[str] = None
    sections: tuple[str, ...] = ()     # duplicates permitted, order significant
    versions: tuple[str, ...] = ()


class ContentNode(BaseModel):
    """A published content node: an index that aggregates other nodes, or a leaf."""
    model_config = ConfigDict(frozen=True)

    id: str
    owner_key: str
    kind: NodeKind
    kind_number: Optional[int] = None   # wire kind (e.g. 30040); needed to address by coordinate
    tags: tuple[Tag, ...] = ()
    body: str = ""
    created_at: int = 0

    def first(self, key: str) -> Optional[str]:
        """Value of the first tag named key, or None."""
        for k, v in self.tags:
            if k == key:
                return v
        return None

    def values(self, key: str) -> list[str]:
        """All values of tags named key, in declaration order."""
        return [v for k, v in self.tags if k == key]

    @property
    def d(self) -> Optional[str]:
        return self.first("d")

    @property
    def coordinate(self) -> Optional[Coordinate]:
        if self.kind_number is None or not self.d:
            return None
        return Coordinate(self.kind_number, self.owner_key, self.d)


@dataclass(frozen=True)
class Coordinate:
    """Address of a replaceable node: kind number, owner key and d identifier."""
    kind_number: int
    owner_key: str
    d: str

    @classmethod
    def parse(cls, text: str) -> Optional[Coordinate]:
        """Parse 'kind:ownerKey:d'; incomplete or non-numeric triples yield None."""
        parts = text.split(":", 2)
        if len(parts) != 3 or not all(p.strip() for p in parts):
            return None
        kind, owner, d = (p.strip() for p in parts)
        if not kind.isdigit():
            return None
        return cls(int(kind), owner, d)

    def __str__(self) -> str:
        return f"{self.kind_number}:{self.owner_key}:{self.d}"


@dataclass(frozen=True)
class ResolvedGraph:
    """Resolution result: root plus its resolved entries in declaration order; not persisted.

    Entries are either nested ResolvedGraphs (branches) or ContentNodes (leaves).
    """
    root: ContentNode
    entries: tuple[Union[ResolvedGraph, ContentNode], ...] = ()

    @property
    def branches(self) -> tuple[ResolvedGraph, ...]:
        return tuple(e for e in self.entries if isinstance(e, ResolvedGraph))

    @property
    def leaves(self) -> tuple[ContentNode, ...]:
        return tuple(e for e in self.entries if isinstance(e, ContentNode))

    def node_ids(self) -> Iterator[str]:
        """Yield the id of every transitive branch and leaf (root excluded)."""
        for entry in self.entries:
            if isinstance(entry, ResolvedGraph):
                yield entry.root.id
                yield from entry.node_ids()
            else:
                yield entry.id


class Section(BaseModel):
    """One heading plus body in an assembled document; branches carry nested children."""
    model_config = ConfigDict(frozen=True)

    heading_depth: int = Field(..., ge=3, le=6)
    heading_text: str
    body: str = ""
    node_id: Optional[str] = None
    children: tuple[Section, ...] = ()


class AssembledDocument(BaseModel):
    """Public assembly contract: consumed by the AsciiDoc / Markdown emitters."""
    model_config = ConfigDict(frozen=True)

    title: str
    front_matter: tuple[Tag, ...] = ()
    metadata_block: Optional[tuple[Tag, ...]] = None   # only on the true root
    sections: tuple[Section, ...] = ()
