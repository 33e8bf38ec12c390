"""Content store collaborator: selector types, abstract store and an in-memory store"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, Union

from bookpub.core.models import ContentNode, Coordinate


@dataclass(frozen=True)
class CoordinateSelector:
    coordinates: tuple[Coordinate, ...]


@dataclass(frozen=True)
class IdSelector:
    ids: tuple[str, ...]


Selector = Union[CoordinateSelector, IdSelector]


def newest_by_coordinate(nodes: Iterable[ContentNode]) -> dict[Coordinate, ContentNode]:
    """Collapse replaceable nodes: the newest node per coordinate wins, ties keep the first."""
    newest: dict[Coordinate, ContentNode] = {}
    for node in nodes:
        coord = node.coordinate
        if coord is None:
            continue
        existing = newest.get(coord)
        if existing is None or node.created_at > existing.created_at:
            newest[coord] = node
    return newest


class ContentStore(ABC):
    """Best-effort node lookup. May return a strict subset; never raises for 'not found'."""

    @abstractmethod
    def query(self, selector: Selector) -> list[ContentNode]:
        raise NotImplementedError


@dataclass
class MemoryStore(ContentStore):
    _nodes: dict[str, ContentNode] = field(default_factory=dict)

    @classmethod
    def from_nodes(cls, nodes: Iterable[ContentNode]) -> MemoryStore:
        store = cls()
        for node in nodes:
            store.add(node)
        return store

    def add(self, node: ContentNode) -> ContentNode:
        self._nodes[node.id] = node
        return node

    def query(self, selector: Selector) -> list[ContentNode]:
        if isinstance(selector, IdSelector):
            return [self._nodes[i] for i in selector.ids if i in self._nodes]
        newest = newest_by_coordinate(self._nodes.values())
        return [newest[c] for c in selector.coordinates if c in newest]
