"""Recursive, cycle-safe resolution of an index node into an ordered content graph"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, Union

from bookpub.core.graph.store import (
    ContentStore, CoordinateSelector, IdSelector, Selector, newest_by_coordinate,
)
from bookpub.core.models import ContentNode, Coordinate, NodeKind, ResolvedGraph


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Edge:
    position: int                       # index of the originating tag in root.tags
    target: Union[Coordinate, str]      # coordinate edge ('a') or id edge ('e')


class GraphResolver:
    """Resolve a root's 'a' (coordinate) and 'e' (id) edges depth-first.

    Each recursive call receives its own frozenset of visited ids, so sibling
    branches never share cycle-detection state. Missing nodes, cycles, malformed
    coordinates and store failures all degrade to smaller results; nothing raises.
    """

    def __init__(
        self,
        store: ContentStore,
        index_kinds: Iterable[int] = (30040,),
        leaf_kinds: Iterable[int] = (30041,),
        max_workers: int = 1,
        ):
        self.store = store
        self.index_kinds = frozenset(index_kinds)
        self.leaf_kinds = frozenset(leaf_kinds)
        self.max_workers = max(1, max_workers)

    @classmethod
    def from_settings(cls, store: ContentStore, settings) -> GraphResolver:
        return cls(
            store,
            index_kinds=(settings.index_kind,),
            leaf_kinds=(settings.leaf_kind,),
            max_workers=settings.max_workers,
        )

    # --- edges ---

    def _edges(self, root: ContentNode, visited: frozenset[str]) -> tuple[list[_Edge], list[_Edge]]:
        """Partition root's tags into coordinate and id edges, minus self/visited targets."""
        own = root.coordinate
        coord_edges, id_edges = [], []
        for position, (key, value) in enumerate(root.tags):
            if key == "a":
                coord = Coordinate.parse(value)
                if coord is None:
                    logger.debug("Ignoring malformed coordinate %r on %s", value, root.id)
                elif coord == own:
                    logger.debug("Self reference %s on %s skipped", coord, root.id)
                elif coord.kind_number not in self.index_kinds | self.leaf_kinds:
                    logger.debug("Ignoring coordinate %s of unsupported kind on %s", coord, root.id)
                else:
                    coord_edges.append(_Edge(position, coord))
            elif key == "e" and value:
                if value == root.id:
                    logger.debug("Self reference on %s skipped", root.id)
                elif value in visited:
                    logger.debug("Circular reference %s -> %s skipped", root.id, value)
                else:
                    id_edges.append(_Edge(position, value))
        return coord_edges, id_edges

    # --- store access ---

    def _safe_query(self, selector: Selector) -> list[ContentNode]:
        try:
            return list(self.store.query(selector))
        except Exception:
            logger.warning("Content store query failed for %s; treating as empty", selector, exc_info=True)
            return []

    def _query_coordinates(self, coords: tuple[Coordinate, ...]) -> dict[Coordinate, ContentNode]:
        found = newest_by_coordinate(self._safe_query(CoordinateSelector(coords)))
        for coord in coords:
            if coord in found:
                continue
            retry = newest_by_coordinate(self._safe_query(CoordinateSelector((coord,))))
            if coord in retry:
                found[coord] = retry[coord]
            else:
                logger.warning("Node %s not found after retry; dropping edge", coord)
        return {c: found[c] for c in coords if c in found}

    def _query_ids(self, ids: tuple[str, ...]) -> dict[str, ContentNode]:
        found = {n.id: n for n in self._safe_query(IdSelector(ids))}
        for node_id in ids:
            if node_id in found:
                continue
            retry = {n.id: n for n in self._safe_query(IdSelector((node_id,)))}
            if node_id in retry:
                found[node_id] = retry[node_id]
            else:
                logger.warning("Node %s not found after retry; dropping edge", node_id)
        return {i: found[i] for i in ids if i in found}

    def _fetch(
        self,
        coord_edges: list[_Edge],
        id_edges: list[_Edge],
        ) -> tuple[dict[Coordinate, ContentNode], dict[str, ContentNode]]:
        """Batch-query coordinate edges per declared kind plus one id batch.

        Batches are independent reads, so with max_workers > 1 they run concurrently.
        """
        by_kind: dict[int, list[Coordinate]] = {}
        for edge in coord_edges:
            coords = by_kind.setdefault(edge.target.kind_number, [])
            if edge.target not in coords:
                coords.append(edge.target)
        ids = tuple(dict.fromkeys(e.target for e in id_edges))

        jobs = [(self._query_coordinates, tuple(c)) for c in by_kind.values()]
        if ids:
            jobs.append((self._query_ids, ids))

        if self.max_workers > 1 and len(jobs) > 1:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(jobs))) as pool:
                results = list(pool.map(lambda job: job[0](job[1]), jobs))
        else:
            results = [fn(arg) for fn, arg in jobs]

        by_id: dict[str, ContentNode] = results.pop() if ids else {}
        by_coord: dict[Coordinate, ContentNode] = {}
        for result in results:
            by_coord.update(result)
        return by_coord, by_id

    # --- resolution ---

    def resolve(self, root: ContentNode, visited: frozenset[str] = frozenset()) -> ResolvedGraph:
        """Resolve root into branches and leaves ordered by the position of their edge tags."""
        if root.id in visited:
            logger.debug("Circular reference to %s; returning empty sub-graph", root.id)
            return ResolvedGraph(root=root)
        visited = visited | {root.id}

        coord_edges, id_edges = self._edges(root, visited)
        by_coord, by_id = self._fetch(coord_edges, id_edges)

        # coordinate edges are discovered first; an id edge only claims a node not yet claimed
        claimed: dict[str, tuple[int, ContentNode]] = {}
        for edge in coord_edges:
            node = by_coord.get(edge.target)
            if node is not None and node.id not in claimed:
                claimed[node.id] = (edge.position, node)
        for edge in id_edges:
            node = by_id.get(edge.target)
            if node is not None and node.id not in claimed:
                claimed[node.id] = (edge.position, node)

        entries: list[Union[ResolvedGraph, ContentNode]] = []
        for _, node in sorted(claimed.values(), key=lambda item: item[0]):
            if node.id in visited:
                logger.debug("Circular reference %s -> %s skipped", root.id, node.id)
                continue
            if node.kind == NodeKind.index:
                entries.append(self.resolve(node, visited))
            else:
                entries.append(node)
        return ResolvedGraph(root=root, entries=tuple(entries))
