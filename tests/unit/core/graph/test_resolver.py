"""Unit tests for core/graph/resolver.py"""

import logging

import pytest

from bookpub.core.graph.resolver import GraphResolver
from bookpub.core.graph.store import ContentStore, CoordinateSelector, IdSelector, MemoryStore
from bookpub.core.models import ResolvedGraph


INDEX, LEAF = 30040, 30041


class CountingStore(MemoryStore):
    """MemoryStore that records every selector it is asked for."""

    def __init__(self, nodes):
        super().__init__()
        for n in nodes:
            self.add(n)
        self.calls = []

    def query(self, selector):
        self.calls.append(selector)
        return super().query(selector)


class ShortBatchStore(CountingStore):
    """Drops everything but the first hit from multi-item batches, like a truncating relay."""

    def query(self, selector):
        found = super().query(selector)
        size = len(selector.ids if isinstance(selector, IdSelector) else selector.coordinates)
        return found[:1] if size > 1 else found


class BrokenStore(ContentStore):
    def query(self, selector):
        raise ConnectionError("store offline")


def _ids(entries):
    return [e.root.id if isinstance(e, ResolvedGraph) else e.id for e in entries]


# --- cycles & self references ---

def test_two_node_cycle_by_id_terminates(make_node):
    a = make_node("A", INDEX, [("d", "a"), ("e", "B")])
    b = make_node("B", INDEX, [("d", "b"), ("e", "A")])
    graph = GraphResolver(MemoryStore.from_nodes([a, b])).resolve(a)

    assert _ids(graph.entries) == ["B"]
    sub = graph.branches[0]
    assert sub.root == b
    assert sub.entries == ()


def test_two_node_cycle_by_coordinate_terminates(make_node, coord):
    a = make_node("A", INDEX, [("d", "a"), ("a", coord(INDEX, "b"))])
    b = make_node("B", INDEX, [("d", "b"), ("a", coord(INDEX, "a"))])
    graph = GraphResolver(MemoryStore.from_nodes([a, b])).resolve(a)

    assert _ids(graph.entries) == ["B"]
    assert graph.branches[0].entries == ()


def test_self_reference_excluded(make_node, coord):
    a = make_node("A", INDEX, [("d", "a"), ("e", "A"), ("a", coord(INDEX, "a"))])
    store = CountingStore([a])
    graph = GraphResolver(store).resolve(a)

    assert graph.entries == ()
    assert "A" not in set(graph.node_ids())
    assert store.calls == []


def test_root_never_in_own_entries(make_node, coord):
    a = make_node("A", INDEX, [("d", "a"), ("e", "B"), ("e", "C")])
    b = make_node("B", INDEX, [("d", "b"), ("e", "A"), ("e", "C")])
    c = make_node("C", INDEX, [("d", "c"), ("a", coord(INDEX, "a")), ("a", coord(INDEX, "b"))])
    graph = GraphResolver(MemoryStore.from_nodes([a, b, c])).resolve(a)
    assert "A" not in set(graph.node_ids())


def test_visited_is_not_shared_between_siblings(make_node):
    """A node reachable from two siblings appears under both."""
    a = make_node("A", INDEX, [("d", "a"), ("e", "B"), ("e", "C")])
    b = make_node("B", INDEX, [("d", "b"), ("e", "D")])
    c = make_node("C", INDEX, [("d", "c"), ("e", "D")])
    d = make_node("D", LEAF, [("d", "d")])
    graph = GraphResolver(MemoryStore.from_nodes([a, b, c, d])).resolve(a)

    assert [_ids(br.entries) for br in graph.branches] == [["D"], ["D"]]


# --- ordering & dedup ---

def test_entries_follow_tag_order_across_edge_types(make_node, coord):
    root = make_node("R", INDEX, [
        ("d", "root"), ("e", "x"), ("a", coord(LEAF, "y")), ("e", "z"), ("a", coord(INDEX, "sub")),
    ])
    x = make_node("x", LEAF, [("d", "x")])
    y = make_node("y", LEAF, [("d", "y")])
    z = make_node("z", LEAF, [("d", "z")])
    sub = make_node("sub", INDEX, [("d", "sub")])
    graph = GraphResolver(MemoryStore.from_nodes([root, x, y, z, sub])).resolve(root)

    assert _ids(graph.entries) == ["x", "y", "z", "sub"]
    assert [n.id for n in graph.leaves] == ["x", "y", "z"]
    assert [g.root.id for g in graph.branches] == ["sub"]


def test_duplicate_edges_collapse_to_first_discovered(make_node, coord):
    """Coordinate edges are discovered before id edges; the node keeps its coordinate position."""
    root = make_node("R", INDEX, [("d", "root"), ("e", "x"), ("e", "y"), ("a", coord(LEAF, "x"))])
    x = make_node("x", LEAF, [("d", "x")])
    y = make_node("y", LEAF, [("d", "y")])
    graph = GraphResolver(MemoryStore.from_nodes([root, x, y])).resolve(root)
    assert _ids(graph.entries) == ["y", "x"]


def test_newest_node_wins_per_coordinate(make_node, coord):
    root = make_node("R", INDEX, [("d", "root"), ("a", coord(LEAF, "ch"))])
    old = make_node("old", LEAF, [("d", "ch")], body="v1", created_at=1)
    new = make_node("new", LEAF, [("d", "ch")], body="v2", created_at=2)
    graph = GraphResolver(MemoryStore.from_nodes([root, old, new])).resolve(root)
    assert graph.leaves[0].body == "v2"


# --- degradation ---

def test_malformed_and_unsupported_coordinates_ignored(make_node, coord):
    root = make_node("R", INDEX, [
        ("d", "root"), ("a", "30041:alice"), ("a", "abc:alice:x"), ("a", coord(1, "note")), ("a", coord(LEAF, "ok")),
    ])
    ok = make_node("ok", LEAF, [("d", "ok")])
    note = make_node("note", 1, [("d", "note")])
    graph = GraphResolver(MemoryStore.from_nodes([root, ok, note])).resolve(root)
    assert _ids(graph.entries) == ["ok"]


def test_missing_node_is_retried_individually_then_dropped(make_node, caplog):
    root = make_node("R", INDEX, [("d", "root"), ("e", "x"), ("e", "gone")])
    x = make_node("x", LEAF, [("d", "x")])
    store = CountingStore([root, x])
    with caplog.at_level(logging.WARNING, logger="bookpub.core.graph.resolver"):
        graph = GraphResolver(store).resolve(root)

    assert _ids(graph.entries) == ["x"]
    assert store.calls == [IdSelector(("x", "gone")), IdSelector(("gone",))]
    assert "gone" in caplog.text


def test_short_batches_recovered_by_retry(make_node, coord):
    root = make_node("R", INDEX, [("d", "root")] + [("a", coord(LEAF, f"ch-{i}")) for i in range(3)])
    leaves = [make_node(f"n{i}", LEAF, [("d", f"ch-{i}")]) for i in range(3)]
    store = ShortBatchStore([root, *leaves])
    graph = GraphResolver(store).resolve(root)

    assert _ids(graph.entries) == ["n0", "n1", "n2"]
    assert sum(isinstance(s, CoordinateSelector) and len(s.coordinates) == 1 for s in store.calls) == 2


def test_store_failure_degrades_to_empty(make_node, caplog):
    root = make_node("R", INDEX, [("d", "root"), ("e", "x")])
    with caplog.at_level(logging.WARNING, logger="bookpub.core.graph.resolver"):
        graph = GraphResolver(BrokenStore()).resolve(root)
    assert graph == ResolvedGraph(root=root)
    assert "treating as empty" in caplog.text


def test_leaf_root_resolves_to_empty_graph(make_node):
    leaf = make_node("L", LEAF, [("d", "l")], body="text")
    assert GraphResolver(MemoryStore()).resolve(leaf) == ResolvedGraph(root=leaf)


# --- batching & concurrency ---

def test_coordinates_batched_per_kind(make_node, coord):
    root = make_node("R", INDEX, [
        ("d", "root"), ("a", coord(LEAF, "a")), ("a", coord(INDEX, "b")), ("a", coord(LEAF, "c")),
    ])
    nodes = [
        root,
        make_node("a", LEAF, [("d", "a")]),
        make_node("b", INDEX, [("d", "b")]),
        make_node("c", LEAF, [("d", "c")]),
    ]
    store = CountingStore(nodes)
    GraphResolver(store).resolve(root)
    first_level = [s for s in store.calls if isinstance(s, CoordinateSelector)][:2]
    assert sorted(len(s.coordinates) for s in first_level) == [1, 2]


@pytest.mark.parametrize("workers", [2, 8])
def test_concurrent_resolution_matches_sequential(make_node, coord, workers):
    root = make_node("R", INDEX, [
        ("d", "root"), ("e", "x"), ("a", coord(INDEX, "part")), ("a", coord(LEAF, "y")),
    ])
    part = make_node("part", INDEX, [("d", "part"), ("e", "z"), ("a", coord(LEAF, "y"))])
    nodes = [
        root, part,
        make_node("x", LEAF, [("d", "x")]),
        make_node("y", LEAF, [("d", "y")]),
        make_node("z", LEAF, [("d", "z")]),
    ]
    store = MemoryStore.from_nodes(nodes)
    sequential = GraphResolver(store).resolve(root)
    concurrent = GraphResolver(store, max_workers=workers).resolve(root)
    assert concurrent == sequential
    assert _ids(concurrent.entries) == ["x", "part", "y"]


def test_from_settings_uses_configured_kinds():
    class S:
        index_kind, leaf_kind, max_workers = 1, 2, 3
    resolver = GraphResolver.from_settings(MemoryStore(), S())
    assert (resolver.index_kinds, resolver.leaf_kinds, resolver.max_workers) == ({1}, {2}, 3)
