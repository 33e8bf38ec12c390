"""Unit tests for crud/sql_store.py"""

from bookpub.core.graph.resolver import GraphResolver
from bookpub.core.graph.store import CoordinateSelector, IdSelector
from bookpub.core.models import Coordinate
from bookpub.crud.nodes import upsert_node
from bookpub.crud.sql_store import SqlContentStore


def _store(session, engine, nodes):
    for n in nodes:
        upsert_node(session, n)
    session.commit()
    return SqlContentStore(engine)


def test_query_by_ids(session, engine, nodes):
    store = _store(session, engine, nodes)
    found = store.query(IdSelector(("gen-2", "missing", "book")))
    assert sorted(n.id for n in found) == ["book", "gen-2"]
    assert store.query(IdSelector(())) == []


def test_query_by_coordinates_returns_all_revisions(session, engine, nodes):
    store = _store(session, engine, nodes)
    found = store.query(CoordinateSelector((Coordinate(30041, "alice", "gen-1"),)))
    assert sorted(n.id for n in found) == ["gen-1", "gen-1-old"]


def test_resolver_over_sql_store(session, engine, nodes):
    store = _store(session, engine, nodes)
    graph = GraphResolver(store).resolve(nodes[0])
    assert [n.id for n in graph.leaves] == ["gen-1", "gen-2"]
    assert graph.leaves[0].body == "In the beginning"
