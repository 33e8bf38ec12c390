"""Shared fixtures for crud unit tests"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session

from bookpub.core.models import ContentNode, NodeKind
from bookpub.crud.database import init_db


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine with all tables created; one shared connection."""
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    """Fresh session per test; changes are not committed."""
    with Session(engine) as s:
        yield s


@pytest.fixture(name="nodes")
def nodes_fixture():
    """A small book: an index and two chapter leaves, one with an older revision."""
    def node(node_id, kind, tags, body="", created_at=1):
        return ContentNode(
            id=node_id, owner_key="alice",
            kind=NodeKind.index if kind == 30040 else NodeKind.leaf, kind_number=kind,
            tags=tuple(tags), body=body, created_at=created_at,
        )
    return [
        node("book", 30040, [("d", "genesis"), ("title", "Genesis"), ("a", "30041:alice:gen-1"), ("e", "gen-2")]),
        node("gen-1-old", 30041, [("d", "gen-1"), ("C", "bible"), ("T", "genesis"), ("c", "1"), ("s", "1"), ("v", "kjv")],
             body="old", created_at=1),
        node("gen-1", 30041, [("d", "gen-1"), ("C", "bible"), ("T", "genesis"), ("c", "1"), ("s", "1"), ("v", "kjv")],
             body="In the beginning", created_at=2),
        node("gen-2", 30041, [("d", "gen-2"), ("C", "bible"), ("T", "genesis"), ("c", "2"), ("s", "1"), ("v", "drb")],
             body="Thus the heavens"),
    ]
