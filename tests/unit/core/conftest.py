"""Shared fixtures for core unit tests"""

import pytest

from bookpub.core.models import ContentNode, NodeKind
from bookpub.core.reference.parser import ReferenceParser
from bookpub.core.reference.titles import CanonicalNameResolver


INDEX = 30040
LEAF = 30041
OWNER = "alice"


def _make_node(node_id, kind=LEAF, tags=(), body="", created_at=0, owner=OWNER):
    return ContentNode(
        id=node_id,
        owner_key=owner,
        kind=NodeKind.index if kind == INDEX else NodeKind.leaf,
        kind_number=kind,
        tags=tuple(tags),
        body=body,
        created_at=created_at,
    )


@pytest.fixture(name="make_node")
def make_node_fixture():
    """Factory: make_node(id, kind=30041, tags=(), body='', created_at=0, owner='alice')."""
    return _make_node


@pytest.fixture(name="coord")
def coord_fixture():
    """Factory: coord(kind, d) -> 'kind:alice:d'."""
    return lambda kind, d, owner=OWNER: f"{kind}:{owner}:{d}"


@pytest.fixture(scope="session", name="resolver")
def resolver_fixture():
    """Title resolver over the bundled table."""
    return CanonicalNameResolver.from_file()


@pytest.fixture(name="parser")
def parser_fixture(resolver):
    return ReferenceParser(resolver)
