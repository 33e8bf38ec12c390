from typing import Iterable

from sqlmodel import Session, select

from bookpub.core.graph.store import ContentStore, IdSelector, Selector
from bookpub.core.models import ContentNode
from bookpub.crud.models import NodeRow
from bookpub.crud.nodes import row_to_node


class SqlContentStore(ContentStore):
    """ContentStore over the local nodes table; one session per query so batches may run concurrently."""

    def __init__(self, engine, index_kinds: Iterable[int] = (30040,)):
        self.engine = engine
        self.index_kinds = tuple(index_kinds)

    def query(self, selector: Selector) -> list[ContentNode]:
        with Session(self.engine) as session:
            if isinstance(selector, IdSelector):
                if not selector.ids:
                    return []
                rows = session.exec(select(NodeRow).where(NodeRow.id.in_(selector.ids))).all()
            else:
                rows = []
                for coord in selector.coordinates:
                    rows.extend(session.exec(
                        select(NodeRow)
                        .where(NodeRow.kind == coord.kind_number)
                        .where(NodeRow.owner_key == coord.owner_key)
                        .where(NodeRow.d == coord.d)
                    ).all())
            return [row_to_node(r, self.index_kinds) for r in rows]
