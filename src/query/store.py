"""
QueryStore -- session-owned map of query name → live Query.

Charts never hold their base query directly; they look it up here by name
on every access and subscribe to the store for change notifications.  A
query that is replaced or removed therefore reaches every chart that
depends on it.
"""
from __future__ import annotations

from typing import Any, Callable, Sequence

from src.query.query import Query
from src.query.sources import TableSource
from src.core.logging import get_logger
from src.core.utils import get_unique_id

logger = get_logger(__name__)

StoreListener = Callable[[str], None]


class QueryStore:

    def __init__(self, source: TableSource):
        self.source = source
        self._queries: dict[str, Query] = {}
        self._unsubscribers: dict[str, Callable[[], None]] = {}
        self._listeners: list[StoreListener] = []

    def __contains__(self, name: str) -> bool:
        return name in self._queries

    def __len__(self) -> int:
        return len(self._queries)

    @property
    def names(self) -> list[str]:
        return list(self._queries)

    # ── Look-ups ────────────────────────────────────────

    def get(self, name: str | None) -> Query | None:
        if not name:
            return None
        return self._queries.get(name)

    # ── Mutation ────────────────────────────────────────

    def create(
        self,
        name: str,
        operations: Sequence[Any] | None = None,
        title: str = "",
    ) -> Query:
        """Create, register and return a query.  Replaces any query of the same name."""
        query = Query(name=name, source=self.source, title=title, operations=operations)
        self.add(query)
        return query

    def new_query(self, title: str = "") -> Query:
        """An unregistered query sharing this store's source (chart data queries)."""
        return Query(name=get_unique_id(), source=self.source, title=title, operations=[])

    def add(self, query: Query) -> None:
        if query.name in self._queries:
            logger.info("Replacing query %s", query.name)
            self._detach(query.name)
        self._queries[query.name] = query
        self._unsubscribers[query.name] = query.subscribe(lambda q: self._notify(q.name))
        self._notify(query.name)

    def remove(self, name: str) -> Query | None:
        query = self._queries.pop(name, None)
        if query is not None:
            self._detach(name)
            self._notify(name)
        return query

    def _detach(self, name: str) -> None:
        unsubscribe = self._unsubscribers.pop(name, None)
        if unsubscribe:
            unsubscribe()

    # ── Change notification ─────────────────────────────

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Call *listener(name)* whenever the named query changes, is replaced or removed."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, name: str) -> None:
        for listener in list(self._listeners):
            listener(name)

    def close(self) -> None:
        for name in list(self._unsubscribers):
            self._detach(name)
        self._queries.clear()
        self._listeners.clear()
