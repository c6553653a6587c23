"""
Document stores for cards and calendar events.

A store holds one collection of documents, upserts them by id and pushes a
full ``Snapshot`` to every subscriber after each committed write, the way a
hosted document database's change listener would. Two backends:

* ``MemoryStore``: a dict of documents, used by tests and the default app.
* ``SqlStore``: one SQLAlchemy table per collection. The engine is
  synchronous, so writes run on a worker thread.
"""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Tuple, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from .db import Base, CardRow, EventRow
from .errors import PersistenceError
from .models import CalendarEvent, Card

logger = logging.getLogger(__name__)

T = TypeVar("T", Card, CalendarEvent)


@dataclass(frozen=True)
class Snapshot(Generic[T]):
    items: Tuple[T, ...]
    revision: int


Listener = Callable[[Snapshot], None]


class DocumentStore(ABC, Generic[T]):
    """Subscribe/persist contract shared by all backends."""

    def __init__(self, model: Type[T]) -> None:
        self.model = model
        self.revision = 0
        self._listeners: List[Listener] = []

    # === Subscription ===

    async def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and hand it the current snapshot right away.

        The initial read goes through ``_run`` like any other store access.
        A write landing during it reaches ``listener`` as a newer revision.
        """
        self._listeners.append(listener)
        revision = self.revision
        documents = await self._run(self._read)
        listener(Snapshot(tuple(self._decode(documents)), revision))

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, documents: List[Dict[str, Any]]) -> None:
        self.revision += 1
        snapshot = Snapshot(tuple(self._decode(documents)), self.revision)
        for listener in list(self._listeners):
            listener(snapshot)

    def _decode(self, documents: Iterable[Dict[str, Any]]) -> List[T]:
        return [self.model.from_document(doc) for doc in documents]

    # === Writes ===

    async def persist_all(self, items: Iterable[T]) -> None:
        """Upsert every item in one batch; all of them land or none do."""
        documents = [item.to_document() for item in items]
        await self._commit(lambda: self._write(documents))

    async def merge(self, item_id: str, fields: Dict[str, Any]) -> None:
        """Overwrite only ``fields`` on an existing document."""
        await self._commit(lambda: self._merge(item_id, fields))

    async def delete(self, item_id: str) -> None:
        await self._commit(lambda: self._delete(item_id))

    async def load(self) -> List[T]:
        return self._decode(await self._run(self._read))

    async def _commit(self, op: Callable[[], List[Dict[str, Any]]]) -> None:
        try:
            documents = await self._run(op)
        except PersistenceError:
            raise
        except Exception as e:
            logger.warning("write to %s store failed: %s", self.model.__name__, e)
            raise PersistenceError(str(e)) from e
        self._publish(documents)

    async def _run(self, op: Callable[[], Any]) -> Any:
        return op()

    # Each write returns the full post-write collection for publishing.

    @abstractmethod
    def _read(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def _write(self, documents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def _merge(self, item_id: str, fields: Dict[str, Any]) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def _delete(self, item_id: str) -> List[Dict[str, Any]]:
        ...


class MemoryStore(DocumentStore[T]):
    """In-process store. ``fail_next`` makes upcoming writes raise."""

    def __init__(self, model: Type[T]) -> None:
        super().__init__(model)
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.writes = 0
        self._failures = 0

    def fail_next(self, count: int = 1) -> None:
        self._failures += count

    def put_raw(self, *documents: Dict[str, Any]) -> None:
        """Write raw documents as another client would, then publish."""
        for doc in documents:
            self.documents[doc["id"]] = dict(doc)
        self._publish(self._read())

    def _check_failure(self) -> None:
        if self._failures:
            self._failures -= 1
            raise PersistenceError("store unavailable")

    def _read(self) -> List[Dict[str, Any]]:
        return [dict(doc) for doc in self.documents.values()]

    def _write(self, documents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        self._check_failure()
        for doc in documents:
            self.documents[doc["id"]] = dict(doc)
        self.writes += 1
        return self._read()

    def _merge(self, item_id: str, fields: Dict[str, Any]) -> List[Dict[str, Any]]:
        self._check_failure()
        doc = self.documents.setdefault(item_id, {"id": item_id})
        doc.update(fields)
        self.writes += 1
        return self._read()

    def _delete(self, item_id: str) -> List[Dict[str, Any]]:
        self._check_failure()
        self.documents.pop(item_id, None)
        self.writes += 1
        return self._read()


class SqlStore(DocumentStore[T]):
    """Store backed by one SQLAlchemy table (``CardRow`` or ``EventRow``)."""

    def __init__(self, row: Type[Base], session_factory: sessionmaker) -> None:
        super().__init__(row.model)
        self.row = row
        self.session_factory = session_factory

    async def _run(self, op: Callable[[], Any]) -> Any:
        return await asyncio.to_thread(op)

    def _read(self) -> List[Dict[str, Any]]:
        with self.session_factory() as session:
            return self._all(session)

    def _all(self, session) -> List[Dict[str, Any]]:
        return [r.to_document() for r in session.scalars(select(self.row))]

    def _write(self, documents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        with self.session_factory() as session:
            with session.begin():
                for doc in documents:
                    session.merge(self.row.from_document(doc))
            return self._all(session)

    def _merge(self, item_id: str, fields: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self.session_factory() as session:
            with session.begin():
                current = session.get(self.row, item_id)
                doc = current.to_document() if current is not None else {"id": item_id}
                doc.update(fields)
                session.merge(self.row.from_document(doc))
            return self._all(session)

    def _delete(self, item_id: str) -> List[Dict[str, Any]]:
        with self.session_factory() as session:
            with session.begin():
                current = session.get(self.row, item_id)
                if current is not None:
                    session.delete(current)
            return self._all(session)


def card_store(session_factory: Optional[sessionmaker] = None) -> DocumentStore[Card]:
    if session_factory is None:
        return MemoryStore(Card)
    return SqlStore(CardRow, session_factory)


def event_store(session_factory: Optional[sessionmaker] = None) -> DocumentStore[CalendarEvent]:
    if session_factory is None:
        return MemoryStore(CalendarEvent)
    return SqlStore(EventRow, session_factory)
