from __future__ import annotations

import logging
import secrets
import string
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from threading import RLock
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .settings import get_settings

logger = logging.getLogger(__name__)

# Equality filter: (field, value)
Filter = Tuple[str, Any]
# Ordering: (field, descending)
OrderBy = Tuple[str, bool]
Snapshot = List[Dict[str, Any]]
SnapshotCallback = Callable[[Snapshot], None]

_ID_ALPHABET = string.ascii_letters + string.digits


def new_document_id() -> str:
    """Return a random 20 character id, shaped like Firestore auto ids."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(20))


# PUBLIC_INTERFACE
class Subscription:
    """
    Handle for a live query subscription.

    `unsubscribe()` stops delivery. The underlying cancel function runs at
    most once; further calls are no-ops.
    """

    def __init__(self, cancel: Callable[[], None]) -> None:
        self._cancel: Optional[Callable[[], None]] = cancel
        self._lock = RLock()

    @property
    def closed(self) -> bool:
        return self._cancel is None

    def unsubscribe(self) -> None:
        with self._lock:
            cancel, self._cancel = self._cancel, None
        if cancel is not None:
            cancel()

    __call__ = unsubscribe


# PUBLIC_INTERFACE
class DocumentStore(ABC):
    """
    Abstract contract for the hosted document database.

    Documents are plain dicts; every returned document carries its `id`.
    Queries support equality filters and a single ordering field.
    """

    @abstractmethod
    def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Store a new document and return its store-assigned id."""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return a document by id, or None if not found."""

    @abstractmethod
    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Merge fields into an existing document. Return it, or None if not found."""

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Return True if it existed."""

    @abstractmethod
    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> Snapshot:
        """Return documents matching every filter, ordered and limited."""

    @abstractmethod
    def delete_where(self, collection: str, filters: Sequence[Filter]) -> int:
        """Atomically delete every matching document. Return how many were removed."""

    @abstractmethod
    def subscribe(
        self,
        collection: str,
        filters: Sequence[Filter],
        order_by: Optional[OrderBy],
        callback: SnapshotCallback,
    ) -> Subscription:
        """
        Open a live query.

        The callback receives the full ordered result set once on activation
        and again after every change that affects the collection.
        """


@dataclass
class _Listener:
    collection: str
    filters: Tuple[Filter, ...]
    order_by: Optional[OrderBy]
    callback: SnapshotCallback


def _matches(doc: Dict[str, Any], filters: Iterable[Filter]) -> bool:
    return all(doc.get(field) == value for field, value in filters)


def _sort_key(field: str) -> Callable[[Dict[str, Any]], Tuple[bool, Any]]:
    # Documents missing the field sort before those that have it
    return lambda doc: (doc.get(field) is not None, doc.get(field))


class InMemoryDocumentStore(DocumentStore):
    """
    Thread-safe in-memory document store suitable for testing and default runtime.

    Listeners are notified synchronously, under the store lock, after every
    write, so snapshots for a query arrive in write order. Callbacks must not
    block.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._listeners: Dict[int, _Listener] = {}
        self._next_listener = 1

    def _docs(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    def _run_query(
        self,
        collection: str,
        filters: Sequence[Filter],
        order_by: Optional[OrderBy],
        limit: Optional[int],
    ) -> Snapshot:
        items = [
            {**doc, "id": doc_id}
            for doc_id, doc in self._docs(collection).items()
            if _matches(doc, filters)
        ]
        if order_by is not None:
            field, descending = order_by
            items.sort(key=_sort_key(field), reverse=descending)
        if limit is not None:
            items = items[: max(limit, 0)]
        return items

    def _notify(self, collection: str) -> None:
        for listener in list(self._listeners.values()):
            if listener.collection != collection:
                continue
            snapshot = self._run_query(collection, listener.filters, listener.order_by, None)
            listener.callback(snapshot)

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        with self._lock:
            docs = self._docs(collection)
            doc_id = new_document_id()
            while doc_id in docs:
                doc_id = new_document_id()
            docs[doc_id] = {k: v for k, v in data.items() if k != "id"}
            self._notify(collection)
            return doc_id

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._docs(collection).get(doc_id)
            return None if doc is None else {**doc, "id": doc_id}

    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            docs = self._docs(collection)
            existing = docs.get(doc_id)
            if existing is None:
                return None
            updated = existing.copy()
            updated.update({k: v for k, v in data.items() if k != "id"})
            docs[doc_id] = updated
            self._notify(collection)
            return {**updated, "id": doc_id}

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            removed = self._docs(collection).pop(doc_id, None) is not None
            if removed:
                self._notify(collection)
            return removed

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> Snapshot:
        with self._lock:
            return self._run_query(collection, filters, order_by, limit)

    def delete_where(self, collection: str, filters: Sequence[Filter]) -> int:
        with self._lock:
            docs = self._docs(collection)
            doomed = [doc_id for doc_id, doc in docs.items() if _matches(doc, filters)]
            for doc_id in doomed:
                del docs[doc_id]
            if doomed:
                self._notify(collection)
            return len(doomed)

    def subscribe(
        self,
        collection: str,
        filters: Sequence[Filter],
        order_by: Optional[OrderBy],
        callback: SnapshotCallback,
    ) -> Subscription:
        listener = _Listener(collection, tuple(filters), order_by, callback)
        with self._lock:
            key = self._next_listener
            self._next_listener += 1
            self._listeners[key] = listener
            callback(self._run_query(collection, listener.filters, order_by, None))

        def _cancel() -> None:
            with self._lock:
                self._listeners.pop(key, None)

        return Subscription(_cancel)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_document_store() -> DocumentStore:
    """
    Return the process-wide document store configured by settings.
    - memory: InMemoryDocumentStore
    - firestore: FirestoreDocumentStore (requires firebase-admin credentials)
    """
    settings = get_settings()
    if settings.persistence_backend == "firestore":
        from .db import FirestoreDocumentStore
        from .firebase_app import get_firebase_app

        logger.info("Using Firestore document store for project %s", settings.firebase_project_id)
        return FirestoreDocumentStore.from_app(get_firebase_app(settings))
    logger.info("Using in-memory document store")
    return InMemoryDocumentStore()
