from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import firebase_admin
from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from .store import DocumentStore, Filter, OrderBy, Snapshot, SnapshotCallback, Subscription


def _to_dict(snapshot: Any) -> Dict[str, Any]:
    # Firestore timestamps already come back as datetime subclasses
    return {**(snapshot.to_dict() or {}), "id": snapshot.id}


class FirestoreDocumentStore(DocumentStore):
    """
    Document store backed by Cloud Firestore through firebase_admin.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    @classmethod
    def from_app(cls, app: firebase_admin.App) -> "FirestoreDocumentStore":
        return cls(firestore.client(app))

    def _query(
        self,
        collection: str,
        filters: Sequence[Filter],
        order_by: Optional[OrderBy],
        limit: Optional[int] = None,
    ) -> Any:
        query: Any = self._client.collection(collection)
        for field, value in filters:
            query = query.where(filter=FieldFilter(field, "==", value))
        if order_by is not None:
            field, descending = order_by
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            query = query.order_by(field, direction=direction)
        if limit is not None:
            query = query.limit(limit)
        return query

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        _, ref = self._client.collection(collection).add({k: v for k, v in data.items() if k != "id"})
        return ref.id

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        snapshot = self._client.collection(collection).document(doc_id).get()
        if not snapshot.exists:
            return None
        return _to_dict(snapshot)

    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        ref = self._client.collection(collection).document(doc_id)
        fields = {k: v for k, v in data.items() if k != "id"}
        try:
            if fields:
                ref.update(fields)
        except google_exceptions.NotFound:
            return None
        snapshot = ref.get()
        return _to_dict(snapshot) if snapshot.exists else None

    def delete(self, collection: str, doc_id: str) -> bool:
        ref = self._client.collection(collection).document(doc_id)
        if not ref.get().exists:
            return False
        ref.delete()
        return True

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> Snapshot:
        return [_to_dict(doc) for doc in self._query(collection, filters, order_by, limit).stream()]

    def delete_where(self, collection: str, filters: Sequence[Filter]) -> int:
        refs = [doc.reference for doc in self._query(collection, filters, None).stream()]
        if not refs:
            return 0
        transaction = self._client.transaction()

        @firestore.transactional
        def _delete_all(transaction: Any, doomed: List[Any]) -> None:
            for ref in doomed:
                transaction.delete(ref)

        _delete_all(transaction, refs)
        return len(refs)

    def subscribe(
        self,
        collection: str,
        filters: Sequence[Filter],
        order_by: Optional[OrderBy],
        callback: SnapshotCallback,
    ) -> Subscription:
        def _on_snapshot(docs: List[Any], changes: Any, read_time: Any) -> None:
            callback([_to_dict(doc) for doc in docs])

        watch = self._query(collection, filters, order_by).on_snapshot(_on_snapshot)
        return Subscription(watch.unsubscribe)
