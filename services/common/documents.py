"""
Document persistence for consent, audit, usage and erasure records.

Firestore in deployed environments; an in-memory double for local runs and tests.
"""

from __future__ import annotations

import copy
import operator
import uuid
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

Filter = Tuple[str, str, Any]

FIRESTORE_BATCH_LIMIT = 500


class DocumentStore(Protocol):
    """Operations the services need from a document database."""

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        ...

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        ...

    def delete(self, collection: str, doc_id: str) -> None:
        ...

    def query(self, collection: str, filters: Sequence[Filter] = ()) -> List[Tuple[str, Dict[str, Any]]]:
        ...

    def delete_where(self, collection: str, filters: Sequence[Filter]) -> int:
        ...


_OPS = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "in": lambda a, b: a in b,
    "array_contains": lambda a, b: isinstance(a, (list, tuple)) and b in a,
}


def _matches(data: Dict[str, Any], filters: Iterable[Filter]) -> bool:
    for field, op, value in filters:
        if op not in _OPS:
            raise ValueError(f"Unsupported filter operator: {op}")
        if field not in data:
            return False
        try:
            if not _OPS[op](data[field], value):
                return False
        except TypeError:
            return False
    return True


class InMemoryDocumentStore:
    """Simple in-memory document database for development and tests."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def reset(self) -> None:
        self.collections.clear()

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self.collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        docs = self.collections.setdefault(collection, {})
        if merge and doc_id in docs:
            docs[doc_id].update(copy.deepcopy(data))
        else:
            docs[doc_id] = copy.deepcopy(data)

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        self.set(collection, doc_id, data)
        return doc_id

    def delete(self, collection: str, doc_id: str) -> None:
        self.collections.get(collection, {}).pop(doc_id, None)

    def query(self, collection: str, filters: Sequence[Filter] = ()) -> List[Tuple[str, Dict[str, Any]]]:
        return [
            (doc_id, copy.deepcopy(doc))
            for doc_id, doc in self.collections.get(collection, {}).items()
            if _matches(doc, filters)
        ]

    def delete_where(self, collection: str, filters: Sequence[Filter]) -> int:
        matched = [doc_id for doc_id, _ in self.query(collection, filters)]
        for doc_id in matched:
            self.delete(collection, doc_id)
        return len(matched)


class FirestoreDocumentStore:
    """Firestore-backed store. The client is sync; call from worker threads."""

    def __init__(self, project_id: Optional[str] = None):
        self._client = firestore.Client(project=project_id) if project_id else firestore.Client()

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        snap = self._client.collection(collection).document(doc_id).get()
        return snap.to_dict() if snap.exists else None

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        self._client.collection(collection).document(doc_id).set(data, merge=merge)

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        _, ref = self._client.collection(collection).add(data)
        return ref.id

    def delete(self, collection: str, doc_id: str) -> None:
        self._client.collection(collection).document(doc_id).delete()

    def _query(self, collection: str, filters: Sequence[Filter]):
        q = self._client.collection(collection)
        for field, op, value in filters:
            q = q.where(filter=FieldFilter(field, op, value))
        return q

    def query(self, collection: str, filters: Sequence[Filter] = ()) -> List[Tuple[str, Dict[str, Any]]]:
        return [(snap.id, snap.to_dict() or {}) for snap in self._query(collection, filters).stream()]

    def delete_where(self, collection: str, filters: Sequence[Filter]) -> int:
        deleted = 0
        batch = self._client.batch()
        pending = 0
        for snap in self._query(collection, filters).stream():
            batch.delete(snap.reference)
            pending += 1
            deleted += 1
            if pending == FIRESTORE_BATCH_LIMIT:
                batch.commit()
                batch = self._client.batch()
                pending = 0
        if pending:
            batch.commit()
        return deleted
