"""
Backend wiring shared by the services.
"""

from __future__ import annotations

from .artifacts import ArtifactStore, GcsArtifactStore, InMemoryArtifactStore
from .config import settings
from .documents import DocumentStore, FirestoreDocumentStore, InMemoryDocumentStore

_document_store: DocumentStore | None = None
_artifact_store: ArtifactStore | None = None


def get_document_store() -> DocumentStore:
    """
    Return a singleton document store so records persist across requests.
    """
    global _document_store
    if _document_store is not None:
        return _document_store

    if settings.use_in_memory_backends or not settings.project_id:
        _document_store = InMemoryDocumentStore()
    else:
        _document_store = FirestoreDocumentStore(settings.project_id)
    return _document_store


def get_artifact_store() -> ArtifactStore:
    global _artifact_store
    if _artifact_store is not None:
        return _artifact_store

    if settings.use_in_memory_backends or not settings.artifact_bucket:
        _artifact_store = InMemoryArtifactStore()
    else:
        _artifact_store = GcsArtifactStore(settings.artifact_bucket, settings.project_id)
    return _artifact_store


def reset_backends() -> None:
    """Drop the singletons (tests swap in fresh in-memory backends)."""
    global _document_store, _artifact_store
    _document_store = None
    _artifact_store = None
