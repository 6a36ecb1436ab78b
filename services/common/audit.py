from typing import Any, Dict, List, Optional

from .dependencies import get_document_store
from .documents import DocumentStore
from .logging import jlog
from .sanitize import sanitize_value
from .timeutils import utcnow_iso

AUDIT_COLLECTION = "audit_logs"


class AuditLogger:
    """Append-only PHIPA audit trail. Metadata is sanitized before it is stored."""

    def __init__(self, store: Optional[DocumentStore] = None):
        self._store = store

    @property
    def store(self) -> DocumentStore:
        return self._store or get_document_store()

    def log(
        self,
        event_type: str,
        actor_id: Optional[str],
        patient_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        record = {
            "event_type": event_type,
            "actor_id": actor_id or "system",
            "patient_id": patient_id,
            "timestamp": utcnow_iso(),
            "metadata": {k: sanitize_value(k, v) for k, v in (metadata or {}).items()},
        }
        audit_id = self.store.add(AUDIT_COLLECTION, record)
        jlog(event="audit_logged", audit_id=audit_id, event_type=event_type, patient_id=patient_id)
        return audit_id

    def events_for_patient(self, patient_id: str) -> List[Dict[str, Any]]:
        events = [
            {"id": doc_id, **data}
            for doc_id, data in self.store.query(AUDIT_COLLECTION, [("patient_id", "==", patient_id)])
        ]
        return sorted(events, key=lambda e: e.get("timestamp") or "", reverse=True)
