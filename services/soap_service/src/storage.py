from typing import Optional

from ...common.dependencies import get_artifact_store
from .schemas import SoapNoteResponse

def artifact_blob_path(idempotency_key: str) -> str:
    return f"artifacts/{idempotency_key}/soap-note.json"

def load_artifact(idempotency_key: Optional[str]) -> Optional[SoapNoteResponse]:
    if not idempotency_key:
        return None
    data = get_artifact_store().load_json(artifact_blob_path(idempotency_key))
    if data is None:
        return None
    return SoapNoteResponse.model_validate(data)

def save_artifact(idempotency_key: Optional[str], resp: SoapNoteResponse) -> None:
    if not idempotency_key:
        return
    get_artifact_store().save_json(artifact_blob_path(idempotency_key), resp.model_dump(mode="json"))
