from typing import Any, Dict, Optional, Tuple

from ...common.dependencies import get_artifact_store
from .config import settings
from .trustbridge import Ledger

def ledger_blob_path() -> str:
    return f"{settings.trustbridge_prefix}/ledger.json"

def bundle_blob_path(certificate_id: str) -> str:
    return f"{settings.trustbridge_prefix}/{certificate_id}.json"

def load_ledger() -> Ledger:
    return load_ledger_for_update()[0]

def load_ledger_for_update() -> Tuple[Ledger, int]:
    """Ledger plus the storage generation it was read at (0 when none exists yet)."""
    data, generation = get_artifact_store().load_json_with_generation(ledger_blob_path())
    return Ledger((data or {}).get("entries", [])), generation

def save_ledger(ledger: Ledger, generation: Optional[int] = None) -> None:
    """Persist the ledger; with a generation, fail if someone else wrote it since."""
    get_artifact_store().save_json(ledger_blob_path(), {"entries": ledger.entries}, if_generation_match=generation)

def load_bundle(certificate_id: str) -> Optional[Dict[str, Any]]:
    return get_artifact_store().load_json(bundle_blob_path(certificate_id))

def save_bundle(certificate_id: str, bundle: Dict[str, Any]) -> None:
    get_artifact_store().save_json(bundle_blob_path(certificate_id), bundle)
