"""
Patient consent records and the status the clinical workflow gates on.

A granted consent always wins over an earlier or later decline (decline
reversal); a decline with no grant on record is a hard block.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from ...common.audit import AuditLogger
from ...common.dependencies import get_document_store
from ...common.exceptions import ConsentDeclinedError, ConsentRequiredError, PermanentError
from ...common.logging import jlog
from ...common.timeutils import as_datetime, utcnow_iso
from .config import settings
from .schemas import ConsentRecordRequest, ConsentRecordResponse, ConsentStatusResponse

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

def normalize_decline_reasons(reasons: Any) -> List[str]:
    if not reasons:
        return []
    if isinstance(reasons, str):
        return [r.strip() for r in reasons.split(",") if r.strip()]
    if isinstance(reasons, (list, tuple)):
        return [str(r).strip() for r in reasons if str(r).strip()]
    return []

def _status_of(record: Dict[str, Any]) -> Optional[str]:
    return record.get("consent_status") or record.get("status")

def _latest(records: List[Dict[str, Any]], *date_fields: str) -> Dict[str, Any]:
    def key(record: Dict[str, Any]) -> datetime:
        for field in date_fields:
            parsed = as_datetime(record.get(field))
            if parsed:
                return parsed
        return EPOCH
    return max(records, key=key)

def _first_iso(record: Dict[str, Any], *date_fields: str) -> Optional[str]:
    for field in date_fields:
        parsed = as_datetime(record.get(field))
        if parsed:
            return parsed.isoformat()
    return None

def map_consent_method(method: Optional[str]) -> str:
    # SMS links are signed digitally by the patient
    if method in ("digital", "sms"):
        return "digital"
    if method == "verbal":
        return "verbal"
    return "unknown"

def record_patient_consent(req: ConsentRecordRequest, professional_id: str) -> ConsentRecordResponse:
    if not req.patient_id.strip():
        raise PermanentError("patientId is required")
    if not professional_id:
        raise PermanentError("professional id is required")

    now = utcnow_iso()
    record: Dict[str, Any] = {
        "patient_id": req.patient_id,
        "professional_id": professional_id,
        "consent_status": req.consent_status,
        "consent_method": req.consent_method,
        "consent_scope": req.consent_scope,
        "consent_date": now,
        "consent_version": settings.consent_version,
    }
    if req.consent_status == "granted":
        record["granted_at"] = now
    else:
        record["declined_at"] = now
        record["decline_reasons"] = normalize_decline_reasons(req.decline_reasons)

    consent_id = get_document_store().add(settings.consent_collection, record)
    AuditLogger().log(
        f"consent_{req.consent_status}",
        professional_id,
        req.patient_id,
        {"consent_id": consent_id, "consent_method": req.consent_method, "consent_scope": req.consent_scope},
    )
    jlog(event="consent_recorded", patient_id=req.patient_id, status=req.consent_status, method=req.consent_method)
    return ConsentRecordResponse(
        consent_id=consent_id, status=req.consent_status, consent_version=settings.consent_version
    )

def _find_records(patient_id: str, professional_id: str) -> List[Tuple[str, Dict[str, Any]]]:
    return get_document_store().query(
        settings.consent_collection,
        [("patient_id", "==", patient_id), ("professional_id", "==", professional_id)],
    )

def resolve_consent_status(patient_id: str, professional_id: str) -> ConsentStatusResponse:
    if not patient_id:
        raise PermanentError("patientId is required")

    records = [data for _, data in _find_records(patient_id, professional_id)]
    if not records:
        jlog(event="consent_status_none", patient_id=patient_id, professional_id=professional_id)
        return ConsentStatusResponse(has_valid_consent=False, is_declined=False)

    granted = [r for r in records if _status_of(r) == "granted"]
    if granted:
        latest = _latest(granted, "consent_date", "granted_at")
        scope = latest.get("consent_scope") or "ongoing"
        resp = ConsentStatusResponse(
            has_valid_consent=True,
            is_declined=False,
            status=scope if scope in ("ongoing", "session-only") else None,
            consent_method=map_consent_method(latest.get("consent_method")),
            granted_at=_first_iso(latest, "consent_date", "granted_at"),
        )
        jlog(event="consent_status_granted", patient_id=patient_id, method=resp.consent_method, scope=resp.status)
        return resp

    declined = [r for r in records if _status_of(r) == "declined"]
    if declined:
        latest = _latest(declined, "declined_at", "consent_date")
        jlog(event="consent_status_declined", severity="WARNING", patient_id=patient_id, professional_id=professional_id)
        return ConsentStatusResponse(
            has_valid_consent=False,
            is_declined=True,
            status="declined",
            consent_method=latest.get("consent_method") or "verbal",
            declined_at=_first_iso(latest, "declined_at", "consent_date"),
            decline_reasons=normalize_decline_reasons(latest.get("decline_reasons")),
        )

    return ConsentStatusResponse(has_valid_consent=False, is_declined=False)

def require_consent(patient_id: str, professional_id: str) -> ConsentStatusResponse:
    """Gate for AI-assisted documentation: a decline is a hard block, no record means ask first."""
    status = resolve_consent_status(patient_id, professional_id)
    if status.is_declined:
        raise ConsentDeclinedError(f"Patient {patient_id} declined AI-assisted documentation")
    if not status.has_valid_consent:
        raise ConsentRequiredError(f"No consent on record for patient {patient_id}")
    return status
