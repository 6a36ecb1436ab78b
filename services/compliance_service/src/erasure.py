"""
Right to erasure (PIPEDA Principle 4.1.8, PHIPA s.52).

Patient records are deleted from every clinical collection and the patient's
storage prefix. Audit logs and deletion certificates are retained; the
certificate carries a verification hash over what was deleted.
"""

import hashlib
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from ...common.audit import AuditLogger
from ...common.dependencies import get_artifact_store, get_document_store
from ...common.exceptions import AuthorizationError, PermanentError
from ...common.logging import jlog
from ...common.timeutils import as_datetime, utcnow
from .config import settings
from .schemas import DeletionCertificate, ErasureRequest
from .trustbridge import canonical_json

# records may name the patient either way depending on the writer
PATIENT_FIELDS = ("patientId", "patient_id")

@dataclass
class ErasureValidation:
    valid: bool
    error: Optional[str] = None
    code: Optional[str] = None

def _patient_records(collection: str, patient_id: str) -> List[Dict]:
    store = get_document_store()
    records = []
    for field in PATIENT_FIELDS:
        records.extend(data for _, data in store.query(collection, [(field, "==", patient_id)]))
    return records

def is_custodian(patient_id: str, requested_by: str) -> bool:
    patient = get_document_store().get(settings.patients_collection, patient_id)
    if not patient:
        return False
    custodian = patient.get("professional_id") or patient.get("professionalId")
    return bool(custodian) and custodian == requested_by

def has_legal_hold(patient_id: str) -> bool:
    holds = get_document_store().query(
        settings.legal_holds_collection, [("patient_id", "==", patient_id), ("active", "==", True)]
    )
    return bool(holds)

def retention_blocked(patient_id: str, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    for collection in settings.erasure_collections:
        for record in _patient_records(collection, patient_id):
            retain_until = as_datetime(record.get("retain_until"))
            if retain_until and retain_until > now:
                return True
    patient = get_document_store().get(settings.patients_collection, patient_id) or {}
    retain_until = as_datetime(patient.get("retain_until"))
    return bool(retain_until and retain_until > now)

def validate_erasure_request(
    req: ErasureRequest, requested_by: str, now: Optional[datetime] = None
) -> ErasureValidation:
    if not is_custodian(req.patient_id, requested_by):
        return ErasureValidation(
            False, "Unauthorized: Requester does not have authorization to delete this patient's data", "unauthorized"
        )
    if has_legal_hold(req.patient_id):
        return ErasureValidation(
            False, "Legal hold active: Cannot delete data while legal hold is in effect", "legal_hold"
        )
    if retention_blocked(req.patient_id, now):
        return ErasureValidation(
            False,
            "Retention requirements: Data cannot be deleted due to legal retention requirements",
            "retention",
        )
    return ErasureValidation(True)

def _delete_patient_documents(patient_id: str) -> Dict[str, int]:
    store = get_document_store()
    counts: Dict[str, int] = {}
    for collection in settings.erasure_collections:
        counts[collection] = sum(
            store.delete_where(collection, [(field, "==", patient_id)]) for field in PATIENT_FIELDS
        )
    for collection in settings.erasure_patient_documents:
        if store.get(collection, patient_id) is not None:
            store.delete(collection, patient_id)
            counts[collection] = 1
    if store.get(settings.patients_collection, patient_id) is not None:
        store.delete(settings.patients_collection, patient_id)
        counts[settings.patients_collection] = 1
    return counts

def verification_hash(patient_id: str, deleted_counts: Dict[str, int], deleted_at: str) -> str:
    data = f"{patient_id}-{canonical_json(deleted_counts)}-{deleted_at}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()

def verify_deletion_certificate(certificate: DeletionCertificate) -> bool:
    return certificate.verification_hash == verification_hash(
        certificate.patient_id, certificate.deleted_counts, certificate.deleted_at
    )

def process_erasure_request(
    req: ErasureRequest, requested_by: str, now: Optional[datetime] = None
) -> DeletionCertificate:
    audit = AuditLogger()
    validation = validate_erasure_request(req, requested_by, now)
    if not validation.valid:
        audit.log("data_erasure_rejected", requested_by, req.patient_id, {"code": validation.code})
        jlog(event="erasure_rejected", severity="WARNING", patient_id=req.patient_id, code=validation.code)
        if validation.code == "unauthorized":
            raise AuthorizationError(validation.error)
        raise PermanentError(validation.error)

    started = now or utcnow()
    audit.log("data_erasure_started", requested_by, req.patient_id, {"reason": req.reason})
    try:
        counts = _delete_patient_documents(req.patient_id)
        files = get_artifact_store().delete_prefix(f"{settings.patient_storage_prefix}/{req.patient_id}/")
        if files:
            counts["storage_files"] = files

        deleted_at = (now or utcnow()).isoformat()
        certificate = DeletionCertificate(
            id=f"cert-{req.patient_id}-{int(time.time() * 1000)}",
            patient_id=req.patient_id,
            deleted_at=deleted_at,
            deleted_by=requested_by,
            deleted_collections=list(counts),
            deleted_counts=counts,
            verification_hash=verification_hash(req.patient_id, counts, deleted_at),
        )
        get_document_store().set(settings.deletion_certificates_collection, certificate.id, certificate.model_dump())
    except Exception as e:
        audit.log("data_erasure_failed", requested_by, req.patient_id, {"error": str(e)})
        jlog(event="erasure_failed", severity="ERROR", patient_id=req.patient_id, error=str(e))
        raise

    audit.log(
        "data_erasure_completed",
        requested_by,
        req.patient_id,
        {
            "certificate_id": certificate.id,
            "deleted_counts": counts,
            "verification_hash": certificate.verification_hash,
            "started_at": started.isoformat(),
        },
    )
    jlog(event="erasure_ok", patient_id=req.patient_id, certificate_id=certificate.id, deleted_counts=counts)
    return certificate

def get_deletion_certificate(certificate_id: str) -> Optional[DeletionCertificate]:
    data = get_document_store().get(settings.deletion_certificates_collection, certificate_id)
    return DeletionCertificate.model_validate(data) if data else None

def is_patient_deleted(patient_id: str) -> bool:
    return bool(
        get_document_store().query(settings.deletion_certificates_collection, [("patient_id", "==", patient_id)])
    )
