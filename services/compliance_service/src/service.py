import threading
from typing import Optional

from opentelemetry import trace

from ...common.audit import AuditLogger
from ...common.dependencies import get_artifact_store
from ...common.exceptions import PermanentError
from ...common.logging import jlog
from .config import settings
from .schemas import (
    AuditEvent,
    AuditTrailResponse,
    CertificateBundle,
    CertifyRequest,
    LedgerVerificationResponse,
)
from .storage import load_bundle, load_ledger, load_ledger_for_update, save_bundle, save_ledger
from .trustbridge import build_manifest, issue_certificate, render_certificate_html

tracer = trace.get_tracer("compliance.trustbridge")

# serializes ledger appends within a process; the generation check covers other instances
_ledger_lock = threading.Lock()

def get_audit_trail(patient_id: str, viewer_id: str) -> AuditTrailResponse:
    audit = AuditLogger()
    events = [
        AuditEvent(
            id=e["id"],
            event_type=e.get("event_type", ""),
            actor_id=e.get("actor_id") or "system",
            patient_id=e.get("patient_id"),
            timestamp=e.get("timestamp"),
            metadata=e.get("metadata") or {},
        )
        for e in audit.events_for_patient(patient_id)
    ]
    # reading the trail is itself an access to PHI
    audit.log("audit_trail_viewed", viewer_id, patient_id, {"event_count": len(events)})
    return AuditTrailResponse(patient_id=patient_id, events=events)

def certify_artifacts(req: CertifyRequest, requested_by: str) -> CertificateBundle:
    store = get_artifact_store()

    def read(path: str) -> bytes:
        data = store.read_bytes(path)
        if data is None:
            raise PermanentError(f"Artifact not found: {path}")
        return data

    with tracer.start_as_current_span("TrustBridgeCertify") as span:
        span.set_attribute("file_count", len(req.paths))

        manifest = build_manifest(req.paths, algorithm=settings.trustbridge_hash_algorithm, read_bytes=read)
        with _ledger_lock:
            ledger, generation = load_ledger_for_update()
            entry = ledger.append(req.event, {"manifest_hash": manifest["manifest_hash"], "requested_by": requested_by})
            certificate = issue_certificate(manifest, ledger, req.issuer or settings.trustbridge_issuer)
            save_ledger(ledger, generation)

        bundle = CertificateBundle.model_validate(
            {"certificate": certificate, "manifest": manifest, "ledger_entry": entry}
        )
        save_bundle(certificate["certificate_id"], bundle.model_dump())

    AuditLogger().log(
        "trustbridge_certificate_issued",
        requested_by,
        None,
        {"certificate_id": certificate["certificate_id"], "file_count": certificate["file_count"]},
    )
    jlog(event="trustbridge_certify_ok", certificate_id=certificate["certificate_id"], ledger_length=len(ledger))
    return bundle

def get_certificate_bundle(certificate_id: str) -> Optional[CertificateBundle]:
    data = load_bundle(certificate_id)
    return CertificateBundle.model_validate(data) if data else None

def render_certificate(certificate_id: str) -> Optional[str]:
    data = load_bundle(certificate_id)
    if not data:
        return None
    return render_certificate_html(data["certificate"], data["manifest"])

def verify_ledger() -> LedgerVerificationResponse:
    result = load_ledger().verify()
    if not result.valid:
        jlog(event="trustbridge_ledger_broken", severity="ERROR", broken_index=result.broken_index, reason=result.reason)
    return LedgerVerificationResponse(**result.__dict__)
