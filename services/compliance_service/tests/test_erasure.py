from datetime import datetime, timezone

import pytest

from services.common.audit import AUDIT_COLLECTION
from services.common.exceptions import AuthorizationError, PermanentError
from services.compliance_service.src import erasure
from services.compliance_service.src.schemas import ErasureRequest
from services.consent_service.src import cross_border
from services.consent_service.src import service as consent_service
from services.consent_service.src.schemas import ConsentRecordRequest, CrossBorderConsentRequest

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


@pytest.fixture
def patient(memory_backends):
    docs = memory_backends.documents
    docs.set("patients", "p-1", {"professional_id": "dr-1", "name": "Jane Doe"})
    docs.add("secureNotes", {"patientId": "p-1", "note": "..."})
    docs.add("secureNotes", {"patientId": "p-2", "note": "..."})
    docs.add("episodes", {"patient_id": "p-1"})
    docs.add(AUDIT_COLLECTION, {"patient_id": "p-1", "event_type": "consent_granted", "timestamp": "2025-01-01"})
    memory_backends.artifacts.save_bytes("patients/p-1/audio/visit.webm", b"\x00")
    memory_backends.artifacts.save_bytes("patients/p-1/soap.json", b"{}")
    memory_backends.artifacts.save_bytes("patients/p-10/soap.json", b"{}")
    return memory_backends


def request(patient_id="p-1"):
    return ErasureRequest(patientId=patient_id, reason="patient request")


def test_only_custodian_may_erase(patient):
    result = erasure.validate_erasure_request(request(), "dr-2", NOW)
    assert not result.valid and result.code == "unauthorized"

    with pytest.raises(AuthorizationError):
        erasure.process_erasure_request(request(), "dr-2", NOW)
    assert patient.documents.get("patients", "p-1") is not None


def test_unknown_patient_is_unauthorized(patient):
    assert erasure.validate_erasure_request(request("p-404"), "dr-1", NOW).code == "unauthorized"


def test_active_legal_hold_blocks(patient):
    patient.documents.add("legal_holds", {"patient_id": "p-1", "active": False})
    assert erasure.validate_erasure_request(request(), "dr-1", NOW).valid

    patient.documents.add("legal_holds", {"patient_id": "p-1", "active": True})
    with pytest.raises(PermanentError, match="Legal hold active"):
        erasure.process_erasure_request(request(), "dr-1", NOW)


def test_retention_period_blocks(patient):
    patient.documents.add("treatmentPlans", {"patientId": "p-1", "retain_until": "2030-01-01T00:00:00+00:00"})
    assert erasure.validate_erasure_request(request(), "dr-1", NOW).code == "retention"

    later = datetime(2031, 1, 1, tzinfo=timezone.utc)
    assert erasure.validate_erasure_request(request(), "dr-1", later).valid


def test_erasure_deletes_data_and_keeps_audit(patient):
    cert = erasure.process_erasure_request(request(), "dr-1", NOW)

    assert cert.deleted_counts == {
        "secureNotes": 1,
        "episodes": 1,
        "patientConsents": 0,
        "treatmentPlans": 0,
        "patient_consent": 0,
        "patients": 1,
        "storage_files": 2,
    }
    assert cert.deleted_collections == list(cert.deleted_counts)
    assert cert.deleted_at == NOW.isoformat()
    assert cert.retained_data.audit_logs and cert.retained_data.certificates
    assert erasure.verify_deletion_certificate(cert)

    docs = patient.documents
    assert docs.get("patients", "p-1") is None
    assert len(docs.query("secureNotes")) == 1
    assert patient.artifacts.list("patients/") == ["patients/p-10/soap.json"]

    events = [e["event_type"] for _, e in docs.query(AUDIT_COLLECTION, [("patient_id", "==", "p-1")])]
    assert "consent_granted" in events
    assert "data_erasure_started" in events and "data_erasure_completed" in events

    assert erasure.get_deletion_certificate(cert.id) == cert
    assert erasure.is_patient_deleted("p-1")
    assert not erasure.is_patient_deleted("p-2")


def test_tampered_certificate_fails_verification(patient):
    cert = erasure.process_erasure_request(request(), "dr-1", NOW)
    tampered = cert.model_copy(update={"deleted_counts": {**cert.deleted_counts, "secureNotes": 0}})

    assert not erasure.verify_deletion_certificate(tampered)


def test_erasure_removes_consent_records(patient):
    consent_service.record_patient_consent(
        ConsentRecordRequest(
            patientId="p-1", consentStatus="declined", consentMethod="verbal", declineReasons="anxious, privacy"
        ),
        "dr-1",
    )
    cross_border.save_cross_border_consent(
        "dr-1",
        CrossBorderConsentRequest(
            patientId="p-1",
            consented=True,
            cloudActAcknowledged=True,
            dataRetentionAcknowledged=True,
            rightToWithdrawAcknowledged=True,
            complaintRightsAcknowledged=True,
        ),
    )

    cert = erasure.process_erasure_request(request(), "dr-1", NOW)

    docs = patient.documents
    assert cert.deleted_counts["patient_consent"] == 1
    assert cert.deleted_counts["patient_cross_border_ai_consent"] == 1
    assert docs.query("patient_consent", [("patient_id", "==", "p-1")]) == []
    assert docs.get("patient_cross_border_ai_consent", "p-1") is None
    assert erasure.verify_deletion_certificate(cert)
