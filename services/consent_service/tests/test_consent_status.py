import pytest
from fastapi.testclient import TestClient

from services.common import auth
from services.common.audit import AUDIT_COLLECTION
from services.consent_service.main import app
from services.consent_service.src.config import settings
from services.consent_service.src.service import normalize_decline_reasons, resolve_consent_status

client = TestClient(app)
HEADERS = {"X-Professional-Id": "dr-1"}


@pytest.fixture
def consents(memory_backends, monkeypatch):
    monkeypatch.setattr(auth.settings, "require_auth", False)

    def add(**record):
        base = {"patient_id": "p-1", "professional_id": "dr-1"}
        base.update(record)
        return memory_backends.documents.add(settings.consent_collection, base)
    return add


def test_no_records(consents):
    status = resolve_consent_status("p-1", "dr-1")

    assert status.has_valid_consent is False
    assert status.is_declined is False
    assert status.status is None and status.consent_method is None


def test_grant_after_decline_wins(consents):
    consents(consent_status="declined", consent_method="verbal", consent_date="2025-01-01T10:00:00+00:00")
    consents(consent_status="granted", consent_method="sms", consent_date="2025-01-02T10:00:00+00:00")

    status = resolve_consent_status("p-1", "dr-1")

    assert status.has_valid_consent is True
    assert status.is_declined is False
    assert status.consent_method == "digital"
    assert status.status == "ongoing"
    assert status.granted_at == "2025-01-02T10:00:00+00:00"


def test_grant_wins_even_before_a_later_decline(consents):
    consents(status="granted", consent_method="verbal", consent_scope="session-only", granted_at="2025-01-01T00:00:00Z")
    consents(status="declined", declined_at="2025-02-01T00:00:00Z")

    status = resolve_consent_status("p-1", "dr-1")

    assert status.has_valid_consent is True
    assert status.status == "session-only"
    assert status.consent_method == "verbal"


def test_latest_grant_is_reported(consents):
    consents(consent_status="granted", consent_method="verbal", consent_date="2025-03-01T00:00:00+00:00")
    consents(consent_status="granted", consent_method="digital", consent_date="2025-01-01T00:00:00+00:00")
    consents(consent_status="granted", consent_method="fax")

    assert resolve_consent_status("p-1", "dr-1").consent_method == "verbal"


def test_decline_only_is_a_hard_block(consents):
    consents(
        consent_status="declined",
        consent_method="verbal",
        declined_at="2025-01-05T00:00:00+00:00",
        decline_reasons="privacy concerns, prefers paper notes ,",
    )

    status = resolve_consent_status("p-1", "dr-1")

    assert status.is_declined is True
    assert status.has_valid_consent is False
    assert status.status == "declined"
    assert status.decline_reasons == ["privacy concerns", "prefers paper notes"]
    assert status.declined_at == "2025-01-05T00:00:00+00:00"


def test_other_professionals_records_are_ignored(consents):
    consents(professional_id="dr-2", consent_status="granted", consent_method="digital")

    assert resolve_consent_status("p-1", "dr-1").has_valid_consent is False


def test_unknown_status_is_not_consent(consents):
    consents(consent_status="pending")

    status = resolve_consent_status("p-1", "dr-1")
    assert status.has_valid_consent is False and status.is_declined is False


def test_normalize_decline_reasons():
    assert normalize_decline_reasons(None) == []
    assert normalize_decline_reasons(" a, ,b ") == ["a", "b"]
    assert normalize_decline_reasons(["x", " "]) == ["x"]


def test_record_then_query_over_http(consents, memory_backends):
    created = client.post(
        "/api/v1/consent",
        json={"patientId": "p-9", "consentStatus": "granted", "consentMethod": "digital"},
        headers=HEADERS,
    )
    assert created.status_code == 201
    assert created.json()["consentVersion"] == "1.0.0"

    resp = client.post("/api/v1/consent/status", json={"patientId": "p-9"}, headers=HEADERS)

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["hasValidConsent"] is True
    assert body["isDeclined"] is False
    assert body["consentMethod"] == "digital"

    events = [doc["event_type"] for _, doc in memory_backends.documents.query(AUDIT_COLLECTION)]
    assert events == ["consent_granted"]


def test_record_declined_with_reason_list(consents):
    client.post(
        "/api/v1/consent",
        json={"patientId": "p-9", "consentStatus": "declined", "consentMethod": "verbal", "declineReasons": ["no AI"]},
        headers=HEADERS,
    )

    body = client.post("/api/v1/consent/status", json={"patientId": "p-9"}, headers=HEADERS).json()
    assert body["isDeclined"] is True
    assert body["declineReasons"] == ["no AI"]


def test_invalid_input_is_422(consents):
    resp = client.post(
        "/api/v1/consent", json={"patientId": "p-9", "consentStatus": "maybe", "consentMethod": "digital"}, headers=HEADERS
    )
    assert resp.status_code == 422
    assert client.post("/api/v1/consent/status", json={}, headers=HEADERS).status_code == 422


def test_status_requires_identity(consents):
    assert client.post("/api/v1/consent/status", json={"patientId": "p-1"}).status_code == 401


def test_gate_blocks_declined_patient(consents):
    consents(consent_status="declined", consent_method="verbal", declined_at="2025-01-05T00:00:00+00:00")

    resp = client.post("/api/v1/consent/require", json={"patientId": "p-1"}, headers=HEADERS)

    assert resp.status_code == 403


def test_gate_requires_a_record(consents):
    resp = client.post("/api/v1/consent/require", json={"patientId": "p-1"}, headers=HEADERS)

    assert resp.status_code == 422


def test_gate_passes_with_consent(consents):
    consents(consent_status="granted", consent_method="digital", consent_date="2025-01-02T10:00:00+00:00")

    resp = client.post("/api/v1/consent/require", json={"patientId": "p-1"}, headers=HEADERS)

    assert resp.status_code == 200
    assert resp.json()["hasValidConsent"] is True
