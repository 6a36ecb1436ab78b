import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from services.common import auth
from services.common.audit import AUDIT_COLLECTION, AuditLogger
from services.common.auth import verify_professional


def test_audit_logger_stores_sanitized_event(memory_backends):
    audit = AuditLogger()
    audit_id = audit.log("phi_deidentified", "dr-1", "p-1", {"entity_count": 3, "text": "John Smith"})

    stored = memory_backends.documents.get(AUDIT_COLLECTION, audit_id)
    assert stored["event_type"] == "phi_deidentified"
    assert stored["actor_id"] == "dr-1"
    assert stored["metadata"]["entity_count"] == 3
    assert "John" not in stored["metadata"]["text"]
    assert stored["timestamp"].endswith("+00:00")


def test_audit_events_for_patient_newest_first(memory_backends):
    audit = AuditLogger()
    memory_backends.documents.set(AUDIT_COLLECTION, "a", {"patient_id": "p-1", "timestamp": "2025-01-01T00:00:00+00:00"})
    memory_backends.documents.set(AUDIT_COLLECTION, "b", {"patient_id": "p-1", "timestamp": "2025-02-01T00:00:00+00:00"})
    memory_backends.documents.set(AUDIT_COLLECTION, "c", {"patient_id": "p-2", "timestamp": "2025-03-01T00:00:00+00:00"})

    assert [e["id"] for e in audit.events_for_patient("p-1")] == ["b", "a"]


app = FastAPI()

@app.get("/whoami")
async def whoami(professional_id: str = Depends(verify_professional)):
    return {"professional_id": professional_id}

client = TestClient(app)


def test_header_identity_when_auth_disabled(monkeypatch):
    monkeypatch.setattr(auth.settings, "require_auth", False)
    assert client.get("/whoami", headers={"X-Professional-Id": "dr-7"}).json() == {"professional_id": "dr-7"}
    assert client.get("/whoami").status_code == 401


def test_bearer_token_required_when_auth_enabled(monkeypatch):
    monkeypatch.setattr(auth.settings, "require_auth", True)
    resp = client.get("/whoami", headers={"X-Professional-Id": "dr-7"})
    assert resp.status_code == 401


def test_firebase_token_claims(monkeypatch):
    monkeypatch.setattr(auth.settings, "require_auth", True)
    monkeypatch.setattr(auth, "_verify_firebase_token", lambda token: {"user_id": f"uid-for-{token}"})

    resp = client.get("/whoami", headers={"Authorization": "Bearer abc"})
    assert resp.json() == {"professional_id": "uid-for-abc"}


def test_invalid_firebase_token(monkeypatch):
    def reject(token):
        raise ValueError("Token expired")

    monkeypatch.setattr(auth.settings, "require_auth", True)
    monkeypatch.setattr(auth, "_verify_firebase_token", reject)

    resp = client.get("/whoami", headers={"Authorization": "Bearer abc"})
    assert resp.status_code == 401
    assert "Token expired" in resp.json()["detail"]
