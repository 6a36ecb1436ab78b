from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from services.common import auth
from services.common.exceptions import PermanentError
from services.consent_service.main import app
from services.consent_service.src import cross_border
from services.consent_service.src.config import settings
from services.consent_service.src.schemas import CrossBorderConsentRequest

client = TestClient(app)

GIVEN = datetime(2025, 1, 1, tzinfo=timezone.utc)
ALL_ACKS = {
    "consented": True,
    "cloudActAcknowledged": True,
    "dataRetentionAcknowledged": True,
    "rightToWithdrawAcknowledged": True,
    "complaintRightsAcknowledged": True,
}


def consent(**overrides):
    return CrossBorderConsentRequest.model_validate({**ALL_ACKS, **overrides})


@pytest.fixture
def backends(memory_backends, monkeypatch):
    monkeypatch.setattr(auth.settings, "require_auth", False)
    return memory_backends


@pytest.mark.parametrize(
    "missing, message",
    [
        ("consented", "explicitly consent"),
        ("cloudActAcknowledged", "CLOUD Act"),
        ("dataRetentionAcknowledged", "Data retention"),
        ("rightToWithdrawAcknowledged", "Right to withdraw"),
        ("complaintRightsAcknowledged", "IPC Ontario"),
    ],
)
def test_every_acknowledgment_is_required(backends, missing, message):
    with pytest.raises(PermanentError, match=message):
        cross_border.save_cross_border_consent("dr-1", consent(**{missing: False}))


def test_user_consent_expires_after_a_year(backends):
    record = cross_border.save_cross_border_consent("dr-1", consent(), now=GIVEN)
    assert record["consent_version"] == "1.0.0"

    assert cross_border.get_consent_status("dr-1", now=GIVEN + timedelta(days=364)).has_consent
    expired = cross_border.get_consent_status("dr-1", now=GIVEN + timedelta(days=366))
    assert expired.is_expired and not expired.has_consent
    assert cross_border.needs_renewal("dr-1", now=GIVEN + timedelta(days=366))
    assert not cross_border.needs_renewal("dr-1", now=GIVEN + timedelta(days=1))


def test_version_change_invalidates_consent(backends, monkeypatch):
    cross_border.save_cross_border_consent("dr-1", consent(), now=GIVEN)
    monkeypatch.setattr(settings, "cross_border_consent_version", "2.0.0")

    assert not cross_border.get_consent_status("dr-1", now=GIVEN).has_consent
    assert cross_border.needs_renewal("dr-1", now=GIVEN)


def test_ongoing_patient_consent_outlives_expiry(backends):
    cross_border.save_cross_border_consent("dr-1", consent(patientId="p-1"), now=GIVEN)
    cross_border.save_cross_border_consent("dr-2", consent(patientId="p-2", consentScope="session-only"), now=GIVEN)
    later = GIVEN + timedelta(days=400)

    assert cross_border.get_patient_consent_status("p-1", now=later).has_consent
    assert not cross_border.get_patient_consent_status("p-2", now=later).has_consent
    # patient consent checked before the (expired) user-level consent
    assert cross_border.has_consented("dr-1", "p-1", now=later)
    assert not cross_border.has_consented("dr-1", now=later)


def test_has_consented_fails_closed(backends, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("firestore unavailable")

    monkeypatch.setattr(cross_border, "get_consent_status", boom)
    assert cross_border.has_consented("dr-1") is False


def test_revoke_only_own_consent(backends):
    cross_border.save_cross_border_consent("dr-1", consent(), now=GIVEN)

    assert cross_border.revoke_consent("dr-2") is False
    assert cross_border.revoke_consent("dr-1") is True
    assert not cross_border.get_consent_status("dr-1").has_consent


def test_http_flow(backends):
    headers = {"X-Professional-Id": "dr-5"}

    rejected = client.post("/api/v1/consent/cross-border", json={"consented": True}, headers=headers)
    assert rejected.status_code == 422
    assert "CLOUD Act" in rejected.json()["detail"]

    created = client.post("/api/v1/consent/cross-border", json=ALL_ACKS, headers=headers)
    assert created.status_code == 201
    assert created.json()["hasConsent"] is True

    check = client.get("/api/v1/consent/cross-border", headers=headers).json()
    assert check["hasConsented"] is True
    assert check["needsRenewal"] is False

    assert client.delete("/api/v1/consent/cross-border", headers=headers).json() == {"revoked": True}
    assert client.get("/api/v1/consent/cross-border", headers=headers).json()["hasConsented"] is False
