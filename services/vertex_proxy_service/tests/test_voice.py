import pytest
from fastapi.testclient import TestClient

from services.common.vertex import VertexClient
from services.vertex_proxy_service.main import app
from services.vertex_proxy_service.src import service
from services.vertex_proxy_service.src.prompt import build_clinical_info_prompt, build_voice_summary_prompt
from services.vertex_proxy_service.src.schemas import ClinicalInfoContext
from services.vertex_proxy_service.src.service import extract_text_field

client = TestClient(app)


@pytest.fixture
def llm(monkeypatch, fake_llm):
    def install(*replies):
        fake = fake_llm(*replies)
        monkeypatch.setattr(service, "get_vertex_client", lambda: VertexClient(client=fake, max_attempts=1))
        return fake
    return install


def test_voice_summary(llm):
    fake = llm("  - Knee pain on stairs\nReview required by clinician.  ")

    resp = client.post("/api/v1/voice/summary", json={"transcript": "Patient: my knee hurts", "language": "fr"})

    assert resp.status_code == 200
    assert resp.json()["summary"] == "- Knee pain on stairs\nReview required by clinician."
    prompt = fake.calls[0]["messages"][-1]["content"]
    assert "Canadian French" in prompt
    assert "Patient: my knee hurts" in prompt


def test_voice_summary_blank_transcript_skips_model(llm):
    fake = llm()
    resp = client.post("/api/v1/voice/summary", json={"transcript": "   "})
    assert resp.status_code == 200
    assert resp.json() == {"summary": None}
    assert fake.calls == []


def test_voice_summary_rejects_unknown_language():
    resp = client.post("/api/v1/voice/summary", json={"transcript": "x", "language": "de"})
    assert resp.status_code == 422


def test_clinical_info(llm):
    fake = llm("- Informational only")

    resp = client.post(
        "/api/v1/voice/clinical-info",
        json={
            "queryText": "Is ibuprofen relevant before exercise?",
            "category": "medication",
            "language": "en",
            "context": {"medicationName": "ibuprofen"},
        },
    )

    assert resp.status_code == 200
    assert resp.json() == {"answer": "- Informational only"}
    prompt = fake.calls[0]["messages"][-1]["content"]
    assert "Medication focus: ibuprofen" in prompt
    assert "general medication considerations" in prompt


def test_clinical_info_unknown_category():
    resp = client.post("/api/v1/voice/clinical-info", json={"queryText": "x", "category": "surgery"})
    assert resp.status_code == 422


def test_voice_summary_prompt_defaults_to_canadian_english():
    prompt = build_voice_summary_prompt("  hello  ", "en")
    assert "Canadian English" in prompt
    assert 'End with "Review required by clinician."' in prompt
    assert '"""\nhello\n"""' in prompt


def test_clinical_info_prompt_joins_context():
    ctx = ClinicalInfoContext(conditionOrRegion="lumbar", modalityName="TENS")
    prompt = build_clinical_info_prompt("q", "modality", "es", ctx)
    assert "Context: Region/condition focus: lumbar · Modality focus: TENS" in prompt
    assert "Spanish" in prompt
    assert "Do NOT provide parameter ranges" in prompt


@pytest.mark.parametrize(
    "payload,expected",
    [
        ("plain", "plain"),
        ({"text": "a"}, "a"),
        ({"summaryText": "b"}, "b"),
        ({"answerText": "c"}, "c"),
        ({"candidates": [{"content": {"parts": [{"text": "d"}]}}]}, "d"),
        ({"candidates": []}, None),
        (None, None),
    ],
)
def test_extract_text_field(payload, expected):
    assert extract_text_field(payload) == expected
