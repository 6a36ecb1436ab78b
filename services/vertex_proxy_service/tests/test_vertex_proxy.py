import pytest
from fastapi.testclient import TestClient
from tenacity import wait_none

from services.common.exceptions import RetryableError
from services.common.vertex import VertexClient
from services.vertex_proxy_service.main import app
from services.vertex_proxy_service.src import service

client = TestClient(app)


@pytest.fixture
def llm(monkeypatch, fake_llm):
    def install(*replies, max_attempts=1):
        fake = fake_llm(*replies)
        vertex = VertexClient(client=fake, max_attempts=max_attempts)
        vertex.wait = wait_none()
        monkeypatch.setattr(service, "get_vertex_client", lambda: vertex)
        return fake
    return install


def test_health():
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_vertex_analyze_returns_text_and_usage(llm):
    fake = llm('{"medicolegal_alerts": {}}')

    resp = client.post(
        "/api/v1/vertex",
        json={"action": "analyze", "prompt": "Analyze this de-identified transcript", "traceId": "t-1"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["text"] == '{"medicolegal_alerts": {}}'
    assert body["usage"] == {"prompt_tokens": 120, "completion_tokens": 80, "total_tokens": 200}
    assert body["model"] == "gemini-test"
    assert body["traceId"] == "t-1"
    # analyze runs in JSON mode
    assert fake.calls[0]["response_format"] == {"type": "json_object"}


def test_vertex_voice_summary_action_is_plain_text(llm):
    fake = llm("- Patient reports pain")

    resp = client.post("/api/v1/vertex", json={"action": "voice_summary", "prompt": "Summarize"})

    assert resp.status_code == 200
    assert "response_format" not in fake.calls[0]
    assert resp.json()["traceId"].startswith("voice_summary|ts:")


def test_vertex_model_override(llm):
    fake = llm("ok")
    client.post("/api/v1/vertex", json={"action": "generate_soap", "prompt": "p", "model": "gemini-2.5-pro"})
    assert fake.calls[0]["model"] == "gemini-2.5-pro"


def test_vertex_empty_prompt_rejected():
    resp = client.post("/api/v1/vertex", json={"action": "analyze", "prompt": "   "})
    assert resp.status_code == 422


def test_vertex_unknown_action_rejected():
    resp = client.post("/api/v1/vertex", json={"action": "delete_everything", "prompt": "x"})
    assert resp.status_code == 422


def test_vertex_missing_prompt_rejected():
    resp = client.post("/api/v1/vertex", json={"action": "analyze"})
    assert resp.status_code == 422


def test_vertex_retryable_failure_maps_to_503(monkeypatch):
    class Boom:
        def generate(self, *a, **k):
            raise RetryableError("LLM timeout/conn: upstream")

    monkeypatch.setattr(service, "get_vertex_client", lambda: Boom())

    resp = client.post("/api/v1/vertex", json={"action": "analyze", "prompt": "x"})

    assert resp.status_code == 503
    assert "upstream" in resp.json()["detail"]


def test_vertex_empty_model_reply_maps_to_422(llm):
    llm("   ")
    resp = client.post("/api/v1/vertex", json={"action": "analyze", "prompt": "x"})
    assert resp.status_code == 422
    assert resp.json()["detail"] == "Empty response from model"


def test_vertex_method_not_allowed():
    resp = client.get("/api/v1/vertex")
    assert resp.status_code == 405
