from types import SimpleNamespace

import pytest

from services.common import dependencies
from services.common.config import settings as common_settings


class FakeLLM:
    """Stands in for the OpenAI client: replies are returned (or raised) in order."""

    def __init__(self, *replies, model="gemini-test"):
        self.replies = list(replies)
        self.model = model
        self.calls = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=reply))],
            usage=SimpleNamespace(prompt_tokens=120, completion_tokens=80, total_tokens=200),
            model=self.model,
        )


@pytest.fixture
def fake_llm():
    return FakeLLM


@pytest.fixture
def memory_backends(monkeypatch):
    monkeypatch.setattr(common_settings, "use_in_memory_backends", True)
    dependencies.reset_backends()
    yield SimpleNamespace(
        documents=dependencies.get_document_store(),
        artifacts=dependencies.get_artifact_store(),
    )
    dependencies.reset_backends()
