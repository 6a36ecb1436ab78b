import pytest
from google.api_core import exceptions as gax_exceptions

from services.common.artifacts import GcsArtifactStore, InMemoryArtifactStore
from services.common.documents import InMemoryDocumentStore
from services.common.exceptions import RetryableError


def test_document_store_query_filters():
    store = InMemoryDocumentStore()
    store.set("patients", "p1", {"professional_id": "dr-1", "age": 40})
    store.set("patients", "p2", {"professional_id": "dr-2", "age": 25})
    store.set("patients", "p3", {"professional_id": "dr-1"})

    ids = sorted(doc_id for doc_id, _ in store.query("patients", [("professional_id", "==", "dr-1")]))
    assert ids == ["p1", "p3"]

    # documents without the field never match
    assert [d for d, _ in store.query("patients", [("age", ">", 30)])] == ["p1"]
    assert [d for d, _ in store.query("patients", [("professional_id", "in", ["dr-2"])])] == ["p2"]


def test_document_store_returns_copies():
    store = InMemoryDocumentStore()
    store.set("c", "1", {"items": [1]})
    doc = store.get("c", "1")
    doc["items"].append(2)
    assert store.get("c", "1") == {"items": [1]}


def test_document_store_merge_and_delete_where():
    store = InMemoryDocumentStore()
    store.set("c", "1", {"a": 1, "b": 2})
    store.set("c", "1", {"b": 3}, merge=True)
    assert store.get("c", "1") == {"a": 1, "b": 3}

    store.add("c", {"a": 1})
    assert store.delete_where("c", [("a", "==", 1)]) == 2
    assert store.query("c") == []


def test_document_store_rejects_unknown_operator():
    store = InMemoryDocumentStore()
    store.set("c", "1", {"a": 1})
    with pytest.raises(ValueError):
        store.query("c", [("a", "~", 1)])


def test_artifact_store_prefix_operations():
    store = InMemoryArtifactStore()
    store.save_json("patients/p1/notes.json", {"ok": True})
    store.save_bytes("patients/p1/audio.webm", b"\x00\x01")
    store.save_json("patients/p2/notes.json", {"ok": False})

    assert store.load_json("patients/p1/notes.json") == {"ok": True}
    assert store.list("patients/p1/") == ["patients/p1/audio.webm", "patients/p1/notes.json"]
    assert store.delete_prefix("patients/p1/") == 2
    assert store.read_bytes("patients/p1/audio.webm") is None
    assert store.load_json("patients/p2/notes.json") == {"ok": False}


def test_artifact_store_generation_precondition():
    store = InMemoryArtifactStore()
    assert store.load_json_with_generation("ledger.json") == (None, 0)

    store.save_json("ledger.json", {"entries": []}, if_generation_match=0)
    data, generation = store.load_json_with_generation("ledger.json")
    assert data == {"entries": []} and generation == 1

    with pytest.raises(RetryableError):
        store.save_json("ledger.json", {"entries": [1]}, if_generation_match=0)
    store.save_json("ledger.json", {"entries": [1]}, if_generation_match=generation)
    assert store.load_json("ledger.json") == {"entries": [1]}


class _FakeBlob:
    def __init__(self, bucket, name):
        self.bucket, self.name = bucket, name

    def upload_from_string(self, data, content_type=None, if_generation_match=None):
        if if_generation_match is not None and if_generation_match != self.bucket.generations.get(self.name, 0):
            raise gax_exceptions.PreconditionFailed("generation mismatch")
        self.bucket.uploads[self.name] = (data, content_type)
        self.bucket.generations[self.name] = self.bucket.generations.get(self.name, 0) + 1


class _FakeBucket:
    def __init__(self):
        self.uploads, self.generations = {}, {}

    def blob(self, name):
        return _FakeBlob(self, name)


def test_gcs_store_uploads_media_and_maps_precondition_failures():
    store = GcsArtifactStore.__new__(GcsArtifactStore)
    store._bucket = _FakeBucket()

    store.save_bytes("patients/p1/audio.webm", b"\x00", content_type="audio/webm")
    assert store._bucket.uploads["patients/p1/audio.webm"] == (b"\x00", "audio/webm")

    store.save_json("trustbridge/ledger.json", {"entries": []}, if_generation_match=0)
    with pytest.raises(RetryableError):
        store.save_json("trustbridge/ledger.json", {"entries": []}, if_generation_match=0)
