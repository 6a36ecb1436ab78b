"""
Artifact storage (JSON documents and media) in Cloud Storage, with an in-memory double.

Writes can carry a generation precondition: 0 means the object must not exist
yet, any other value must match the stored generation. A mismatch raises
RetryableError so a concurrent writer is never silently overwritten.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Protocol, Tuple

from google.api_core import exceptions as gax_exceptions
from google.cloud import storage

from .exceptions import RetryableError


class ArtifactStore(Protocol):
    def load_json(self, path: str) -> Optional[Dict[str, Any]]:
        ...

    def load_json_with_generation(self, path: str) -> Tuple[Optional[Dict[str, Any]], int]:
        ...

    def save_json(self, path: str, payload: Dict[str, Any], if_generation_match: Optional[int] = None) -> None:
        ...

    def save_bytes(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        ...

    def read_bytes(self, path: str) -> Optional[bytes]:
        ...

    def list(self, prefix: str) -> List[str]:
        ...

    def delete_prefix(self, prefix: str) -> int:
        ...


def _dump(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, indent=2, default=str)


class InMemoryArtifactStore:
    """Test double for Cloud Storage interactions."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.generations: Dict[str, int] = {}

    def reset(self) -> None:
        self.objects.clear()
        self.generations.clear()

    def _write(self, path: str, data: bytes, if_generation_match: Optional[int] = None) -> None:
        current = self.generations.get(path, 0)
        if if_generation_match is not None and if_generation_match != current:
            raise RetryableError(f"Concurrent update of {path}: expected generation {if_generation_match}, found {current}")
        self.objects[path] = data
        self.generations[path] = current + 1

    def load_json(self, path: str) -> Optional[Dict[str, Any]]:
        return self.load_json_with_generation(path)[0]

    def load_json_with_generation(self, path: str) -> Tuple[Optional[Dict[str, Any]], int]:
        raw = self.objects.get(path)
        if raw is None:
            return None, 0
        return json.loads(raw.decode("utf-8")), self.generations.get(path, 0)

    def save_json(self, path: str, payload: Dict[str, Any], if_generation_match: Optional[int] = None) -> None:
        self._write(path, _dump(payload).encode("utf-8"), if_generation_match)

    def save_bytes(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        self._write(path, data)

    def read_bytes(self, path: str) -> Optional[bytes]:
        return self.objects.get(path)

    def list(self, prefix: str) -> List[str]:
        return sorted(p for p in self.objects if p.startswith(prefix))

    def delete_prefix(self, prefix: str) -> int:
        matched = self.list(prefix)
        for path in matched:
            del self.objects[path]
            self.generations.pop(path, None)
        return len(matched)


class GcsArtifactStore:
    def __init__(self, bucket_name: str, project_id: Optional[str] = None):
        self._client = storage.Client(project=project_id) if project_id else storage.Client()
        self._bucket = self._client.bucket(bucket_name)

    def load_json(self, path: str) -> Optional[Dict[str, Any]]:
        return self.load_json_with_generation(path)[0]

    def load_json_with_generation(self, path: str) -> Tuple[Optional[Dict[str, Any]], int]:
        blob = self._bucket.get_blob(path)
        if blob is None:
            return None, 0
        # pin the read to the generation we report
        return json.loads(blob.download_as_text(if_generation_match=blob.generation)), blob.generation

    def save_json(self, path: str, payload: Dict[str, Any], if_generation_match: Optional[int] = None) -> None:
        blob = self._bucket.blob(path)
        try:
            blob.upload_from_string(
                _dump(payload), content_type="application/json", if_generation_match=if_generation_match
            )
        except gax_exceptions.PreconditionFailed as e:
            raise RetryableError(f"Concurrent update of {path}: {e}") from e

    def save_bytes(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        self._bucket.blob(path).upload_from_string(data, content_type=content_type)

    def read_bytes(self, path: str) -> Optional[bytes]:
        blob = self._bucket.blob(path)
        if not blob.exists():
            return None
        return blob.download_as_bytes()

    def list(self, prefix: str) -> List[str]:
        return sorted(b.name for b in self._client.list_blobs(self._bucket, prefix=prefix))

    def delete_prefix(self, prefix: str) -> int:
        blobs = list(self._client.list_blobs(self._bucket, prefix=prefix))
        for blob in blobs:
            blob.delete()
        return len(blobs)
