"""Make log and audit fields safe to persist: PHI is reduced to a hash preview."""

import hashlib
from typing import Any

MAX_INLINE_CHARS = 120

SAFE_KEYS = {
    "patient_id", "professional_id", "user_id", "session_id", "trace_id",
    "action", "visit_type", "session_type", "model", "model_name", "language",
}
# clinical free text and credentials
SENSITIVE_KEYS = {
    "authorization", "api_key", "token", "password", "headers",
    "transcript", "text", "prompt", "body", "soap", "identifiers_map",
    "subjective", "objective", "assessment", "plan",
}
# direct identifiers under any key naming them, e.g. patient_name, home_phone
IDENTIFIER_FRAGMENTS = ("name", "email", "phone", "address", "birth", "dob", "health_card", "ohip")

def hash_preview(s: str, n: int = 12) -> str:
    if not isinstance(s, str):
        s = str(s)
    digest = hashlib.sha256(s.encode("utf-8")).hexdigest()[:n]
    return f"sha256={digest},len={len(s)}"

def _is_sensitive(key: str) -> bool:
    if key in SENSITIVE_KEYS:
        return True
    return any(fragment in key for fragment in IDENTIFIER_FRAGMENTS)

def sanitize_value(key: str, value: Any) -> Any:
    k = (key or "").lower()
    if k in SAFE_KEYS:
        return value
    if _is_sensitive(k) and value is not None:
        return hash_preview(str(value))
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return f"bytes:{len(value)}"
    if isinstance(value, str):
        return value if len(value) <= MAX_INLINE_CHARS else hash_preview(value)
    if isinstance(value, dict):
        return {child: sanitize_value(child, v) for child, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [sanitize_value("", v) for v in value]
    if hasattr(value, "model_dump"):
        return sanitize_value(key, value.model_dump())
    return str(value)
