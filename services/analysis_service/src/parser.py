"""
Parse Gemini clinical analysis output into a dict.

The model is asked for JSON but answers in many shapes: wrapped in proxy
envelopes, fenced in markdown, with bare keys, or truncated mid-array.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ...common.logging import jlog
from ...common.sanitize import hash_preview

STRUCTURED_KEYS = (
    "medicolegal_alerts",
    "conversation_highlights",
    "recommended_physical_tests",
    "biopsychosocial_factors",
)

# Section labels where truncated answers typically stop
TRUNCATION_MARKERS = ('"Mod', '"Edu', '"Apl')

BIOPSYCHOSOCIAL_FIELDS = (
    "psychological",
    "social",
    "occupational",
    "protective_factors",
    "functional_limitations",
    "patient_strengths",
    "legal_or_employment_context",
)

@dataclass
class ParsedResponse:
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    source: str = "unknown"

def _close_open_structures(text: str) -> str:
    stack: List[str] = []
    in_string = escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "[{":
            stack.append(ch)
        elif ch in "]}" and stack:
            stack.pop()
    return text + "".join("]" if ch == "[" else "}" for ch in reversed(stack))

def repair_json(text: str) -> str:
    """Best-effort repair of truncated or comma-less JSON. Valid JSON is returned untouched."""
    try:
        json.loads(text)
        return text
    except ValueError:
        pass

    fixed = text
    if any(marker in fixed for marker in TRUNCATION_MARKERS):
        last_complete = fixed.rfind('",')
        if last_complete > -1:
            fixed = fixed[: last_complete + 1]
        fixed = _close_open_structures(fixed)

    # missing commas between adjacent values
    fixed = re.sub(r'(\d)(\s*\n\s*")', r"\1,\2", fixed)
    fixed = re.sub(r'}(\s*")', r"},\1", fixed)
    fixed = re.sub(r'](\s*")', r"],\1", fixed)
    fixed = re.sub(r'(true|false)(\s*")', r"\1,\2", fixed)
    return fixed

def _quoted_items(block: str) -> List[str]:
    return [item.strip() for item in re.findall(r'"([^"]+)"', block) if item.strip()]

def _extract_array(text: str, field: str) -> List[str]:
    match = re.search(rf'"{field}":\s*\[([\s\S]*?)\]', text, re.IGNORECASE)
    return _quoted_items(match.group(1)) if match else []

def extract_partial_data(text: str) -> Dict[str, Any]:
    """Salvage whatever fields survive in badly damaged output."""
    complaint = re.search(r'"chief_complaint":\s*"([^"]*)"', text, re.IGNORECASE)

    tests = []
    tests_block = re.search(r'"recommended_physical_tests":\s*\[([\s\S]*?)\]', text, re.IGNORECASE)
    if tests_block:
        for name in re.findall(r'"name":\s*"([^"]+)"', tests_block.group(1), re.IGNORECASE):
            tests.append(
                {"name": name.strip(), "objective": "", "region": "", "rationale": "", "evidence_level": "emerging"}
            )

    return {
        "medicolegal_alerts": {
            "red_flags": _extract_array(text, "red_flags"),
            "yellow_flags": _extract_array(text, "yellow_flags"),
            "legal_exposure": "low",
            "alert_notes": [],
        },
        "conversation_highlights": {
            "chief_complaint": complaint.group(1) if complaint else "",
            "key_findings": _extract_array(text, "key_findings"),
            "medical_history": [],
            "medications": _extract_array(text, "medications"),
            "summary": "",
        },
        "recommended_physical_tests": tests,
        "biopsychosocial_factors": {field: _extract_array(text, field) for field in BIOPSYCHOSOCIAL_FIELDS},
    }

def _extract_json_block(text: str) -> Optional[Dict[str, Any]]:
    cleaned = re.sub(r"```json", "", text, flags=re.IGNORECASE).replace("```", "").strip()
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start == -1 or end <= start:
        return None

    candidate = cleaned[start: end + 1]
    normalized = re.sub(r"([{,])(\s*)([a-zA-Z0-9_]+)(\s*):", r'\1"\3":', candidate).replace("'", '"')
    try:
        data = json.loads(normalized)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None

def _dig_text(payload: Dict[str, Any]) -> Optional[str]:
    try:
        text = payload["vertexRaw"]["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) and text else None

def parse_vertex_response(response: Any) -> ParsedResponse:
    if isinstance(response, dict):
        error = response.get("error")
        if error:
            message = error if isinstance(error, str) else (error.get("message") if isinstance(error, dict) else None)
            jlog(event="analysis_parse_vertex_error", severity="WARNING", error=message)
            return ParsedResponse(False, None, message or "Vertex AI error response", "vertex-error")
        if "motivo_consulta" in response:
            return ParsedResponse(True, response, source="already-parsed")
        if any(response.get(key) for key in STRUCTURED_KEYS):
            return ParsedResponse(True, response, source="already-parsed-structured")

    text, source = "", "unknown"
    if isinstance(response, str):
        text, source = response, "direct-string"
    elif isinstance(response, dict):
        if isinstance(response.get("text"), str) and response["text"]:
            text, source = response["text"], "text-field"
        elif _dig_text(response):
            text, source = _dig_text(response), "vertex-raw"
        elif isinstance(response.get("result"), str) and response["result"]:
            text, source = response["result"], "result-field"

    if not text:
        return ParsedResponse(False, None, "Unrecognized response format", "unknown")

    data: Optional[Dict[str, Any]] = None
    try:
        loaded = json.loads(repair_json(text))
        if isinstance(loaded, dict):
            data = loaded
    except ValueError:
        pass

    if data is None:
        data = _extract_json_block(text)
        if data is not None:
            source = "extracted-json"

    if data is None:
        data = extract_partial_data(text)
        source = "partial-extraction"
        jlog(event="analysis_partial_extraction", severity="WARNING", response_preview=hash_preview(text))

    return ParsedResponse(True, data, source=source)

def validate_clinical_schema(data: Any) -> bool:
    """All four structured sections must be present."""
    if not isinstance(data, dict):
        return False
    missing = [key for key in STRUCTURED_KEYS if key not in data]
    if missing:
        jlog(event="analysis_schema_missing_fields", severity="WARNING", missing=missing)
        return False
    return True
