import json
import re
from typing import Any, Dict, List, Optional

from ...common.logging import jlog
from .schemas import SOAPNote

NOT_DOCUMENTED = "Not documented."
MAX_PLAN_LENGTH = 2000
TRUNCATE_MARKER = "… [truncated]"
FALLBACK_SUBJECTIVE = "Unable to generate SOAP note. Please try again or enter manually."

# (heading, accepted keys) in output order
PLAN_SECTIONS = (
    ("Interventions", ("interventions", "intervention", "treatment_interventions", "treatments")),
    ("Modalities", ("modalities", "modality", "electrotherapy")),
    ("Short-term Goals", ("goals", "short_term_goals")),
    ("Long-term Goals", ("long_term_goals", "longTermGoals")),
    ("Patient Education", ("patient_education", "education", "patient_teaching")),
    ("Home Exercise Program", ("home_exercise_program", "exercises", "home_exercises", "HEP")),
    ("Follow-up", ("follow_up_recommendations", "follow_up", "followUp", "followup")),
)

def _json_object(text: str) -> Optional[Dict[str, Any]]:
    match = re.search(r"\{[\s\S]*\}", text)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except ValueError:
        jlog(event="soap_parse_json_failed", severity="WARNING", text_len=len(text))
        return None
    return data if isinstance(data, dict) else None

def _pick(plan: Dict[str, Any], keys) -> Any:
    for key in keys:
        if plan.get(key):
            return plan[key]
    return []

def _describe(item: Any) -> List[str]:
    if isinstance(item, str):
        return [f"- {item}"]
    if isinstance(item, dict):
        label = item.get("type") or item.get("name") or item.get("description") or json.dumps(item)
        lines = [f"- {label}"]
        if item.get("frequency"):
            lines.append(f"  Frequency: {item['frequency']}")
        return lines
    return [f"- {item}"]

def format_treatment_plan(plan: Any) -> str:
    """Plans sometimes come back as objects; flatten them into the structured text format."""
    if not plan:
        return NOT_DOCUMENTED
    if isinstance(plan, str):
        return plan
    if not isinstance(plan, dict):
        return str(plan)

    blocks = []
    for heading, keys in PLAN_SECTIONS:
        items = _pick(plan, keys)
        if isinstance(items, list) and items:
            lines = [f"{heading}:"]
            for item in items:
                lines.extend(_describe(item))
            blocks.append("\n".join(lines))
    text = "\n\n".join(blocks)

    if not text.strip():
        text = plan.get("text") or plan.get("description") or plan.get("plan_text") or ""

    if not str(text).strip():
        pairs = []
        for key, value in plan.items():
            if isinstance(value, str) and value.strip():
                pairs.append(f"{key}: {value}")
            elif isinstance(value, list) and value:
                pairs.append(f"{key}: {', '.join(str(v) for v in value)}")
        text = "\n".join(pairs)

    return str(text).strip() or NOT_DOCUMENTED

def cap_plan(plan: str) -> str:
    if len(plan) > MAX_PLAN_LENGTH:
        jlog(event="soap_plan_truncated", original_length=len(plan), max_length=MAX_PLAN_LENGTH)
        return plan[: MAX_PLAN_LENGTH - len(TRUNCATE_MARKER)] + TRUNCATE_MARKER
    return plan.strip() or NOT_DOCUMENTED

def _first_text(data: Dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        if data.get(key):
            return str(data[key])
    return None

def parse_soap_response(payload: Any) -> SOAPNote:
    """Accepts {soap: {...}}, JSON inside a text field, raw text or Gemini candidates."""
    if isinstance(payload, str):
        payload = {"text": payload}

    data: Optional[Dict[str, Any]] = None
    if isinstance(payload, dict):
        if isinstance(payload.get("soap"), dict):
            data = payload["soap"]
        elif isinstance(payload.get("text"), str):
            data = _json_object(payload["text"])
        else:
            try:
                text = payload["candidates"][0]["content"]["parts"][0]["text"]
            except (KeyError, IndexError, TypeError):
                text = None
            if isinstance(text, str):
                data = _json_object(text)

    if not data:
        jlog(event="soap_parse_fallback", severity="WARNING")
        return SOAPNote(subjective=FALLBACK_SUBJECTIVE, objective="", assessment="", plan="")

    return SOAPNote(
        subjective=str(data.get("subjective") or NOT_DOCUMENTED),
        objective=str(data.get("objective") or NOT_DOCUMENTED),
        assessment=str(data.get("assessment") or NOT_DOCUMENTED),
        plan=cap_plan(format_treatment_plan(data.get("plan"))),
        additional_notes=_first_text(data, "additional_notes", "additionalNotes"),
        follow_up=_first_text(data, "follow_up", "followUp"),
        precautions=_first_text(data, "precautions"),
        referrals=_first_text(data, "referrals"),
    )
