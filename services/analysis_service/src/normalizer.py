from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from ...common.exceptions import PermanentError
from ...common.logging import jlog
from .parser import parse_vertex_response, validate_clinical_schema
from .schemas import ClinicalAnalysis, LegalExposure, PhysicalTestSuggestion

IGNORED_FLAG_PHRASES = ("none identified", "no critical")

def ensure_string_array(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    return []

def clean_flags(flags: Any) -> List[str]:
    return [
        flag for flag in ensure_string_array(flags)
        if not any(phrase in flag.lower() for phrase in IGNORED_FLAG_PHRASES)
    ]

def merge_unique(*arrays: Iterable[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for array in arrays:
        for item in array:
            if item:
                seen.setdefault(item, None)
    return list(seen)

def map_exposure(value: Any) -> LegalExposure:
    if not isinstance(value, str):
        return "low"
    normalized = value.lower()
    if "moderate" in normalized or "medium" in normalized:
        return "moderate"
    if "high" in normalized or "alto" in normalized:
        return "high"
    return "low"

def _as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None

def _first(item: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if item.get(key) is not None:
            return item[key]
    return None

def build_test_justification(item: Dict[str, Any]) -> str:
    pieces = []
    if item.get("rationale"):
        pieces.append(str(item["rationale"]))
    if item.get("region"):
        pieces.append(f"Region: {item['region']}")
    if item.get("evidence_level"):
        pieces.append(f"Evidence: {str(item['evidence_level']).lower()}")
    return " · ".join(pieces).strip()

def map_physical_tests(tests: Any) -> List[Union[str, PhysicalTestSuggestion]]:
    if not isinstance(tests, list):
        return []

    mapped: List[Union[str, PhysicalTestSuggestion]] = []
    for item in tests:
        if not item:
            continue
        if isinstance(item, str):
            mapped.append(item)
        elif isinstance(item, dict):
            mapped.append(
                PhysicalTestSuggestion(
                    test=str(item.get("name") or item.get("test") or "Physical test"),
                    sensitivity=_as_float(_first(item, "sensibilidad", "sensitivity")),
                    specificity=_as_float(_first(item, "especificidad", "specificity")),
                    objective=str(item.get("objective") or item.get("objetivo") or item.get("indicacion") or ""),
                    contraindications=str(item.get("contraindicado_si") or item.get("contraindications") or ""),
                    justification=build_test_justification(item),
                    evidence=item.get("evidence_level") or item.get("evidencia"),
                )
            )
    return mapped

def _section(payload: Dict[str, Any], key: str) -> Dict[str, Any]:
    # models sometimes answer a section as a bare list or string
    value = payload.get(key)
    return value if isinstance(value, dict) else {}

def map_structured_payload(payload: Dict[str, Any]) -> ClinicalAnalysis:
    alerts = _section(payload, "medicolegal_alerts")
    highlights = _section(payload, "conversation_highlights")
    biopsych = _section(payload, "biopsychosocial_factors")

    psychological = ensure_string_array(biopsych.get("psychological"))
    social = ensure_string_array(biopsych.get("social"))
    occupational = ensure_string_array(biopsych.get("occupational"))
    protective = ensure_string_array(biopsych.get("protective_factors"))
    legal_employment = ensure_string_array(biopsych.get("legal_or_employment_context"))
    key_findings = ensure_string_array(highlights.get("key_findings"))

    return ClinicalAnalysis(
        chief_complaint=str(highlights.get("chief_complaint") or highlights.get("summary") or ""),
        clinical_findings=key_findings,
        relevant_findings=list(key_findings),
        occupational_context=occupational,
        psychosocial_context=merge_unique(psychological, social, protective),
        current_medications=ensure_string_array(highlights.get("medications")),
        medical_history=ensure_string_array(highlights.get("medical_history")),
        red_flags=clean_flags(alerts.get("red_flags")),
        # legal and employment context still surfaces as yellow flags
        yellow_flags=merge_unique(clean_flags(alerts.get("yellow_flags")), legal_employment),
        suggested_physical_tests=map_physical_tests(payload.get("recommended_physical_tests")),
        safety_notes=" • ".join(ensure_string_array(alerts.get("alert_notes"))),
        legal_risk=map_exposure(alerts.get("legal_exposure")),
        biopsychosocial_psychological=psychological,
        biopsychosocial_social=social,
        biopsychosocial_occupational=occupational,
        biopsychosocial_protective=protective,
        biopsychosocial_functional_limitations=ensure_string_array(biopsych.get("functional_limitations")),
        biopsychosocial_patient_strengths=ensure_string_array(biopsych.get("patient_strengths")),
    )

def map_legacy_payload(payload: Dict[str, Any]) -> ClinicalAnalysis:
    """Older prompts answered with Spanish keys."""
    clinical_findings = ensure_string_array(payload.get("hallazgos_clinicos"))
    return ClinicalAnalysis(
        chief_complaint=str(payload.get("motivo_consulta") or ""),
        clinical_findings=clinical_findings,
        relevant_findings=ensure_string_array(payload.get("hallazgos_relevantes")) or list(clinical_findings),
        occupational_context=ensure_string_array(payload.get("contexto_ocupacional")),
        psychosocial_context=ensure_string_array(payload.get("contexto_psicosocial")),
        current_medications=ensure_string_array(payload.get("medicacion_actual")),
        medical_history=ensure_string_array(payload.get("antecedentes_medicos")),
        probable_diagnoses=ensure_string_array(payload.get("diagnosticos_probables")),
        red_flags=clean_flags(payload.get("red_flags")),
        yellow_flags=clean_flags(payload.get("yellow_flags")),
        suggested_physical_tests=map_physical_tests(payload.get("evaluaciones_fisicas_sugeridas")),
        recommended_referral=str(payload.get("derivacion_recomendada") or ""),
        estimated_prognosis=str(payload.get("pronostico_estimado") or ""),
        safety_notes=str(payload.get("notas_seguridad") or ""),
        legal_risk=map_exposure(payload.get("riesgo_legal")),
    )

def _gemini_text(raw: Dict[str, Any]) -> Optional[str]:
    candidates = raw.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return None
    content = candidates[0].get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return None

    for part in parts:
        if not isinstance(part, dict):
            continue
        if isinstance(part.get("text"), str) and part["text"]:
            return part["text"]
        call = part.get("functionCall")
        args = call.get("args") if isinstance(call, dict) else None
        if isinstance(args, dict) and isinstance(args.get("text"), str) and args["text"]:
            return args["text"]
        if part.get("inlineData"):
            return None
    return None

def normalize_with_source(raw: Any) -> Tuple[ClinicalAnalysis, str]:
    """Normalize any model payload; also report which parsing path succeeded."""
    if isinstance(raw, dict):
        text = _gemini_text(raw)
        if text:
            return normalize_with_source(text)
        if isinstance(raw.get("output_text"), str) and raw["output_text"]:
            return normalize_with_source(raw["output_text"])

    parsed = parse_vertex_response(raw)
    if not parsed.success:
        raise PermanentError(parsed.error or "Failed to parse Vertex AI response")

    data = parsed.data or {}
    if validate_clinical_schema(data):
        return map_structured_payload(data), parsed.source

    jlog(event="analysis_legacy_mapping", source=parsed.source)
    return map_legacy_payload(data), parsed.source

def normalize_vertex_response(raw: Any) -> ClinicalAnalysis:
    return normalize_with_source(raw)[0]
