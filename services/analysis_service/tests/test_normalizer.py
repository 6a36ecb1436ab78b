import json

import pytest

from services.analysis_service.src.field_mapper import to_soap_analysis
from services.analysis_service.src.normalizer import (
    clean_flags,
    map_exposure,
    merge_unique,
    normalize_vertex_response,
    normalize_with_source,
)
from services.analysis_service.src.schemas import PhysicalTestSuggestion
from services.common.exceptions import PermanentError

PAYLOAD = {
    "medicolegal_alerts": {
        "red_flags": ["NSAIDs + SSRIs interaction, consider physician review", "No critical red flags"],
        "yellow_flags": ["Fear of movement", "None identified"],
        "legal_exposure": "Moderate",
        "alert_notes": ["Document consent", "Monitor night pain"],
    },
    "conversation_highlights": {
        "chief_complaint": "",
        "summary": "Lumbar pain radiating to L leg",
        "key_findings": ["Pain 7/10", "  "],
        "medical_history": "Hypertension",
        "medications": ["Ibuprofen 400 mg TID"],
    },
    "recommended_physical_tests": [
        "Slump test",
        {"name": "SLR", "sensitivity": "0.91", "specificity": 0.26, "objective": "Neural tension",
         "region": "lumbar", "rationale": "Radicular pattern", "evidence_level": "STRONG"},
        None,
    ],
    "biopsychosocial_factors": {
        "psychological": ["Fear of movement"],
        "social": ["Lives alone"],
        "occupational": ["Warehouse worker"],
        "protective_factors": ["Motivated"],
        "functional_limitations": ["Cannot lift > 10 kg"],
        "patient_strengths": ["Active lifestyle"],
        "legal_or_employment_context": ["WSIB claim open", "Fear of movement"],
    },
}


def test_structured_payload_mapping():
    analysis = normalize_vertex_response(PAYLOAD)

    assert analysis.chief_complaint == "Lumbar pain radiating to L leg"
    assert analysis.red_flags == ["NSAIDs + SSRIs interaction, consider physician review"]
    assert analysis.yellow_flags == ["Fear of movement", "WSIB claim open"]
    assert analysis.legal_risk == "moderate"
    assert analysis.safety_notes == "Document consent • Monitor night pain"
    assert analysis.clinical_findings == ["Pain 7/10"]
    assert analysis.medical_history == ["Hypertension"]
    assert analysis.psychosocial_context == ["Fear of movement", "Lives alone", "Motivated"]
    assert analysis.biopsychosocial_functional_limitations == ["Cannot lift > 10 kg"]

    slump, slr = analysis.suggested_physical_tests
    assert slump == "Slump test"
    assert isinstance(slr, PhysicalTestSuggestion)
    assert slr.test == "SLR"
    assert slr.sensitivity == pytest.approx(0.91)
    assert slr.justification == "Radicular pattern · Region: lumbar · Evidence: strong"
    assert slr.evidence == "STRONG"


def test_gemini_candidates_are_unwrapped():
    raw = {"candidates": [{"content": {"parts": [{"text": "```json\n" + json.dumps(PAYLOAD) + "\n```"}]}}]}
    analysis, source = normalize_with_source(raw)
    assert analysis.legal_risk == "moderate"
    assert source == "extracted-json"


def test_function_call_and_output_text_are_unwrapped():
    fc = {"candidates": [{"content": {"parts": [{"functionCall": {"args": {"text": json.dumps(PAYLOAD)}}}]}}]}
    assert normalize_vertex_response(fc).legal_risk == "moderate"
    assert normalize_vertex_response({"output_text": json.dumps(PAYLOAD)}).legal_risk == "moderate"


def test_legacy_spanish_payload():
    analysis = normalize_vertex_response(
        {
            "motivo_consulta": "Dolor cervical",
            "hallazgos_clinicos": ["Rigidez"],
            "red_flags": ["none identified"],
            "riesgo_legal": "alto",
            "evaluaciones_fisicas_sugeridas": [{"test": "Spurling", "sensibilidad": "x", "objetivo": "Radiculopatia"}],
        }
    )
    assert analysis.chief_complaint == "Dolor cervical"
    assert analysis.relevant_findings == ["Rigidez"]
    assert analysis.red_flags == []
    assert analysis.legal_risk == "high"
    test = analysis.suggested_physical_tests[0]
    assert test.test == "Spurling"
    assert test.sensitivity is None
    assert test.objective == "Radiculopatia"


def test_parse_failure_raises_permanent_error():
    with pytest.raises(PermanentError, match="quota"):
        normalize_vertex_response({"error": "quota exceeded"})
    with pytest.raises(PermanentError, match="Unrecognized response format"):
        normalize_vertex_response(None)


@pytest.mark.parametrize(
    "value,expected",
    [("Medium", "moderate"), ("HIGH", "high"), ("riesgo alto", "high"), ("low", "low"), (None, "low"), (3, "low")],
)
def test_map_exposure(value, expected):
    assert map_exposure(value) == expected


def test_clean_flags_and_merge_unique():
    assert clean_flags("Night pain") == ["Night pain"]
    assert clean_flags(["None identified at this time", "  "]) == []
    assert merge_unique(["a", "b"], ["b", "c", ""], ["a"]) == ["a", "b", "c"]


def test_field_mapper_builds_soap_context():
    context = to_soap_analysis(normalize_vertex_response(PAYLOAD))

    assert context.chief_complaint == "Lumbar pain radiating to L leg"
    assert context.key_findings == ["Pain 7/10"]
    assert context.medications == ["Ibuprofen 400 mg TID"]
    assert context.suggested_tests == ["Slump test", "SLR"]
    assert context.biopsychosocial.occupational == ["Warehouse worker"]
    assert context.biopsychosocial.protective == ["Motivated"]
    assert context.biopsychosocial.patient_strengths == ["Active lifestyle"]


def test_wrong_typed_sections_are_treated_as_empty():
    analysis = normalize_vertex_response(
        {
            "medicolegal_alerts": ["Night pain"],
            "conversation_highlights": "Lumbar pain",
            "recommended_physical_tests": [],
            "biopsychosocial_factors": {},
        }
    )
    assert analysis.chief_complaint == ""
    assert analysis.red_flags == []
    assert analysis.legal_risk == "low"
    assert analysis.psychosocial_context == []


def test_malformed_gemini_wrappers_are_skipped():
    bad_content = {"candidates": [{"content": "oops"}], "output_text": json.dumps(PAYLOAD)}
    assert normalize_vertex_response(bad_content).legal_risk == "moderate"

    bad_call = {"candidates": [{"content": {"parts": [{"functionCall": "x"}, {"text": json.dumps(PAYLOAD)}]}}]}
    assert normalize_vertex_response(bad_call).legal_risk == "moderate"
