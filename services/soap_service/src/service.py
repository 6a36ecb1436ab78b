import re
import time
from typing import Optional, Tuple

from ...common.context import set_context
from ...common.exceptions import PermanentError
from ...common.logging import jlog
from ...common.sanitize import hash_preview
from ...common.timeutils import utcnow_iso
from ...common.vertex import VertexClient
from .config import settings
from .deidentify import deidentify, entity_counts, log_deidentification, reidentify
from .parser import parse_soap_response
from .prompt import build_follow_up_prompt, build_soap_prompt, compare_token_usage
from .schemas import (
    QualityInfo,
    SOAPNote,
    SoapMetadata,
    SoapNoteRequest,
    SoapNoteResponse,
    TokenInfo,
    ValidationSummary,
)
from .storage import load_artifact, save_artifact
from .validation import truncate_soap_to_limits, validate_soap

OBJECTIVE_SIGNAL = re.compile(
    r"\b(rom|range of motion|strength|palpation|tenderness|swelling|gait|degrees?|kg|lbs?)\b|\b\d+\b"
)
MIN_TRANSCRIPT_WORDS = 15

_client: Optional[VertexClient] = None

def get_vertex_client() -> VertexClient:
    global _client
    if _client is None:
        _client = VertexClient()
    return _client

def evaluate_pre_soap_quality(req: SoapNoteRequest) -> QualityInfo:
    """Refuse to draft from transcripts with no clinical signal; flag subjective-only input."""
    transcript = req.transcript.lower()
    has_objective = bool(req.physical_exam_results) or OBJECTIVE_SIGNAL.search(transcript) is not None
    long_enough = len(transcript.split()) >= MIN_TRANSCRIPT_WORDS

    if not long_enough and not has_objective:
        return QualityInfo(level="unsafe", flags=["no_clinical_signal"])
    if not has_objective:
        return QualityInfo(level="degraded", flags=["subjective_only"])
    return QualityInfo()

def apply_post_soap_quality_guard(soap: SOAPNote) -> Tuple[SOAPNote, list]:
    """No objective, no assessment; no assessment, no plan."""
    flags = []
    updates = {}
    if len(soap.objective.strip()) <= 20 and soap.assessment:
        updates["assessment"] = ""
        flags.append("assessment_removed_no_objective")
    if not updates.get("assessment", soap.assessment) and soap.plan:
        updates["plan"] = ""
        flags.append("plan_removed_no_assessment")
    return soap.model_copy(update=updates), flags

SOAP_TEXT_FIELDS = (
    "subjective", "objective", "assessment", "plan",
    "additional_notes", "follow_up", "precautions", "referrals",
)

def _reidentify_note(soap: SOAPNote, identifiers) -> SOAPNote:
    return soap.model_copy(
        update={
            section: reidentify(getattr(soap, section), identifiers)
            for section in SOAP_TEXT_FIELDS
            if getattr(soap, section) is not None
        }
    )

def generate_soap_with_idempotency(
    req: SoapNoteRequest,
    correlation_id: Optional[str],
    idempotency_key: Optional[str],
    professional_id: Optional[str] = None,
) -> SoapNoteResponse:
    if not req.transcript or not req.transcript.strip():
        raise PermanentError("Empty transcript")

    set_context(correlation_id, idempotency_key, professional_id)

    cached = load_artifact(idempotency_key)
    if cached:
        jlog(
            event="soap_cache_hit",
            correlation_id=correlation_id,
            idempotency_key=idempotency_key,
            text_hash=hash_preview(req.transcript),
        )
        return cached

    trace_id = f"soap-{req.visit_type}-{int(time.time() * 1000)}"
    optimized = req.analysis_level == "optimized"

    quality = evaluate_pre_soap_quality(req)
    if quality.level == "unsafe":
        jlog(event="soap_guard_blocked", correlation_id=correlation_id, flags=quality.flags)
        return SoapNoteResponse(
            soap=None,
            metadata=SoapMetadata(
                model="guard-blocked",
                timestamp=utcnow_iso(),
                visit_type=req.visit_type,
                session_type=req.session_type,
                analysis_level=req.analysis_level,
                quality=quality,
            ),
        )

    text, identifiers = deidentify(req.transcript)
    log_deidentification("deidentify", len(req.transcript), identifiers, professional_id, req.patient_id, trace_id)

    prompt = build_soap_prompt(
        text,
        req.analysis,
        req.physical_exam_results,
        visit_type=req.visit_type,
        session_type=req.session_type,
        previous_visits=req.previous_visits,
        optimized=optimized,
    )

    token_optimization = None
    if optimized and req.visit_type == "follow-up" and req.session_type not in ("wsib", "mva", "certificate"):
        standard = build_follow_up_prompt(text, req.analysis, req.physical_exam_results, req.previous_visits)
        token_optimization = compare_token_usage(prompt, standard)

    result = get_vertex_client().generate(
        prompt,
        temperature=settings.soap_temperature,
        max_output_tokens=settings.soap_max_output_tokens,
        json_mode=settings.soap_json_mode,
        trace_id=trace_id,
    )

    soap = parse_soap_response(result.text)
    soap, post_flags = apply_post_soap_quality_guard(soap)

    if identifiers:
        soap = _reidentify_note(soap, identifiers)
        log_deidentification(
            "reidentify", len(soap.model_dump_json()), identifiers, professional_id, req.patient_id, trace_id
        )

    validation = validate_soap(soap, req.physical_exam_results)
    condensed = False
    if not validation.is_valid:
        jlog(event="soap_condensed", severity="WARNING", correlation_id=correlation_id, errors=validation.errors)
        soap = truncate_soap_to_limits(soap)
        condensed = True
        validation = validate_soap(soap, req.physical_exam_results)
        if not validation.is_valid:
            jlog(event="soap_still_too_long", severity="ERROR", correlation_id=correlation_id, errors=validation.errors)

    resp = SoapNoteResponse(
        soap=soap,
        metadata=SoapMetadata(
            model=result.model,
            tokens=TokenInfo(input=result.usage.prompt_tokens, output=result.usage.completion_tokens),
            timestamp=utcnow_iso(),
            visit_type=req.visit_type,
            session_type=req.session_type,
            analysis_level=req.analysis_level,
            token_optimization=token_optimization,
            validation=ValidationSummary(
                total_characters=validation.total_characters,
                is_valid=validation.is_valid,
                has_repetition=validation.repetition_check.has_repetition,
                region_violations=validation.region_violations,
                condensed=condensed,
                warnings=validation.warnings,
            ),
            quality=QualityInfo(
                level="ok" if quality.level == "ok" and not post_flags else "degraded",
                flags=quality.flags + post_flags,
            ),
            deidentified_entities=entity_counts(identifiers),
        ),
    )
    save_artifact(idempotency_key, resp)
    jlog(
        event="soap_ok",
        correlation_id=correlation_id,
        idempotency_key=idempotency_key,
        text_hash=hash_preview(req.transcript),
        total_characters=validation.total_characters,
        quality=resp.metadata.quality.level,
    )
    return resp
