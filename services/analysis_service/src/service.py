import time
from typing import Any, Optional

from ...common.exceptions import PermanentError
from ...common.log_calls import log_calls
from ...common.logging import jlog
from ...common.vertex import VertexClient
from .config import settings
from .field_mapper import to_soap_analysis
from .normalizer import normalize_with_source
from .prompt import build_analysis_prompt, sanitize_transcript
from .schemas import AnalysisRequest, AnalysisResponse, NormalizeResponse, Usage

_client: Optional[VertexClient] = None

def get_vertex_client() -> VertexClient:
    global _client
    if _client is None:
        _client = VertexClient()
    return _client

@log_calls()
def analyze_transcript(payload: AnalysisRequest) -> AnalysisResponse:
    transcript = sanitize_transcript(payload.transcript, settings.max_transcript_chars)
    if not transcript:
        raise PermanentError("Transcript is empty")

    trace_id = payload.trace_id or f"analysis|lang:{payload.language}|ts:{int(time.time() * 1000)}"
    prompt = build_analysis_prompt(
        transcript,
        language=payload.language,
        visit_type=payload.visit_type,
        profile=payload.professional_profile,
    )
    result = get_vertex_client().generate(
        prompt,
        temperature=settings.analysis_temperature,
        max_output_tokens=settings.analysis_max_output_tokens,
        json_mode=True,
        trace_id=trace_id,
    )

    analysis, source = normalize_with_source(result.text)
    jlog(
        event="analysis_ok",
        request_trace_id=trace_id,
        source=source,
        red_flags=len(analysis.red_flags),
        yellow_flags=len(analysis.yellow_flags),
        tests=len(analysis.suggested_physical_tests),
        legal_risk=analysis.legal_risk,
    )
    return AnalysisResponse(
        analysis=analysis,
        soap_context=to_soap_analysis(analysis),
        source=source,
        usage=Usage(**result.usage.model_dump()),
        model=result.model,
        traceId=trace_id,
    )

def normalize_payload(raw: Any) -> NormalizeResponse:
    analysis, source = normalize_with_source(raw)
    return NormalizeResponse(analysis=analysis, soap_context=to_soap_analysis(analysis), source=source)
