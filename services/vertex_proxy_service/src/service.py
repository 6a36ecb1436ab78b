import time
from typing import Any, Dict, Optional

from ...common.log_calls import log_calls
from ...common.logging import jlog
from ...common.sanitize import hash_preview
from ...common.vertex import VertexClient
from .config import settings
from .prompt import build_clinical_info_prompt, build_voice_summary_prompt
from .schemas import (
    ClinicalInfoRequest,
    ClinicalInfoResponse,
    Usage,
    VertexRequest,
    VertexResponse,
    VoiceSummaryRequest,
    VoiceSummaryResponse,
)

# Generation defaults per proxy action
ACTION_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "analyze": {"temperature": 0.2, "max_output_tokens": 4096, "json_mode": True},
    "generate_soap": {"temperature": 0.3, "max_output_tokens": 4096, "json_mode": True},
    "voice_summary": {"temperature": 0.4, "max_output_tokens": 512, "json_mode": False},
    "voice_clinical_info": {"temperature": 0.4, "max_output_tokens": 512, "json_mode": False},
}

_client: Optional[VertexClient] = None

def get_vertex_client() -> VertexClient:
    global _client
    if _client is None:
        _client = VertexClient()
    return _client

def extract_text_field(data: Any) -> Optional[str]:
    """Pull the generated text out of whatever shape the proxy or Gemini returned."""
    if not data:
        return None
    if isinstance(data, str):
        return data
    if not isinstance(data, dict):
        return None
    for key in ("text", "summary", "summaryText", "answer", "answerText"):
        if isinstance(data.get(key), str):
            return data[key]
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) and text else None

@log_calls()
def proxy_vertex(payload: VertexRequest) -> VertexResponse:
    trace_id = payload.trace_id or f"{payload.action}|ts:{int(time.time() * 1000)}"
    defaults = ACTION_DEFAULTS[payload.action]

    jlog(
        event="vertex_proxy_request",
        action=payload.action,
        request_trace_id=trace_id,
        prompt_preview=hash_preview(payload.prompt),
    )
    result = get_vertex_client().generate(
        payload.prompt,
        model=payload.model,
        temperature=defaults["temperature"],
        max_output_tokens=defaults["max_output_tokens"],
        json_mode=defaults["json_mode"],
        trace_id=trace_id,
    )
    return VertexResponse(
        text=result.text,
        usage=Usage(**result.usage.model_dump()),
        model=result.model,
        traceId=trace_id,
    )

def run_voice_summary(payload: VoiceSummaryRequest) -> VoiceSummaryResponse:
    if not payload.transcript.strip():
        return VoiceSummaryResponse(summary=None)

    trace_id = f"voice-summary|lang:{payload.language}|ts:{int(time.time() * 1000)}"
    result = get_vertex_client().generate(
        build_voice_summary_prompt(payload.transcript, payload.language),
        temperature=settings.voice_temperature,
        max_output_tokens=settings.voice_max_output_tokens,
        trace_id=trace_id,
    )
    summary = extract_text_field(result.text)
    return VoiceSummaryResponse(summary=summary.strip() if summary else None)

def run_voice_clinical_info(payload: ClinicalInfoRequest) -> ClinicalInfoResponse:
    if not payload.query_text.strip():
        return ClinicalInfoResponse(answer=None)

    trace_id = (
        f"voice-clinical-info|cat:{payload.category}|lang:{payload.language}|ts:{int(time.time() * 1000)}"
    )
    result = get_vertex_client().generate(
        build_clinical_info_prompt(payload.query_text, payload.category, payload.language, payload.context),
        temperature=settings.voice_temperature,
        max_output_tokens=settings.voice_max_output_tokens,
        trace_id=trace_id,
    )
    answer = extract_text_field(result.text)
    return ClinicalInfoResponse(answer=answer.strip() if answer else None)
