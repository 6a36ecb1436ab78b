from anyio import to_thread
from fastapi import APIRouter, HTTPException

from ....common.exceptions import PermanentError, RetryableError
from ....common.logging import jlog
from .. import service
from ..schemas import ClinicalInfoRequest, ClinicalInfoResponse, VoiceSummaryRequest, VoiceSummaryResponse

router = APIRouter(prefix="/voice")

@router.post("/summary", response_model=VoiceSummaryResponse, summary="Summarize a consultation transcript")
async def voice_summary(payload: VoiceSummaryRequest) -> VoiceSummaryResponse:
    try:
        return await to_thread.run_sync(service.run_voice_summary, payload)
    except RetryableError as e:
        jlog(event="voice_summary_failed", retryable=True, error=str(e), language=payload.language)
        raise HTTPException(status_code=503, detail=str(e))
    except PermanentError as e:
        jlog(event="voice_summary_failed", retryable=False, error=str(e), language=payload.language)
        raise HTTPException(status_code=422, detail=str(e))

@router.post("/clinical-info", response_model=ClinicalInfoResponse, summary="Informational clinical context")
async def voice_clinical_info(payload: ClinicalInfoRequest) -> ClinicalInfoResponse:
    try:
        return await to_thread.run_sync(service.run_voice_clinical_info, payload)
    except RetryableError as e:
        jlog(event="voice_clinical_info_failed", retryable=True, error=str(e), category=payload.category)
        raise HTTPException(status_code=503, detail=str(e))
    except PermanentError as e:
        jlog(event="voice_clinical_info_failed", retryable=False, error=str(e), category=payload.category)
        raise HTTPException(status_code=422, detail=str(e))
