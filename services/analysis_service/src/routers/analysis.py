from anyio import to_thread
from fastapi import APIRouter, HTTPException, status

from ....common.exceptions import PermanentError, RetryableError
from ....common.logging import jlog
from .. import service
from ..schemas import AnalysisRequest, AnalysisResponse, NormalizeRequest, NormalizeResponse

router = APIRouter()

@router.post(
    "/analysis",
    response_model=AnalysisResponse,
    summary="Clinical analysis of a de-identified transcript",
    status_code=status.HTTP_200_OK,
)
async def analysis(payload: AnalysisRequest) -> AnalysisResponse:
    try:
        return await to_thread.run_sync(service.analyze_transcript, payload)
    except RetryableError as e:
        jlog(event="analysis_failed", retryable=True, error=str(e), request_trace_id=payload.trace_id)
        raise HTTPException(status_code=503, detail=str(e))
    except PermanentError as e:
        jlog(event="analysis_failed", retryable=False, error=str(e), request_trace_id=payload.trace_id)
        raise HTTPException(status_code=422, detail=str(e))

@router.post(
    "/analysis/normalize",
    response_model=NormalizeResponse,
    summary="Normalize a raw model payload without calling the model",
)
def normalize(payload: NormalizeRequest) -> NormalizeResponse:
    try:
        return service.normalize_payload(payload.raw)
    except PermanentError as e:
        jlog(event="analysis_normalize_failed", retryable=False, error=str(e))
        raise HTTPException(status_code=422, detail=str(e))
