from anyio import to_thread
from fastapi import APIRouter, Depends, HTTPException, status

from ....common.auth import verify_professional
from ....common.exceptions import ConsentDeclinedError, PermanentError, RetryableError
from ....common.logging import jlog
from .. import service
from ..schemas import ConsentRecordRequest, ConsentRecordResponse, ConsentStatusRequest, ConsentStatusResponse

router = APIRouter(prefix="/consent")

@router.post(
    "",
    response_model=ConsentRecordResponse,
    summary="Record a patient's consent decision",
    status_code=status.HTTP_201_CREATED,
)
async def record_consent(
    payload: ConsentRecordRequest,
    professional_id: str = Depends(verify_professional),
) -> ConsentRecordResponse:
    try:
        return await to_thread.run_sync(service.record_patient_consent, payload, professional_id)
    except RetryableError as e:
        jlog(event="consent_record_failed", retryable=True, error=str(e), patient_id=payload.patient_id)
        raise HTTPException(status_code=503, detail=str(e))
    except PermanentError as e:
        jlog(event="consent_record_failed", retryable=False, error=str(e), patient_id=payload.patient_id)
        raise HTTPException(status_code=422, detail=str(e))

@router.post(
    "/status",
    response_model=ConsentStatusResponse,
    summary="Consent status of a patient for the calling professional",
)
async def consent_status(
    payload: ConsentStatusRequest,
    professional_id: str = Depends(verify_professional),
) -> ConsentStatusResponse:
    try:
        return await to_thread.run_sync(service.resolve_consent_status, payload.patient_id, professional_id)
    except RetryableError as e:
        jlog(event="consent_status_failed", retryable=True, error=str(e), patient_id=payload.patient_id)
        raise HTTPException(status_code=503, detail=str(e))
    except PermanentError as e:
        jlog(event="consent_status_failed", retryable=False, error=str(e), patient_id=payload.patient_id)
        raise HTTPException(status_code=422, detail=str(e))

@router.post(
    "/require",
    response_model=ConsentStatusResponse,
    summary="Confirm the patient's consent before AI processing",
)
async def require_consent(
    payload: ConsentStatusRequest,
    professional_id: str = Depends(verify_professional),
) -> ConsentStatusResponse:
    try:
        return await to_thread.run_sync(service.require_consent, payload.patient_id, professional_id)
    except ConsentDeclinedError as e:
        jlog(event="consent_gate_blocked", severity="WARNING", patient_id=payload.patient_id)
        raise HTTPException(status_code=403, detail=str(e))
    except RetryableError as e:
        jlog(event="consent_gate_failed", retryable=True, error=str(e), patient_id=payload.patient_id)
        raise HTTPException(status_code=503, detail=str(e))
    except PermanentError as e:
        jlog(event="consent_gate_failed", retryable=False, error=str(e), patient_id=payload.patient_id)
        raise HTTPException(status_code=422, detail=str(e))
