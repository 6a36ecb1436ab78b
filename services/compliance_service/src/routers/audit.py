from anyio import to_thread
from fastapi import APIRouter, Depends, HTTPException

from ....common.auth import verify_professional
from ....common.exceptions import RetryableError
from ....common.logging import jlog
from .. import service
from ..schemas import AuditTrailResponse

router = APIRouter()

@router.get(
    "/audit/{patient_id}",
    response_model=AuditTrailResponse,
    summary="PHIPA audit trail for a patient, newest first",
)
async def audit_trail(patient_id: str, professional_id: str = Depends(verify_professional)) -> AuditTrailResponse:
    try:
        return await to_thread.run_sync(service.get_audit_trail, patient_id, professional_id)
    except RetryableError as e:
        jlog(event="audit_trail_failed", retryable=True, error=str(e), patient_id=patient_id)
        raise HTTPException(status_code=503, detail=str(e))
