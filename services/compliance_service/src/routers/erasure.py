from anyio import to_thread
from fastapi import APIRouter, Depends, HTTPException, status

from ....common.auth import verify_professional
from ....common.exceptions import AuthorizationError, PermanentError, RetryableError
from ....common.logging import jlog
from .. import erasure
from ..schemas import DeletionCertificate, ErasureRequest

router = APIRouter(prefix="/erasure")

@router.post(
    "",
    response_model=DeletionCertificate,
    summary="Erase a patient's data and issue a deletion certificate",
    status_code=status.HTTP_201_CREATED,
)
async def erase_patient(
    payload: ErasureRequest, professional_id: str = Depends(verify_professional)
) -> DeletionCertificate:
    try:
        return await to_thread.run_sync(erasure.process_erasure_request, payload, professional_id)
    except AuthorizationError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except RetryableError as e:
        jlog(event="erasure_request_failed", retryable=True, error=str(e), patient_id=payload.patient_id)
        raise HTTPException(status_code=503, detail=str(e))
    except PermanentError as e:
        jlog(event="erasure_request_failed", retryable=False, error=str(e), patient_id=payload.patient_id)
        raise HTTPException(status_code=422, detail=str(e))

@router.get("/certificates/{certificate_id}", response_model=DeletionCertificate)
async def deletion_certificate(
    certificate_id: str, professional_id: str = Depends(verify_professional)
) -> DeletionCertificate:
    certificate = await to_thread.run_sync(erasure.get_deletion_certificate, certificate_id)
    if certificate is None:
        raise HTTPException(status_code=404, detail="Deletion certificate not found")
    return certificate
