from typing import Optional

from anyio import to_thread
from fastapi import APIRouter, Header, HTTPException

from ....common.exceptions import PermanentError, RetryableError
from ....common.logging import jlog
from .. import service
from ..schemas import SoapNoteRequest, SoapNoteResponse

router = APIRouter()

# X-Professional-Id is the audit actor for PHI handling; anonymous calls are audited as "system"
@router.post(
    "/soap_note",
    response_model=SoapNoteResponse,
    summary="Generate a de-identified SOAP note from a consultation transcript",
)
async def soap_note(
    payload: SoapNoteRequest,
    x_correlation_id: Optional[str] = Header(default=None),
    x_idempotency_key: Optional[str] = Header(default=None),
    x_professional_id: Optional[str] = Header(default=None),
) -> SoapNoteResponse:
    request_ids = {"correlation_id": x_correlation_id, "idempotency_key": x_idempotency_key}
    try:
        return await to_thread.run_sync(
            service.generate_soap_with_idempotency,
            payload,
            x_correlation_id,
            x_idempotency_key,
            x_professional_id,
        )
    except (RetryableError, PermanentError) as e:
        retryable = isinstance(e, RetryableError)
        jlog(
            event="soap_failed",
            severity="WARNING" if retryable else "ERROR",
            retryable=retryable,
            error=str(e),
            visit_type=payload.visit_type,
            **request_ids,
        )
        raise HTTPException(status_code=503 if retryable else 422, detail=str(e))
