from typing import Optional

from anyio import to_thread
from fastapi import APIRouter, Depends, HTTPException, status

from ....common.auth import verify_professional
from ....common.exceptions import PermanentError
from ....common.logging import jlog
from .. import cross_border
from ..schemas import CrossBorderCheckResponse, CrossBorderConsentRequest, CrossBorderConsentStatus

router = APIRouter(prefix="/consent/cross-border")

@router.post(
    "",
    response_model=CrossBorderConsentStatus,
    summary="Give express consent to cross-border AI processing",
    status_code=status.HTTP_201_CREATED,
)
async def give_consent(
    payload: CrossBorderConsentRequest,
    user_id: str = Depends(verify_professional),
) -> CrossBorderConsentStatus:
    try:
        await to_thread.run_sync(cross_border.save_cross_border_consent, user_id, payload)
    except PermanentError as e:
        jlog(event="cross_border_consent_rejected", error=str(e), user_id=user_id)
        raise HTTPException(status_code=422, detail=str(e))
    return await to_thread.run_sync(cross_border.get_consent_status, user_id)

@router.get(
    "",
    response_model=CrossBorderCheckResponse,
    summary="Whether AI processing may proceed for this user (and patient)",
)
async def check_consent(
    patient_id: Optional[str] = None,
    user_id: str = Depends(verify_professional),
) -> CrossBorderCheckResponse:
    def check() -> CrossBorderCheckResponse:
        return CrossBorderCheckResponse(
            has_consented=cross_border.has_consented(user_id, patient_id),
            needs_renewal=cross_border.needs_renewal(user_id),
            status=cross_border.get_consent_status(user_id),
        )
    return await to_thread.run_sync(check)

@router.delete("", summary="Withdraw cross-border AI consent")
async def withdraw_consent(user_id: str = Depends(verify_professional)):
    revoked = await to_thread.run_sync(cross_border.revoke_consent, user_id)
    return {"revoked": revoked}
