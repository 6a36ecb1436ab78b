from anyio import to_thread
from fastapi import APIRouter, Depends, HTTPException

from ....common.auth import verify_professional
from ....common.exceptions import InsufficientTokensError, PermanentError, RetryableError, SpendCapExceededError
from ....common.logging import jlog
from .. import service, spend_cap
from ..schemas import (
    ConsumeRequest,
    PurchaseRequest,
    PurchaseResult,
    SpendCapRequest,
    SpendSummary,
    TokenConsumptionResult,
    TokenUsage,
)

router = APIRouter(prefix="/usage")

def _own_account(user_id: str, professional_id: str) -> None:
    if user_id != professional_id:
        raise HTTPException(status_code=403, detail="Cannot access another user's usage")

async def _call(event: str, user_id: str, fn, *args):
    try:
        return await to_thread.run_sync(fn, *args)
    except RetryableError as e:
        jlog(event=event, retryable=True, error=str(e), user_id=user_id)
        raise HTTPException(status_code=503, detail=str(e))
    except (InsufficientTokensError, SpendCapExceededError) as e:
        jlog(event=event, retryable=False, error=str(e), user_id=user_id)
        raise HTTPException(status_code=402, detail=str(e))
    except PermanentError as e:
        jlog(event=event, retryable=False, error=str(e), user_id=user_id)
        raise HTTPException(status_code=422, detail=str(e))

@router.get("/{user_id}", response_model=TokenUsage, summary="Current token balance and monthly usage")
async def token_usage(user_id: str, professional_id: str = Depends(verify_professional)) -> TokenUsage:
    _own_account(user_id, professional_id)
    return await _call("usage_read_failed", user_id, service.get_current_token_usage, user_id)

@router.post("/{user_id}/consume", response_model=TokenConsumptionResult, summary="Record tokens used by a session")
async def consume_tokens(
    user_id: str,
    payload: ConsumeRequest,
    professional_id: str = Depends(verify_professional),
) -> TokenConsumptionResult:
    _own_account(user_id, professional_id)
    return await _call(
        "token_consume_failed", user_id, service.record_token_usage, user_id, payload.session_id, payload.tokens
    )

@router.post("/{user_id}/purchase", response_model=PurchaseResult, status_code=201, summary="Buy a token package")
async def purchase_tokens(
    user_id: str,
    payload: PurchaseRequest,
    professional_id: str = Depends(verify_professional),
) -> PurchaseResult:
    _own_account(user_id, professional_id)
    return await _call("token_purchase_failed", user_id, service.purchase_token_package, user_id, payload.package_type)

@router.put("/{user_id}/spend-cap", response_model=SpendSummary, summary="Set the monthly spend cap and auto-purchase")
async def update_spend_cap(
    user_id: str,
    payload: SpendCapRequest,
    professional_id: str = Depends(verify_professional),
) -> SpendSummary:
    _own_account(user_id, professional_id)
    return await _call("spend_cap_update_failed", user_id, spend_cap.update_spend_controls, user_id, payload)

@router.get("/{user_id}/spend", response_model=SpendSummary, summary="This month's spend against the cap")
async def monthly_spend(user_id: str, professional_id: str = Depends(verify_professional)) -> SpendSummary:
    _own_account(user_id, professional_id)
    return await _call("spend_read_failed", user_id, spend_cap.spend_summary, user_id)
