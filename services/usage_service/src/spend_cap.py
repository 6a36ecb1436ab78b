"""
Monthly spend cap for a clinician's subscription.

Spend for a month is the base plan price plus every token package bought
in that calendar month, whatever its current status.
"""

import calendar
from datetime import datetime
from typing import Any, Dict, List, Optional

from ...common.dependencies import get_document_store
from ...common.exceptions import PermanentError
from ...common.logging import jlog
from ...common.timeutils import as_datetime, utcnow
from .config import settings
from .pricing import BASE_PRICE, TOKEN_PACKAGES
from .schemas import SpendCapRequest, SpendSummary

def load_account(user_id: str) -> Dict[str, Any]:
    return get_document_store().get(settings.usage_collection, user_id) or {}

def purchases_for(user_id: str) -> List[Dict[str, Any]]:
    rows = get_document_store().query(settings.purchases_collection, [("user_id", "==", user_id)])
    return [dict(data, id=doc_id) for doc_id, data in rows]

def set_monthly_spend_cap(user_id: str, cap: Optional[float]) -> None:
    if cap is not None and cap < 0:
        raise PermanentError("Spend cap cannot be negative")
    get_document_store().set(settings.usage_collection, user_id, {"monthly_spend_cap": cap}, merge=True)
    jlog(event="spend_cap_set", user_id=user_id, monthly_spend_cap=cap)

def get_monthly_spend_cap(user_id: str) -> Optional[float]:
    cap = load_account(user_id).get("monthly_spend_cap")
    return float(cap) if cap is not None else None

def update_spend_controls(user_id: str, req: SpendCapRequest) -> SpendSummary:
    fields = req.model_fields_set
    if "monthly_spend_cap" in fields:
        set_monthly_spend_cap(user_id, req.monthly_spend_cap)
    controls: Dict[str, Any] = {}
    if req.auto_token_purchase is not None:
        controls["auto_token_purchase"] = req.auto_token_purchase
    if req.preferred_package_size is not None:
        controls["preferred_package_size"] = req.preferred_package_size
    if controls:
        get_document_store().set(settings.usage_collection, user_id, controls, merge=True)
    return spend_summary(user_id)

def get_current_month_spend(user_id: str, now: Optional[datetime] = None) -> float:
    now = now or utcnow()
    spend = BASE_PRICE
    for purchase in purchases_for(user_id):
        bought = as_datetime(purchase.get("purchase_date"))
        if bought and bought.year == now.year and bought.month == now.month:
            spend += float(purchase.get("price_cad") or 0)
    return round(spend, 2)

def project_monthly_spend(user_id: str, now: Optional[datetime] = None) -> float:
    """Extrapolate this month's spend from the pace so far."""
    now = now or utcnow()
    spend = get_current_month_spend(user_id, now)
    days_in_month = calendar.monthrange(now.year, now.month)[1]
    return round(spend / now.day * days_in_month, 2)

def would_exceed_spend_cap(user_id: str, additional_cost: float, now: Optional[datetime] = None) -> bool:
    cap = get_monthly_spend_cap(user_id)
    if cap is None:
        return False
    return get_current_month_spend(user_id, now) + additional_cost > cap

def preferred_package(user_id: str) -> str:
    size = load_account(user_id).get("preferred_package_size")
    return size if size in TOKEN_PACKAGES else "small"

def spend_summary(user_id: str, now: Optional[datetime] = None) -> SpendSummary:
    now = now or utcnow()
    account = load_account(user_id)
    return SpendSummary(
        monthly_spend_cap=get_monthly_spend_cap(user_id),
        current_month_spend=get_current_month_spend(user_id, now),
        projected_monthly_spend=project_monthly_spend(user_id, now),
        auto_token_purchase=bool(account.get("auto_token_purchase", False)),
        preferred_package_size=preferred_package(user_id),
    )
