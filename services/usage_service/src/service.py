"""
Token allocation and consumption for clinician subscriptions.

Each month includes TOKENS_INCLUDED base tokens that do not carry over.
Purchased packages roll over until they expire and are drawn oldest first
once the base allowance is spent.
"""

import calendar
import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from ...common.dependencies import get_document_store
from ...common.exceptions import InsufficientTokensError, PermanentError, SpendCapExceededError
from ...common.logging import jlog
from ...common.timeutils import as_datetime, utcnow
from . import spend_cap
from .config import settings
from .pricing import MAX_ROLLOVER_MONTHS, TOKEN_PACKAGES, TOKENS_INCLUDED
from .schemas import PurchaseResult, TokenConsumptionResult, TokenUsage

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

def billing_cycle_of(now: datetime) -> str:
    return now.strftime("%Y-%m")

def add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year, month = value.year + month_index // 12, month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)

def _base_used(account: Dict[str, Any], cycle: str) -> int:
    # a stored cycle from an earlier month means the allowance has rolled over
    if account.get("billing_cycle", cycle) != cycle:
        return 0
    return int(account.get("base_tokens_used") or 0)

def _active_purchases(user_id: str, now: datetime) -> List[Dict[str, Any]]:
    active = []
    for purchase in spend_cap.purchases_for(user_id):
        expires_at = as_datetime(purchase.get("expires_at"))
        if purchase.get("status") == "active" and expires_at and expires_at > now:
            active.append(purchase)
    active.sort(key=lambda p: as_datetime(p.get("purchase_date")) or EPOCH)
    return active

def get_current_token_usage(user_id: str, now: Optional[datetime] = None) -> TokenUsage:
    now = now or utcnow()
    account = spend_cap.load_account(user_id)
    cycle = billing_cycle_of(now)
    days_in_month = calendar.monthrange(now.year, now.month)[1]

    monthly = int(account.get("base_tokens_monthly") or TOKENS_INCLUDED)
    used = _base_used(account, cycle)
    base_remaining = max(0, monthly - used)
    purchased = sum(int(p.get("tokens_remaining") or 0) for p in _active_purchases(user_id, now))

    days_elapsed = now.day - 1
    projected = round(used / days_elapsed * days_in_month) if days_elapsed > 0 else used

    return TokenUsage(
        base_tokens_remaining=base_remaining,
        purchased_tokens_balance=purchased,
        total_available=base_remaining + purchased,
        monthly_usage=used,
        projected_monthly_usage=projected,
        billing_cycle=cycle,
        billing_cycle_start=date(now.year, now.month, 1).isoformat(),
        billing_cycle_end=date(now.year, now.month, days_in_month).isoformat(),
    )

def can_use_tokens(user_id: str, requested: int, now: Optional[datetime] = None) -> bool:
    return get_current_token_usage(user_id, now).total_available >= requested

def should_auto_purchase(user_id: str, tokens_needed: int, now: Optional[datetime] = None) -> bool:
    if not spend_cap.load_account(user_id).get("auto_token_purchase"):
        return False
    return not can_use_tokens(user_id, tokens_needed, now)

def purchase_token_package(user_id: str, package_type: str, now: Optional[datetime] = None) -> PurchaseResult:
    now = now or utcnow()
    package = TOKEN_PACKAGES.get(package_type)
    if package is None:
        raise PermanentError(f"Invalid package type: {package_type}")
    if spend_cap.would_exceed_spend_cap(user_id, package.price, now):
        jlog(event="purchase_blocked_by_spend_cap", user_id=user_id, package_type=package_type)
        raise SpendCapExceededError(
            f"Purchasing the {package_type} package (CAD {package.price:.2f}) would exceed the monthly spend cap"
        )

    purchase_id = f"purchase_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:9]}"
    expires_at = add_months(now, MAX_ROLLOVER_MONTHS)
    get_document_store().set(settings.purchases_collection, purchase_id, {
        "user_id": user_id,
        "package_type": package_type,
        "tokens": package.tokens,
        "price_cad": package.price,
        "purchase_date": now.isoformat(),
        "tokens_remaining": package.tokens,
        "expires_at": expires_at.isoformat(),
        "status": "active",
    })

    balance = get_current_token_usage(user_id, now).purchased_tokens_balance
    jlog(event="tokens_purchased", user_id=user_id, purchase_id=purchase_id, package_type=package_type, tokens=package.tokens)
    return PurchaseResult(
        purchase_id=purchase_id,
        tokens_added=package.tokens,
        price_cad=package.price,
        new_balance=balance,
        expires_at=expires_at.isoformat(),
    )

def record_token_usage(
    user_id: str,
    session_id: str,
    tokens: int,
    now: Optional[datetime] = None,
) -> TokenConsumptionResult:
    """Consume base tokens first, then purchased packages oldest first."""
    if tokens <= 0:
        raise PermanentError("tokens must be positive")
    now = now or utcnow()
    store = get_document_store()

    auto_purchase_id = None
    if should_auto_purchase(user_id, tokens, now):
        auto_purchase_id = purchase_token_package(user_id, spend_cap.preferred_package(user_id), now).purchase_id

    usage = get_current_token_usage(user_id, now)
    if usage.total_available < tokens:
        raise InsufficientTokensError(f"Insufficient tokens. Available: {usage.total_available}, Needed: {tokens}")

    from_base = min(usage.base_tokens_remaining, tokens)
    outstanding = tokens - from_base
    used_ids = []
    for purchase in _active_purchases(user_id, now):
        if outstanding == 0:
            break
        take = min(int(purchase.get("tokens_remaining") or 0), outstanding)
        if take == 0:
            continue
        left = int(purchase["tokens_remaining"]) - take
        store.set(settings.purchases_collection, purchase["id"], {
            "tokens_remaining": left,
            "status": "active" if left > 0 else "exhausted",
        }, merge=True)
        outstanding -= take
        used_ids.append(purchase["id"])

    store.set(settings.usage_collection, user_id, {
        "base_tokens_used": usage.monthly_usage + from_base,
        "billing_cycle": usage.billing_cycle,
    }, merge=True)
    store.add(settings.usage_events_collection, {
        "user_id": user_id,
        "session_id": session_id,
        "tokens": tokens,
        "base_tokens": from_base,
        "purchased_tokens": tokens - from_base,
        "purchase_ids": used_ids,
        "timestamp": now.isoformat(),
    })

    remaining = usage.total_available - tokens
    jlog(event="tokens_consumed", user_id=user_id, session_id=session_id, tokens=tokens, remaining=remaining)
    return TokenConsumptionResult(
        tokens_consumed=tokens,
        source="base" if not used_ids else "purchased",
        base_tokens_used=from_base,
        purchased_tokens_used=tokens - from_base,
        purchase_ids_used=used_ids,
        remaining_tokens=remaining,
        auto_purchase_id=auto_purchase_id,
    )

def reset_monthly_cycle(user_id: str, now: Optional[datetime] = None) -> int:
    """Start a fresh base allowance and expire lapsed purchases. Returns the number expired."""
    now = now or utcnow()
    store = get_document_store()
    store.set(settings.usage_collection, user_id, {
        "base_tokens_used": 0,
        "base_tokens_monthly": TOKENS_INCLUDED,
        "billing_cycle": billing_cycle_of(now),
        "last_reset_date": now.isoformat(),
    }, merge=True)

    expired = 0
    for purchase in spend_cap.purchases_for(user_id):
        expires_at = as_datetime(purchase.get("expires_at"))
        if purchase.get("status") == "active" and expires_at and expires_at <= now:
            store.set(settings.purchases_collection, purchase["id"], {"status": "expired"}, merge=True)
            expired += 1
    jlog(event="monthly_cycle_reset", user_id=user_id, expired_purchases=expired)
    return expired
