from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

PackageType = Literal["small", "medium", "large"]

class TokenUsage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    base_tokens_remaining: int = Field(..., alias="baseTokensRemaining")
    purchased_tokens_balance: int = Field(..., alias="purchasedTokensBalance")
    total_available: int = Field(..., alias="totalAvailable")
    monthly_usage: int = Field(..., alias="monthlyUsage")
    projected_monthly_usage: int = Field(..., alias="projectedMonthlyUsage")
    billing_cycle: str = Field(..., alias="billingCycle")
    billing_cycle_start: str = Field(..., alias="billingCycleStart")
    billing_cycle_end: str = Field(..., alias="billingCycleEnd")

class ConsumeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId", min_length=1)
    tokens: int = Field(..., gt=0)

class TokenConsumptionResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    tokens_consumed: int = Field(..., alias="tokensConsumed")
    source: Literal["base", "purchased"]
    base_tokens_used: int = Field(..., alias="baseTokensUsed")
    purchased_tokens_used: int = Field(..., alias="purchasedTokensUsed")
    purchase_ids_used: List[str] = Field(default_factory=list, alias="purchaseIdsUsed")
    remaining_tokens: int = Field(..., alias="remainingTokens")
    auto_purchase_id: Optional[str] = Field(default=None, alias="autoPurchaseId")

class PurchaseRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    package_type: PackageType = Field(..., alias="packageType")

class PurchaseResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    purchase_id: str = Field(..., alias="purchaseId")
    tokens_added: int = Field(..., alias="tokensAdded")
    price_cad: float = Field(..., alias="priceCAD")
    new_balance: int = Field(..., alias="newBalance")
    expires_at: str = Field(..., alias="expiresAt")

class SpendCapRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # null removes the cap
    monthly_spend_cap: Optional[float] = Field(default=None, alias="monthlySpendCap")
    auto_token_purchase: Optional[bool] = Field(default=None, alias="autoTokenPurchase")
    preferred_package_size: Optional[PackageType] = Field(default=None, alias="preferredPackageSize")

class SpendSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    currency: str = "CAD"
    monthly_spend_cap: Optional[float] = Field(default=None, alias="monthlySpendCap")
    current_month_spend: float = Field(..., alias="currentMonthSpend")
    projected_monthly_spend: float = Field(..., alias="projectedMonthlySpend")
    auto_token_purchase: bool = Field(default=False, alias="autoTokenPurchase")
    preferred_package_size: PackageType = Field(default="small", alias="preferredPackageSize")
