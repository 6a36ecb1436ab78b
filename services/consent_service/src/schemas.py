from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

ConsentDecision = Literal["granted", "declined"]
ConsentMethod = Literal["digital", "sms", "verbal"]
ConsentScope = Literal["ongoing", "session-only"]

class ConsentRecordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    patient_id: str = Field(..., alias="patientId", min_length=1)
    consent_status: ConsentDecision = Field(..., alias="consentStatus")
    consent_method: ConsentMethod = Field(..., alias="consentMethod")
    consent_scope: ConsentScope = Field(default="ongoing", alias="consentScope")
    # list, or the comma separated string older clients send
    decline_reasons: Union[List[str], str, None] = Field(default=None, alias="declineReasons")

class ConsentRecordResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    consent_id: str = Field(..., alias="consentId")
    status: ConsentDecision
    consent_version: str = Field(..., alias="consentVersion")

class ConsentStatusRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    patient_id: str = Field(..., alias="patientId", min_length=1)

class ConsentStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    has_valid_consent: bool = Field(..., alias="hasValidConsent")
    is_declined: bool = Field(default=False, alias="isDeclined")
    status: Optional[str] = None
    consent_method: Optional[str] = Field(default=None, alias="consentMethod")
    granted_at: Optional[str] = Field(default=None, alias="grantedAt")
    declined_at: Optional[str] = Field(default=None, alias="declinedAt")
    decline_reasons: Optional[List[str]] = Field(default=None, alias="declineReasons")

class CrossBorderConsentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    patient_id: Optional[str] = Field(default=None, alias="patientId")
    consented: bool = False
    consent_scope: ConsentScope = Field(default="ongoing", alias="consentScope")
    cloud_act_acknowledged: bool = Field(default=False, alias="cloudActAcknowledged")
    data_retention_acknowledged: bool = Field(default=False, alias="dataRetentionAcknowledged")
    right_to_withdraw_acknowledged: bool = Field(default=False, alias="rightToWithdrawAcknowledged")
    complaint_rights_acknowledged: bool = Field(default=False, alias="complaintRightsAcknowledged")
    user_agent: Optional[str] = Field(default=None, alias="userAgent")

class CrossBorderConsentStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_consent: bool = Field(default=False, alias="hasConsent")
    consent_date: Optional[str] = Field(default=None, alias="consentDate")
    is_expired: bool = Field(default=False, alias="isExpired")
    consent_version: Optional[str] = Field(default=None, alias="consentVersion")

class CrossBorderCheckResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_consented: bool = Field(..., alias="hasConsented")
    needs_renewal: bool = Field(..., alias="needsRenewal")
    status: CrossBorderConsentStatus
