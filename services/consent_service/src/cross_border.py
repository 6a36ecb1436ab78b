"""
Express consent for cross-border AI processing (PHIPA s.18).

The model endpoint sits outside Canada, so the clinician acknowledges the
CLOUD Act exposure, retention period, withdrawal and complaint rights.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from ...common.audit import AuditLogger
from ...common.dependencies import get_document_store
from ...common.exceptions import PermanentError
from ...common.logging import jlog
from ...common.timeutils import as_datetime, utcnow
from .config import settings
from .schemas import CrossBorderConsentRequest, CrossBorderConsentStatus

REQUIRED_ACKNOWLEDGMENTS = (
    ("consented", "User must explicitly consent to cross-border AI processing"),
    ("cloud_act_acknowledged", "CLOUD Act risk must be acknowledged"),
    ("data_retention_acknowledged", "Data retention (10+ years) must be acknowledged"),
    ("right_to_withdraw_acknowledged", "Right to withdraw must be acknowledged"),
    ("complaint_rights_acknowledged", "Complaint rights (IPC Ontario) must be acknowledged"),
)

def save_cross_border_consent(
    user_id: str, req: CrossBorderConsentRequest, now: Optional[datetime] = None
) -> Dict[str, Any]:
    for field, message in REQUIRED_ACKNOWLEDGMENTS:
        if not getattr(req, field):
            raise PermanentError(message)

    record = req.model_dump()
    record.update(
        user_id=user_id,
        consent_date=(now or utcnow()).isoformat(),
        consent_version=settings.cross_border_consent_version,
    )

    store = get_document_store()
    if req.patient_id:
        store.set(settings.cross_border_patient_collection, req.patient_id, record)
    store.set(settings.cross_border_collection, user_id, record)

    AuditLogger().log(
        "cross_border_consent_given",
        user_id,
        req.patient_id,
        {"consent_version": record["consent_version"], "consent_scope": req.consent_scope},
    )
    jlog(event="cross_border_consent_saved", user_id=user_id, patient_id=req.patient_id, scope=req.consent_scope)
    return record

def _evaluate(record: Optional[Dict[str, Any]], now: Optional[datetime], scope_aware: bool) -> CrossBorderConsentStatus:
    if not record:
        return CrossBorderConsentStatus()

    consent_date = as_datetime(record.get("consent_date"))
    if consent_date is None:
        return CrossBorderConsentStatus(consent_version=record.get("consent_version"))

    expires = consent_date + timedelta(days=settings.cross_border_expiration_days)
    is_expired = (now or utcnow()) > expires
    version_matches = record.get("consent_version") == settings.cross_border_consent_version
    # patient-level ongoing consent carries across sessions past the expiry date
    still_valid = (scope_aware and record.get("consent_scope") == "ongoing") or not is_expired

    return CrossBorderConsentStatus(
        has_consent=bool(record.get("consented")) and version_matches and still_valid,
        consent_date=consent_date.isoformat(),
        is_expired=is_expired,
        consent_version=record.get("consent_version"),
    )

def get_consent_status(user_id: str, now: Optional[datetime] = None) -> CrossBorderConsentStatus:
    record = get_document_store().get(settings.cross_border_collection, user_id)
    if record and record.get("user_id") != user_id:
        return CrossBorderConsentStatus()
    return _evaluate(record, now, scope_aware=False)

def get_patient_consent_status(patient_id: str, now: Optional[datetime] = None) -> CrossBorderConsentStatus:
    record = get_document_store().get(settings.cross_border_patient_collection, patient_id)
    return _evaluate(record, now, scope_aware=True)

def has_consented(user_id: str, patient_id: Optional[str] = None, now: Optional[datetime] = None) -> bool:
    try:
        if patient_id and get_patient_consent_status(patient_id, now).has_consent:
            return True
        return get_consent_status(user_id, now).has_consent
    except Exception as e:
        # no consent, no AI processing
        jlog(event="cross_border_consent_check_failed", severity="ERROR", user_id=user_id, error=str(e))
        return False

def revoke_consent(user_id: str) -> bool:
    store = get_document_store()
    record = store.get(settings.cross_border_collection, user_id)
    if not record or record.get("user_id") != user_id:
        return False
    store.delete(settings.cross_border_collection, user_id)
    AuditLogger().log("cross_border_consent_revoked", user_id)
    jlog(event="cross_border_consent_revoked", user_id=user_id)
    return True

def needs_renewal(user_id: str, now: Optional[datetime] = None) -> bool:
    status = get_consent_status(user_id, now)
    return status.is_expired or status.consent_version != settings.cross_border_consent_version
