from ...common.config import CommonSettings

class Settings(CommonSettings):
    service_name: str = "consent-service"

    # Patient consent (collected by the clinician: digital link, SMS or verbal)
    consent_collection: str = "patient_consent"
    consent_version: str = "1.0.0"

    # Cross-border AI processing consent (PHIPA s.18)
    cross_border_collection: str = "cross_border_ai_consent"
    cross_border_patient_collection: str = "patient_cross_border_ai_consent"
    cross_border_consent_version: str = "1.0.0"
    cross_border_expiration_days: int = 365

settings = Settings()
