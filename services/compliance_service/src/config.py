from typing import List

from ...common.config import CommonSettings

class Settings(CommonSettings):
    service_name: str = "compliance-service"

    # TrustBridge artifact certification
    trustbridge_prefix: str = "trustbridge"
    trustbridge_issuer: str = "AiDuxCare TrustBridge"
    trustbridge_hash_algorithm: str = "sha256"

    # Right to erasure (PIPEDA 4.1.8 / PHIPA s.52)
    patients_collection: str = "patients"
    erasure_collections: List[str] = [
        "secureNotes", "episodes", "patientConsents", "treatmentPlans", "patient_consent",
    ]
    # documents whose id is the patient id
    erasure_patient_documents: List[str] = ["patient_cross_border_ai_consent"]
    legal_holds_collection: str = "legal_holds"
    deletion_certificates_collection: str = "deletion_certificates"
    patient_storage_prefix: str = "patients"

settings = Settings()
