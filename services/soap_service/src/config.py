from typing import List

from ...common.config import CommonSettings

class Settings(CommonSettings):
    service_name: str = "soap-service"

    # Model
    soap_temperature: float = 0.3
    soap_max_output_tokens: int = 2048
    soap_json_mode: bool = True

    # PHIPA de-identification before prompts leave the service
    deidentify_enabled: bool = True
    deidentify_language: str = "en"
    deidentify_score_threshold: float = 0.4
    deidentify_entities: List[str] = [
        "PERSON",
        "PHONE_NUMBER",
        "EMAIL_ADDRESS",
        "LOCATION",
        "DATE_TIME",
        "CA_HEALTH_CARD",
    ]

settings = Settings()
