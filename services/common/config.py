from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

class CommonSettings(BaseSettings):

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    project_id: Optional[str] = None
    # Canadian data residency (Montreal)
    google_cloud_location: str = "northamerica-northeast1"
    service_name: str = "aiduxcare-service"
    artifact_bucket: Optional[str] = None
    use_in_memory_backends: bool = False

    # Auth
    require_auth: bool = False

    # Model (Gemini through the OpenAI-compatible Vertex AI endpoint)
    vertex_base_url: Optional[str] = None
    vertex_api_key: Optional[str] = None
    vertex_model: str = "gemini-2.0-flash"
    vertex_timeout_s: float = 60.0
    vertex_max_attempts: int = 3

settings = CommonSettings()
