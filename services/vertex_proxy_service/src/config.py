from ...common.config import CommonSettings

class Settings(CommonSettings):
    service_name: str = "vertex-proxy-service"

    # Voice assistant generation
    voice_temperature: float = 0.4
    voice_max_output_tokens: int = 512

settings = Settings()
