from ...common.config import CommonSettings

class Settings(CommonSettings):
    service_name: str = "analysis-service"

    # Keep the tail of long transcripts (most recent dialogue)
    max_transcript_chars: int = 6000
    analysis_temperature: float = 0.2
    analysis_max_output_tokens: int = 4096

settings = Settings()
