from ...common.config import CommonSettings

class Settings(CommonSettings):
    service_name: str = "usage-service"

    usage_collection: str = "token_usage"
    purchases_collection: str = "token_purchases"
    usage_events_collection: str = "token_usage_events"

settings = Settings()
