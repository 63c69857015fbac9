from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # App
    environment: str = "development"
    log_level: str = "INFO"
    backend_host: str = "0.0.0.0"
    backend_port: int = 8000

    # Drafts Service (extraction pipeline + draft store)
    drafts_service_url: str = "http://b2b-sheet-generator:8000"
    drafts_service_timeout_seconds: float = 30.0
    drafts_list_page_size: int = 50

    # Batch progress tracking
    poll_interval_seconds: float = 3.0
    poll_backoff_factor: float = 2.0
    poll_max_backoff_seconds: float = 60.0
    poll_max_consecutive_failures: int = 20

    # Duty lookup
    duty_lookup_url: str = "http://b2b-sheet-generator:8000"
    duty_lookup_timeout_seconds: float = 30.0
    default_origin_country: str = "IN"
    default_destination_country: str = "US"

    # Xindus Partner API (downstream logistics platform)
    xindus_api_url: str = "https://api.xindus.net"
    xindus_api_token: str = ""
    xindus_timeout_seconds: float = 90.0

    # Bulk draft actions
    bulk_action_concurrency: int = 8


settings = Settings()
