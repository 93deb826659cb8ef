from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    BACKEND_BASE_URL: str | None = None
    BACKEND_USER_ID: str | None = None
    BACKEND_TIMEOUT_SECONDS: float = 15.0

    DRAFT_STORE_PROVIDER: str = "json"  # "json" | "memory"
    DRAFT_DATA_DIR: str = "./data/drafts"
    DRAFT_STORAGE_KEY: str = "booking.draft"

    BOOKING_TIMEZONE: str = "America/Toronto"


settings = Settings()
