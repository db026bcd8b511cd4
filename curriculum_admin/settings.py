from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List

class Settings(BaseSettings):
    # Document store
    SUPABASE_URL: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None
    DOCUMENTS_TABLE: str = "curriculum_documents"
    MOCK_MODE: bool = False

    # Live-listen polling for the hosted store
    SUBSCRIBE_POLL_SECONDS: float = 5.0

    # Learner document defaults
    QUIZ_DURATION_MINUTES: int = 10

    # Safety/abuse knobs
    RATE_LIMIT: str = "60/minute"

    # CORS
    ALLOW_ORIGINS: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )

    # Optional extra frontend
    FRONTEND_ORIGIN: str | None = None

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

settings = Settings()
if settings.FRONTEND_ORIGIN:
    settings.ALLOW_ORIGINS.append(settings.FRONTEND_ORIGIN)
