from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    AUTH_SECRET: str = Field(..., description="Shared secret used to sign identity tokens")

    # Database
    DATABASE_URL: str = Field(..., description="Async connection string (postgresql+asyncpg://... or sqlite+aiosqlite://...)")

    # Redis
    REDIS_URL: str = Field("redis://localhost:6379/0")

    # Web views talk to the REST API over HTTP
    API_BASE_URL: str = Field("http://127.0.0.1:8000", description="Base URL of the quiz REST API")
    API_TIMEOUT_SECONDS: float = 10.0

    # Quiz Settings
    QUIZ_LENGTH: int = Field(10, description="Number of questions in a new quiz", ge=0)
    DEFAULT_LANGUAGE: str = "en"
    PENDING_CREATE_TTL_SECONDS: int = 600
    LEADERBOARD_SIZE: int = 20

    # Auth
    TOKEN_TTL_SECONDS: int = 2592000  # 30 days
    AUTH_COOKIE_NAME: str = "divequiz_token"
    SIGN_IN_URL: str = Field("", description="External identity provider sign-in page")

    # Integrity audit
    AUDIT_INTERVAL_MINUTES: int = 30
    AUDIT_BATCH_SIZE: int = 200

    # Environment
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]
    ENV: str = "production"  # development, staging, production
    DEBUG: bool = False
    LOG_JSON: bool = True

settings = Settings()
