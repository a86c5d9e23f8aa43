# couplequiz/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - SUPABASE_URL
      - SUPABASE_KEY (anon key)
      - DATABASE_URL (Supabase Postgres connection string)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)

    Optional:
      - SUPABASE_SERVICE_ROLE_KEY (only used for admin Supabase client)
      - LINKING_CODE_MAX_ATTEMPTS (bounded retry for invite codes)
      - CORS_ORIGINS (JSON list)
    """

    PROJECT_NAME: str = "CoupleQuiz Backend"
    API_V1_STR: str = "/api/v1"

    # Supabase / DB config
    SUPABASE_URL: str
    SUPABASE_KEY: str
    DATABASE_URL: str

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    # Service role key bypasses RLS (backend only)
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Pairing
    LINKING_CODE_MAX_ATTEMPTS: int = 10

    CORS_ORIGINS: list[str] = [
        "http://localhost:8081",
        "http://127.0.0.1:8081",
        "http://localhost:19006",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
