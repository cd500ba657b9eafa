"""
Application configuration settings.
"""

import json
import os
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Project Info
    PROJECT_NAME: str = "Trimline API"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/api/v1"

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "local")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Database - SQLite file by default, Postgres in deployed environments
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./trimline.db")

    # Revision rules
    DEFAULT_TOLERANCE_PERCENT: float = 5.0
    MAX_TOLERANCE_PERCENT: float = 50.0
    MAX_CHAPTER_CUT_PERCENT: float = 30.0  # No chapter loses more than this share

    # Condensation model
    CONDENSER_MODEL: str = "claude-3-5-sonnet-20241022"
    CONDENSER_TEMPERATURE: float = 0.7
    CONDENSER_MIN_MAX_TOKENS: int = 4096
    LLM_TIMEOUT_SECONDS: float = 300.0

    # Provider credentials
    ANTHROPIC_API_KEY: Optional[str] = None
    OPENAI_API_KEY: Optional[str] = None

    # CORS - Parse safely from environment
    @property
    def BACKEND_CORS_ORIGINS(self) -> list[str]:
        """Parse CORS origins from environment variable safely."""
        default_origins = ["http://localhost:3000"]

        raw = (os.getenv("BACKEND_CORS_ORIGINS") or "").strip()
        if not raw:
            return default_origins

        # JSON list first
        try:
            parsed = json.loads(raw)
            if isinstance(parsed, list):
                return [str(origin).strip() for origin in parsed if origin]
        except (json.JSONDecodeError, ValueError):
            pass

        # Bracketed lists as written in .env files: [http://a, 'http://b']
        if raw.startswith("[") and raw.endswith("]"):
            parts = [
                part.strip().strip('"').strip("'")
                for part in raw[1:-1].split(",")
                if part.strip()
            ]
            return [p for p in parts if p] or default_origins

        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    class Config:
        """Pydantic config."""

        case_sensitive = True
        env_file = ".env"
        extra = "ignore"  # Ignore extra fields


settings = Settings()
