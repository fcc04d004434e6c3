"""Application configuration management"""

import json
import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, List

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = logging.getLogger(__name__)

# Base directory: backend/
_BASE_DIR = Path(__file__).resolve().parent.parent

_INSECURE_SECRET_MARKERS = {
    "",
    "change-me",
    "dev-secret-key-change-in-production",
    "fallback-secret-change-in-production",
    "fallback-refresh-secret-change-in-production",
}


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Application
    APP_NAME: str = "authgate"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # Database
    DATABASE_URL: str = ""
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10
    DB_INIT_MODE: str = "create_all"  # migrate | create_all | off
    DB_REQUIRE_HEAD: bool = True

    # Token signing. Empty secrets are generated outside production.
    ACCESS_TOKEN_SECRET: str = ""
    REFRESH_TOKEN_SECRET: str = ""
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    JWT_ISSUER: str = "authgate"
    JWT_AUDIENCE: str = "authgate-clients"

    # Session security
    REVOKE_ALL_ON_REUSE: bool = True
    REGISTRY_LOCK_TIMEOUT_SECONDS: float = 5.0
    BCRYPT_ROUNDS: int = 12

    # Rate Limiting
    RATE_LIMIT_PER_MINUTE: int = 100
    RATE_LIMIT_PER_HOUR: int = 1000
    LOGIN_RATE_LIMIT_PER_MINUTE: int = 10
    LOGIN_RATE_LIMIT_PER_HOUR: int = 50

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # CORS
    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["http://localhost:3000"]

    # Admin bootstrap
    ADMIN_EMAIL: str = "admin@example.com"
    ADMIN_NAME: str = "Administrator"
    ADMIN_PASSWORD: str = "admin12345"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, value: Any) -> Any:
        """
        Accept JSON array or comma-separated origins from env.

        Examples:
            CORS_ORIGINS=["http://localhost:3000","http://example.com"]
            CORS_ORIGINS=http://localhost:3000,http://example.com
        """
        if not isinstance(value, str):
            return value

        raw = value.strip()
        if not raw:
            return []

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None

        if isinstance(parsed, str):
            return [parsed]
        if isinstance(parsed, list):
            return [str(origin).strip() for origin in parsed if str(origin).strip()]

        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    @field_validator("ALGORITHM")
    @classmethod
    def _pin_symmetric_algorithm(cls, value: str) -> str:
        if value not in {"HS256", "HS384", "HS512"}:
            raise ValueError("ALGORITHM must be one of HS256, HS384, HS512")
        return value

    @model_validator(mode="after")
    def _validate_token_settings(self) -> "Settings":
        """
        Resolve signing secrets and check token lifetimes.

        Outside production a missing secret is replaced by a random one, so
        tokens do not survive a restart. Production refuses to start without
        both secrets (see validate_security_settings).
        """
        is_production = self.ENVIRONMENT.lower() == "production"
        for field in ("ACCESS_TOKEN_SECRET", "REFRESH_TOKEN_SECRET"):
            if not getattr(self, field) and not is_production:
                setattr(self, field, secrets.token_hex(32))
                logger.warning("%s not set; using a generated secret for this process", field)

        if self.ACCESS_TOKEN_SECRET and self.ACCESS_TOKEN_SECRET == self.REFRESH_TOKEN_SECRET:
            raise ValueError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ")
        if self.ACCESS_TOKEN_EXPIRE_MINUTES <= 0 or self.REFRESH_TOKEN_EXPIRE_DAYS <= 0:
            raise ValueError("Token lifetimes must be positive")
        if self.access_token_ttl_seconds >= self.refresh_token_ttl_seconds:
            raise ValueError("Access tokens must expire before refresh tokens")
        return self

    @property
    def access_token_ttl_seconds(self) -> int:
        return self.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    @property
    def refresh_token_ttl_seconds(self) -> int:
        return self.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60

    def get_log_file(self) -> str:
        p = self.LOG_FILE
        if not p or p.startswith(".."):
            return str(_BASE_DIR.parent / "logs" / "authgate.log")
        return p

    def get_database_url(self) -> str:
        """
        Resolve database URL.

        Priority:
          1) Explicit DATABASE_URL
          2) SQLite file next to the backend directory
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"sqlite:///{_BASE_DIR / 'authgate.db'}"

    def validate_security_settings(self) -> None:
        """
        Validate runtime security defaults in production.

        Raises:
            ValueError: If insecure defaults are detected.
        """
        if self.ENVIRONMENT.lower() != "production":
            return

        for field in ("ACCESS_TOKEN_SECRET", "REFRESH_TOKEN_SECRET"):
            value = getattr(self, field)
            if value in _INSECURE_SECRET_MARKERS or len(value) < 32:
                raise ValueError(
                    f"Insecure {field} for production. Use a strong key (e.g. `openssl rand -hex 32`)."
                )

        if self.ADMIN_PASSWORD in {"", "admin12345", "change-me"} or len(self.ADMIN_PASSWORD) < 10:
            raise ValueError(
                "Insecure ADMIN_PASSWORD for production. Set a strong admin password before startup."
            )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
