"""Application configuration management"""

from functools import lru_cache
from pathlib import Path
from urllib.parse import quote_plus

from pydantic import field_validator
from pydantic_settings import BaseSettings

# Base directory: backend/
_BASE_DIR = Path(__file__).resolve().parent.parent

_DEV_SECRET_KEY = "dev-access-secret-change-in-production-use-openssl-rand-hex-32"
_DEV_REFRESH_SECRET_KEY = "dev-refresh-secret-change-in-production-use-openssl-rand-hex-32"


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    APP_NAME: str = "Wordle Identity Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8003
    WORKERS: int = 4

    # Database (PostgreSQL)
    DATABASE_URL: str = ""
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "wordle_users"
    POSTGRES_USER: str = "wordle"
    POSTGRES_PASSWORD: str = "wordle"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10

    # Tokens
    SECRET_KEY: str = _DEV_SECRET_KEY
    REFRESH_SECRET_KEY: str = _DEV_REFRESH_SECRET_KEY
    ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "wordle-user-service"
    JWT_AUDIENCE: str = "wordle-app"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Password hashing
    BCRYPT_ROUNDS: int = 12

    # OAuth2 identity provider (GitLab-compatible)
    OAUTH_CLIENT_ID: str = ""
    OAUTH_CLIENT_SECRET: str = ""
    OAUTH_BASE_URL: str = "https://gitlab.com"
    OAUTH_REDIRECT_URI: str = "http://localhost:8003/api/v1/auth/oauth/callback"
    OAUTH_SCOPE: str = "read_user"
    OAUTH_STATE_TTL_MINUTES: int = 10
    OAUTH_HTTP_TIMEOUT_SECONDS: float = 10.0
    OAUTH_USERNAME_MAX_ATTEMPTS: int = 5

    # Rate Limiting
    RATE_LIMIT_PER_MINUTE: int = 100
    RATE_LIMIT_PER_HOUR: int = 1000
    LOGIN_RATE_LIMIT_PER_MINUTE: int = 10
    LOGIN_RATE_LIMIT_PER_HOUR: int = 50

    # Expired session / OAuth state sweeper
    RUN_CLEANUP_WORKER: bool = True
    CLEANUP_INTERVAL_SECONDS: float = 3600.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # Database initialization discipline
    DB_INIT_MODE: str = "migrate"  # migrate | create_all | off
    DB_REQUIRE_HEAD: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True

    @field_validator("OAUTH_BASE_URL")
    @classmethod
    def _strip_base_url(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("OAUTH_USERNAME_MAX_ATTEMPTS")
    @classmethod
    def _bounded_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("OAUTH_USERNAME_MAX_ATTEMPTS must be at least 1")
        return value

    def get_log_file(self) -> str:
        p = self.LOG_FILE
        if not p or p.startswith(".."):
            return str(_BASE_DIR.parent / "logs" / "app.log")
        return p

    def get_database_url(self) -> str:
        """
        Resolve database URL.

        Priority:
          1) Explicit DATABASE_URL
          2) Construct from POSTGRES_* parts with safe URL encoding
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL

        user = quote_plus(self.POSTGRES_USER)
        password = quote_plus(self.POSTGRES_PASSWORD)
        return (
            f"postgresql://{user}:{password}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    def oauth_configured(self) -> bool:
        return bool(self.OAUTH_CLIENT_ID and self.OAUTH_CLIENT_SECRET)

    def validate_security_settings(self) -> None:
        """
        Validate runtime security defaults in production.

        Raises:
            ValueError: If insecure defaults are detected.
        """
        if self.ENVIRONMENT.lower() != "production":
            return

        insecure_secret_markers = {
            "",
            _DEV_SECRET_KEY,
            _DEV_REFRESH_SECRET_KEY,
            "fallback-secret-change-in-production",
            "change-me",
        }

        for name in ("SECRET_KEY", "REFRESH_SECRET_KEY"):
            value = getattr(self, name)
            if value in insecure_secret_markers or len(value) < 32:
                raise ValueError(
                    f"Insecure {name} for production. Use a strong key (e.g. `openssl rand -hex 32`)."
                )

        if self.SECRET_KEY == self.REFRESH_SECRET_KEY:
            raise ValueError("SECRET_KEY and REFRESH_SECRET_KEY must differ in production.")

        if self.BCRYPT_ROUNDS < 12:
            raise ValueError("BCRYPT_ROUNDS must be at least 12 in production.")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
