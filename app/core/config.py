# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - JWT_SECRET (signing secret for session tokens)

    Optional:
      - DATABASE_URL (defaults to a local sqlite file)
      - SMTP_* (outgoing mail; without SMTP_HOST mail is only logged)
      - GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET (Google sign-in)
      - GMAIL_REFRESH_TOKEN (send mail through Gmail with XOAUTH2)
    """

    PROJECT_NAME: str = "Fake Stack Overflow API"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = "sqlite:///./fake_so.db"

    # Session tokens
    JWT_SECRET: str
    JWT_ALG: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Frontend origin, also used to build links in emails
    CLIENT_URL: str = "http://localhost:3000"

    # pbkdf2 work factor
    PASSWORD_HASH_ROUNDS: int = 29000

    # SMTP
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_FROM_EMAIL: str | None = None
    SMTP_FROM_NAME: str = "Fake Stack Overflow"
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False

    # Google OAuth (sign-in and Gmail XOAUTH2)
    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None
    GMAIL_REFRESH_TOKEN: str | None = None

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def google_redirect_uri(self) -> str:
        return f"{self.CLIENT_URL.rstrip('/')}/auth/google/callback"


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
