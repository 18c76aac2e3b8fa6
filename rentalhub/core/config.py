"""Human-friendly configuration loader.

The ``AppSettings`` class centralises every environment variable the rental
API relies on. Anyone inspecting the project can quickly answer:

*What:* Which settings exist and what do they control?
*When:* They are read once, the first time ``get_settings`` is called.
*Why:* Centralising configuration prevents magic strings scattered all over the
codebase (JWT secrets, OAuth credentials, Mailgun keys, CORS origins).
*How:* pydantic-settings reads the process environment plus optional
``.env``/``.env.local`` files and validates types for us.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Any, Iterable

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "RentalHub API"
    APP_VERSION: str = "1.0.0"
    APP_ENV: str = "development"
    HOST: str = "0.0.0.0"
    PORT: int = 8080
    LOG_LEVEL: str = "INFO"

    DB_URL: str = Field(
        default="sqlite:///./rentalhub.db",
        validation_alias=AliasChoices("DATABASE_URL", "DB_URL"),
    )

    # ---- Tokens
    JWT_SECRET: str = "change-me"
    JWT_REFRESH_SECRET: str = "change-me-too"
    JWT_EXPIRES_IN: str = "15m"
    JWT_REFRESH_EXPIRES_IN: str = "7d"
    JWT_ISSUER: str = "rentalhub-api"
    OAUTH_STATE_SECRET: str = "change-me-oauth"

    # ---- OAuth providers
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_CALLBACK_URI: str | None = None
    GITHUB_CLIENT_ID: str = ""
    GITHUB_CLIENT_SECRET: str = ""
    GITHUB_CALLBACK_URI: str | None = None
    WEB_APP_URL: str = "http://localhost:3000"

    CORS_ORIGINS: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["*"],
        validation_alias=AliasChoices("CORS_ORIGIN", "CORS_ORIGINS"),
    )

    # ---- Outbound email (Mailgun)
    MAILGUN_API_KEY: str = ""
    MAILGUN_DOMAIN: str = ""
    MAILGUN_API_URL: str = "https://api.mailgun.net/v3"
    EMAIL_FROM: str = "no-reply@rentalhub.local"
    EMAIL_FROM_NAME: str = "RentalHub"

    INVITE_TTL_HOURS: int = 24 * 7
    BCRYPT_ROUNDS: int = 10
    HTTP_TIMEOUT: float = 10.0

    @property
    def google_configured(self) -> bool:
        return bool(self.GOOGLE_CLIENT_ID and self.GOOGLE_CLIENT_SECRET)

    @property
    def github_configured(self) -> bool:
        return bool(self.GITHUB_CLIENT_ID and self.GITHUB_CLIENT_SECRET)

    @property
    def mailgun_configured(self) -> bool:
        return bool(self.MAILGUN_API_KEY and self.MAILGUN_DOMAIN)

    def oauth_callback_uri(self, provider: str) -> str:
        explicit = self.GOOGLE_CALLBACK_URI if provider == "google" else self.GITHUB_CALLBACK_URI
        return explicit or f"{self.WEB_APP_URL.rstrip('/')}/api/auth/callback/{provider}"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, value: Any) -> list[str]:
        if value in (None, "", []):
            return ["*"]
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, Iterable):
            return [str(item).strip() for item in value if str(item).strip()]
        raise TypeError("CORS_ORIGIN must be a comma separated string or list")


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return AppSettings()


settings = get_settings()
