"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the refresh worker and the
maintenance scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

import os

from pydantic import AliasChoices, AnyHttpUrl, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class _EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)


class SecuritySettings(_EnvSettings):
    """Security-related configuration."""

    token_encryption_secret: str = Field(
        ...,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class OAuthSettings(_EnvSettings):
    """OAuth flow configuration."""

    state_ttl_seconds: int = Field(600, validation_alias="OAUTH_STATE_TTL")
    callback_base_url: AnyHttpUrl = Field(
        "http://localhost:8000",
        validation_alias="APP_BASE_URL",
        description="Public base URL used to build provider callback URLs.",
    )
    token_request_timeout_seconds: float = Field(
        10.0, validation_alias="OAUTH_TOKEN_TIMEOUT"
    )

    @field_validator("state_ttl_seconds")
    @classmethod
    def _positive_ttl(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("OAUTH_STATE_TTL must be positive.")
        return value

    def callback_url(self, provider: str) -> str:
        """Return the fixed redirect URI registered with ``provider``."""
        return f"{str(self.callback_base_url).rstrip('/')}/api/auth/{provider}/callback"


class ProviderClientSettings(_EnvSettings):
    """OAuth client registrations, one id/secret pair per provider family."""

    github_client_id: Optional[str] = Field(None, validation_alias="GITHUB_CLIENT_ID")
    github_client_secret: Optional[str] = Field(
        None, validation_alias="GITHUB_CLIENT_SECRET"
    )
    jira_client_id: Optional[str] = Field(None, validation_alias="JIRA_CLIENT_ID")
    jira_client_secret: Optional[str] = Field(
        None, validation_alias="JIRA_CLIENT_SECRET"
    )
    linear_client_id: Optional[str] = Field(None, validation_alias="LINEAR_CLIENT_ID")
    linear_client_secret: Optional[str] = Field(
        None, validation_alias="LINEAR_CLIENT_SECRET"
    )
    slack_client_id: Optional[str] = Field(None, validation_alias="SLACK_CLIENT_ID")
    slack_client_secret: Optional[str] = Field(
        None, validation_alias="SLACK_CLIENT_SECRET"
    )
    google_client_id: Optional[str] = Field(None, validation_alias="GOOGLE_CLIENT_ID")
    google_client_secret: Optional[str] = Field(
        None, validation_alias="GOOGLE_CLIENT_SECRET"
    )

    def client_credentials(self, key: str) -> Tuple[Optional[str], Optional[str]]:
        """Return ``(client_id, client_secret)`` for a provider settings key."""
        client_id = getattr(self, f"{key}_client_id", None)
        client_secret = getattr(self, f"{key}_client_secret", None)
        return client_id or None, client_secret or None


class RefreshJobSettings(_EnvSettings):
    """Settings for the recurring credential refresh job."""

    interval_seconds: int = Field(300, validation_alias="REFRESH_JOB_INTERVAL")
    deadline_seconds: float = Field(120.0, validation_alias="REFRESH_JOB_DEADLINE")
    max_workers: int = Field(8, validation_alias="REFRESH_JOB_MAX_WORKERS")
    job_secret: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("CRON_SECRET", "OAUTH_REFRESH_SECRET"),
        description="Bearer secret required to trigger the job in production.",
    )

    @field_validator("max_workers")
    @classmethod
    def _at_least_one_worker(cls, value: int) -> int:
        return max(1, value)


class AppSettings(_EnvSettings):
    """Root settings object for the FastAPI application."""

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL for redirecting users back to the front-end.",
    )
    credentials_db_path: str = Field(
        "data/credentials.db", validation_alias="CREDENTIALS_DB_PATH"
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    providers: ProviderClientSettings = Field(default_factory=ProviderClientSettings)
    refresh: RefreshJobSettings = Field(default_factory=RefreshJobSettings)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "OAuthSettings",
    "ProviderClientSettings",
    "RefreshJobSettings",
    "SecuritySettings",
    "get_settings",
]
