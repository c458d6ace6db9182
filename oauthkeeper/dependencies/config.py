"""
FastAPI dependency utilities for configuration and trigger authentication.
"""

import hmac
import logging
from functools import lru_cache
from http import HTTPStatus
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException

from oauthkeeper.core.config import AppSettings, get_settings

logger = logging.getLogger(__name__)


@lru_cache()
def _settings_singleton() -> AppSettings:
    """Ensure configuration is created once per process."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings_singleton()


SettingsDependency = Depends(get_app_settings)


def require_job_secret(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    authorization: Optional[str] = Header(None),
) -> None:
    """
    Guard the refresh job trigger with ``Authorization: Bearer <CRON_SECRET>``.

    Production refuses to run the job at all without a configured secret.
    Elsewhere the check applies only once a secret is set.
    """
    expected = settings.refresh.job_secret
    if not expected:
        if settings.is_production:
            raise HTTPException(
                status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
                detail={
                    "code": "ProviderMisconfigured",
                    "message": "CRON_SECRET must be set in production.",
                },
            )
        return

    scheme, _, supplied = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(
        supplied.strip().encode("utf-8"), expected.encode("utf-8")
    ):
        logger.warning("Rejected unauthorized refresh job trigger")
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail={"code": "Unauthorized", "message": "Invalid job secret."},
        )


__all__ = ["SettingsDependency", "get_app_settings", "require_job_secret"]
