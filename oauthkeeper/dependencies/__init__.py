"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_acquisition_controller,
    get_acquisition_state_store,
    get_credential_store,
    get_oauth_client,
    get_refresh_orchestrator,
    get_token_cipher_service,
)
from .config import SettingsDependency, get_app_settings, require_job_secret

__all__ = [
    "SettingsDependency",
    "get_acquisition_controller",
    "get_acquisition_state_store",
    "get_app_settings",
    "get_credential_store",
    "get_oauth_client",
    "get_refresh_orchestrator",
    "get_token_cipher_service",
    "require_job_secret",
]
