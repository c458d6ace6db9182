"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from oauthkeeper.clients import OAuthProviderClient, SQLiteCredentialStore
from oauthkeeper.core.config import get_settings
from oauthkeeper.services import (
    AcquisitionFlowController,
    AcquisitionStateStore,
    RefreshOrchestrator,
    TokenCipherService,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    return TokenCipherService(secret=settings.security.token_encryption_secret)


@lru_cache()
def get_credential_store() -> SQLiteCredentialStore:
    """Provide the shared credential store."""
    settings = _settings()
    return SQLiteCredentialStore(
        settings.credentials_db_path, cipher=get_token_cipher_service()
    )


@lru_cache()
def get_acquisition_state_store() -> AcquisitionStateStore:
    """Provide the store for in-flight authorization states."""
    settings = _settings()
    return AcquisitionStateStore(
        settings.credentials_db_path,
        ttl_seconds=settings.oauth.state_ttl_seconds,
    )


@lru_cache()
def get_oauth_client() -> OAuthProviderClient:
    """Create a singleton OAuth client."""
    settings = _settings()
    return OAuthProviderClient(
        timeout_seconds=settings.oauth.token_request_timeout_seconds
    )


@lru_cache()
def get_acquisition_controller() -> AcquisitionFlowController:
    """Provide the authorization code flow controller."""
    settings = _settings()
    return AcquisitionFlowController(
        state_store=get_acquisition_state_store(),
        credential_store=get_credential_store(),
        oauth_client=get_oauth_client(),
        client_settings=settings.providers,
        oauth_settings=settings.oauth,
    )


@lru_cache()
def get_refresh_orchestrator() -> RefreshOrchestrator:
    """Provide the process-wide refresh orchestrator."""
    settings = _settings()
    return RefreshOrchestrator(
        credential_store=get_credential_store(),
        oauth_client=get_oauth_client(),
        client_settings=settings.providers,
        max_workers=settings.refresh.max_workers,
        deadline_seconds=settings.refresh.deadline_seconds,
    )


__all__ = [
    "get_acquisition_controller",
    "get_acquisition_state_store",
    "get_credential_store",
    "get_oauth_client",
    "get_refresh_orchestrator",
    "get_token_cipher_service",
]
