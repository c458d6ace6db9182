"""
Authorization code flow: issue the consent redirect and complete the callback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from oauthkeeper.clients.credential_store import SQLiteCredentialStore
from oauthkeeper.clients.oauth import OAuthProviderClient
from oauthkeeper.core.config import OAuthSettings, ProviderClientSettings
from oauthkeeper.core.errors import InvalidState, ProviderMisconfigured
from oauthkeeper.core.providers import ProviderCapabilities, require_provider
from oauthkeeper.models.credential import Credential, now_ms
from oauthkeeper.services.acquisition_state import (
    AcquisitionState,
    AcquisitionStateStore,
)
from oauthkeeper.utils.pkce import (
    derive_code_challenge,
    generate_code_verifier,
    generate_state_token,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorizationRedirect:
    provider: str
    url: str
    state: str
    expires_at: int


@dataclass(frozen=True)
class CompletedAcquisition:
    credential: Credential
    redirect_to: Optional[str] = None


def resolve_client_credentials(
    provider: ProviderCapabilities, client_settings: ProviderClientSettings
) -> Tuple[str, str]:
    """Return the configured client id/secret or raise ``ProviderMisconfigured``."""
    client_id, client_secret = client_settings.client_credentials(provider.settings_key)
    if not client_id or not client_secret:
        prefix = provider.settings_key.upper()
        raise ProviderMisconfigured(
            f"OAuth not configured for {provider.display_name}: set "
            f"{prefix}_CLIENT_ID and {prefix}_CLIENT_SECRET.",
            provider=provider.name,
        )
    return client_id, client_secret


class AcquisitionFlowController:
    """Issues and validates the state/PKCE handshake and stores new credentials."""

    def __init__(
        self,
        *,
        state_store: AcquisitionStateStore,
        credential_store: SQLiteCredentialStore,
        oauth_client: OAuthProviderClient,
        client_settings: ProviderClientSettings,
        oauth_settings: OAuthSettings,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._states = state_store
        self._credentials = credential_store
        self._oauth = oauth_client
        self._clients = client_settings
        self._oauth_settings = oauth_settings
        self._clock = clock

    def initiate(
        self, *, user_id: str, provider: str, redirect_to: Optional[str] = None
    ) -> AuthorizationRedirect:
        """Persist a fresh state and return the provider consent URL."""
        capabilities = require_provider(provider)
        client_id, _ = resolve_client_credentials(capabilities, self._clients)

        verifier = generate_code_verifier() if capabilities.requires_pkce else None
        state = AcquisitionState(
            state_token=generate_state_token(),
            user_id=user_id,
            provider=capabilities.name,
            created_at=self._clock(),
            pkce_verifier=verifier,
            redirect_to=redirect_to,
        )
        self._states.save(state)

        url = self._oauth.build_authorization_url(
            capabilities,
            client_id=client_id,
            redirect_uri=self._oauth_settings.callback_url(capabilities.name),
            state=state.state_token,
            code_challenge=derive_code_challenge(verifier) if verifier else None,
        )
        logger.info(
            "Issued authorization redirect",
            extra={"provider": capabilities.name, "user_id": user_id},
        )
        return AuthorizationRedirect(
            provider=capabilities.name,
            url=url,
            state=state.state_token,
            expires_at=state.created_at + self._states.ttl_seconds * 1000,
        )

    def consume_state(self, *, state: str, provider: str) -> AcquisitionState:
        """
        Consume the state for a callback, raising ``InvalidState`` if unusable.

        The record is deleted before validation so a failed or replayed
        callback can never reuse it.
        """
        record = self._states.consume(state)
        if record is None:
            raise InvalidState("Unknown or already used OAuth state.", provider=provider)
        if record.provider != provider:
            logger.warning(
                "OAuth state provider mismatch",
                extra={"expected": record.provider, "received": provider},
            )
            raise InvalidState("OAuth state does not match provider.", provider=provider)
        if record.is_expired(now=self._clock(), ttl_seconds=self._states.ttl_seconds):
            raise InvalidState("OAuth state has expired.", provider=provider)
        return record

    async def complete(
        self, *, state: str, code: str, provider: str
    ) -> CompletedAcquisition:
        """Validate the callback, exchange the code and store the credential."""
        record = self.consume_state(state=state, provider=provider)
        capabilities = require_provider(record.provider)
        client_id, client_secret = resolve_client_credentials(capabilities, self._clients)

        grant = await self._oauth.exchange_authorization_code(
            capabilities,
            code=code,
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=self._oauth_settings.callback_url(capabilities.name),
            code_verifier=record.pkce_verifier,
        )

        now = self._clock()
        expires_at = now + grant.expires_in * 1000 if grant.expires_in else None
        credential = self._credentials.upsert(
            Credential(
                user_id=record.user_id,
                provider=capabilities.name,
                access_token=grant.access_token,
                refresh_token=grant.refresh_token,
                expires_at=expires_at,
                issued_at=now,
                scopes=grant.scopes or capabilities.scopes,
                source="oauth",
            )
        )
        logger.info(
            "Stored credential from authorization code",
            extra={
                "provider": capabilities.name,
                "user_id": record.user_id,
                "has_refresh_token": grant.refresh_token is not None,
            },
        )
        return CompletedAcquisition(credential=credential, redirect_to=record.redirect_to)


__all__ = [
    "AcquisitionFlowController",
    "AuthorizationRedirect",
    "CompletedAcquisition",
    "resolve_client_credentials",
]
