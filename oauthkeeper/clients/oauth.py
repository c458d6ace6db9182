"""
Provider-agnostic OAuth 2.0 client.

Builds authorization URLs and talks to token endpoints described by the
provider capability registry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

import httpx

from oauthkeeper.core.errors import (
    NetworkOrTimeout,
    ProviderRefreshRejected,
    TokenExchangeFailed,
)
from oauthkeeper.core.providers import ProviderCapabilities

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenGrant:
    """Tokens returned by a successful token endpoint call."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scopes: Tuple[str, ...] = ()
    token_type: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"TokenGrant(expires_in={self.expires_in!r}, "
            f"rotated={self.refresh_token is not None}, scopes={self.scopes!r})"
        )


class _TokenEndpointRejected(Exception):
    def __init__(self, error_code: Optional[str], description: str) -> None:
        super().__init__(description)
        self.error_code = error_code


class OAuthProviderClient:
    """Build authorization URLs, exchange authorization codes and refresh tokens."""

    def __init__(
        self,
        *,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout_seconds
        self._transport = transport

    def build_authorization_url(
        self,
        provider: ProviderCapabilities,
        *,
        client_id: str,
        redirect_uri: str,
        state: str,
        code_challenge: str | None = None,
    ) -> str:
        """Construct the provider consent URL."""
        params: Dict[str, str] = {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "state": state,
            "scope": provider.join_scopes(),
        }
        if code_challenge:
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = "S256"
        params.update(provider.extra_authorize_params)
        return f"{provider.authorize_url}?{urlencode(params)}"

    async def exchange_authorization_code(
        self,
        provider: ProviderCapabilities,
        *,
        code: str,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> TokenGrant:
        """
        Exchange an authorization code for tokens.

        Every failure, including transport errors, surfaces as
        ``TokenExchangeFailed``; the code is single use either way.
        """
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": client_id,
            "client_secret": client_secret,
            "redirect_uri": redirect_uri,
        }
        if code_verifier:
            payload["code_verifier"] = code_verifier

        try:
            body = await self._post_token_request(provider, payload)
        except _TokenEndpointRejected as exc:
            raise TokenExchangeFailed(
                f"{provider.display_name} rejected the authorization code: {exc}",
                provider=provider.name,
                error_code=exc.error_code,
            ) from exc
        except NetworkOrTimeout as exc:
            raise TokenExchangeFailed(
                str(exc), provider=provider.name, error_code="network_error"
            ) from exc

        grant = self._parse_grant(provider, body)
        if grant is None:
            raise TokenExchangeFailed(
                f"Incomplete token payload returned from {provider.display_name}.",
                provider=provider.name,
            )
        return grant

    async def refresh_access_token(
        self,
        provider: ProviderCapabilities,
        *,
        refresh_token: str,
        client_id: str,
        client_secret: str,
    ) -> TokenGrant:
        """Redeem a refresh token for a new access token."""
        payload = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": client_id,
            "client_secret": client_secret,
        }

        try:
            body = await self._post_token_request(provider, payload)
        except _TokenEndpointRejected as exc:
            raise ProviderRefreshRejected(
                f"{provider.display_name} rejected the refresh token: {exc}",
                provider=provider.name,
                error_code=exc.error_code,
            ) from exc

        grant = self._parse_grant(provider, body)
        if grant is None:
            raise ProviderRefreshRejected(
                f"Incomplete refresh payload returned from {provider.display_name}.",
                provider=provider.name,
            )
        return grant

    async def _post_token_request(
        self, provider: ProviderCapabilities, payload: Dict[str, str]
    ) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    provider.token_endpoint,
                    data=payload,
                    headers={"Accept": "application/json"},
                )
        except httpx.TimeoutException as exc:
            raise NetworkOrTimeout(
                f"Timed out after {self._timeout}s calling {provider.display_name}.",
                provider=provider.name,
            ) from exc
        except httpx.TransportError as exc:
            raise NetworkOrTimeout(
                f"Could not reach {provider.display_name}: {exc}",
                provider=provider.name,
            ) from exc

        if response.status_code >= httpx.codes.INTERNAL_SERVER_ERROR:
            raise NetworkOrTimeout(
                f"{provider.display_name} token endpoint returned HTTP "
                f"{response.status_code}.",
                provider=provider.name,
            )

        try:
            body = response.json()
        except ValueError:
            body = None

        if not isinstance(body, dict):
            raise _TokenEndpointRejected(
                None, f"HTTP {response.status_code} with non-JSON body"
            )

        # GitHub and Slack report grant errors with HTTP 200.
        error_code = body.get("error")
        if response.status_code != httpx.codes.OK or error_code or body.get("ok") is False:
            description = body.get("error_description") or error_code or response.text
            logger.info(
                "Token endpoint rejected request",
                extra={
                    "provider": provider.name,
                    "status_code": response.status_code,
                    "error_code": error_code,
                },
            )
            raise _TokenEndpointRejected(error_code, str(description))

        return body

    @staticmethod
    def _parse_grant(
        provider: ProviderCapabilities, body: Dict[str, Any]
    ) -> Optional[TokenGrant]:
        access_token = body.get("access_token")
        if not access_token:
            return None

        expires_in = body.get("expires_in")
        try:
            expires_in_seconds = int(expires_in) if expires_in not in (None, "") else None
        except (TypeError, ValueError):
            expires_in_seconds = None

        raw_scope = body.get("scope")
        scopes = provider.split_scopes(raw_scope if isinstance(raw_scope, str) else None)

        return TokenGrant(
            access_token=access_token,
            refresh_token=body.get("refresh_token") or None,
            expires_in=expires_in_seconds,
            scopes=scopes,
            token_type=body.get("token_type"),
        )


__all__ = ["OAuthProviderClient", "TokenGrant"]
