"""Schemas related to OAuth flows."""

from __future__ import annotations

from pydantic import BaseModel, Field


class OAuthCallbackPayload(BaseModel):
    """Payload sent to complete the OAuth callback exchange."""

    code: str = Field(..., description="Authorization code returned by the provider.")
    state: str = Field(..., description="Opaque state token issued when starting OAuth.")


class AuthorizationResponse(BaseModel):
    """Consent URL returned to API clients that do not follow redirects."""

    provider: str
    authorization_url: str
    state: str


class ConnectionResult(BaseModel):
    """Outcome of a completed authorization callback."""

    status: str = "connected"
    provider: str
    expires_at: int | None = Field(
        None, description="Access token expiry in milliseconds since epoch."
    )
    redirect_to: str | None = None


class ManualRefreshRequest(BaseModel):
    """Request a synchronous refresh of one stored credential."""

    user_id: str = Field(..., min_length=1)
    provider: str = Field(..., min_length=1)


class ManualRefreshResponse(BaseModel):
    success: bool = True
    provider: str
    expiresAt: int | None = None
    refreshedAt: int


__all__ = [
    "AuthorizationResponse",
    "ConnectionResult",
    "ManualRefreshRequest",
    "ManualRefreshResponse",
    "OAuthCallbackPayload",
]
