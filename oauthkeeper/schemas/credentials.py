"""Schemas describing stored credentials to API consumers."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class CredentialExpiryStatus(BaseModel):
    """Expiry state of one connected provider, as rendered by the dashboard."""

    provider: str
    expiresAt: Optional[int] = Field(
        None, description="Expiry in milliseconds since epoch."
    )
    timeRemaining: Optional[int] = Field(
        None, description="Milliseconds until expiry; negative once expired."
    )
    status: Literal["no-expiry", "ok", "warning", "expired"]
    supportsRefresh: bool


class ConnectedProvider(BaseModel):
    provider: str
    source: Literal["oauth", "manual"]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ConnectionStatus(BaseModel):
    provider: str
    connected: bool


class ManualCredentialPayload(BaseModel):
    """Token entered by hand, e.g. a personal access token."""

    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = Field(
        None, description="Expiry in milliseconds since epoch; omit if it never expires."
    )
    scopes: List[str] = Field(default_factory=list)


__all__ = [
    "ConnectedProvider",
    "ConnectionStatus",
    "CredentialExpiryStatus",
    "ManualCredentialPayload",
]
