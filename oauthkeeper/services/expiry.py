"""
Expiry status policy shared by the refresh job and the status endpoint.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from oauthkeeper.core.providers import get_provider
from oauthkeeper.models.credential import Credential
from oauthkeeper.schemas.credentials import CredentialExpiryStatus

WARNING_WINDOW_MS = 15 * 60 * 1000


class ExpiryStatus(str, Enum):
    NO_EXPIRY = "no-expiry"
    OK = "ok"
    WARNING = "warning"
    EXPIRED = "expired"


REFRESHABLE_STATUSES = frozenset({ExpiryStatus.WARNING, ExpiryStatus.EXPIRED})


def evaluate_expiry(expires_at: Optional[int], now: int) -> ExpiryStatus:
    """Map an expiry timestamp (ms since epoch) to a status at time ``now``."""
    if expires_at is None:
        return ExpiryStatus.NO_EXPIRY
    remaining = expires_at - now
    if remaining <= 0:
        return ExpiryStatus.EXPIRED
    if remaining <= WARNING_WINDOW_MS:
        return ExpiryStatus.WARNING
    return ExpiryStatus.OK


def describe_expiry(credential: Credential, now: int) -> CredentialExpiryStatus:
    """Build the status record reported to the dashboard for one credential."""
    capabilities = get_provider(credential.provider)
    supports_refresh = bool(
        capabilities
        and capabilities.supports_refresh
        and credential.refresh_token
    )
    status = evaluate_expiry(credential.expires_at, now)
    if credential.expires_at is None:
        return CredentialExpiryStatus(
            provider=credential.provider,
            status=status.value,
            supportsRefresh=supports_refresh,
        )
    return CredentialExpiryStatus(
        provider=credential.provider,
        expiresAt=credential.expires_at,
        timeRemaining=credential.expires_at - now,
        status=status.value,
        supportsRefresh=supports_refresh,
    )


__all__ = [
    "ExpiryStatus",
    "REFRESHABLE_STATUSES",
    "WARNING_WINDOW_MS",
    "describe_expiry",
    "evaluate_expiry",
]
