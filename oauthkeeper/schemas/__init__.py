"""Public schema exports."""

from .auth import (
    AuthorizationResponse,
    ConnectionResult,
    ManualRefreshRequest,
    ManualRefreshResponse,
    OAuthCallbackPayload,
)
from .credentials import (
    ConnectedProvider,
    ConnectionStatus,
    CredentialExpiryStatus,
    ManualCredentialPayload,
)
from .refresh import RefreshJobResponse, RefreshJobSummaryPayload, RefreshResultEntry

__all__ = [
    "AuthorizationResponse",
    "ConnectedProvider",
    "ConnectionResult",
    "ConnectionStatus",
    "CredentialExpiryStatus",
    "ManualCredentialPayload",
    "ManualRefreshRequest",
    "ManualRefreshResponse",
    "OAuthCallbackPayload",
    "RefreshJobResponse",
    "RefreshJobSummaryPayload",
    "RefreshResultEntry",
]
