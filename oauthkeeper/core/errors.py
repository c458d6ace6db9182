"""
Error taxonomy for credential acquisition and refresh.

Every error carries a stable ``code`` equal to its class name so the HTTP layer
and the refresh job summary can report it without inspecting message text.
"""

from __future__ import annotations

from typing import Optional


class CredentialEngineError(Exception):
    """Base class for credential lifecycle failures."""

    code = "CredentialEngineError"

    def __init__(self, message: str = "", *, provider: Optional[str] = None) -> None:
        super().__init__(message or self.code)
        self.provider = provider

    def __init_subclass__(cls, **kwargs) -> None:
        super().__init_subclass__(**kwargs)
        cls.code = cls.__name__


class UnknownProvider(CredentialEngineError):
    """Raised when a provider name has no registry entry."""


class ProviderMisconfigured(CredentialEngineError):
    """Raised when client id or secret is missing for a provider."""


class InvalidState(CredentialEngineError):
    """Raised when a callback state is unknown, expired, reused or mismatched."""


class InvalidRedirect(CredentialEngineError):
    """Raised when a post-connect redirect target is outside the front-end origin."""


class _ProviderError(CredentialEngineError):
    def __init__(
        self,
        message: str = "",
        *,
        provider: Optional[str] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message, provider=provider)
        self.error_code = error_code


class TokenExchangeFailed(_ProviderError):
    """Raised when the provider rejects an authorization code exchange."""


class ProviderRefreshRejected(_ProviderError):
    """Raised when the provider rejects a refresh grant (e.g. invalid_grant)."""


class NetworkOrTimeout(CredentialEngineError):
    """Raised when a token endpoint cannot be reached in time."""


class MissingRefreshToken(CredentialEngineError):
    """Raised when a credential selected for refresh has no refresh token."""


class RefreshNotSupported(CredentialEngineError):
    """Raised when refresh is requested for a provider that cannot refresh."""


class CredentialNotFound(CredentialEngineError):
    """Raised when no credential is stored for a user/provider pair."""


class ConcurrentRefreshConflict(CredentialEngineError):
    """Raised when another actor updated the credential first."""


__all__ = [
    "ConcurrentRefreshConflict",
    "CredentialEngineError",
    "CredentialNotFound",
    "InvalidRedirect",
    "InvalidState",
    "MissingRefreshToken",
    "NetworkOrTimeout",
    "ProviderMisconfigured",
    "ProviderRefreshRejected",
    "RefreshNotSupported",
    "TokenExchangeFailed",
    "UnknownProvider",
]
