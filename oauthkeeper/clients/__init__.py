"""Expose constructed client wrappers."""

from .credential_store import SQLiteCredentialStore
from .oauth import OAuthProviderClient, TokenGrant

__all__ = [
    "OAuthProviderClient",
    "SQLiteCredentialStore",
    "TokenGrant",
]
