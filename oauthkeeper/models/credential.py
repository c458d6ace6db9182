"""
Domain models for credential persistence.
"""

from datetime import datetime, timezone
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, Field


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


class Credential(BaseModel):
    """Decrypted access credential for one user/provider connection."""

    user_id: str
    provider: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = Field(
        None, description="Expiry in milliseconds since epoch; None never expires."
    )
    issued_at: int = Field(default_factory=now_ms)
    last_refreshed_at: Optional[int] = None
    scopes: Tuple[str, ...] = ()
    source: Literal["oauth", "manual"] = "oauth"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __repr__(self) -> str:
        return (
            f"Credential(user_id={self.user_id!r}, provider={self.provider!r}, "
            f"expires_at={self.expires_at!r}, source={self.source!r})"
        )

    __str__ = __repr__


class ExpiringCredential(BaseModel):
    """Key and expiry of a refresh candidate, read without decrypting tokens."""

    user_id: str
    provider: str
    expires_at: int


__all__ = ["Credential", "ExpiringCredential", "now_ms"]
