"""State and PKCE value generation for the authorization code flow."""

from __future__ import annotations

import base64
import hashlib
import secrets


def generate_state_token() -> str:
    """Return 256 bits of randomness, hex encoded."""
    return secrets.token_hex(32)


def generate_code_verifier() -> str:
    """Return a 43-character base64url verifier (RFC 7636 section 4.1)."""
    return secrets.token_urlsafe(32)


def derive_code_challenge(verifier: str) -> str:
    """S256 challenge: base64url(sha256(verifier)) without padding."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


__all__ = ["derive_code_challenge", "generate_code_verifier", "generate_state_token"]
