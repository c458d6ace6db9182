"""Symmetric encryption utilities for protecting stored tokens."""

from __future__ import annotations

import base64
import hashlib
import hmac

from cryptography.fernet import Fernet, InvalidToken


class TokenCipherService:
    """Encrypt stored tokens and fingerprint refresh tokens with one secret."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))
        self._fingerprint_key = hashlib.sha256(b"fingerprint:" + digest).digest()

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a plaintext string and return the ciphertext."""
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a ciphertext string and return the plaintext."""
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError(
                "Failed to decrypt token; invalid ciphertext provided."
            ) from exc
        return plaintext.decode("utf-8")

    def fingerprint(self, value: str) -> str:
        """
        Return a deterministic keyed digest of ``value``.

        Fernet ciphertext differs on every call, so compare-and-swap on an
        encrypted column goes through this digest instead.
        """
        return hmac.new(
            self._fingerprint_key, value.encode("utf-8"), hashlib.sha256
        ).hexdigest()


__all__ = ["TokenCipherService"]
