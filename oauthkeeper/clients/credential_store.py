"""SQLite-backed credential store keyed by (user_id, provider)."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from oauthkeeper.models.credential import Credential, ExpiringCredential

if TYPE_CHECKING:
    from oauthkeeper.services.token_cipher import TokenCipherService


class SQLiteCredentialStore:
    """
    Persist one credential row per user/provider pair.

    Tokens are encrypted at rest. The refresh token's fingerprint is stored
    alongside it so ``update_if_refresh_token_matches`` can compare versions in
    a single UPDATE statement.
    """

    def __init__(self, db_path: str, cipher: TokenCipherService) -> None:
        self._db_path = Path(db_path)
        self._cipher = cipher
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS user_credentials (
                    user_id TEXT NOT NULL,
                    provider TEXT NOT NULL,
                    access_token_encrypted TEXT NOT NULL,
                    refresh_token_encrypted TEXT,
                    refresh_token_fingerprint TEXT,
                    expires_at INTEGER,
                    issued_at INTEGER NOT NULL,
                    last_refreshed_at INTEGER,
                    scopes TEXT NOT NULL DEFAULT '[]',
                    source TEXT NOT NULL DEFAULT 'oauth',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, provider)
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_user_credentials_expires_at
                ON user_credentials (expires_at)
                """
            )

    def upsert(self, credential: Credential) -> Credential:
        """Insert or wholesale replace the credential for its user/provider."""
        now_iso = datetime.now(timezone.utc).isoformat()
        refresh_encrypted = None
        refresh_fingerprint = None
        if credential.refresh_token:
            refresh_encrypted = self._cipher.encrypt(credential.refresh_token)
            refresh_fingerprint = self._cipher.fingerprint(credential.refresh_token)

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO user_credentials (
                    user_id,
                    provider,
                    access_token_encrypted,
                    refresh_token_encrypted,
                    refresh_token_fingerprint,
                    expires_at,
                    issued_at,
                    last_refreshed_at,
                    scopes,
                    source,
                    created_at,
                    updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, provider) DO UPDATE SET
                    access_token_encrypted = excluded.access_token_encrypted,
                    refresh_token_encrypted = excluded.refresh_token_encrypted,
                    refresh_token_fingerprint = excluded.refresh_token_fingerprint,
                    expires_at = excluded.expires_at,
                    issued_at = excluded.issued_at,
                    last_refreshed_at = excluded.last_refreshed_at,
                    scopes = excluded.scopes,
                    source = excluded.source,
                    updated_at = excluded.updated_at
                """,
                (
                    credential.user_id,
                    credential.provider,
                    self._cipher.encrypt(credential.access_token),
                    refresh_encrypted,
                    refresh_fingerprint,
                    credential.expires_at,
                    credential.issued_at,
                    credential.last_refreshed_at,
                    json.dumps(list(credential.scopes)),
                    credential.source,
                    now_iso,
                    now_iso,
                ),
            )
        stored = self.get(user_id=credential.user_id, provider=credential.provider)
        return stored or credential

    def get(self, *, user_id: str, provider: str) -> Optional[Credential]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM user_credentials WHERE user_id = ? AND provider = ?",
                (user_id, provider),
            ).fetchone()
        if not row:
            return None
        return self._row_to_credential(row)

    def list_for_user(self, user_id: str) -> List[Credential]:
        with self._connect() as conn:
            rows = conn.execute(
                (
                    "SELECT * FROM user_credentials "
                    "WHERE user_id = ? ORDER BY created_at DESC, provider"
                ),
                (user_id,),
            ).fetchall()
        return [self._row_to_credential(row) for row in rows]

    def delete(self, *, user_id: str, provider: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM user_credentials WHERE user_id = ? AND provider = ?",
                (user_id, provider),
            )
        return cursor.rowcount > 0

    def list_expiring(self, *, expires_before: int) -> List[ExpiringCredential]:
        """
        Return refresh-capable rows whose expiry is at or before ``expires_before``.

        Only keys are read here; tokens are decrypted when each candidate is
        refreshed, so one unreadable row cannot fail the whole selection.
        """
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT user_id, provider, expires_at
                FROM user_credentials
                WHERE refresh_token_fingerprint IS NOT NULL
                  AND expires_at IS NOT NULL
                  AND expires_at <= ?
                ORDER BY expires_at ASC
                """,
                (expires_before,),
            ).fetchall()
        return [
            ExpiringCredential(
                user_id=row["user_id"],
                provider=row["provider"],
                expires_at=row["expires_at"],
            )
            for row in rows
        ]

    def update_if_refresh_token_matches(
        self,
        *,
        user_id: str,
        provider: str,
        expected_refresh_token: str,
        expected_last_refreshed_at: Optional[int],
        access_token: str,
        refresh_token: str,
        expires_at: Optional[int],
        refreshed_at: int,
    ) -> bool:
        """
        Apply refreshed tokens only if the row is still the version that was read.

        The version is the refresh token plus ``last_refreshed_at``. Providers
        that do not rotate keep the same refresh token across refreshes, so the
        timestamp is what tells two refreshes of one row apart. Returns
        ``False`` when another writer changed or removed the row since it was
        read.
        """
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE user_credentials SET
                    access_token_encrypted = ?,
                    refresh_token_encrypted = ?,
                    refresh_token_fingerprint = ?,
                    expires_at = ?,
                    last_refreshed_at = ?,
                    updated_at = ?
                WHERE user_id = ?
                  AND provider = ?
                  AND refresh_token_fingerprint = ?
                  AND last_refreshed_at IS ?
                """,
                (
                    self._cipher.encrypt(access_token),
                    self._cipher.encrypt(refresh_token),
                    self._cipher.fingerprint(refresh_token),
                    expires_at,
                    refreshed_at,
                    datetime.now(timezone.utc).isoformat(),
                    user_id,
                    provider,
                    self._cipher.fingerprint(expected_refresh_token),
                    expected_last_refreshed_at,
                ),
            )
        return cursor.rowcount == 1

    def _row_to_credential(self, row: sqlite3.Row) -> Credential:
        refresh_token = None
        if row["refresh_token_encrypted"]:
            refresh_token = self._cipher.decrypt(row["refresh_token_encrypted"])
        return Credential(
            user_id=row["user_id"],
            provider=row["provider"],
            access_token=self._cipher.decrypt(row["access_token_encrypted"]),
            refresh_token=refresh_token,
            expires_at=row["expires_at"],
            issued_at=row["issued_at"],
            last_refreshed_at=row["last_refreshed_at"],
            scopes=tuple(json.loads(row["scopes"] or "[]")),
            source=row["source"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


__all__ = ["SQLiteCredentialStore"]
