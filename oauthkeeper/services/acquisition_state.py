"""SQLite-backed storage for in-flight OAuth authorization attempts."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from oauthkeeper.models.credential import now_ms


def _ensure_directory(db_path: Path) -> None:
    if db_path.parent and not db_path.parent.exists():
        db_path.parent.mkdir(parents=True, exist_ok=True)


@dataclass(slots=True, frozen=True)
class AcquisitionState:
    """CSRF state and optional PKCE verifier for one authorization redirect."""

    state_token: str
    user_id: str
    provider: str
    created_at: int
    pkce_verifier: Optional[str] = None
    redirect_to: Optional[str] = None

    def is_expired(self, *, now: int, ttl_seconds: int) -> bool:
        return now - self.created_at >= ttl_seconds * 1000


class AcquisitionStateStore:
    """Single-use state records with TTL pruning."""

    def __init__(
        self,
        db_path: str,
        ttl_seconds: int = 600,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._db_path = Path(db_path)
        self._ttl = ttl_seconds
        self._clock = clock
        _ensure_directory(self._db_path)
        self._ensure_tables()

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_tables(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS oauth_acquisition_states (
                    state_token TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    provider TEXT NOT NULL,
                    pkce_verifier TEXT,
                    redirect_to TEXT,
                    created_at INTEGER NOT NULL
                )
                """
            )

    def _prune(self) -> None:
        threshold = self._clock() - self._ttl * 1000
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM oauth_acquisition_states WHERE created_at <= ?",
                (threshold,),
            )

    def save(self, state: AcquisitionState) -> None:
        self._prune()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO oauth_acquisition_states (
                    state_token,
                    user_id,
                    provider,
                    pkce_verifier,
                    redirect_to,
                    created_at
                )
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    state.state_token,
                    state.user_id,
                    state.provider,
                    state.pkce_verifier,
                    state.redirect_to,
                    state.created_at,
                ),
            )

    def consume(self, state_token: str) -> Optional[AcquisitionState]:
        """
        Remove and return the state for ``state_token``.

        Expired rows are returned too; the caller decides validity. Only the
        caller whose DELETE removed the row gets a result.
        """
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM oauth_acquisition_states WHERE state_token = ?",
                (state_token,),
            ).fetchone()
            if not row:
                return None
            cursor = conn.execute(
                "DELETE FROM oauth_acquisition_states WHERE state_token = ?",
                (state_token,),
            )
            if cursor.rowcount != 1:
                return None
        return AcquisitionState(
            state_token=row["state_token"],
            user_id=row["user_id"],
            provider=row["provider"],
            created_at=row["created_at"],
            pkce_verifier=row["pkce_verifier"],
            redirect_to=row["redirect_to"],
        )


__all__ = ["AcquisitionState", "AcquisitionStateStore"]
