"""
Credential refresh orchestration.

Two entry points share one per-credential protocol:

* ``run`` is the recurring job. It selects every refresh-capable credential
  whose status is ``warning`` or ``expired`` and refreshes each one in its own
  task, bounded by a worker limit and an overall deadline.
* ``refresh_credential`` is the manual path used by the dashboard. It refreshes
  a single credential regardless of status and raises on failure.

The write-back is a compare-and-swap on the refresh token and
``last_refreshed_at`` read at the start of the attempt. Rotating providers
invalidate that token as soon as it is used, so a write based on a stale read
would clobber whatever a concurrent actor just installed; such writes are
dropped as ``ConcurrentRefreshConflict``. The timestamp also catches a second
job refreshing a non-rotating credential that another job already renewed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Set, Tuple

from oauthkeeper.clients.credential_store import SQLiteCredentialStore
from oauthkeeper.clients.oauth import OAuthProviderClient
from oauthkeeper.core.config import ProviderClientSettings
from oauthkeeper.core.errors import (
    ConcurrentRefreshConflict,
    CredentialEngineError,
    CredentialNotFound,
    MissingRefreshToken,
    RefreshNotSupported,
)
from oauthkeeper.core.providers import ProviderCapabilities, get_provider, require_provider
from oauthkeeper.models.credential import Credential, ExpiringCredential, now_ms
from oauthkeeper.services.acquisition import resolve_client_credentials
from oauthkeeper.services.expiry import (
    REFRESHABLE_STATUSES,
    WARNING_WINDOW_MS,
    evaluate_expiry,
)

logger = logging.getLogger(__name__)


class RefreshOutcome(str, Enum):
    REFRESHED = "refreshed"
    FAILED = "failed"
    CONFLICT = "conflict"
    NOT_NEEDED = "not_needed"
    DEFERRED = "deferred"


@dataclass
class RefreshResult:
    """
    Outcome of one credential in a job run.

    Never carries token values.
    """

    provider: str
    user_id: str
    outcome: RefreshOutcome
    error: Optional[str] = None
    message: Optional[str] = None
    expires_at: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.outcome is RefreshOutcome.REFRESHED


@dataclass
class RefreshJobSummary:
    executed_at: datetime
    duration_ms: int = 0
    results: List[RefreshResult] = field(default_factory=list)

    @property
    def total_checked(self) -> int:
        return len(self.results)

    @property
    def successful_refreshes(self) -> int:
        return sum(1 for r in self.results if r.outcome is RefreshOutcome.REFRESHED)

    @property
    def failed_refreshes(self) -> int:
        return sum(1 for r in self.results if r.outcome is RefreshOutcome.FAILED)

    @property
    def skipped_refreshes(self) -> int:
        return self.total_checked - self.successful_refreshes - self.failed_refreshes


class RefreshOrchestrator:
    """Selects expiring credentials and renews them with the provider."""

    def __init__(
        self,
        *,
        credential_store: SQLiteCredentialStore,
        oauth_client: OAuthProviderClient,
        client_settings: ProviderClientSettings,
        max_workers: int = 8,
        deadline_seconds: Optional[float] = 120.0,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = credential_store
        self._oauth = oauth_client
        self._clients = client_settings
        self._max_workers = max(1, max_workers)
        self._deadline_seconds = deadline_seconds
        self._clock = clock
        self._in_flight: Set[Tuple[str, str]] = set()

    def select_candidates(self, now: Optional[int] = None) -> List[ExpiringCredential]:
        """Return refresh-capable credentials whose status is warning or expired."""
        now = self._clock() if now is None else now
        candidates = []
        for entry in self._store.list_expiring(expires_before=now + WARNING_WINDOW_MS):
            capabilities = get_provider(entry.provider)
            if capabilities is None or not capabilities.supports_refresh:
                continue
            if evaluate_expiry(entry.expires_at, now) not in REFRESHABLE_STATUSES:
                continue
            candidates.append(entry)
        return candidates

    async def run(self, *, deadline_seconds: Optional[float] = None) -> RefreshJobSummary:
        """Refresh every credential in the expiring-soon set once."""
        started = time.monotonic()
        summary = RefreshJobSummary(
            executed_at=datetime.fromtimestamp(self._clock() / 1000, tz=timezone.utc)
        )
        deadline = deadline_seconds if deadline_seconds is not None else self._deadline_seconds
        deadline_at = started + deadline if deadline is not None else None

        candidates = self.select_candidates()
        logger.info(
            "Starting credential refresh job",
            extra={"candidates": len(candidates)},
        )

        semaphore = asyncio.Semaphore(self._max_workers)

        async def _worker(entry: ExpiringCredential) -> RefreshResult:
            async with semaphore:
                # Only unstarted work is deferred; a started refresh must reach
                # its write-back or a rotated token would be lost.
                if deadline_at is not None and time.monotonic() >= deadline_at:
                    return RefreshResult(
                        provider=entry.provider,
                        user_id=entry.user_id,
                        outcome=RefreshOutcome.DEFERRED,
                        error="DeadlineExceeded",
                    )
                return await self._refresh_isolated(entry)

        if candidates:
            summary.results = list(
                await asyncio.gather(*(_worker(entry) for entry in candidates))
            )

        summary.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Credential refresh job finished",
            extra={
                "total_checked": summary.total_checked,
                "succeeded": summary.successful_refreshes,
                "failed": summary.failed_refreshes,
                "skipped": summary.skipped_refreshes,
                "duration_ms": summary.duration_ms,
            },
        )
        return summary

    async def refresh_credential(self, *, user_id: str, provider: str) -> Credential:
        """Refresh one credential now, raising the domain error on failure."""
        capabilities = require_provider(provider)
        if not capabilities.supports_refresh:
            raise RefreshNotSupported(
                f"Provider {provider} does not support token refresh.", provider=provider
            )
        return await self._refresh(capabilities, user_id=user_id, force=True)

    async def _refresh_isolated(self, entry: ExpiringCredential) -> RefreshResult:
        capabilities = get_provider(entry.provider)
        result = RefreshResult(
            provider=entry.provider,
            user_id=entry.user_id,
            outcome=RefreshOutcome.FAILED,
        )
        try:
            credential = await self._refresh(capabilities, user_id=entry.user_id)
        except _NotNeeded:
            result.outcome = RefreshOutcome.NOT_NEEDED
        except ConcurrentRefreshConflict as exc:
            result.outcome = RefreshOutcome.CONFLICT
            result.error = exc.code
            result.message = str(exc)
        except CredentialEngineError as exc:
            result.error = exc.code
            result.message = str(exc)
            logger.warning(
                "Credential refresh failed",
                extra={
                    "provider": entry.provider,
                    "user_id": entry.user_id,
                    "error": exc.code,
                    "provider_error": getattr(exc, "error_code", None),
                },
            )
        except Exception as exc:  # noqa: BLE001 - one credential must not stop the job
            result.error = "UnexpectedError"
            result.message = str(exc)
            logger.exception(
                "Unexpected error refreshing credential",
                extra={"provider": entry.provider, "user_id": entry.user_id},
            )
        else:
            result.outcome = RefreshOutcome.REFRESHED
            result.expires_at = credential.expires_at
        return result

    async def _refresh(
        self,
        capabilities: ProviderCapabilities,
        *,
        user_id: str,
        force: bool = False,
    ) -> Credential:
        key = (user_id, capabilities.name)
        if key in self._in_flight:
            raise ConcurrentRefreshConflict(
                "A refresh for this credential is already in progress.",
                provider=capabilities.name,
            )
        self._in_flight.add(key)
        try:
            return await self._refresh_claimed(capabilities, user_id=user_id, force=force)
        finally:
            self._in_flight.discard(key)

    async def _refresh_claimed(
        self,
        capabilities: ProviderCapabilities,
        *,
        user_id: str,
        force: bool,
    ) -> Credential:
        provider = capabilities.name
        credential = self._store.get(user_id=user_id, provider=provider)
        if credential is None:
            if force:
                raise CredentialNotFound(
                    f"No credentials found for {provider}.", provider=provider
                )
            raise _NotNeeded()
        if not force and (
            evaluate_expiry(credential.expires_at, self._clock()) not in REFRESHABLE_STATUSES
        ):
            raise _NotNeeded()

        version = credential.refresh_token
        if not version:
            logger.warning(
                "Credential selected for refresh has no refresh token",
                extra={"provider": provider, "user_id": user_id},
            )
            raise MissingRefreshToken(
                "No refresh token available for this provider.", provider=provider
            )

        client_id, client_secret = resolve_client_credentials(capabilities, self._clients)
        grant = await self._oauth.refresh_access_token(
            capabilities,
            refresh_token=version,
            client_id=client_id,
            client_secret=client_secret,
        )

        now = self._clock()
        lifespan = grant.expires_in or capabilities.nominal_lifespan_seconds
        expires_at = now + lifespan * 1000 if lifespan else None
        if capabilities.rotates_refresh_token and not grant.refresh_token:
            logger.warning(
                "Rotating provider returned no new refresh token",
                extra={"provider": provider, "user_id": user_id},
            )
        new_refresh_token = grant.refresh_token or version

        applied = self._store.update_if_refresh_token_matches(
            user_id=user_id,
            provider=provider,
            expected_refresh_token=version,
            expected_last_refreshed_at=credential.last_refreshed_at,
            access_token=grant.access_token,
            refresh_token=new_refresh_token,
            expires_at=expires_at,
            refreshed_at=now,
        )
        if not applied:
            logger.warning(
                "Discarded refresh result; credential changed meanwhile",
                extra={"provider": provider, "user_id": user_id},
            )
            raise ConcurrentRefreshConflict(
                "Credential was updated by another writer during refresh.",
                provider=provider,
            )

        logger.info(
            "Refreshed credential",
            extra={
                "provider": provider,
                "user_id": user_id,
                "rotated": grant.refresh_token is not None
                and grant.refresh_token != version,
                "expires_at": expires_at,
            },
        )
        return credential.model_copy(
            update={
                "access_token": grant.access_token,
                "refresh_token": new_refresh_token,
                "expires_at": expires_at,
                "last_refreshed_at": now,
            }
        )


class _NotNeeded(Exception):
    """Credential left the expiring set between selection and refresh."""


__all__ = [
    "RefreshJobSummary",
    "RefreshOrchestrator",
    "RefreshOutcome",
    "RefreshResult",
]
