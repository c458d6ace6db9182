try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import copy
from datetime import datetime, timezone

import httpx
import pytest

from oauthkeeper.core.errors import ProviderRefreshRejected, RefreshNotSupported
from oauthkeeper.main import app
from oauthkeeper.models.credential import Credential
from oauthkeeper.services.refresh import RefreshJobSummary, RefreshOutcome, RefreshResult


class DummyOrchestrator:
    def __init__(self) -> None:
        self.runs = 0
        self.manual: list[tuple[str, str]] = []
        self.manual_error: Exception | None = None

    async def run(self) -> RefreshJobSummary:
        self.runs += 1
        return RefreshJobSummary(
            executed_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            duration_ms=42,
            results=[
                RefreshResult(
                    provider="jira",
                    user_id="user-1234567890",
                    outcome=RefreshOutcome.REFRESHED,
                    expires_at=1,
                ),
                RefreshResult(
                    provider="slack",
                    user_id="user-abcdefghij",
                    outcome=RefreshOutcome.FAILED,
                    error="ProviderRefreshRejected",
                ),
                RefreshResult(
                    provider="linear",
                    user_id="short",
                    outcome=RefreshOutcome.CONFLICT,
                    error="ConcurrentRefreshConflict",
                ),
            ],
        )

    async def refresh_credential(self, *, user_id: str, provider: str) -> Credential:
        self.manual.append((user_id, provider))
        if self.manual_error is not None:
            raise self.manual_error
        return Credential(
            user_id=user_id,
            provider=provider,
            access_token="new",
            refresh_token="refresh",
            expires_at=2_000,
            last_refreshed_at=1_000,
        )


@pytest.fixture()
def refresh_overrides():
    from oauthkeeper import dependencies
    from oauthkeeper.core.config import get_settings

    orchestrator = DummyOrchestrator()
    base_settings = copy.deepcopy(get_settings())
    base_settings.environment = "development"
    base_settings.refresh.job_secret = None

    app.dependency_overrides.update(
        {
            dependencies.get_refresh_orchestrator: lambda: orchestrator,
            dependencies.get_app_settings: lambda: base_settings,
        }
    )

    yield orchestrator, base_settings

    app.dependency_overrides.clear()


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    )


@pytest.mark.anyio
async def test_trigger_returns_summary_with_truncated_user_ids(refresh_overrides):
    orchestrator, _ = refresh_overrides

    async with _client() as client:
        response = await client.post("/api/auth/refresh-tokens")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    summary = body["summary"]
    assert summary["totalChecked"] == 3
    assert summary["successfulRefreshes"] == 1
    assert summary["failedRefreshes"] == 1
    assert summary["skippedRefreshes"] == 1
    assert summary["durationMs"] == 42
    assert [r["userId"] for r in summary["results"]] == [
        "user-123...",
        "user-abc...",
        "short",
    ]
    assert summary["results"][1]["error"] == "ProviderRefreshRejected"
    assert summary["results"][2]["outcome"] == "conflict"
    assert "access_token" not in response.text
    assert orchestrator.runs == 1


@pytest.mark.anyio
async def test_trigger_requires_bearer_secret_in_production(refresh_overrides):
    orchestrator, settings = refresh_overrides
    settings.environment = "production"
    settings.refresh.job_secret = "cron-secret"

    async with _client() as client:
        missing = await client.post("/api/auth/refresh-tokens")
        wrong = await client.post(
            "/api/auth/refresh-tokens", headers={"Authorization": "Bearer nope"}
        )
        ok = await client.post(
            "/api/auth/refresh-tokens",
            headers={"Authorization": "Bearer cron-secret"},
        )

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert ok.status_code == 200
    assert orchestrator.runs == 1


@pytest.mark.anyio
async def test_trigger_refuses_to_run_unprotected_in_production(refresh_overrides):
    orchestrator, settings = refresh_overrides
    settings.environment = "production"

    async with _client() as client:
        response = await client.post("/api/auth/refresh-tokens")

    assert response.status_code == 500
    assert orchestrator.runs == 0


@pytest.mark.anyio
async def test_trigger_info_endpoint(refresh_overrides):
    async with _client() as client:
        response = await client.get("/api/auth/refresh-tokens")

    assert response.status_code == 200
    body = response.json()
    assert body["method"] == "POST"
    assert body["authentication"] == "none"
    assert body["intervalSeconds"] == 300


@pytest.mark.anyio
async def test_manual_refresh(refresh_overrides):
    orchestrator, _ = refresh_overrides

    async with _client() as client:
        response = await client.post(
            "/api/auth/refresh-token", json={"user_id": "user-1", "provider": "jira"}
        )

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "provider": "jira",
        "expiresAt": 2_000,
        "refreshedAt": 1_000,
    }
    assert orchestrator.manual == [("user-1", "jira")]


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("error", "status", "code"),
    [
        (RefreshNotSupported("no", provider="github"), 400, "RefreshNotSupported"),
        (
            ProviderRefreshRejected("no", provider="jira", error_code="invalid_grant"),
            401,
            "ProviderRefreshRejected",
        ),
    ],
)
async def test_manual_refresh_maps_errors(refresh_overrides, error, status, code):
    orchestrator, _ = refresh_overrides
    orchestrator.manual_error = error

    async with _client() as client:
        response = await client.post(
            "/api/auth/refresh-token", json={"user_id": "user-1", "provider": "jira"}
        )

    assert response.status_code == status
    assert response.json()["detail"]["code"] == code
