try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import copy
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from oauthkeeper.clients.credential_store import SQLiteCredentialStore
from oauthkeeper.clients.oauth import OAuthProviderClient, TokenGrant
from oauthkeeper.core.errors import TokenExchangeFailed
from oauthkeeper.main import app
from oauthkeeper.services.acquisition import AcquisitionFlowController
from oauthkeeper.services.acquisition_state import AcquisitionStateStore
from oauthkeeper.services.token_cipher import TokenCipherService


class DummyOAuthClient(OAuthProviderClient):
    def __init__(self) -> None:
        super().__init__()
        self.codes: list[str] = []
        self.error: Exception | None = None

    async def exchange_authorization_code(self, provider, *, code, **kwargs) -> TokenGrant:
        self.codes.append(code)
        if self.error is not None:
            raise self.error
        return TokenGrant(access_token="access", refresh_token="refresh", expires_in=3600)


@pytest.fixture()
def oauth_overrides(tmp_path):
    from oauthkeeper import dependencies
    from oauthkeeper.core.config import get_settings

    base_settings = copy.deepcopy(get_settings())
    base_settings.frontend_base_url = None
    db_path = str(tmp_path / "credentials.db")
    store = SQLiteCredentialStore(db_path, cipher=TokenCipherService(secret="routes"))
    dummy_client = DummyOAuthClient()
    controller = AcquisitionFlowController(
        state_store=AcquisitionStateStore(db_path),
        credential_store=store,
        oauth_client=dummy_client,
        client_settings=base_settings.providers,
        oauth_settings=base_settings.oauth,
    )

    overrides = {
        dependencies.get_acquisition_controller: lambda: controller,
        dependencies.get_credential_store: lambda: store,
        dependencies.get_app_settings: lambda: base_settings,
    }

    app.dependency_overrides.update(overrides)

    yield dummy_client, store, base_settings

    app.dependency_overrides.clear()


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    )


async def _authorize(client: httpx.AsyncClient, provider: str = "jira", **params) -> str:
    response = await client.get(
        f"/api/auth/{provider}/authorize", params={"user_id": "abc123", **params}
    )
    assert response.status_code == 200
    return response.json()["state"]


@pytest.mark.anyio
async def test_health() -> None:
    async with _client() as client:
        response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.anyio
async def test_authorize_returns_json_by_default(oauth_overrides):
    async with _client() as client:
        response = await client.get(
            "/api/auth/linear/authorize", params={"user_id": "abc123"}
        )

    assert response.status_code == 200
    data = response.json()
    assert data["provider"] == "linear"
    url = urlparse(data["authorization_url"])
    assert url.netloc == "linear.app"
    assert parse_qs(url.query)["state"] == [data["state"]]


@pytest.mark.anyio
async def test_authorize_redirects_when_requested(oauth_overrides):
    async with _client() as client:
        response = await client.get(
            "/api/auth/jira/authorize",
            params={"user_id": "abc123", "redirect": "true"},
        )

    assert response.status_code == 307
    assert response.headers["location"].startswith("https://auth.atlassian.com/authorize?")


@pytest.mark.anyio
async def test_authorize_redirects_for_browser_clients(oauth_overrides):
    async with _client() as client:
        response = await client.get(
            "/api/auth/jira/authorize",
            params={"user_id": "abc123"},
            headers={"accept": "text/html"},
        )

    assert response.status_code == 307


@pytest.mark.anyio
async def test_authorize_unknown_and_unconfigured_providers(oauth_overrides):
    _, _, settings = oauth_overrides
    settings.providers.slack_client_id = None

    async with _client() as client:
        unknown = await client.get("/api/auth/dropbox/authorize", params={"user_id": "u"})
        unconfigured = await client.get("/api/auth/slack/authorize", params={"user_id": "u"})

    assert unknown.status_code == 400
    assert unknown.json()["detail"]["code"] == "UnknownProvider"
    assert unconfigured.status_code == 500
    assert unconfigured.json()["detail"]["code"] == "ProviderMisconfigured"


@pytest.mark.anyio
async def test_post_callback_stores_credential(oauth_overrides):
    dummy_client, store, _ = oauth_overrides

    async with _client() as client:
        state = await _authorize(client)
        response = await client.post(
            "/api/auth/jira/callback", json={"state": state, "code": "auth-code"}
        )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "connected"
    assert data["provider"] == "jira"
    assert data["expires_at"] is not None
    assert dummy_client.codes == ["auth-code"]
    assert store.get(user_id="abc123", provider="jira").refresh_token == "refresh"


@pytest.mark.anyio
async def test_callback_replay_is_rejected(oauth_overrides):
    dummy_client, _, _ = oauth_overrides

    async with _client() as client:
        state = await _authorize(client)
        first = await client.get(
            "/api/auth/jira/callback", params={"state": state, "code": "code"}
        )
        replay = await client.get(
            "/api/auth/jira/callback", params={"state": state, "code": "code"}
        )

    assert first.status_code == 200
    assert replay.status_code == 400
    assert replay.json()["detail"]["code"] == "InvalidState"
    assert dummy_client.codes == ["code"]


@pytest.mark.anyio
async def test_callback_exchange_failure(oauth_overrides):
    dummy_client, store, _ = oauth_overrides
    dummy_client.error = TokenExchangeFailed(
        "rejected", provider="jira", error_code="invalid_grant"
    )

    async with _client() as client:
        state = await _authorize(client)
        response = await client.post(
            "/api/auth/jira/callback", json={"state": state, "code": "code"}
        )

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "TokenExchangeFailed"
    assert store.get(user_id="abc123", provider="jira") is None


@pytest.mark.anyio
async def test_get_callback_redirects_browser_to_frontend(oauth_overrides):
    _, _, settings = oauth_overrides
    settings.frontend_base_url = "https://frontend.example.com/"

    async with _client() as client:
        state = await _authorize(client)
        response = await client.get(
            "/api/auth/jira/callback",
            params={"state": state, "code": "code"},
            headers={"accept": "text/html"},
        )

    assert response.status_code == 307
    location = urlparse(response.headers["location"])
    assert location.netloc == "frontend.example.com"
    assert parse_qs(location.query) == {"success": ["true"], "provider": ["jira"]}


@pytest.mark.anyio
async def test_provider_error_consumes_state_and_redirects(oauth_overrides):
    dummy_client, _, settings = oauth_overrides
    settings.frontend_base_url = "https://app.example.com/"

    async with _client() as client:
        state = await _authorize(
            client, redirect_to="https://app.example.com/integrations?tab=jira"
        )
        denied = await client.get(
            "/api/auth/jira/callback",
            params={"state": state, "error": "access_denied", "redirect": "true"},
        )
        replay = await client.get(
            "/api/auth/jira/callback", params={"state": state, "code": "code"}
        )

    assert denied.status_code == 307
    location = urlparse(denied.headers["location"])
    assert location.netloc == "app.example.com"
    query = parse_qs(location.query)
    assert query["tab"] == ["jira"]
    assert query["error"] == ["TokenExchangeFailed"]
    assert replay.status_code == 400
    assert replay.json()["detail"]["code"] == "InvalidState"
    assert dummy_client.codes == []


@pytest.mark.anyio
async def test_authorize_rejects_redirect_outside_frontend_origin(oauth_overrides):
    _, _, settings = oauth_overrides
    settings.frontend_base_url = "https://app.example.com/"

    async with _client() as client:
        foreign = await client.get(
            "/api/auth/jira/authorize",
            params={"user_id": "abc123", "redirect_to": "https://evil.example.net/phish"},
        )
        lookalike = await client.get(
            "/api/auth/jira/authorize",
            params={
                "user_id": "abc123",
                "redirect_to": "https://app.example.com@evil.example.net/",
            },
        )
        same_origin = await client.get(
            "/api/auth/jira/authorize",
            params={"user_id": "abc123", "redirect_to": "https://app.example.com/settings"},
        )

    for response in (foreign, lookalike):
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "InvalidRedirect"
    assert same_origin.status_code == 200


@pytest.mark.anyio
async def test_authorize_rejects_redirect_without_frontend_configured(oauth_overrides):
    async with _client() as client:
        response = await client.get(
            "/api/auth/jira/authorize",
            params={"user_id": "abc123", "redirect_to": "https://app.example.com/"},
        )

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "InvalidRedirect"
