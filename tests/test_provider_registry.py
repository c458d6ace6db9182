try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from oauthkeeper.core.errors import UnknownProvider
from oauthkeeper.core.providers import PROVIDERS, get_provider, require_provider


def test_registry_contains_supported_providers() -> None:
    assert set(PROVIDERS) == {"github", "jira", "linear", "slack", "calendar"}


def test_github_tokens_do_not_expire_or_refresh() -> None:
    github = require_provider("github")

    assert github.supports_refresh is False
    assert github.requires_pkce is True
    assert github.nominal_lifespan_seconds is None


def test_rotating_providers() -> None:
    rotating = {name for name, caps in PROVIDERS.items() if caps.rotates_refresh_token}
    assert rotating == {"jira", "linear"}
    assert all(PROVIDERS[name].supports_refresh for name in rotating)


def test_calendar_uses_google_client_registration() -> None:
    calendar = require_provider("calendar")

    assert calendar.settings_key == "google"
    assert calendar.extra_authorize_params["access_type"] == "offline"
    assert calendar.extra_authorize_params["prompt"] == "consent"


def test_slack_joins_scopes_with_commas_and_splits_either_way() -> None:
    slack = require_provider("slack")

    assert slack.join_scopes() == "channels:read,channels:history,users:read"
    assert slack.split_scopes("a,b c") == ("a", "b", "c")
    assert slack.split_scopes(None) == ()


def test_unknown_provider() -> None:
    assert get_provider("dropbox") is None
    with pytest.raises(UnknownProvider) as excinfo:
        require_provider("dropbox")
    assert excinfo.value.code == "UnknownProvider"
    assert excinfo.value.provider == "dropbox"
