"""
Static capability registry for supported OAuth providers.

Acquisition and refresh branch on these flags instead of on provider names, so
adding a provider means adding an entry here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

from oauthkeeper.core.errors import UnknownProvider


@dataclass(frozen=True)
class ProviderCapabilities:
    """Describes how to talk to one provider's OAuth endpoints."""

    name: str
    display_name: str
    authorize_url: str
    token_endpoint: str
    scopes: Tuple[str, ...]
    supports_refresh: bool
    rotates_refresh_token: bool
    requires_pkce: bool
    settings_key: str
    nominal_lifespan_seconds: Optional[int] = None
    extra_authorize_params: Mapping[str, str] = field(default_factory=dict)
    scope_separator: str = " "

    def join_scopes(self, scopes: Tuple[str, ...] | None = None) -> str:
        return self.scope_separator.join(scopes if scopes is not None else self.scopes)

    def split_scopes(self, raw: str | None) -> Tuple[str, ...]:
        if not raw:
            return ()
        # Providers are inconsistent about echoing the separator they were sent.
        normalized = raw.replace(",", " ")
        return tuple(scope for scope in normalized.split() if scope)


PROVIDERS: Dict[str, ProviderCapabilities] = {
    "github": ProviderCapabilities(
        name="github",
        display_name="GitHub",
        authorize_url="https://github.com/login/oauth/authorize",
        token_endpoint="https://github.com/login/oauth/access_token",
        scopes=("repo", "user"),
        supports_refresh=False,
        rotates_refresh_token=False,
        requires_pkce=True,
        settings_key="github",
    ),
    "jira": ProviderCapabilities(
        name="jira",
        display_name="Jira",
        authorize_url="https://auth.atlassian.com/authorize",
        token_endpoint="https://auth.atlassian.com/oauth/token",
        scopes=("read:jira-work", "read:jira-user", "offline_access"),
        supports_refresh=True,
        rotates_refresh_token=True,
        requires_pkce=False,
        settings_key="jira",
        nominal_lifespan_seconds=3600,
        extra_authorize_params={"audience": "api.atlassian.com", "prompt": "consent"},
    ),
    "linear": ProviderCapabilities(
        name="linear",
        display_name="Linear",
        authorize_url="https://linear.app/oauth/authorize",
        token_endpoint="https://api.linear.app/oauth/token",
        scopes=("read", "write"),
        supports_refresh=True,
        rotates_refresh_token=True,
        requires_pkce=True,
        settings_key="linear",
        nominal_lifespan_seconds=86400,
    ),
    "slack": ProviderCapabilities(
        name="slack",
        display_name="Slack",
        authorize_url="https://slack.com/oauth/v2/authorize",
        token_endpoint="https://slack.com/api/oauth.v2.access",
        scopes=("channels:read", "channels:history", "users:read"),
        supports_refresh=True,
        rotates_refresh_token=False,
        requires_pkce=False,
        settings_key="slack",
        nominal_lifespan_seconds=43200,
        scope_separator=",",
    ),
    "calendar": ProviderCapabilities(
        name="calendar",
        display_name="Google Calendar",
        authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_endpoint="https://oauth2.googleapis.com/token",
        scopes=("https://www.googleapis.com/auth/calendar.readonly",),
        supports_refresh=True,
        rotates_refresh_token=False,
        requires_pkce=False,
        settings_key="google",
        nominal_lifespan_seconds=3600,
        extra_authorize_params={"access_type": "offline", "prompt": "consent"},
    ),
}


def get_provider(name: str) -> Optional[ProviderCapabilities]:
    return PROVIDERS.get(name)


def require_provider(name: str) -> ProviderCapabilities:
    """Return the registry entry for ``name`` or raise ``UnknownProvider``."""
    capabilities = PROVIDERS.get(name)
    if capabilities is None:
        raise UnknownProvider(f"Unsupported provider: {name}", provider=name)
    return capabilities


__all__ = ["PROVIDERS", "ProviderCapabilities", "get_provider", "require_provider"]
