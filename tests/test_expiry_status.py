try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from oauthkeeper.models.credential import Credential
from oauthkeeper.services.expiry import (
    WARNING_WINDOW_MS,
    ExpiryStatus,
    describe_expiry,
    evaluate_expiry,
)

NOW = 1_700_000_000_000
MINUTE = 60 * 1000


@pytest.mark.parametrize(
    ("expires_at", "expected"),
    [
        (None, ExpiryStatus.NO_EXPIRY),
        (NOW - MINUTE, ExpiryStatus.EXPIRED),
        (NOW, ExpiryStatus.EXPIRED),
        (NOW + 1, ExpiryStatus.WARNING),
        (NOW + 10 * MINUTE, ExpiryStatus.WARNING),
        (NOW + WARNING_WINDOW_MS, ExpiryStatus.WARNING),
        (NOW + WARNING_WINDOW_MS + 1, ExpiryStatus.OK),
        (NOW + 60 * MINUTE, ExpiryStatus.OK),
    ],
)
def test_evaluate_expiry_boundaries(expires_at, expected) -> None:
    assert evaluate_expiry(expires_at, NOW) is expected


def test_status_advances_monotonically_with_time() -> None:
    expires_at = NOW + 20 * MINUTE
    order = [ExpiryStatus.OK, ExpiryStatus.WARNING, ExpiryStatus.EXPIRED]
    seen = [evaluate_expiry(expires_at, NOW + step * MINUTE) for step in range(0, 30)]

    ranks = [order.index(status) for status in seen]
    assert ranks == sorted(ranks)
    assert seen[0] is ExpiryStatus.OK
    assert seen[-1] is ExpiryStatus.EXPIRED


def test_describe_expiry_without_expiry_omits_timing() -> None:
    credential = Credential(
        user_id="user-1",
        provider="github",
        access_token="gho_token",
        expires_at=None,
    )

    status = describe_expiry(credential, NOW)

    assert status.status == "no-expiry"
    assert status.expiresAt is None
    assert status.timeRemaining is None
    assert status.supportsRefresh is False


def test_describe_expiry_reports_negative_remaining_when_expired() -> None:
    credential = Credential(
        user_id="user-1",
        provider="jira",
        access_token="access",
        refresh_token="refresh",
        expires_at=NOW - 5 * MINUTE,
    )

    status = describe_expiry(credential, NOW)

    assert status.status == "expired"
    assert status.expiresAt == NOW - 5 * MINUTE
    assert status.timeRemaining == -5 * MINUTE
    assert status.supportsRefresh is True


def test_describe_expiry_needs_refresh_token_to_support_refresh() -> None:
    credential = Credential(
        user_id="user-1",
        provider="slack",
        access_token="xoxb",
        expires_at=NOW + 10 * MINUTE,
        source="manual",
    )

    status = describe_expiry(credential, NOW)

    assert status.status == "warning"
    assert status.supportsRefresh is False
