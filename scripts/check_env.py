"""Utility for verifying that required environment configuration is intact.

The tool performs two checks:

1. It attempts to instantiate ``AppSettings`` using the provided ``.env`` file,
   surfacing missing or malformed configuration entries before the API or the
   refresh worker start failing.
2. It reports which registered providers have an OAuth client id and secret,
   and fails when a provider passed with ``--require-provider`` has none.

Example usages::

    # Validate settings and list configured providers.
    python -m scripts.check_env --env-file /opt/oauthkeeper/.env

    # Run from a deploy hook to make sure the integrations in use are wired up.
    python -m scripts.check_env --env-file /opt/oauthkeeper/.env \
        --require-provider jira --require-provider calendar
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from pydantic import ValidationError

from oauthkeeper.core.config import AppSettings, _load_env_file
from oauthkeeper.core.providers import PROVIDERS

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_PROVIDER_NOT_CONFIGURED = 4
EXIT_RUNTIME_ERROR = 5


def _validate_settings(env_file: Path) -> AppSettings:
    """Ensure required settings can be loaded from the supplied env file."""
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def _configured_providers(settings: AppSettings) -> dict[str, bool]:
    """Map each registered provider to whether its client credentials are set."""
    status = {}
    for name, capabilities in PROVIDERS.items():
        client_id, client_secret = settings.providers.client_credentials(
            capabilities.settings_key
        )
        status[name] = bool(client_id and client_secret)
    return status


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate settings and report configured OAuth providers."
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        type=Path,
        help="Path to the environment file (default: .env in the repo root).",
    )
    parser.add_argument(
        "--require-provider",
        action="append",
        default=[],
        metavar="NAME",
        help="Fail unless this provider has a client id and secret. Repeatable.",
    )
    return parser


def _ensure_env_file(env_file: Path) -> None:
    if not env_file.exists():
        raise FileNotFoundError(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool."
        )


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_file: Path = args.env_file

    try:
        _ensure_env_file(env_file)
        settings = _validate_settings(env_file)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Unexpected error during validation: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    unknown = [name for name in args.require_provider if name not in PROVIDERS]
    if unknown:
        print(
            f"Unknown provider(s): {', '.join(unknown)}. "
            f"Registered providers: {', '.join(sorted(PROVIDERS))}.",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    configured = _configured_providers(settings)
    for name, ready in sorted(configured.items()):
        print(f"{name}: {'configured' if ready else 'not configured'}")

    missing = [name for name in args.require_provider if not configured[name]]
    if missing:
        print(
            f"Required provider(s) missing client credentials: {', '.join(missing)}",
            file=sys.stderr,
        )
        return EXIT_PROVIDER_NOT_CONFIGURED

    print("Environment OK.")
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
