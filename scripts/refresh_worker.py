"""Local worker that runs the credential refresh job on a fixed interval.

Example usages::

    # Run forever, one refresh pass every REFRESH_JOB_INTERVAL seconds.
    python -m scripts.refresh_worker

    # Single pass, e.g. from cron or a systemd timer.
    python -m scripts.refresh_worker --once
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import time
from typing import Optional

from oauthkeeper.core.config import get_settings
from oauthkeeper.core.logging import configure_logging
from oauthkeeper.dependencies import get_refresh_orchestrator
from oauthkeeper.services import RefreshJobSummary, RefreshOrchestrator

logger = logging.getLogger(__name__)


class RefreshJobWorker:
    """Invoke the refresh orchestrator once per interval."""

    def __init__(
        self,
        orchestrator: RefreshOrchestrator,
        interval_seconds: float = 300.0,
    ) -> None:
        self._orchestrator = orchestrator
        self._interval = interval_seconds

    async def run_once(self) -> Optional[RefreshJobSummary]:
        try:
            return await self._orchestrator.run()
        except Exception:  # pragma: no cover - next pass re-derives the work
            logger.exception("Credential refresh pass failed")
            return None

    async def run_forever(self) -> None:
        while True:
            started = time.monotonic()
            await self.run_once()
            elapsed = time.monotonic() - started
            await asyncio.sleep(max(0.0, self._interval - elapsed))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Refresh expiring OAuth credentials.")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single refresh pass and exit.",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between passes (default: REFRESH_JOB_INTERVAL).",
    )
    return parser


async def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)

    worker = RefreshJobWorker(
        orchestrator=get_refresh_orchestrator(),
        interval_seconds=args.interval or settings.refresh.interval_seconds,
    )
    if args.once:
        summary = await worker.run_once()
        if summary is None:
            return 1
        return 0 if summary.failed_refreshes == 0 else 3

    await worker.run_forever()
    return 0


if __name__ == "__main__":  # pragma: no cover - manual execution path
    try:
        raise SystemExit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Credential refresh worker stopped")
