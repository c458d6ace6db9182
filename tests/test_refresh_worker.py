try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timezone

import pytest

from oauthkeeper.services.refresh import RefreshJobSummary
from scripts.refresh_worker import RefreshJobWorker


class CountingOrchestrator:
    def __init__(self) -> None:
        self.runs = 0

    async def run(self) -> RefreshJobSummary:
        self.runs += 1
        return RefreshJobSummary(executed_at=datetime.now(timezone.utc))


@pytest.mark.anyio
async def test_run_once_invokes_orchestrator() -> None:
    orchestrator = CountingOrchestrator()
    worker = RefreshJobWorker(orchestrator=orchestrator, interval_seconds=300)

    summary = await worker.run_once()

    assert orchestrator.runs == 1
    assert summary.total_checked == 0
