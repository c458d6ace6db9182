"""Schemas for the refresh job trigger."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class RefreshResultEntry(BaseModel):
    provider: str
    userId: str
    success: bool
    outcome: str
    error: Optional[str] = None


class RefreshJobSummaryPayload(BaseModel):
    totalChecked: int
    successfulRefreshes: int
    failedRefreshes: int
    skippedRefreshes: int
    executedAt: datetime
    durationMs: int
    results: List[RefreshResultEntry]


class RefreshJobResponse(BaseModel):
    success: bool = True
    summary: RefreshJobSummaryPayload


__all__ = ["RefreshJobResponse", "RefreshJobSummaryPayload", "RefreshResultEntry"]
