"""Observability repository: job run logging."""
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import JobRunLog

logger = logging.getLogger(__name__)


async def log_job_run(
    session: AsyncSession,
    job_name: str,
    *,
    started_at: datetime,
    completed_at: Optional[datetime] = None,
    success: Optional[bool] = None,
    summary: Optional[dict[str, Any]] = None,
    error_message: Optional[str] = None,
    stacktrace: Optional[str] = None,
) -> JobRunLog:
    """Log a completed (or failed) job run."""
    duration_ms = None
    if completed_at is not None:
        duration_ms = int((completed_at - started_at).total_seconds() * 1000)
    run = JobRunLog(
        job_name=job_name,
        started_at=started_at,
        completed_at=completed_at,
        duration_ms=duration_ms,
        success=success,
        summary=summary,
        error_message=error_message,
        stacktrace=stacktrace,
        created_at=completed_at or started_at,
    )
    session.add(run)
    await session.flush()
    return run


async def recent_runs(
    session: AsyncSession, job_name: Optional[str] = None, limit: int = 20
) -> list[JobRunLog]:
    """Return the latest job runs, newest first."""
    stmt = select(JobRunLog).order_by(JobRunLog.started_at.desc()).limit(limit)
    if job_name:
        stmt = stmt.where(JobRunLog.job_name == job_name)
    result = await session.execute(stmt)
    return list(result.scalars().all())
