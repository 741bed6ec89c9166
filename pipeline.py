"""Lead CRM: batch job runner.

Entry point for every job. Each run is recorded in job_run_log.

Usage:
  # Create tables (local SQLite or a fresh database)
  python pipeline.py init-db

  # Verify the feeds in feeds.json, then load them
  python pipeline.py check-feeds
  python pipeline.py ingest

  # Build today's call lists and inspect who is eligible
  python pipeline.py targets
  python pipeline.py debug-targets

  # Enter a call result on row 2 of is_tanaka's list
  python pipeline.py edit --agent is_tanaka --row 2 --column status --value answered

  # Recompute KPI tables, or run intake -> lists -> KPIs in one go
  python pipeline.py kpi-daily
  python pipeline.py kpi-by-list
  python pipeline.py run-all
"""
import argparse
import asyncio
import json
import logging
import sys
import traceback
from datetime import date
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config import Settings, get_settings
from db.connection import dispose_engine, get_db, get_engine
from db.models import Base
from db.repositories.observability import log_job_run, recent_runs
from db.repositories.tables import agent_table_name, ensure_tables
from services.intake import check_feeds, load_feeds, run_intake
from services.kpi import calculate_kpi_by_list, calculate_kpi_daily
from services.outcomes import apply_edit
from services.targeting import describe_targets, generate_daily_targets

logger = logging.getLogger(__name__)

JobFn = Callable[[AsyncSession], Awaitable[dict[str, Any]]]


class JobFailed(RuntimeError):
    def __init__(self, job_name: str):
        super().__init__(f"{job_name} failed")
        self.job_name = job_name


async def _record_run(job_name: str, **fields) -> None:
    try:
        async with get_db() as session:
            await log_job_run(session, job_name, **fields)
    except Exception as e:
        logger.warning("Could not write job_run_log for %s: %s", job_name, e, exc_info=True)


async def run_job(job_name: str, fn: JobFn, settings: Settings) -> dict[str, Any]:
    """Run ``fn`` in its own unit of work and log the outcome to job_run_log."""
    started_at = settings.now()
    logger.info("Starting %s", job_name)
    try:
        async with get_db() as session:
            summary = await fn(session)
    except Exception as e:
        logger.exception("%s failed", job_name)
        await _record_run(
            job_name,
            started_at=started_at,
            completed_at=settings.now(),
            success=False,
            error_message=str(e),
            stacktrace=traceback.format_exc(),
        )
        raise JobFailed(job_name) from e

    await _record_run(
        job_name,
        started_at=started_at,
        completed_at=settings.now(),
        success=True,
        summary=summary,
    )
    logger.info("Finished %s: %s", job_name, summary)
    return summary


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


def _ingest_job(settings: Settings) -> JobFn:
    async def job(session: AsyncSession) -> dict[str, Any]:
        feeds = load_feeds(settings.feeds_path)
        result = await run_intake(session, feeds, settings)
        return result.model_dump()
    return job


def _targets_job(settings: Settings, as_of: Optional[date]) -> JobFn:
    async def job(session: AsyncSession) -> dict[str, Any]:
        counts = await generate_daily_targets(session, as_of, settings)
        return {"agents": counts, "total": sum(counts.values())}
    return job


def _kpi_daily_job(settings: Settings, as_of: Optional[date]) -> JobFn:
    async def job(session: AsyncSession) -> dict[str, Any]:
        return {"rows": await calculate_kpi_daily(session, as_of, settings)}
    return job


def _kpi_by_list_job(settings: Settings, as_of: Optional[date]) -> JobFn:
    async def job(session: AsyncSession) -> dict[str, Any]:
        return {"rows": await calculate_kpi_by_list(session, as_of, settings)}
    return job


def _edit_job(agent: str, row: int, column: str, value: str) -> JobFn:
    async def job(session: AsyncSession) -> dict[str, Any]:
        call_id = await apply_edit(session, agent_table_name(agent), row, column, value)
        return {"agent": agent, "row": row, "column": column,
                "call_log_id": str(call_id) if call_id else None}
    return job


async def _debug_targets(session: AsyncSession, settings: Settings) -> dict[str, Any]:
    diagnostics = await describe_targets(session, settings.target_statuses)
    return diagnostics.model_dump()


# ---------------------------------------------------------------------------
# Command dispatch
# ---------------------------------------------------------------------------


def _print_summary(title: str, summary: Any) -> None:
    print(f"\n{title}")
    print(json.dumps(summary, indent=2, ensure_ascii=False, default=str))


async def _dispatch(args: argparse.Namespace, settings: Settings) -> None:
    as_of = getattr(args, "date", None)

    if args.command == "init-db":
        # job_run_log must exist before the run can be recorded
        await ensure_tables(get_engine())

        async def job(session: AsyncSession) -> dict[str, Any]:
            return {"tables": sorted(Base.metadata.tables)}
        _print_summary("Tables ready", await run_job("init_db", job, settings))

    elif args.command == "check-feeds":
        async def job(session: AsyncSession) -> dict[str, Any]:
            checks = check_feeds(load_feeds(settings.feeds_path), settings.feed_http_timeout)
            return {"feeds": [check.model_dump() for check in checks]}
        _print_summary("Feed check", await run_job("check_feeds", job, settings))

    elif args.command == "ingest":
        summary = await run_job("ingest", _ingest_job(settings), settings)
        _print_summary("Intake", summary["total"])

    elif args.command == "targets":
        _print_summary("Call lists", await run_job("targets", _targets_job(settings, as_of), settings))

    elif args.command == "debug-targets":
        async def job(session: AsyncSession) -> dict[str, Any]:
            return await _debug_targets(session, settings)
        _print_summary("Targeting diagnostics", await run_job("debug_targets", job, settings))

    elif args.command == "edit":
        summary = await run_job(
            "record_outcome", _edit_job(args.agent, args.row, args.column, args.value), settings
        )
        _print_summary("Edit", summary)

    elif args.command == "kpi-daily":
        _print_summary("Daily KPIs", await run_job("kpi_daily", _kpi_daily_job(settings, as_of), settings))

    elif args.command == "kpi-by-list":
        _print_summary("List KPIs", await run_job("kpi_by_list", _kpi_by_list_job(settings, as_of), settings))

    elif args.command == "run-all":
        summary = {
            "ingest": (await run_job("ingest", _ingest_job(settings), settings))["total"],
            "targets": await run_job("targets", _targets_job(settings, as_of), settings),
            "kpi_daily": await run_job("kpi_daily", _kpi_daily_job(settings, as_of), settings),
            "kpi_by_list": await run_job("kpi_by_list", _kpi_by_list_job(settings, as_of), settings),
        }
        _print_summary("All jobs complete", summary)

    elif args.command == "job-log":
        async with get_db() as session:
            runs = await recent_runs(session, args.job, args.limit)
            for run in runs:
                status = "ok" if run.success else "FAILED"
                print(f"{run.started_at:%Y-%m-%d %H:%M:%S}  {run.job_name:<16} {status:<6} "
                      f"{run.duration_ms or 0:>6}ms  {run.error_message or ''}")


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Lead intake, call lists and KPI jobs"
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("init-db", help="Create all tables")
    sub.add_parser("check-feeds", help="Verify configured feeds and their column mapping")
    sub.add_parser("ingest", help="Load every configured feed")

    targets = sub.add_parser("targets", help="Regenerate every agent's call list")
    targets.add_argument("--date", type=date.fromisoformat, help="Target date (default: today)")

    sub.add_parser("debug-targets", help="Show customer counts per status against the target statuses")

    edit = sub.add_parser("edit", help="Enter a value on an agent's call list")
    edit.add_argument("--agent", required=True)
    edit.add_argument("--row", type=int, required=True, help="Row number (first entry is row 2)")
    edit.add_argument(
        "--column",
        required=True,
        choices=["status", "note_rank", "next_action_date", "memo", "appointment_datetime"],
    )
    edit.add_argument("--value", required=True)

    for name, help_text in (
        ("kpi-daily", "Recompute kpi_daily"),
        ("kpi-by-list", "Recompute kpi_by_list"),
        ("run-all", "Ingest, build call lists, then recompute both KPI tables"),
    ):
        job = sub.add_parser(name, help=help_text)
        job.add_argument("--date", type=date.fromisoformat, help="As-of date (default: today)")

    job_log = sub.add_parser("job-log", help="Show recent job runs")
    job_log.add_argument("--job", default=None, help="Only this job name")
    job_log.add_argument("--limit", type=int, default=20)

    return parser


async def _run(args: argparse.Namespace, settings: Settings) -> None:
    try:
        await _dispatch(args, settings)
    finally:
        await dispose_engine()


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        asyncio.run(_run(args, settings))
    except JobFailed as e:
        print(f"\n{e.job_name} failed. See job_run_log (python pipeline.py job-log) for details.")
        return 1
    except Exception:
        logger.exception("Command %s failed", args.command)
        print(f"\n{args.command} failed. See the log output above for details.")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
