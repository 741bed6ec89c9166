"""Tests for the job runner and command line."""
import pytest
import pytest_asyncio

import pipeline
from db import dispose_engine, get_db, get_engine
from db.repositories.observability import recent_runs
from db.repositories.tables import ensure_tables
from pipeline import JobFailed, main, run_job


@pytest_asyncio.fixture
async def shared_db(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    await dispose_engine()
    await ensure_tables(get_engine())
    yield
    await dispose_engine()


@pytest.mark.asyncio
async def test_successful_job_is_logged(shared_db, settings):
    async def job(session):
        return {"rows": 3}

    summary = await run_job("kpi_daily", job, settings)

    assert summary == {"rows": 3}
    async with get_db() as session:
        runs = await recent_runs(session)
    assert len(runs) == 1
    assert runs[0].job_name == "kpi_daily"
    assert runs[0].success is True
    assert runs[0].summary == {"rows": 3}
    assert runs[0].duration_ms is not None


@pytest.mark.asyncio
async def test_failed_job_is_logged_and_raised(shared_db, settings):
    async def job(session):
        raise ValueError("feeds.json is empty")

    with pytest.raises(JobFailed) as excinfo:
        await run_job("ingest", job, settings)

    assert excinfo.value.job_name == "ingest"
    async with get_db() as session:
        runs = await recent_runs(session, job_name="ingest")
    assert runs[0].success is False
    assert runs[0].error_message == "feeds.json is empty"
    assert "ValueError" in runs[0].stacktrace


def test_main_without_command_prints_help(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().out


def test_edit_rejects_unknown_column():
    with pytest.raises(SystemExit):
        pipeline._build_arg_parser().parse_args(
            ["edit", "--agent", "is_tanaka", "--row", "2", "--column", "phone_number", "--value", "x"]
        )


def test_date_argument_is_parsed():
    args = pipeline._build_arg_parser().parse_args(["targets", "--date", "2026-10-19"])
    assert args.date.isoformat() == "2026-10-19"
