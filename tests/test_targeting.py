"""Tests for daily targeting."""
from datetime import datetime, timedelta

import pytest

import db.repositories.call_logs as call_log_repo
import db.repositories.customers as customer_repo
import db.repositories.lead_sources as lead_source_repo
from db.repositories.tables import get_table
from services.targeting import (
    describe_targets,
    generate_daily_targets,
    latest_calls,
    resolve_agents,
    select_targets,
)

NOW = datetime(2026, 10, 19, 10, 0, 0)
TODAY = NOW.date()


async def _customer(session, handle, status="uncontacted"):
    customer = await customer_repo.insert(session, {"line_name": handle}, NOW)
    customer.status_overall = status
    await session.flush()
    return customer


async def _call(session, customer, agent, when, status="no_answer", next_action=None, count=1):
    return await call_log_repo.insert(
        session,
        customer_id=customer.id,
        lead_source_id=None,
        assigned_is=agent,
        call_datetime=when,
        call_count=count,
        status=status,
        next_action_date=next_action,
    )


def _handles(selection):
    return [entry.line_name for entry in selection.entries]


def test_resolve_agents_roster_first_then_history():
    agents = resolve_agents(["is_a", "is_b"], ["is_c", "is_a", None, " is_d ", "is_c"])
    assert agents == ["is_a", "is_b", "is_c", "is_d"]


def test_resolve_agents_empty():
    assert resolve_agents([], []) == []


@pytest.mark.asyncio
async def test_called_today_excluded_for_that_agent_only(session):
    customer = await _customer(session, "T1")
    await _call(session, customer, "is_tanaka", NOW - timedelta(hours=1))

    for_tanaka = await select_targets(session, "is_tanaka", TODAY)
    for_suzuki = await select_targets(session, "is_suzuki", TODAY)

    assert _handles(for_tanaka) == []
    assert for_tanaka.already_called_today == 1
    assert _handles(for_suzuki) == ["T1"]


@pytest.mark.asyncio
async def test_next_action_date_gates_eligibility(session):
    """Tomorrow's next action excludes; today's or none includes."""
    yesterday = NOW - timedelta(days=1)
    tomorrow_c = await _customer(session, "tomorrow", "in_progress")
    today_c = await _customer(session, "today", "in_progress")
    none_c = await _customer(session, "none", "in_progress")
    await _call(session, tomorrow_c, "is_suzuki", yesterday, next_action=TODAY + timedelta(days=1))
    await _call(session, today_c, "is_suzuki", yesterday, next_action=TODAY)
    await _call(session, none_c, "is_suzuki", yesterday)

    selection = await select_targets(session, "is_tanaka", TODAY)

    assert _handles(selection) == ["today", "none"]
    assert selection.future_next_action == 1


@pytest.mark.asyncio
async def test_status_filter_and_blank_status(session):
    await _customer(session, "new", "uncontacted")
    await _customer(session, "blank", None)
    await _customer(session, "booked", "appointment")
    await _customer(session, "lost", "closed")

    selection = await select_targets(session, "is_tanaka", TODAY)

    assert _handles(selection) == ["new", "blank"]
    assert selection.wrong_status == 2


@pytest.mark.asyncio
async def test_latest_call_uses_timestamp_then_write_order(session):
    """An older call written later does not hide the newer next action date."""
    customer = await _customer(session, "L1", "in_progress")
    newer = await _call(session, customer, "is_a", NOW - timedelta(days=1),
                        next_action=TODAY + timedelta(days=5))
    await _call(session, customer, "is_a", NOW - timedelta(days=3))

    latest = latest_calls(await call_log_repo.list_ordered(session))
    assert latest[customer.id].id == newer.id

    selection = await select_targets(session, "is_tanaka", TODAY)
    assert _handles(selection) == []


@pytest.mark.asyncio
async def test_equal_timestamps_later_record_wins(session):
    customer = await _customer(session, "L2", "in_progress")
    when = NOW - timedelta(days=1)
    await _call(session, customer, "is_a", when, next_action=TODAY + timedelta(days=2))
    later = await _call(session, customer, "is_a", when)

    latest = latest_calls(await call_log_repo.list_ordered(session))
    assert latest[customer.id].id == later.id


@pytest.mark.asyncio
async def test_entries_are_enriched(session):
    customer = await _customer(session, "E1", "in_progress")
    await lead_source_repo.insert(session, customer.id, "seminar_survey", "S1", TODAY, None, NOW)
    await lead_source_repo.insert(session, customer.id, "gift_claim", "G1", TODAY, None, NOW)
    await _call(session, customer, "is_a", NOW - timedelta(days=4), status="busy")
    await call_log_repo.insert(
        session,
        customer_id=customer.id,
        lead_source_id=None,
        assigned_is="is_a",
        call_datetime=NOW - timedelta(days=2),
        call_count=2,
        status="voicemail_left",
        note_rank="B",
        next_action_date=TODAY,
    )

    selection = await select_targets(session, "is_tanaka", TODAY)

    entry = selection.entries[0]
    assert entry.source_type == "seminar_survey", "Primary source is the first recorded"
    assert entry.call_count == 2
    assert entry.last_call_date == (NOW - timedelta(days=2)).date()
    assert entry.status == "voicemail_left"
    assert entry.note_rank == "B"
    assert entry.next_action_date == TODAY


@pytest.mark.asyncio
async def test_generate_replaces_each_agent_list(session, settings):
    """Lists are numbered from row 2 and rebuilt from scratch on every run."""
    first = await _customer(session, "G1")
    await _customer(session, "G2")

    counts = await generate_daily_targets(session, TODAY, settings)
    assert counts == {"is_tanaka": 2, "is_suzuki": 2}

    rows = await get_table(session, "today_call_is_tanaka")
    assert [row.row_number for row in rows] == [2, 3]
    assert [row.line_name for row in rows] == ["G1", "G2"]
    assert all(row.registered is False for row in rows)

    await _call(session, first, "is_tanaka", NOW)
    counts = await generate_daily_targets(session, TODAY, settings)

    assert counts["is_tanaka"] == 1
    rows = await get_table(session, "today_call_is_tanaka")
    assert [(row.row_number, row.line_name) for row in rows] == [(2, "G2")]
    assert len(await get_table(session, "today_call_is_suzuki")) == 2


@pytest.mark.asyncio
async def test_generate_includes_agents_from_history(session, settings):
    customer = await _customer(session, "H1")
    await _call(session, customer, "is_new_hire", NOW - timedelta(days=1))

    counts = await generate_daily_targets(session, TODAY, settings)

    assert list(counts) == ["is_tanaka", "is_suzuki", "is_new_hire"]


@pytest.mark.asyncio
async def test_describe_targets(session):
    await _customer(session, "D1", None)
    await _customer(session, "D2", "in_progress")
    await _customer(session, "D3", "closed")

    diagnostics = await describe_targets(session, ["uncontacted", "in_progress"])

    assert diagnostics.total_customers == 3
    assert diagnostics.by_status == {"uncontacted": 1, "in_progress": 1, "closed": 1}
    assert diagnostics.candidates == 2
    assert diagnostics.excluded == 1
