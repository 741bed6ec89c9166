"""Tests for KPI aggregation."""
from datetime import date, datetime, timedelta

import pytest

import db.repositories.call_logs as call_log_repo
import db.repositories.customers as customer_repo
import db.repositories.lead_sources as lead_source_repo
from db.repositories.tables import get_table
from services.kpi import (
    calculate_kpi_by_list,
    calculate_kpi_daily,
    compute_metrics,
    list_period,
    safe_rate,
)

NOW = datetime(2026, 10, 19, 10, 0, 0)
TODAY = NOW.date()


async def _lead(session, handle, source_type="gift_claim", detail="Campaign A"):
    customer = await customer_repo.insert(session, {"line_name": handle}, NOW)
    lead_source = await lead_source_repo.insert(
        session, customer.id, source_type, detail, TODAY, None, NOW
    )
    return customer, lead_source


async def _call(session, customer, lead_source, agent, when, status):
    return await call_log_repo.insert(
        session,
        customer_id=customer.id,
        lead_source_id=lead_source.id if lead_source else None,
        assigned_is=agent,
        call_datetime=when,
        call_count=1,
        status=status,
    )


async def _appointment(session, customer, created_at, attendance=None, deal=None):
    appointment = await call_log_repo.insert_appointment(
        session,
        customer_id=customer.id,
        call_log_id=None,
        meeting_at=created_at + timedelta(days=7),
        created_at=created_at,
    )
    appointment.attendance_status = attendance
    appointment.deal_status = deal
    await session.flush()
    return appointment


@pytest.mark.parametrize("numerator,denominator,expected", [
    (0, 0, 0.0),
    (3, 0, 0.0),
    (1, 4, 0.25),
    (2, 2, 1.0),
])
def test_safe_rate(numerator, denominator, expected):
    assert safe_rate(numerator, denominator) == expected


def test_empty_metrics_are_all_zero(settings):
    metrics = compute_metrics([], [], settings)
    assert metrics.connection_rate == 0.0
    assert metrics.appointment_rate == 0.0
    assert metrics.attendance_rate == 0.0
    assert metrics.deal_rate == 0.0


def test_list_period_is_one_calendar_month():
    assert list_period(date(2026, 3, 31)) == (date(2026, 2, 28), date(2026, 3, 31))
    assert list_period(TODAY, 2) == (date(2026, 8, 19), TODAY)


@pytest.mark.asyncio
async def test_daily_table_is_sparse(session, settings):
    """Only cells with calls or appointments produce rows; ALL covers every source."""
    customer, lead_source = await _lead(session, "K1")
    await _call(session, customer, lead_source, "is_tanaka", NOW - timedelta(hours=2), "answered")
    await _call(session, customer, lead_source, "is_tanaka", NOW - timedelta(hours=1), "no_answer")

    written = await calculate_kpi_daily(session, TODAY, settings)

    rows = await get_table(session, "kpi_daily")
    assert written == len(rows) == 2
    assert {(row.kpi_date, row.assigned_is, row.lead_source_type) for row in rows} == {
        (TODAY, "is_tanaka", "gift_claim"),
        (TODAY, "is_tanaka", "ALL"),
    }
    for row in rows:
        assert row.call_count == 2
        assert row.connected_count == 1
        assert row.connection_rate == 0.5


@pytest.mark.asyncio
async def test_daily_appointments_follow_the_cell_customers(session, settings):
    customer, lead_source = await _lead(session, "K2")
    other, other_source = await _lead(session, "K3", source_type="seminar_survey")
    await _call(session, customer, lead_source, "is_tanaka", NOW, "answered")
    await _appointment(session, customer, NOW, attendance="attended", deal="deal")
    # Booked the same day but never called by anyone that day
    await _appointment(session, other, NOW)

    await calculate_kpi_daily(session, TODAY, settings)

    rows = {row.lead_source_type: row for row in await get_table(session, "kpi_daily")}
    assert set(rows) == {"gift_claim", "ALL"}
    gift = rows["gift_claim"]
    assert gift.appointment_count == 1
    assert gift.appointment_rate == 1.0
    assert gift.attendance_count == 1
    assert gift.attendance_rate == 1.0
    assert gift.deal_count == 1
    assert gift.deal_rate == 1.0


@pytest.mark.asyncio
async def test_daily_window_and_source_filter(session, settings):
    customer, lead_source = await _lead(session, "K4", source_type="cancellation_list")
    await _call(session, customer, lead_source, "is_suzuki", NOW - timedelta(days=3), "busy")
    await _call(session, customer, None, "is_suzuki", NOW - timedelta(days=3), "busy")
    await _call(session, customer, lead_source, "is_suzuki", NOW - timedelta(days=40), "busy")

    await calculate_kpi_daily(session, TODAY, settings)

    rows = {row.lead_source_type: row for row in await get_table(session, "kpi_daily")}
    assert rows["cancellation_list"].call_count == 1
    assert rows["ALL"].call_count == 2
    assert all(row.kpi_date == TODAY - timedelta(days=3) for row in rows.values())


@pytest.mark.asyncio
async def test_daily_table_is_replaced(session, settings):
    customer, lead_source = await _lead(session, "K5")
    await _call(session, customer, lead_source, "is_tanaka", NOW, "answered")

    await calculate_kpi_daily(session, TODAY, settings)
    await calculate_kpi_daily(session, TODAY, settings)

    rows = await get_table(session, "kpi_daily")
    assert len(rows) == 2
    assert sorted(row.seq for row in rows) == [1, 2]


@pytest.mark.asyncio
async def test_list_table_keeps_groups_without_activity(session, settings):
    """A source with no calls in the period still gets a zero row."""
    await _lead(session, "L1", detail="Quiet campaign")

    written = await calculate_kpi_by_list(session, TODAY, settings)

    rows = await get_table(session, "kpi_by_list")
    assert written == 1
    row = rows[0]
    assert (row.source_type, row.source_detail) == ("gift_claim", "Quiet campaign")
    assert row.total_customers == 1
    assert row.call_count == 0
    assert row.connection_rate == 0.0
    assert row.appointment_rate == 0.0
    assert row.attendance_rate == 0.0
    assert row.deal_rate == 0.0
    assert (row.period_start, row.period_end) == (date(2026, 9, 19), TODAY)


@pytest.mark.asyncio
async def test_list_metrics_per_group(session, settings):
    first, first_source = await _lead(session, "L2", detail="Campaign A")
    second, _ = await _lead(session, "L3", detail="Campaign A")
    third, third_source = await _lead(session, "L4", detail="Campaign B")
    await _call(session, first, first_source, "is_tanaka", NOW, "answered")
    await _call(session, second, None, "is_tanaka", NOW - timedelta(days=5), "no_answer")
    await _call(session, third, third_source, "is_tanaka", NOW - timedelta(days=60), "answered")
    await _appointment(session, first, NOW, attendance="no_show")

    await calculate_kpi_by_list(session, TODAY, settings)

    rows = {row.source_detail: row for row in await get_table(session, "kpi_by_list")}
    campaign_a = rows["Campaign A"]
    assert campaign_a.total_customers == 2
    assert campaign_a.call_count == 2
    assert campaign_a.connected_count == 1
    assert campaign_a.connection_rate == 0.5
    assert campaign_a.appointment_count == 1
    assert campaign_a.attendance_count == 0
    assert campaign_a.attendance_rate == 0.0
    assert rows["Campaign B"].call_count == 0
