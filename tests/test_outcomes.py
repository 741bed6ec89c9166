"""Tests for outcome recording and the call-list edit handler."""
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

import db.repositories.call_logs as call_log_repo
import db.repositories.customers as customer_repo
import db.repositories.lead_sources as lead_source_repo
from db.repositories.tables import get_table, update_row
from schemas.call import CellEdit
from services.lifecycle import has_active_appointment
from services.outcomes import apply_edit, handle_edit, record
from services.targeting import generate_daily_targets

NOW = datetime(2026, 10, 19, 10, 0, 0)
TODAY = NOW.date()
TABLE = "today_call_is_tanaka"


async def _customer(session, handle="R1"):
    customer = await customer_repo.insert(session, {"line_name": handle}, NOW)
    await lead_source_repo.insert(session, customer.id, "gift_claim", "Campaign A", TODAY, None, NOW)
    return customer


@pytest.mark.asyncio
async def test_answered_without_appointment_moves_to_in_progress(session):
    customer = await _customer(session)

    call_id = await record(session, "is_tanaka", customer.id, "answered", now=NOW)

    assert customer.status_overall == "in_progress"
    calls = await call_log_repo.list_ordered(session)
    assert len(calls) == 1
    assert calls[0].id == call_id
    assert calls[0].call_count == 1
    assert calls[0].call_datetime == NOW
    primary = await lead_source_repo.primary_for_customer(session, customer.id)
    assert calls[0].lead_source_id == primary.id


@pytest.mark.asyncio
async def test_appointment_then_next_answered_sets_appointment(session):
    """Booking a future meeting makes the next 'answered' outcome an appointment."""
    customer = await _customer(session)
    meeting = NOW + timedelta(days=7)

    first_id = await record(
        session, "is_tanaka", customer.id, "answered", appointment_at=meeting, now=NOW,
    )

    appointments = await call_log_repo.list_appointments_for_customer(session, customer.id)
    assert len(appointments) == 1
    assert appointments[0].call_log_id == first_id
    assert appointments[0].meeting_at == meeting
    assert appointments[0].appointment_created_at == NOW
    assert appointments[0].attendance_status is None
    assert appointments[0].deal_status is None
    assert await has_active_appointment(session, customer.id, NOW) is True

    await record(session, "is_tanaka", customer.id, "answered", now=NOW + timedelta(hours=1))

    assert customer.status_overall == "appointment"
    calls = await call_log_repo.list_ordered(session)
    assert [call.call_count for call in calls] == [1, 2]


@pytest.mark.asyncio
async def test_failure_is_reraised_and_entry_stays_unregistered(session, settings):
    customer = await _customer(session)
    await generate_daily_targets(session, TODAY, settings)
    entry = (await get_table(session, TABLE))[0]

    with patch("services.outcomes.apply_outcome", side_effect=RuntimeError("storage down")):
        with pytest.raises(RuntimeError):
            await record(session, "is_tanaka", customer.id, "busy", entry=entry, now=NOW)

    assert entry.registered is False


@pytest.mark.asyncio
async def test_apply_edit_records_and_registers(session, settings):
    customer = await _customer(session)
    await generate_daily_targets(session, TODAY, settings)

    assert await apply_edit(session, TABLE, 2, "memo", "call back after 6pm", now=NOW) is None

    await apply_edit(session, TABLE, 2, "next_action_date", "2026-10-25", now=NOW)
    call_id = await apply_edit(session, TABLE, 2, "status", "voicemail_left", now=NOW)

    assert call_id is not None
    calls = await call_log_repo.list_ordered(session)
    assert len(calls) == 1
    assert calls[0].assigned_is == "is_tanaka"
    assert calls[0].status == "voicemail_left"
    assert calls[0].memo == "call back after 6pm"
    assert calls[0].next_action_date == TODAY + timedelta(days=6)
    assert customer.status_overall == "in_progress"

    entry = (await get_table(session, TABLE))[0]
    assert entry.registered is True

    # Registered entries are never recorded again
    assert await apply_edit(session, TABLE, 2, "memo", "edited later", now=NOW) is None
    assert len(await call_log_repo.list_ordered(session)) == 1


@pytest.mark.asyncio
async def test_apply_edit_with_appointment_time(session, settings):
    customer = await _customer(session)
    await generate_daily_targets(session, TODAY, settings)

    await apply_edit(session, TABLE, 2, "appointment_datetime", "2026-10-28 14:00", now=NOW)
    await apply_edit(session, TABLE, 2, "status", "appointment_scheduling", now=NOW)

    appointments = await call_log_repo.list_appointments_for_customer(session, customer.id)
    assert appointments[0].meeting_at == datetime(2026, 10, 28, 14, 0)
    assert customer.status_overall == "appointment"


@pytest.mark.asyncio
async def test_unreadable_next_action_date_is_dropped(session, settings):
    await _customer(session)
    await generate_daily_targets(session, TODAY, settings)

    await update_row(session, TABLE, 2, {"next_action_date": "someday"})
    await apply_edit(session, TABLE, 2, "status", "busy", now=NOW)

    calls = await call_log_repo.list_ordered(session)
    assert calls[0].next_action_date is None


@pytest.mark.asyncio
@pytest.mark.parametrize("edit", [
    CellEdit(table_name="customers", row=2, column="status"),
    CellEdit(table_name="today_call_", row=2, column="status"),
    CellEdit(table_name=TABLE, row=1, column="status"),
    CellEdit(table_name=TABLE, row=2, column="phone_number"),
    CellEdit(table_name=TABLE, row=99, column="status"),
])
async def test_handle_edit_ignores_irrelevant_edits(session, settings, edit):
    await _customer(session)
    await generate_daily_targets(session, TODAY, settings)
    await update_row(session, TABLE, 2, {"status": "answered"})

    assert await handle_edit(session, edit, now=NOW) is None
    assert await call_log_repo.list_ordered(session) == []


@pytest.mark.asyncio
async def test_handle_edit_waits_for_status(session, settings):
    await _customer(session)
    await generate_daily_targets(session, TODAY, settings)
    await update_row(session, TABLE, 2, {"note_rank": "A"})

    result = await handle_edit(session, CellEdit(table_name=TABLE, row=2, column="note_rank"), now=NOW)

    assert result is None
    assert await call_log_repo.list_ordered(session) == []


@pytest.mark.asyncio
async def test_handle_edit_skips_entry_without_customer(session, settings):
    await _customer(session)
    await generate_daily_targets(session, TODAY, settings)
    await update_row(session, TABLE, 2, {"customer_id": None, "status": "answered"})

    result = await handle_edit(session, CellEdit(table_name=TABLE, row=2, column="status"), now=NOW)

    assert result is None


@pytest.mark.asyncio
async def test_apply_edit_rejects_non_input_column(session):
    with pytest.raises(ValueError):
        await apply_edit(session, TABLE, 2, "phone_number", "000", now=NOW)
    with pytest.raises(ValueError):
        await apply_edit(session, "customers", 2, "status", "answered", now=NOW)
