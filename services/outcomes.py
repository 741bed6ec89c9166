"""Outcome recording: turn an agent's call-list entry into a call log.

handle_edit() is the entry point for a single-cell edit on a
``today_call_<agent>`` list. It ignores anything that is not a completed,
unregistered entry and otherwise calls record(), which writes the call log,
books the appointment (if any), moves the customer's status and finally
marks the entry registered so it is never recorded twice.
"""
import logging
import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

import db.repositories.call_logs as call_log_repo
import db.repositories.lead_sources as lead_source_repo
from config import TARGET_FIRST_DATA_ROW, TARGET_INPUT_COLUMNS, get_settings
from db.models import DailyTarget
from db.repositories.tables import agent_from_table_name, find_rows_where, update_row
from schemas.call import CellEdit
from services.lifecycle import apply_outcome
from services.parsing import parse_date, parse_datetime

logger = logging.getLogger(__name__)


def _parse_optional_date(value: Optional[str], customer_id: uuid.UUID) -> Optional[date]:
    try:
        return parse_date(value)
    except ValueError:
        logger.warning("Ignoring unreadable next action date %r for customer %s", value, customer_id)
        return None


def _parse_optional_datetime(value: Optional[str], customer_id: uuid.UUID) -> Optional[datetime]:
    try:
        return parse_datetime(value)
    except ValueError:
        logger.warning("Ignoring unreadable appointment time %r for customer %s", value, customer_id)
        return None


async def record(
    session: AsyncSession,
    agent_id: str,
    customer_id: uuid.UUID,
    outcome: str,
    rank: Optional[str] = None,
    next_action_date: Optional[date] = None,
    note: Optional[str] = None,
    appointment_at: Optional[datetime] = None,
    entry: Optional[DailyTarget] = None,
    now: Optional[datetime] = None,
) -> uuid.UUID:
    """Record one call outcome and return the new call log id.

    Steps run in order: call log, appointment, status change, registered
    flag. Any failure is logged with the customer id and re-raised; the entry
    is then left unregistered so the same edit can be retried.
    """
    now = now or get_settings().now()
    try:
        logger.info("Recording outcome %r for customer %s by %s", outcome, customer_id, agent_id)
        call_count = await call_log_repo.count_for_customer(session, customer_id) + 1
        primary = await lead_source_repo.primary_for_customer(session, customer_id)

        call = await call_log_repo.insert(
            session,
            customer_id=customer_id,
            lead_source_id=primary.id if primary else None,
            assigned_is=agent_id,
            call_datetime=now,
            call_count=call_count,
            status=outcome,
            note_rank=rank or None,
            next_action_date=next_action_date,
            memo=note or None,
        )

        if appointment_at is not None:
            appointment = await call_log_repo.insert_appointment(
                session,
                customer_id=customer_id,
                call_log_id=call.id,
                meeting_at=appointment_at,
                created_at=now,
            )
            logger.info("Booked appointment %s for customer %s at %s", appointment.id, customer_id, appointment_at)

        await apply_outcome(session, customer_id, outcome, now)

        if entry is not None:
            entry.registered = True
            await session.flush()
    except Exception:
        logger.exception("Recording outcome failed for customer %s", customer_id)
        raise

    logger.info("Recorded call %s (attempt %d) for customer %s", call.id, call_count, customer_id)
    return call.id


async def handle_edit(
    session: AsyncSession, edit: CellEdit, now: Optional[datetime] = None
) -> Optional[uuid.UUID]:
    """Record the edited entry if it is ready; return the call log id or None."""
    agent_id = agent_from_table_name(edit.table_name)
    if agent_id is None:
        return None
    if edit.row < TARGET_FIRST_DATA_ROW:
        return None
    if edit.column not in TARGET_INPUT_COLUMNS:
        return None

    rows = await find_rows_where(session, edit.table_name, DailyTarget.row_number == edit.row)
    if not rows:
        logger.debug("No entry at row %d of %s", edit.row, edit.table_name)
        return None
    entry = rows[0]
    if entry.registered:
        return None
    if not entry.customer_id:
        logger.warning("Entry at row %d of %s has no customer id; skipped", edit.row, edit.table_name)
        return None
    outcome = (entry.status or "").strip()
    if not outcome:
        return None

    return await record(
        session,
        agent_id,
        entry.customer_id,
        outcome,
        rank=(entry.note_rank or "").strip() or None,
        next_action_date=_parse_optional_date(entry.next_action_date, entry.customer_id),
        note=entry.memo,
        appointment_at=_parse_optional_datetime(entry.appointment_datetime, entry.customer_id),
        entry=entry,
        now=now,
    )


async def apply_edit(
    session: AsyncSession,
    table_name: str,
    row: int,
    column: str,
    value: Optional[str],
    now: Optional[datetime] = None,
) -> Optional[uuid.UUID]:
    """Write one input cell of an agent's list, then handle it as an edit."""
    if agent_from_table_name(table_name) is None:
        raise ValueError(f"{table_name!r} is not an agent call list")
    if column not in TARGET_INPUT_COLUMNS:
        raise ValueError(f"{column!r} is not an input column; expected one of {TARGET_INPUT_COLUMNS}")
    entry = await update_row(session, table_name, row, {column: value})
    if entry is None:
        raise LookupError(f"No row {row} in {table_name}")
    # prior_value is not tracked for programmatic edits
    return await handle_edit(
        session, CellEdit(table_name=table_name, row=row, column=column), now=now
    )
