"""Daily targeting: build each agent's ``today_call_<agent>`` list.

A customer is on an agent's list when all of these hold:
  1. the agent has not called them today
  2. their status (blank counts as uncontacted) is a target status
  3. their latest call log has no next action date, or it is due

Regenerating a list replaces it wholesale; input typed into the previous
list and not yet registered is discarded.
"""
import logging
import uuid
from collections import Counter
from datetime import date, datetime
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

import db.repositories.call_logs as call_log_repo
import db.repositories.customers as customer_repo
import db.repositories.lead_sources as lead_source_repo
from config import STATUS_UNCONTACTED, Settings, get_settings
from db.models import CallLog, DailyTarget
from db.repositories.tables import agent_table_name, replace_rows
from schemas.call import TargetDiagnostics, TargetEntry, TargetSelection

logger = logging.getLogger(__name__)


def effective_status(status: Optional[str]) -> str:
    return status or STATUS_UNCONTACTED


def resolve_agents(roster: Iterable[str], history: Iterable[Optional[str]]) -> list[str]:
    """Configured roster first, then agents seen in call history, without duplicates."""
    agents: list[str] = []
    seen: set[str] = set()
    for agent_id in [*roster, *history]:
        agent_id = (agent_id or "").strip()
        if agent_id and agent_id not in seen:
            seen.add(agent_id)
            agents.append(agent_id)
    return agents


def _is_later_or_equal(current: CallLog, existing: CallLog) -> bool:
    # Later-written logs win unless both timestamps say otherwise
    if current.call_datetime is None or existing.call_datetime is None:
        return True
    return current.call_datetime >= existing.call_datetime


def latest_calls(calls: Iterable[CallLog]) -> dict[uuid.UUID, CallLog]:
    """Return the latest call log per customer; ``calls`` must be in write order."""
    latest: dict[uuid.UUID, CallLog] = {}
    for call in calls:
        existing = latest.get(call.customer_id)
        if existing is None or _is_later_or_equal(call, existing):
            latest[call.customer_id] = call
    return latest


async def select_targets(
    session: AsyncSession,
    agent_id: str,
    as_of: date,
    target_statuses: Optional[Iterable[str]] = None,
) -> TargetSelection:
    """Select the customers ``agent_id`` should call on ``as_of``, in listing order."""
    statuses = set(target_statuses or get_settings().target_statuses)
    customers = await customer_repo.list_ordered(session)
    calls = await call_log_repo.list_ordered(session)
    lead_sources = await lead_source_repo.list_ordered(session)

    primary_source: dict[uuid.UUID, str] = {}
    for lead_source in lead_sources:
        primary_source.setdefault(lead_source.customer_id, lead_source.source_type)

    called_today: set[uuid.UUID] = set()
    call_counts: Counter = Counter()
    for call in calls:
        call_counts[call.customer_id] += 1
        if (
            call.assigned_is == agent_id
            and call.call_datetime is not None
            and call.call_datetime.date() == as_of
        ):
            called_today.add(call.customer_id)
    latest = latest_calls(calls)

    selection = TargetSelection(agent_id=agent_id, as_of=as_of)
    for customer in customers:
        if customer.id in called_today:
            selection.already_called_today += 1
            continue
        if effective_status(customer.status_overall) not in statuses:
            selection.wrong_status += 1
            continue
        last = latest.get(customer.id)
        if last is not None and last.next_action_date is not None and last.next_action_date > as_of:
            selection.future_next_action += 1
            continue

        selection.entries.append(TargetEntry(
            customer_id=customer.id,
            line_name=customer.line_name,
            full_name=customer.full_name,
            phone_number=customer.phone_number,
            source_type=primary_source.get(customer.id),
            last_call_date=last.call_datetime.date() if last and last.call_datetime else None,
            call_count=call_counts[customer.id],
            status=last.status if last else None,
            note_rank=last.note_rank if last else None,
            next_action_date=last.next_action_date if last else None,
        ))

    logger.info(
        "Targets for %s on %s: %d selected (already called today=%d, wrong status=%d, "
        "future next action=%d)",
        agent_id, as_of, len(selection.entries), selection.already_called_today,
        selection.wrong_status, selection.future_next_action,
    )
    return selection


async def write_targets(
    session: AsyncSession,
    agent_id: str,
    entries: list[TargetEntry],
    now: Optional[datetime] = None,
) -> list[DailyTarget]:
    """Replace the agent's list with ``entries``; rows are numbered from 2."""
    now = now or get_settings().now()
    rows = []
    for entry in entries:
        rows.append({
            "customer_id": entry.customer_id,
            "line_name": entry.line_name,
            "full_name": entry.full_name,
            "phone_number": entry.phone_number,
            "source_type": entry.source_type,
            "last_call_date": entry.last_call_date,
            "call_count": entry.call_count,
            "status": entry.status,
            "note_rank": entry.note_rank,
            "next_action_date": entry.next_action_date.isoformat() if entry.next_action_date else None,
            "memo": None,
            "appointment_datetime": None,
            "registered": False,
            "generated_at": now,
        })
    return await replace_rows(session, agent_table_name(agent_id), rows)


async def generate_daily_targets(
    session: AsyncSession,
    as_of: Optional[date] = None,
    settings: Optional[Settings] = None,
) -> dict[str, int]:
    """Build every agent's list and return the number of rows per agent.

    A failing agent is logged and skipped; the rest still get their lists.
    """
    settings = settings or get_settings()
    now = settings.now()
    as_of = as_of or now.date()

    calls = await call_log_repo.list_ordered(session)
    agents = resolve_agents(settings.agent_roster, (call.assigned_is for call in calls))
    if not agents:
        logger.warning("No agents configured or found in call history; nothing to generate")
        return {}

    results: dict[str, int] = {}
    for agent_id in agents:
        try:
            async with session.begin_nested():
                selection = await select_targets(session, agent_id, as_of, settings.target_statuses)
                rows = await write_targets(session, agent_id, selection.entries, now)
        except Exception:
            logger.exception("Target list for %s failed; continuing with the next agent", agent_id)
            continue
        results[agent_id] = len(rows)
    return results


async def describe_targets(
    session: AsyncSession, target_statuses: Optional[Iterable[str]] = None
) -> TargetDiagnostics:
    """Summarize customers by effective status against the target statuses."""
    statuses = list(target_statuses or get_settings().target_statuses)
    customers = await customer_repo.list_ordered(session)
    by_status = Counter(effective_status(c.status_overall) for c in customers)
    candidates = sum(count for status, count in by_status.items() if status in statuses)
    return TargetDiagnostics(
        total_customers=len(customers),
        by_status=dict(by_status),
        target_statuses=statuses,
        candidates=candidates,
        excluded=len(customers) - candidates,
    )
