"""KPI aggregation: daily and per-list snapshot tables.

Both jobs recompute their whole table from call logs and appointments and
swap it in. The daily table is sparse (cells with no calls and no
appointments are omitted); the per-list table has one row per
(source type, source detail) even when nothing happened.

Rates are 0 whenever their denominator is 0. The attendance rate divides
by appointments; every other rate divides by calls.
"""
import logging
import uuid
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy.ext.asyncio import AsyncSession

import db.repositories.call_logs as call_log_repo
import db.repositories.lead_sources as lead_source_repo
from config import ALL_SOURCES, Settings, get_settings
from db.models import Appointment, CallLog
from db.repositories.tables import replace_rows
from schemas.kpi import DailyKpiRow, KpiMetrics, ListKpiRow
from services.targeting import resolve_agents

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------


def safe_rate(numerator: int, denominator: int) -> float:
    return numerator / denominator if denominator else 0.0


def connected_count(calls: Iterable[CallLog], settings: Optional[Settings] = None) -> int:
    settings = settings or get_settings()
    return sum(1 for call in calls if settings.is_connected(call.status or ""))


def appointments_in_window(
    appointments: Iterable[Appointment],
    customer_ids: set[uuid.UUID],
    start: datetime,
    end: datetime,
) -> list[Appointment]:
    """Appointments of ``customer_ids`` booked (not held) in [start, end)."""
    return [
        appointment for appointment in appointments
        if appointment.customer_id in customer_ids
        and start <= appointment.appointment_created_at < end
    ]


def attendance_count(appointments: Iterable[Appointment]) -> int:
    return sum(1 for appointment in appointments if appointment.attendance_status == "attended")


def deal_count(appointments: Iterable[Appointment]) -> int:
    return sum(1 for appointment in appointments if appointment.deal_status == "deal")


def compute_metrics(
    calls: list[CallLog],
    appointments: list[Appointment],
    settings: Optional[Settings] = None,
) -> KpiMetrics:
    """Metric set for already-filtered calls and appointments."""
    calls_made = len(calls)
    connected = connected_count(calls, settings)
    booked = len(appointments)
    attended = attendance_count(appointments)
    deals = deal_count(appointments)
    return KpiMetrics(
        call_count=calls_made,
        connected_count=connected,
        connection_rate=safe_rate(connected, calls_made),
        appointment_count=booked,
        appointment_rate=safe_rate(booked, calls_made),
        attendance_count=attended,
        attendance_rate=safe_rate(attended, booked),
        deal_count=deals,
        deal_rate=safe_rate(deals, calls_made),
    )


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


# ---------------------------------------------------------------------------
# Job A: date x agent x source type
# ---------------------------------------------------------------------------


def build_daily_rows(
    calls: list[CallLog],
    appointments: list[Appointment],
    source_type_by_id: dict[uuid.UUID, str],
    agents: list[str],
    source_types: Iterable[str],
    as_of: date,
    window_days: int = 31,
    settings: Optional[Settings] = None,
) -> list[DailyKpiRow]:
    """Compute the sparse daily table for the window ending on ``as_of``."""
    segments = [*source_types, ALL_SOURCES]
    rows: list[DailyKpiRow] = []
    for offset in range(window_days - 1, -1, -1):
        day = as_of - timedelta(days=offset)
        start, end = _day_bounds(day)
        day_calls = [
            call for call in calls
            if call.call_datetime is not None and start <= call.call_datetime < end
        ]
        for agent_id in agents:
            agent_calls = [call for call in day_calls if call.assigned_is == agent_id]
            for source_type in segments:
                if source_type == ALL_SOURCES:
                    cell_calls = agent_calls
                else:
                    cell_calls = [
                        call for call in agent_calls
                        if call.lead_source_id is not None
                        and source_type_by_id.get(call.lead_source_id) == source_type
                    ]
                customer_ids = {call.customer_id for call in cell_calls}
                booked = appointments_in_window(appointments, customer_ids, start, end)
                metrics = compute_metrics(cell_calls, booked, settings)
                if metrics.call_count == 0 and metrics.appointment_count == 0:
                    continue
                rows.append(DailyKpiRow(
                    kpi_date=day,
                    assigned_is=agent_id,
                    lead_source_type=source_type,
                    **metrics.model_dump(),
                ))
    return rows


async def calculate_kpi_daily(
    session: AsyncSession,
    as_of: Optional[date] = None,
    settings: Optional[Settings] = None,
) -> int:
    """Rebuild ``kpi_daily`` and return the number of rows written."""
    settings = settings or get_settings()
    now = settings.now()
    as_of = as_of or now.date()

    calls = await call_log_repo.list_ordered(session)
    appointments = await call_log_repo.list_appointments(session)
    lead_sources = await lead_source_repo.list_ordered(session)
    source_type_by_id = {lead_source.id: lead_source.source_type for lead_source in lead_sources}
    agents = resolve_agents(settings.agent_roster, (call.assigned_is for call in calls))

    rows = build_daily_rows(
        calls,
        appointments,
        source_type_by_id,
        agents,
        settings.source_types,
        as_of,
        settings.kpi_daily_window_days,
        settings,
    )
    await replace_rows(
        session,
        "kpi_daily",
        ({**row.model_dump(), "updated_at": now} for row in rows),
    )
    logger.info(
        "Daily KPIs: %d rows for %d agents over %d days ending %s",
        len(rows), len(agents), settings.kpi_daily_window_days, as_of,
    )
    return len(rows)


# ---------------------------------------------------------------------------
# Job B: source type x source detail over a trailing period
# ---------------------------------------------------------------------------


def list_period(as_of: date, months: int = 1) -> tuple[date, date]:
    """Inclusive (start, end) dates of the trailing period ending on ``as_of``."""
    return as_of - relativedelta(months=months), as_of


def build_list_rows(
    calls: list[CallLog],
    appointments: list[Appointment],
    groups: dict[tuple[str, str], set[uuid.UUID]],
    period_start: date,
    period_end: date,
    settings: Optional[Settings] = None,
) -> list[ListKpiRow]:
    """Compute one row per (source type, source detail) group."""
    start = datetime.combine(period_start, time.min)
    end = datetime.combine(period_end, time.min) + timedelta(days=1)
    period_calls = [
        call for call in calls
        if call.call_datetime is not None and start <= call.call_datetime < end
    ]

    rows: list[ListKpiRow] = []
    for (source_type, source_detail), customer_ids in groups.items():
        group_calls = [call for call in period_calls if call.customer_id in customer_ids]
        booked = appointments_in_window(appointments, customer_ids, start, end)
        metrics = compute_metrics(group_calls, booked, settings)
        rows.append(ListKpiRow(
            source_type=source_type,
            source_detail=source_detail,
            period_start=period_start,
            period_end=period_end,
            total_customers=len(customer_ids),
            **metrics.model_dump(),
        ))
    return rows


async def calculate_kpi_by_list(
    session: AsyncSession,
    as_of: Optional[date] = None,
    settings: Optional[Settings] = None,
) -> int:
    """Rebuild ``kpi_by_list`` and return the number of rows written."""
    settings = settings or get_settings()
    now = settings.now()
    as_of = as_of or now.date()

    lead_sources = await lead_source_repo.list_ordered(session)
    groups: dict[tuple[str, str], set[uuid.UUID]] = {}
    for lead_source in lead_sources:
        key = (lead_source.source_type, lead_source.source_detail)
        groups.setdefault(key, set()).add(lead_source.customer_id)
    if not groups:
        logger.warning("No lead sources yet; kpi_by_list will be empty")

    calls = await call_log_repo.list_ordered(session)
    appointments = await call_log_repo.list_appointments(session)
    period_start, period_end = list_period(as_of, settings.kpi_list_period_months)

    rows = build_list_rows(calls, appointments, groups, period_start, period_end, settings)
    await replace_rows(
        session,
        "kpi_by_list",
        ({**row.model_dump(), "updated_at": now} for row in rows),
    )
    logger.info(
        "List KPIs: %d groups for %s to %s", len(rows), period_start, period_end
    )
    return len(rows)
