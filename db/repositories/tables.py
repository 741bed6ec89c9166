"""Table gateway: name-addressed access to every stored table.

Jobs and the edit handler address tables by name. Canonical and snapshot
tables map one-to-one onto ORM models; ``today_call_<agent>`` names map onto
``daily_targets`` scoped to that agent, keyed by row number.
"""
import logging
import uuid
from typing import Any, Iterable, Optional, Union

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from config import TARGET_FIRST_DATA_ROW, TARGET_TABLE_PREFIX
from db.models import (
    Appointment,
    Base,
    CallLog,
    Customer,
    DailyTarget,
    JobRunLog,
    KpiByList,
    KpiDaily,
    LeadSource,
)

logger = logging.getLogger(__name__)

TABLES: dict[str, type[Base]] = {
    "customers": Customer,
    "lead_sources": LeadSource,
    "call_logs": CallLog,
    "appointments": Appointment,
    "kpi_daily": KpiDaily,
    "kpi_by_list": KpiByList,
    "job_run_log": JobRunLog,
}


def agent_table_name(agent_id: str) -> str:
    return f"{TARGET_TABLE_PREFIX}{agent_id}"


def agent_from_table_name(name: str) -> Optional[str]:
    """Return the agent id encoded in a ``today_call_<agent>`` name, or None."""
    if not name or not name.startswith(TARGET_TABLE_PREFIX):
        return None
    agent_id = name[len(TARGET_TABLE_PREFIX):].strip()
    return agent_id or None


def _resolve(name: str) -> tuple[type[Base], list[Any], dict[str, Any]]:
    """Return (model, scope criteria, values forced onto new rows) for a table name."""
    agent_id = agent_from_table_name(name)
    if agent_id is not None:
        return DailyTarget, [DailyTarget.agent_id == agent_id], {"agent_id": agent_id}
    try:
        return TABLES[name], [], {}
    except KeyError:
        raise KeyError(f"Unknown table: {name!r}") from None


def _order_by(model: type[Base]) -> Any:
    if model is DailyTarget:
        return DailyTarget.row_number
    if model is JobRunLog:
        return JobRunLog.started_at
    return model.seq


async def ensure_tables(engine: AsyncEngine) -> None:
    """Create every table that does not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def ensure_table(engine: AsyncEngine, name: str) -> None:
    """Create the table backing ``name`` if it does not exist yet."""
    model, _, _ = _resolve(name)
    async with engine.begin() as conn:
        await conn.run_sync(model.__table__.create, checkfirst=True)


async def next_seq(session: AsyncSession, model: type[Base]) -> int:
    """Return the next listing position for a table that carries ``seq``."""
    result = await session.execute(select(func.coalesce(func.max(model.seq), 0)))
    return int(result.scalar_one()) + 1


async def _next_row_number(session: AsyncSession, agent_id: str) -> int:
    result = await session.execute(
        select(func.max(DailyTarget.row_number)).where(DailyTarget.agent_id == agent_id)
    )
    current = result.scalar_one()
    return TARGET_FIRST_DATA_ROW if current is None else int(current) + 1


async def get_table(session: AsyncSession, name: str) -> list[Any]:
    """Return every row of a table in listing order."""
    return await find_rows_where(session, name)


async def find_rows_where(session: AsyncSession, name: str, *criteria: Any) -> list[Any]:
    """Return the rows of a table matching all criteria, in listing order."""
    model, scope, _ = _resolve(name)
    stmt = select(model).where(*scope, *criteria).order_by(_order_by(model))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def append_rows(
    session: AsyncSession, name: str, rows: Iterable[dict[str, Any]]
) -> list[Any]:
    """Insert rows after the existing ones and return the new ORM objects."""
    model, _, forced = _resolve(name)
    rows = list(rows)
    if not rows:
        return []

    if model is DailyTarget:
        position = await _next_row_number(session, forced["agent_id"])
        position_field = "row_number"
    elif model is JobRunLog:
        position, position_field = None, None
    else:
        position = await next_seq(session, model)
        position_field = "seq"

    created = []
    for row in rows:
        values = {**row, **forced}
        if position_field is not None:
            values[position_field] = position
            position += 1
        created.append(model(**values))
    session.add_all(created)
    await session.flush()
    return created


async def replace_rows(
    session: AsyncSession, name: str, rows: Iterable[dict[str, Any]]
) -> list[Any]:
    """Swap the full contents of a table (or one agent's list) for ``rows``.

    ``rows`` is materialized before anything is deleted, so a failing
    generator leaves the old contents in place.
    """
    rows = list(rows)
    model, scope, _ = _resolve(name)
    await session.execute(delete(model).where(*scope))
    await session.flush()
    created = await append_rows(session, name, rows)
    logger.info("Replaced %s with %d rows", name, len(created))
    return created


async def update_row(
    session: AsyncSession,
    name: str,
    row_key: Union[uuid.UUID, int],
    values: dict[str, Any],
) -> Optional[Any]:
    """Update one row and return it, or None if it does not exist.

    Agent lists are keyed by row number; every other table by primary key.
    """
    model, scope, _ = _resolve(name)
    if model is DailyTarget:
        rows = await find_rows_where(session, name, DailyTarget.row_number == int(row_key))
        row = rows[0] if rows else None
    else:
        row = await session.get(model, row_key)
    if row is None:
        return None
    for key, value in values.items():
        if not hasattr(model, key):
            raise KeyError(f"{name} has no column {key!r}")
        setattr(row, key, value)
    await session.flush()
    return row

