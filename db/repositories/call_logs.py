"""Call log repository: outreach attempts and the appointments they produce."""
import logging
import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Appointment, CallLog
from db.repositories.tables import next_seq

logger = logging.getLogger(__name__)


async def list_ordered(session: AsyncSession) -> list[CallLog]:
    """Return all call logs in the order they were written."""
    result = await session.execute(select(CallLog).order_by(CallLog.seq))
    return list(result.scalars().all())


async def count_for_customer(session: AsyncSession, customer_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.count()).select_from(CallLog).where(CallLog.customer_id == customer_id)
    )
    return int(result.scalar_one())


async def insert(
    session: AsyncSession,
    *,
    customer_id: uuid.UUID,
    lead_source_id: Optional[uuid.UUID],
    assigned_is: str,
    call_datetime: datetime,
    call_count: int,
    status: Optional[str],
    note_rank: Optional[str] = None,
    next_action_date: Optional[date] = None,
    memo: Optional[str] = None,
) -> CallLog:
    """Append one outreach attempt. Call logs are never updated afterwards."""
    call = CallLog(
        seq=await next_seq(session, CallLog),
        customer_id=customer_id,
        lead_source_id=lead_source_id,
        assigned_is=assigned_is,
        call_datetime=call_datetime,
        call_count=call_count,
        status=status,
        note_rank=note_rank,
        next_action_date=next_action_date,
        memo=memo,
        created_at=call_datetime,
        updated_at=call_datetime,
    )
    session.add(call)
    await session.flush()
    return call


async def list_appointments(session: AsyncSession) -> list[Appointment]:
    """Return all appointments in the order they were booked."""
    result = await session.execute(select(Appointment).order_by(Appointment.seq))
    return list(result.scalars().all())


async def list_appointments_for_customer(
    session: AsyncSession, customer_id: uuid.UUID
) -> list[Appointment]:
    result = await session.execute(
        select(Appointment)
        .where(Appointment.customer_id == customer_id)
        .order_by(Appointment.seq)
    )
    return list(result.scalars().all())


async def insert_appointment(
    session: AsyncSession,
    *,
    customer_id: uuid.UUID,
    call_log_id: Optional[uuid.UUID],
    meeting_at: datetime,
    created_at: datetime,
) -> Appointment:
    """Book a meeting with attendance and deal results left unset."""
    appointment = Appointment(
        seq=await next_seq(session, Appointment),
        customer_id=customer_id,
        call_log_id=call_log_id,
        appointment_created_at=created_at,
        meeting_at=meeting_at,
        attendance_status=None,
        deal_status=None,
        created_at=created_at,
        updated_at=created_at,
    )
    session.add(appointment)
    await session.flush()
    return appointment
