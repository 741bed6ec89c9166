"""Lead source repository: provenance rows per customer."""
import logging
import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import LeadSource
from db.repositories.tables import next_seq

logger = logging.getLogger(__name__)


async def list_ordered(session: AsyncSession) -> list[LeadSource]:
    """Return all lead sources in listing order."""
    result = await session.execute(select(LeadSource).order_by(LeadSource.seq))
    return list(result.scalars().all())


async def list_for_customer(session: AsyncSession, customer_id: uuid.UUID) -> list[LeadSource]:
    result = await session.execute(
        select(LeadSource)
        .where(LeadSource.customer_id == customer_id)
        .order_by(LeadSource.seq)
    )
    return list(result.scalars().all())


async def primary_for_customer(
    session: AsyncSession, customer_id: uuid.UUID
) -> Optional[LeadSource]:
    """Return the first lead source recorded for a customer, or None."""
    result = await session.execute(
        select(LeadSource)
        .where(LeadSource.customer_id == customer_id)
        .order_by(LeadSource.seq)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def insert(
    session: AsyncSession,
    customer_id: uuid.UUID,
    source_type: str,
    source_detail: str,
    list_added_date: Optional[date],
    event_date: Optional[date],
    now: datetime,
) -> LeadSource:
    lead_source = LeadSource(
        seq=await next_seq(session, LeadSource),
        customer_id=customer_id,
        source_type=source_type,
        source_detail=source_detail,
        list_added_date=list_added_date,
        event_date=event_date,
        created_at=now,
        updated_at=now,
    )
    session.add(lead_source)
    await session.flush()
    return lead_source


async def refresh_dates(
    session: AsyncSession,
    lead_source: LeadSource,
    list_added_date: Optional[date],
    event_date: Optional[date],
    now: datetime,
) -> LeadSource:
    """Overwrite both date fields of an existing row; id and created_at stay."""
    lead_source.list_added_date = list_added_date
    lead_source.event_date = event_date
    lead_source.updated_at = now
    await session.flush()
    return lead_source
