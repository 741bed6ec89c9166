"""Customer repository: canonical customer reads and writes."""
import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config import STATUS_UNCONTACTED
from db.models import Customer
from db.repositories.tables import next_seq

logger = logging.getLogger(__name__)

CONTACT_FIELDS = ("line_name", "full_name", "phone_number", "email")
IDENTITY_FIELDS = ("line_name", "phone_number")


async def list_ordered(session: AsyncSession) -> list[Customer]:
    """Return all customers in listing order."""
    result = await session.execute(select(Customer).order_by(Customer.seq))
    return list(result.scalars().all())


async def get(session: AsyncSession, customer_id: uuid.UUID) -> Optional[Customer]:
    """Return the Customer with this id, or None."""
    return await session.get(Customer, customer_id)


async def count(session: AsyncSession) -> int:
    result = await session.execute(select(func.count()).select_from(Customer))
    return int(result.scalar_one())


async def insert(session: AsyncSession, data: dict, now: datetime) -> Customer:
    """Insert a new customer with status uncontacted.

    data dict keys: line_name, full_name, phone_number, email
    """
    customer = Customer(
        seq=await next_seq(session, Customer),
        line_name=data.get("line_name"),
        full_name=data.get("full_name"),
        phone_number=data.get("phone_number"),
        email=data.get("email"),
        status_overall=STATUS_UNCONTACTED,
        created_at=now,
        updated_at=now,
    )
    session.add(customer)
    await session.flush()
    return customer


async def apply_candidate(
    session: AsyncSession,
    customer: Customer,
    data: dict,
    now: datetime,
) -> Customer:
    """Fill contact fields from ``data`` where the new value is non-empty.

    Identity keys (handle, phone) are only filled while empty, so a stored
    key always keeps finding this customer. The lifecycle status is never
    changed here; a blank status is stored as uncontacted.
    """
    for field in CONTACT_FIELDS:
        value = data.get(field)
        if not value:
            continue
        if field in IDENTITY_FIELDS and getattr(customer, field):
            continue
        setattr(customer, field, value)
    if not customer.status_overall:
        customer.status_overall = STATUS_UNCONTACTED
    customer.updated_at = now
    await session.flush()
    return customer


async def set_status(
    session: AsyncSession, customer: Customer, status: str, now: datetime
) -> Customer:
    """Persist a lifecycle status change."""
    customer.status_overall = status
    customer.updated_at = now
    await session.flush()
    logger.debug("Customer %s status -> %s", customer.id, status)
    return customer
