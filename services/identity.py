"""Identity resolution and provenance.

merge() folds an inbound lead into the canonical customer list, matching on
normalized phone first and exact LINE handle second. attach() records which
feed/campaign produced the lead, once per (customer, source type, detail).

Batch callers build a CustomerIndex / LeadSourceIndex once per run and pass
it to every call; the index is updated in place as rows are written.
"""
import logging
import re
import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

import db.repositories.customers as customer_repo
import db.repositories.lead_sources as lead_source_repo
from config import get_settings
from db.models import Customer, LeadSource
from schemas.lead import AttachResult, LeadCandidate, MergeResult

logger = logging.getLogger(__name__)

_PHONE_NOISE = re.compile(r"[\s\-()]")


def normalize_phone(phone: Optional[str]) -> str:
    """Strip hyphens, whitespace and parentheses from a phone number."""
    if not phone:
        return ""
    return _PHONE_NOISE.sub("", str(phone))


class CustomerIndex:
    """Lookup of customers by normalized phone and by handle.

    Earlier customers (in listing order) win when two share a key.
    """

    def __init__(self, customers: list[Customer]):
        self._fill(customers)

    @classmethod
    async def load(cls, session: AsyncSession) -> "CustomerIndex":
        return cls(await customer_repo.list_ordered(session))

    async def reload(self, session: AsyncSession) -> None:
        """Rebuild from the store, e.g. after a rolled-back savepoint."""
        self._fill(await customer_repo.list_ordered(session))

    def _fill(self, customers: list[Customer]) -> None:
        self._by_phone: dict[str, Customer] = {}
        self._by_handle: dict[str, Customer] = {}
        for customer in customers:
            self.add(customer)

    def add(self, customer: Customer) -> None:
        phone = normalize_phone(customer.phone_number)
        if phone:
            self._by_phone.setdefault(phone, customer)
        if customer.line_name:
            self._by_handle.setdefault(customer.line_name, customer)

    def find(self, candidate: LeadCandidate) -> tuple[Optional[Customer], Optional[str]]:
        """Return (customer, matched key field) or (None, None)."""
        phone = normalize_phone(candidate.phone_number)
        if phone and phone in self._by_phone:
            return self._by_phone[phone], "phone_number"
        if candidate.line_name and candidate.line_name in self._by_handle:
            return self._by_handle[candidate.line_name], "line_name"
        return None, None


class LeadSourceIndex:
    """Lookup of lead sources by (customer id, source type, source detail)."""

    def __init__(self, lead_sources: list[LeadSource]):
        self._fill(lead_sources)

    @classmethod
    async def load(cls, session: AsyncSession) -> "LeadSourceIndex":
        return cls(await lead_source_repo.list_ordered(session))

    async def reload(self, session: AsyncSession) -> None:
        self._fill(await lead_source_repo.list_ordered(session))

    def _fill(self, lead_sources: list[LeadSource]) -> None:
        self._by_key: dict[tuple[uuid.UUID, str, str], LeadSource] = {}
        for lead_source in lead_sources:
            self.add(lead_source)

    def add(self, lead_source: LeadSource) -> None:
        key = (lead_source.customer_id, lead_source.source_type, lead_source.source_detail)
        self._by_key.setdefault(key, lead_source)

    def find(self, customer_id: uuid.UUID, source_type: str, source_detail: str) -> Optional[LeadSource]:
        return self._by_key.get((customer_id, source_type, source_detail))


async def merge(
    session: AsyncSession,
    candidate: LeadCandidate,
    index: Optional[CustomerIndex] = None,
    now: Optional[datetime] = None,
) -> MergeResult:
    """Merge a lead into the customer list and return (customer id, is_new).

    On a match, non-empty candidate fields overwrite stored ones, except the
    identity keys (handle, phone), which are only filled while empty. Status
    is never changed. Exactly one insert or one update happens per call.
    """
    now = now or get_settings().now()
    if index is None:
        index = await CustomerIndex.load(session)

    data = candidate.model_dump()
    existing, matched_on = index.find(candidate)
    if existing is not None:
        await customer_repo.apply_candidate(session, existing, data, now)
        # A newly learned phone or handle becomes searchable for the rest of the batch
        index.add(existing)
        logger.debug("Merged lead into customer %s (matched on %s)", existing.id, matched_on)
        return MergeResult(customer_id=existing.id, is_new=False)

    customer = await customer_repo.insert(session, data, now)
    index.add(customer)
    logger.debug("Created customer %s", customer.id)
    return MergeResult(customer_id=customer.id, is_new=True)


async def attach(
    session: AsyncSession,
    customer_id: uuid.UUID,
    source_type: str,
    source_detail: str,
    list_added_date: Optional[date],
    event_date: Optional[date],
    index: Optional[LeadSourceIndex] = None,
    now: Optional[datetime] = None,
) -> AttachResult:
    """Record provenance for a customer. Idempotent per (customer, type, detail)."""
    now = now or get_settings().now()
    if index is None:
        index = LeadSourceIndex(await lead_source_repo.list_for_customer(session, customer_id))

    existing = index.find(customer_id, source_type, source_detail)
    if existing is not None:
        await lead_source_repo.refresh_dates(session, existing, list_added_date, event_date, now)
        return AttachResult(lead_source_id=existing.id, is_new=False)

    lead_source = await lead_source_repo.insert(
        session, customer_id, source_type, source_detail, list_added_date, event_date, now
    )
    index.add(lead_source)
    return AttachResult(lead_source_id=lead_source.id, is_new=True)
