"""Customer lifecycle: status transitions driven by call outcomes.

    reconnect_needed, voicemail_left, no_answer, busy, unreachable -> in_progress
    answered, appointment_scheduling -> appointment if a meeting is pending,
                                        otherwise in_progress
    declined -> closed
    anything else -> unchanged

Closed is not terminal: a later qualifying outcome moves the customer back
to in_progress or appointment.
"""
import logging
import uuid
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

import db.repositories.call_logs as call_log_repo
import db.repositories.customers as customer_repo
from config import STATUS_APPOINTMENT, STATUS_CLOSED, STATUS_IN_PROGRESS, get_settings
from db.models import Appointment

logger = logging.getLogger(__name__)

_APPOINTMENT_OUTCOMES = frozenset({"answered", "appointment_scheduling"})
_IN_PROGRESS_OUTCOMES = frozenset({
    "reconnect_needed",
    "voicemail_left",
    "no_answer",
    "busy",
    "unreachable",
})
_CLOSING_OUTCOMES = frozenset({"declined"})


def next_status(outcome: Optional[str], has_active_appointment: bool) -> Optional[str]:
    """Return the status an outcome moves a customer to, or None for no change."""
    if outcome in _APPOINTMENT_OUTCOMES:
        return STATUS_APPOINTMENT if has_active_appointment else STATUS_IN_PROGRESS
    if outcome in _IN_PROGRESS_OUTCOMES:
        return STATUS_IN_PROGRESS
    if outcome in _CLOSING_OUTCOMES:
        return STATUS_CLOSED
    return None


def is_active(appointment: Appointment, now: datetime) -> bool:
    """A meeting still ahead whose attendance or deal result is unset."""
    if appointment.meeting_at is None or appointment.meeting_at <= now:
        return False
    return not appointment.attendance_status or not appointment.deal_status


def any_active(appointments: Iterable[Appointment], now: datetime) -> bool:
    return any(is_active(appointment, now) for appointment in appointments)


async def has_active_appointment(
    session: AsyncSession, customer_id: uuid.UUID, now: Optional[datetime] = None
) -> bool:
    now = now or get_settings().now()
    appointments = await call_log_repo.list_appointments_for_customer(session, customer_id)
    return any_active(appointments, now)


async def apply_outcome(
    session: AsyncSession,
    customer_id: uuid.UUID,
    outcome: Optional[str],
    now: Optional[datetime] = None,
) -> Optional[str]:
    """Apply an outcome to a customer's status and return the new status.

    Returns None when the outcome does not move the status or the customer
    does not exist.
    """
    now = now or get_settings().now()
    status = next_status(outcome, await has_active_appointment(session, customer_id, now))
    if status is None:
        logger.info("Outcome %r leaves customer %s unchanged", outcome, customer_id)
        return None

    customer = await customer_repo.get(session, customer_id)
    if customer is None:
        logger.warning("Customer %s not found; status not updated", customer_id)
        return None
    await customer_repo.set_status(session, customer, status, now)
    return status
