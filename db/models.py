"""SQLAlchemy 2.0 ORM models for the lead CRM.

Covers 8 tables:
  - canonical: customers, lead_sources, call_logs, appointments
  - working lists: daily_targets (one list per agent, rebuilt daily)
  - snapshots: kpi_daily, kpi_by_list
  - observability: job_run_log

Timestamps are naive wall-clock values in the business timezone
(config.Settings.timezone). Every canonical table carries a ``seq`` column
holding its listing order, assigned on insert.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    UUID,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from config import ATTENDANCE_STATUSES, CUSTOMER_STATUSES, DEAL_STATUSES


# ---------------------------------------------------------------------------
# Shared base
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    pass


def _nullable_in_check(column: str, values: tuple[str, ...]) -> str:
    return f"{column} IS NULL OR {column} IN (" + ", ".join(f"'{v}'" for v in values) + ")"


# ===========================================================================
# Canonical entities
# ===========================================================================


class Customer(Base):
    """customers: one row per real person, deduplicated by phone then handle."""

    __tablename__ = "customers"
    __table_args__ = (
        CheckConstraint(
            _nullable_in_check("status_overall", CUSTOMER_STATUSES),
            name="ck_customer_status_overall",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    line_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    full_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # NULL is read as "uncontacted"
    status_overall: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    # Relationships
    lead_sources: Mapped[list["LeadSource"]] = relationship(
        "LeadSource", back_populates="customer"
    )
    call_logs: Mapped[list["CallLog"]] = relationship(
        "CallLog", back_populates="customer"
    )
    appointments: Mapped[list["Appointment"]] = relationship(
        "Appointment", back_populates="customer"
    )


class LeadSource(Base):
    """lead_sources: provenance linking a customer to the feed/campaign it came from."""

    __tablename__ = "lead_sources"
    __table_args__ = (
        UniqueConstraint(
            "customer_id", "source_type", "source_detail", name="uq_lead_source_triple"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True
    )
    source_type: Mapped[str] = mapped_column(Text, nullable=False)
    source_detail: Mapped[str] = mapped_column(Text, nullable=False)
    list_added_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    event_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    customer: Mapped["Customer"] = relationship("Customer", back_populates="lead_sources")


class CallLog(Base):
    """call_logs: one immutable row per outreach attempt.

    ``status`` holds the outcome code as entered; codes outside
    config.OUTCOME_DEFINITIONS are stored and simply never change the lifecycle.
    """

    __tablename__ = "call_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True
    )
    lead_source_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("lead_sources.id"), nullable=True
    )
    assigned_is: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    call_datetime: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    call_count: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    note_rank: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    next_action_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    memo: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    customer: Mapped["Customer"] = relationship("Customer", back_populates="call_logs")
    appointments: Mapped[list["Appointment"]] = relationship(
        "Appointment", back_populates="call_log"
    )


class Appointment(Base):
    """appointments: a booked meeting created from an outreach attempt."""

    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint(
            _nullable_in_check("attendance_status", ATTENDANCE_STATUSES),
            name="ck_appointment_attendance_status",
        ),
        CheckConstraint(
            _nullable_in_check("deal_status", DEAL_STATUSES),
            name="ck_appointment_deal_status",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True
    )
    call_log_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("call_logs.id"), nullable=True
    )
    appointment_created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    meeting_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    attendance_status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    deal_status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    deal_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    customer: Mapped["Customer"] = relationship("Customer", back_populates="appointments")
    call_log: Mapped[Optional["CallLog"]] = relationship(
        "CallLog", back_populates="appointments"
    )


# ===========================================================================
# Per-agent daily call lists
# ===========================================================================


class DailyTarget(Base):
    """daily_targets: rows of the ``today_call_<agent>`` working lists.

    Reference columns are copied from the canonical tables when the list is
    generated; the input columns hold whatever the agent typed, as text.
    """

    __tablename__ = "daily_targets"
    __table_args__ = (
        UniqueConstraint("agent_id", "row_number", name="uq_daily_target_agent_row"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    agent_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    row_number: Mapped[int] = mapped_column(Integer, nullable=False)
    # Reference columns
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    line_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    full_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_call_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    call_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Input columns
    status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    note_rank: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    next_action_date: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    memo: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    appointment_datetime: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    registered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    generated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )


# ===========================================================================
# KPI snapshots
# ===========================================================================


class KpiDaily(Base):
    """kpi_daily: per date × agent × source type metrics (sparse)."""

    __tablename__ = "kpi_daily"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    kpi_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    assigned_is: Mapped[str] = mapped_column(Text, nullable=False)
    lead_source_type: Mapped[str] = mapped_column(Text, nullable=False)
    call_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    connected_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    connection_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    appointment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    appointment_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    attendance_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    attendance_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    deal_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    deal_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )


class KpiByList(Base):
    """kpi_by_list: per (source type, source detail) metrics over a trailing period (dense)."""

    __tablename__ = "kpi_by_list"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    source_type: Mapped[str] = mapped_column(Text, nullable=False)
    source_detail: Mapped[str] = mapped_column(Text, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    total_customers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    call_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    connected_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    connection_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    appointment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    appointment_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    attendance_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    attendance_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    deal_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    deal_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )


# ===========================================================================
# Observability
# ===========================================================================


class JobRunLog(Base):
    """job_run_log: one row per top-level job invocation."""

    __tablename__ = "job_run_log"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    job_name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    duration_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    success: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    summary: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    stacktrace: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
