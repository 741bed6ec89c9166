"""Initial schema: canonical CRM tables, call lists, KPI snapshots, job log.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    ]


def _metric_columns() -> list[sa.Column]:
    columns = []
    for name in ("call", "connected", "appointment", "attendance", "deal"):
        columns.append(sa.Column(f"{name}_count", sa.Integer, nullable=False, server_default="0"))
        if name != "call":
            rate = "connection" if name == "connected" else name
            columns.append(sa.Column(f"{rate}_rate", sa.Float, nullable=False, server_default="0"))
    return columns


def upgrade() -> None:
    # ─── Canonical entities ──────────────────────────────────────────────────

    op.create_table(
        "customers",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("seq", sa.Integer, nullable=False),
        sa.Column("line_name", sa.Text, nullable=True),
        sa.Column("full_name", sa.Text, nullable=True),
        sa.Column("phone_number", sa.Text, nullable=True),
        sa.Column("email", sa.Text, nullable=True),
        sa.Column("status_overall", sa.Text, nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status_overall IS NULL OR status_overall IN "
            "('uncontacted', 'in_progress', 'appointment', 'closed')",
            name="ck_customer_status_overall",
        ),
    )
    op.create_index("ix_customers_seq", "customers", ["seq"])
    op.create_index("ix_customers_line_name", "customers", ["line_name"])
    op.create_index("ix_customers_phone_number", "customers", ["phone_number"])

    op.create_table(
        "lead_sources",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("seq", sa.Integer, nullable=False),
        sa.Column("customer_id", sa.Uuid, sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("source_type", sa.Text, nullable=False),
        sa.Column("source_detail", sa.Text, nullable=False),
        sa.Column("list_added_date", sa.Date, nullable=True),
        sa.Column("event_date", sa.Date, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "customer_id", "source_type", "source_detail", name="uq_lead_source_triple"
        ),
    )
    op.create_index("ix_lead_sources_seq", "lead_sources", ["seq"])
    op.create_index("ix_lead_sources_customer_id", "lead_sources", ["customer_id"])

    op.create_table(
        "call_logs",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("seq", sa.Integer, nullable=False),
        sa.Column("customer_id", sa.Uuid, sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("lead_source_id", sa.Uuid, sa.ForeignKey("lead_sources.id"), nullable=True),
        sa.Column("assigned_is", sa.Text, nullable=False),
        sa.Column("call_datetime", sa.DateTime, nullable=True),
        sa.Column("call_count", sa.Integer, nullable=False),
        sa.Column("status", sa.Text, nullable=True),
        sa.Column("note_rank", sa.Text, nullable=True),
        sa.Column("next_action_date", sa.Date, nullable=True),
        sa.Column("memo", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_call_logs_seq", "call_logs", ["seq"])
    op.create_index("ix_call_logs_customer_id", "call_logs", ["customer_id"])
    op.create_index("ix_call_logs_assigned_is", "call_logs", ["assigned_is"])

    op.create_table(
        "appointments",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("seq", sa.Integer, nullable=False),
        sa.Column("customer_id", sa.Uuid, sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("call_log_id", sa.Uuid, sa.ForeignKey("call_logs.id"), nullable=True),
        sa.Column("appointment_created_at", sa.DateTime, nullable=False),
        sa.Column("meeting_at", sa.DateTime, nullable=True),
        sa.Column("attendance_status", sa.Text, nullable=True),
        sa.Column("deal_status", sa.Text, nullable=True),
        sa.Column("deal_amount", sa.Numeric(12, 2), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "attendance_status IS NULL OR attendance_status IN ('attended', 'no_show', 'cancelled')",
            name="ck_appointment_attendance_status",
        ),
        sa.CheckConstraint(
            "deal_status IS NULL OR deal_status IN ('deal', 'pass', 'considering')",
            name="ck_appointment_deal_status",
        ),
    )
    op.create_index("ix_appointments_seq", "appointments", ["seq"])
    op.create_index("ix_appointments_customer_id", "appointments", ["customer_id"])

    # ─── Call lists ──────────────────────────────────────────────────────────

    op.create_table(
        "daily_targets",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("agent_id", sa.Text, nullable=False),
        sa.Column("row_number", sa.Integer, nullable=False),
        sa.Column("customer_id", sa.Uuid, nullable=True),
        sa.Column("line_name", sa.Text, nullable=True),
        sa.Column("full_name", sa.Text, nullable=True),
        sa.Column("phone_number", sa.Text, nullable=True),
        sa.Column("source_type", sa.Text, nullable=True),
        sa.Column("last_call_date", sa.Date, nullable=True),
        sa.Column("call_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("status", sa.Text, nullable=True),
        sa.Column("note_rank", sa.Text, nullable=True),
        sa.Column("next_action_date", sa.Text, nullable=True),
        sa.Column("memo", sa.Text, nullable=True),
        sa.Column("appointment_datetime", sa.Text, nullable=True),
        sa.Column("registered", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("generated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("agent_id", "row_number", name="uq_daily_target_agent_row"),
    )
    op.create_index("ix_daily_targets_agent_id", "daily_targets", ["agent_id"])

    # ─── KPI snapshots ───────────────────────────────────────────────────────

    op.create_table(
        "kpi_daily",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("seq", sa.Integer, nullable=False),
        sa.Column("kpi_date", sa.Date, nullable=False),
        sa.Column("assigned_is", sa.Text, nullable=False),
        sa.Column("lead_source_type", sa.Text, nullable=False),
        *_metric_columns(),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_kpi_daily_kpi_date", "kpi_daily", ["kpi_date"])

    op.create_table(
        "kpi_by_list",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("seq", sa.Integer, nullable=False),
        sa.Column("source_type", sa.Text, nullable=False),
        sa.Column("source_detail", sa.Text, nullable=False),
        sa.Column("period_start", sa.Date, nullable=False),
        sa.Column("period_end", sa.Date, nullable=False),
        sa.Column("total_customers", sa.Integer, nullable=False, server_default="0"),
        *_metric_columns(),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )

    # ─── Observability ───────────────────────────────────────────────────────

    op.create_table(
        "job_run_log",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("job_name", sa.Text, nullable=False),
        sa.Column("started_at", sa.DateTime, nullable=False),
        sa.Column("completed_at", sa.DateTime, nullable=True),
        sa.Column("duration_ms", sa.Integer, nullable=True),
        sa.Column("success", sa.Boolean, nullable=True),
        sa.Column("summary", sa.JSON, nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("stacktrace", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_job_run_log_job_name", "job_run_log", ["job_name"])


def downgrade() -> None:
    op.drop_table("job_run_log")
    op.drop_table("kpi_by_list")
    op.drop_table("kpi_daily")
    op.drop_table("daily_targets")
    op.drop_table("appointments")
    op.drop_table("call_logs")
    op.drop_table("lead_sources")
    op.drop_table("customers")
