"""KPI snapshot schemas."""
from datetime import date
from pydantic import BaseModel


class KpiMetrics(BaseModel):
    call_count: int = 0
    connected_count: int = 0
    connection_rate: float = 0.0
    appointment_count: int = 0
    appointment_rate: float = 0.0
    attendance_count: int = 0
    attendance_rate: float = 0.0
    deal_count: int = 0
    deal_rate: float = 0.0


class DailyKpiRow(KpiMetrics):
    kpi_date: date
    assigned_is: str
    lead_source_type: str


class ListKpiRow(KpiMetrics):
    source_type: str
    source_detail: str
    period_start: date
    period_end: date
    total_customers: int = 0
