from .feed import ColumnMapping, FeedConfig, FeedCheck
from .lead import LeadCandidate, MergeResult, AttachResult, IntakeCounts, IntakeResult
from .call import TargetEntry, TargetSelection, TargetDiagnostics, CellEdit
from .kpi import KpiMetrics, DailyKpiRow, ListKpiRow

__all__ = [
    "ColumnMapping", "FeedConfig", "FeedCheck",
    "LeadCandidate", "MergeResult", "AttachResult", "IntakeCounts", "IntakeResult",
    "TargetEntry", "TargetSelection", "TargetDiagnostics", "CellEdit",
    "KpiMetrics", "DailyKpiRow", "ListKpiRow",
]
