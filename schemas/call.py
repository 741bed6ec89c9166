"""Daily call list and outcome entry schemas."""
import uuid
from datetime import date
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class TargetEntry(BaseModel):
    """One prefilled row of an agent's daily call list."""
    customer_id: uuid.UUID
    line_name: Optional[str] = None
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    source_type: Optional[str] = None
    last_call_date: Optional[date] = None
    call_count: int = 0
    # Carried forward from the latest call log
    status: Optional[str] = None
    note_rank: Optional[str] = None
    next_action_date: Optional[date] = None


class TargetSelection(BaseModel):
    agent_id: str
    as_of: date
    entries: List[TargetEntry] = Field(default_factory=list)
    already_called_today: int = 0
    wrong_status: int = 0
    future_next_action: int = 0


class TargetDiagnostics(BaseModel):
    total_customers: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    target_statuses: List[str] = Field(default_factory=list)
    candidates: int = 0
    excluded: int = 0


class CellEdit(BaseModel):
    """A single-cell edit on an agent's call list."""
    table_name: str
    row: int
    column: str
    prior_value: Optional[str] = None
