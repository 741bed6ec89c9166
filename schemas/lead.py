"""Lead intake and identity resolution schemas."""
import uuid
from typing import Dict, Optional
from pydantic import BaseModel, Field, field_validator, model_validator


class LeadCandidate(BaseModel):
    """One inbound person record, before it is merged into a customer."""
    line_name: Optional[str] = None
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None

    @field_validator("line_name", "full_name", "phone_number", "email", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @model_validator(mode="after")
    def _requires_identity(self) -> "LeadCandidate":
        if not self.line_name and not self.phone_number:
            raise ValueError("a lead needs a handle or a phone number")
        return self


class MergeResult(BaseModel):
    customer_id: uuid.UUID
    is_new: bool


class AttachResult(BaseModel):
    lead_source_id: uuid.UUID
    is_new: bool


class IntakeCounts(BaseModel):
    processed: int = 0
    new_customers: int = 0
    updated_customers: int = 0
    new_lead_sources: int = 0
    skipped: int = 0
    failed: int = 0

    def add(self, other: "IntakeCounts") -> None:
        for field in type(self).model_fields:
            setattr(self, field, getattr(self, field) + getattr(other, field))


class IntakeResult(BaseModel):
    feeds: Dict[str, IntakeCounts] = Field(default_factory=dict)
    total: IntakeCounts = Field(default_factory=IntakeCounts)
