"""Intake feed configuration schemas."""
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator


class ColumnMapping(BaseModel):
    """Header names in the feed for each logical field; any entry may be absent."""
    handle: Optional[str] = None
    formal_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    source_detail: Optional[str] = None
    event_date: Optional[str] = None

    def mapped(self) -> dict[str, str]:
        return {field: column for field, column in self.model_dump().items() if column}


class FeedConfig(BaseModel):
    name: str = Field(min_length=1)
    source_type: str = Field(min_length=1)
    location: str = Field(min_length=1, description="Local CSV path or http(s) URL")
    column_mapping: ColumnMapping = Field(default_factory=ColumnMapping)
    header_row: int = Field(default=1, ge=1, description="1-based row holding the headers")
    data_start_row: int = Field(default=2, ge=1, description="1-based first data row")

    @model_validator(mode="after")
    def _data_after_header(self) -> "FeedConfig":
        if self.data_start_row <= self.header_row:
            raise ValueError("data_start_row must come after header_row")
        return self


class FeedCheck(BaseModel):
    name: str
    location: str
    reachable: bool
    data_rows: int = 0
    header_columns: int = 0
    missing_columns: List[str] = Field(default_factory=list)
    issues: List[str] = Field(default_factory=list)
