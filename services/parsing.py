"""Parsing of free-text date cells typed into feeds and call lists."""
from datetime import date, datetime
from typing import Any, Optional

from dateutil import parser as date_parser


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a cell into a naive datetime.

    Returns None for blank cells; raises ValueError when the text is not a date.
    Aware values are reduced to their wall-clock time.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if not text:
        return None
    try:
        return date_parser.parse(text).replace(tzinfo=None)
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Unrecognized date: {text!r}") from e


def parse_date(value: Any) -> Optional[date]:
    parsed = parse_datetime(value)
    return parsed.date() if parsed is not None else None
