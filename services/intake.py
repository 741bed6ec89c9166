"""Lead intake: load every configured feed into customers and lead sources.

Each data row is merged and attached inside its own savepoint, so a bad row
only loses itself. Each feed runs inside an outer savepoint, so a feed that
fails part-way contributes nothing.
"""
import asyncio
import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from config import ConfigurationError, Settings, get_settings
from schemas.feed import FeedCheck, FeedConfig
from schemas.lead import IntakeCounts, IntakeResult, LeadCandidate
from services.identity import CustomerIndex, LeadSourceIndex, attach, merge
from services.parsing import parse_date
from tools.feed_reader import FeedUnavailableError, read_feed

logger = logging.getLogger(__name__)

# Logical field -> LeadCandidate attribute
_CANDIDATE_FIELDS = {
    "handle": "line_name",
    "formal_name": "full_name",
    "phone": "phone_number",
    "email": "email",
}


class RowValidationError(ValueError):
    """A feed row that cannot become a lead (no identity, bad date)."""


def load_feeds(path: str) -> list[FeedConfig]:
    """Read the feed list from a JSON file.

    Raises:
        ConfigurationError: the file is missing, not JSON, or not a valid feed list.
    """
    feeds_path = Path(path)
    if not feeds_path.is_file():
        raise ConfigurationError(
            f"Feed configuration {path} not found. Copy feeds.example.json and edit it."
        )
    try:
        raw = json.loads(feeds_path.read_text(encoding="utf-8"))
        if isinstance(raw, dict):
            raw = raw.get("feeds", [])
        return [FeedConfig.model_validate(item) for item in raw]
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        raise ConfigurationError(f"Invalid feed configuration {path}: {e}") from e


def map_columns(feed: FeedConfig, header: list[str]) -> tuple[dict[str, int], list[str]]:
    """Resolve mapped header names to column indices.

    Returns (field -> index, header names that were configured but not found).
    """
    positions = {name: i for i, name in reversed(list(enumerate(header))) if name}
    indices: dict[str, int] = {}
    missing: list[str] = []
    for field, column in feed.column_mapping.mapped().items():
        if column in positions:
            indices[field] = positions[column]
        else:
            missing.append(column)
    return indices, missing


def _cell(row: list[str], indices: dict[str, int], field: str) -> str:
    index = indices.get(field)
    if index is None or index >= len(row):
        return ""
    return (row[index] or "").strip()


def build_row(
    feed: FeedConfig, indices: dict[str, int], row: list[str]
) -> tuple[LeadCandidate, str, Optional[date]]:
    """Turn one raw row into (candidate, source detail, event date).

    Raises:
        RowValidationError: neither handle nor phone is present, or the
            event date cannot be read.
    """
    values = {attr: _cell(row, indices, field) for field, attr in _CANDIDATE_FIELDS.items()}
    try:
        candidate = LeadCandidate(**values)
    except ValidationError as e:
        raise RowValidationError("row has neither a handle nor a phone number") from e

    source_detail = _cell(row, indices, "source_detail") or feed.name
    try:
        event_date = parse_date(_cell(row, indices, "event_date"))
    except ValueError as e:
        raise RowValidationError(str(e)) from e
    return candidate, source_detail, event_date


async def _ingest_rows(
    session: AsyncSession,
    feed: FeedConfig,
    indices: dict[str, int],
    rows: list[list[str]],
    customers: CustomerIndex,
    sources: LeadSourceIndex,
    today: date,
    now: datetime,
) -> IntakeCounts:
    counts = IntakeCounts()
    for offset, row in enumerate(rows):
        row_number = feed.data_start_row + offset
        try:
            candidate, source_detail, event_date = build_row(feed, indices, row)
        except RowValidationError as e:
            logger.warning("Feed %s row %d skipped: %s", feed.name, row_number, e)
            counts.skipped += 1
            continue

        try:
            async with session.begin_nested():
                merged = await merge(session, candidate, index=customers, now=now)
                attached = await attach(
                    session,
                    merged.customer_id,
                    feed.source_type,
                    source_detail,
                    today,
                    event_date,
                    index=sources,
                    now=now,
                )
        except Exception:
            logger.exception("Feed %s row %d failed", feed.name, row_number)
            counts.failed += 1
            # The rolled-back savepoint may have touched indexed objects
            await customers.reload(session)
            await sources.reload(session)
            continue

        counts.processed += 1
        if merged.is_new:
            counts.new_customers += 1
        else:
            counts.updated_customers += 1
        if attached.is_new:
            counts.new_lead_sources += 1
    return counts


async def ingest_feed(
    session: AsyncSession,
    feed: FeedConfig,
    customers: CustomerIndex,
    sources: LeadSourceIndex,
    today: date,
    now: datetime,
    timeout: int = 30,
) -> IntakeCounts:
    """Read one feed and merge its rows. Feed-level errors propagate."""
    header, rows = await asyncio.to_thread(read_feed, feed, timeout)
    indices, missing = map_columns(feed, header)
    for column in missing:
        logger.warning("Feed %s: column %r not found in header row", feed.name, column)
    if "handle" not in indices and "phone" not in indices:
        raise FeedUnavailableError(f"Feed {feed.name!r} maps neither a handle nor a phone column")

    async with session.begin_nested():
        counts = await _ingest_rows(session, feed, indices, rows, customers, sources, today, now)
    logger.info(
        "Feed %s: processed=%d new=%d updated=%d new_sources=%d skipped=%d failed=%d",
        feed.name, counts.processed, counts.new_customers, counts.updated_customers,
        counts.new_lead_sources, counts.skipped, counts.failed,
    )
    return counts


async def run_intake(
    session: AsyncSession,
    feeds: list[FeedConfig],
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> IntakeResult:
    """Ingest every feed in order; a failing feed is logged and counts as zero."""
    settings = settings or get_settings()
    now = now or settings.now()
    today = now.date()

    customers = await CustomerIndex.load(session)
    sources = await LeadSourceIndex.load(session)

    result = IntakeResult()
    for feed in feeds:
        try:
            counts = await ingest_feed(
                session, feed, customers, sources, today, now, settings.feed_http_timeout
            )
        except Exception:
            logger.exception("Feed %s failed; continuing with the next feed", feed.name)
            counts = IntakeCounts()
            await customers.reload(session)
            await sources.reload(session)
        result.feeds[feed.name] = counts
        result.total.add(counts)

    logger.info(
        "Intake complete: %d feeds, processed=%d new=%d updated=%d skipped=%d failed=%d",
        len(feeds), result.total.processed, result.total.new_customers,
        result.total.updated_customers, result.total.skipped, result.total.failed,
    )
    return result


def check_feeds(feeds: list[FeedConfig], timeout: int = 30) -> list[FeedCheck]:
    """Report, per feed, whether its source is readable and its mapping fits."""
    checks = []
    for feed in feeds:
        check = FeedCheck(name=feed.name, location=feed.location, reachable=False)
        try:
            header, rows = read_feed(feed, timeout)
        except FeedUnavailableError as e:
            check.issues.append(str(e))
            checks.append(check)
            continue

        check.reachable = True
        check.data_rows = len(rows)
        check.header_columns = len([name for name in header if name])
        _, check.missing_columns = map_columns(feed, header)
        for column in check.missing_columns:
            check.issues.append(f"mapped column {column!r} not in header")
        if not feed.column_mapping.handle and not feed.column_mapping.phone:
            check.issues.append("neither handle nor phone is mapped")
        checks.append(check)
    return checks
