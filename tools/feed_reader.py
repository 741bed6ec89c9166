"""Feed reader: fetch the raw rows of an intake feed.

A feed location is either a local CSV file or an http(s) URL serving CSV
(for example a spreadsheet's CSV export link).
"""
import csv
import io
import logging
from pathlib import Path
from typing import List

import requests

from schemas.feed import FeedConfig

logger = logging.getLogger(__name__)


class FeedUnavailableError(RuntimeError):
    """Raised when a feed's source cannot be read."""


def _is_url(location: str) -> bool:
    return location.lower().startswith(("http://", "https://"))


def _fetch_text(location: str, timeout: int) -> str:
    try:
        resp = requests.get(location, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise FeedUnavailableError(f"Could not download feed {location}: {e}") from e
    # requests falls back to ISO-8859-1 for text/* without a charset; CSV exports are UTF-8
    if "charset=" in resp.headers.get("Content-Type", "").lower():
        return resp.text.lstrip("\ufeff")
    try:
        return resp.content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise FeedUnavailableError(f"Feed {location} is not valid UTF-8: {e}") from e


def _read_file(location: str) -> str:
    path = Path(location)
    if not path.is_file():
        raise FeedUnavailableError(f"Feed file not found: {location}")
    try:
        return path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        raise FeedUnavailableError(f"Feed file {location} is not valid UTF-8: {e}") from e


def read_rows(location: str, timeout: int = 30) -> List[List[str]]:
    """Return every row of the CSV at ``location`` as a list of cell strings.

    Raises:
        FeedUnavailableError: the file is missing, the download failed, or
            the content is not UTF-8 CSV.
    """
    text = _fetch_text(location, timeout) if _is_url(location) else _read_file(location)
    try:
        return [row for row in csv.reader(io.StringIO(text))]
    except csv.Error as e:
        raise FeedUnavailableError(f"Feed {location} is not valid CSV: {e}") from e


def read_feed(feed: FeedConfig, timeout: int = 30) -> tuple[List[str], List[List[str]]]:
    """Return (header, data rows) for a configured feed.

    Rows are cut using the feed's 1-based header and data start rows.
    Entirely blank rows are dropped.
    """
    rows = read_rows(feed.location, timeout=timeout)
    if len(rows) < feed.header_row:
        raise FeedUnavailableError(
            f"Feed {feed.name!r} has no header row {feed.header_row} "
            f"(only {len(rows)} rows)"
        )
    header = [cell.strip() for cell in rows[feed.header_row - 1]]
    data = [
        row for row in rows[feed.data_start_row - 1:]
        if any(cell.strip() for cell in row)
    ]
    logger.debug("Read feed %s: %d header columns, %d data rows", feed.name, len(header), len(data))
    return header, data
