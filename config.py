"""Runtime settings and domain constants.

Values come from the environment (a local .env file is loaded first):
  - CRM_TIMEZONE               business timezone for "today" and timestamps
  - CRM_AGENT_ROSTER           comma-separated agent ids always targeted
  - CRM_TARGET_STATUSES        statuses eligible for the daily call list
  - CRM_KPI_DAILY_WINDOW_DAYS  trailing window of the daily KPI job
  - CRM_KPI_LIST_PERIOD_MONTHS trailing period of the per-list KPI job
  - CRM_FEEDS_PATH             JSON file describing the intake feeds
  - CRM_FEED_HTTP_TIMEOUT      seconds to wait on remote feed downloads

Usage:
    from config import get_settings
    settings = get_settings()
"""
import os
from dataclasses import dataclass, field
from datetime import date, datetime
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

load_dotenv()


class ConfigurationError(RuntimeError):
    """Raised when required configuration is missing or invalid."""


# ---------------------------------------------------------------------------
# Customer lifecycle
# ---------------------------------------------------------------------------

STATUS_UNCONTACTED = "uncontacted"
STATUS_IN_PROGRESS = "in_progress"
STATUS_APPOINTMENT = "appointment"
STATUS_CLOSED = "closed"

CUSTOMER_STATUSES = (
    STATUS_UNCONTACTED,
    STATUS_IN_PROGRESS,
    STATUS_APPOINTMENT,
    STATUS_CLOSED,
)

# ---------------------------------------------------------------------------
# Outcome codes entered by agents, with the "counts as connected" flag
# ---------------------------------------------------------------------------

OUTCOME_DEFINITIONS: dict[str, dict[str, bool]] = {
    "reconnect_needed": {"connected": True},
    "answered": {"connected": True},
    "appointment_scheduling": {"connected": True},
    "voicemail_left": {"connected": True},
    "declined": {"connected": True},
    "no_answer": {"connected": False},
    "busy": {"connected": False},
    "unreachable": {"connected": False},
}

NOTE_RANKS = ("A", "B", "C", "D")

# ---------------------------------------------------------------------------
# Lead sources and appointment results
# ---------------------------------------------------------------------------

SOURCE_TYPES = (
    "gift_claim",
    "seminar_survey",
    "cancellation_list",
    "other_campaign",
)

# Synthetic source type used by the daily KPI job for the all-sources row
ALL_SOURCES = "ALL"

ATTENDANCE_STATUSES = ("attended", "no_show", "cancelled")
DEAL_STATUSES = ("deal", "pass", "considering")

# ---------------------------------------------------------------------------
# Per-agent daily call lists
# ---------------------------------------------------------------------------

TARGET_TABLE_PREFIX = "today_call_"

# Columns an agent fills in; edits anywhere else are ignored
TARGET_INPUT_COLUMNS = (
    "status",
    "note_rank",
    "next_action_date",
    "memo",
    "appointment_datetime",
)

# Row 1 holds the header in the exported call list
TARGET_FIRST_DATA_ROW = 2


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_list(name: str, default: tuple[str, ...] = ()) -> tuple[str, ...]:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    timezone: str = "Asia/Tokyo"
    agent_roster: tuple[str, ...] = ()
    target_statuses: tuple[str, ...] = (STATUS_UNCONTACTED, STATUS_IN_PROGRESS)
    source_types: tuple[str, ...] = SOURCE_TYPES
    kpi_daily_window_days: int = 31
    kpi_list_period_months: int = 1
    feeds_path: str = "feeds.json"
    feed_http_timeout: int = 30
    log_level: str = "INFO"
    outcome_definitions: dict[str, dict[str, bool]] = field(
        default_factory=lambda: dict(OUTCOME_DEFINITIONS)
    )

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        settings = cls(
            timezone=os.environ.get("CRM_TIMEZONE", "Asia/Tokyo"),
            agent_roster=_env_list("CRM_AGENT_ROSTER"),
            target_statuses=_env_list(
                "CRM_TARGET_STATUSES", (STATUS_UNCONTACTED, STATUS_IN_PROGRESS)
            ),
            kpi_daily_window_days=_env_int("CRM_KPI_DAILY_WINDOW_DAYS", 31),
            kpi_list_period_months=_env_int("CRM_KPI_LIST_PERIOD_MONTHS", 1),
            feeds_path=os.environ.get("CRM_FEEDS_PATH", "feeds.json"),
            feed_http_timeout=_env_int("CRM_FEED_HTTP_TIMEOUT", 30),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        try:
            ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError as exc:
            raise ConfigurationError(f"Unknown timezone: {self.timezone!r}") from exc
        unknown = [s for s in self.target_statuses if s not in CUSTOMER_STATUSES]
        if unknown:
            raise ConfigurationError(f"Unknown target statuses: {unknown}")
        if self.kpi_daily_window_days < 1:
            raise ConfigurationError("CRM_KPI_DAILY_WINDOW_DAYS must be at least 1")
        if self.kpi_list_period_months < 1:
            raise ConfigurationError("CRM_KPI_LIST_PERIOD_MONTHS must be at least 1")

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def now(self) -> datetime:
        """Current wall-clock time in the business timezone, without tzinfo."""
        return datetime.now(self.tz).replace(tzinfo=None, microsecond=0)

    def today(self) -> date:
        return self.now().date()

    def is_connected(self, outcome: str) -> bool:
        definition = self.outcome_definitions.get(outcome)
        return bool(definition and definition.get("connected"))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
