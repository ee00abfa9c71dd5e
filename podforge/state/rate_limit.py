"""Rolling-window rate limiting for audio generation.

The generation service allows a small number of new audio generations per
day. Every successful trigger is appended to a JSON log; the remaining
quota is the configured limit minus the entries inside the rolling window.

Log file shape::

    {"entries": [{"timestamp": "2025-01-01T12:00:00.000Z",
                  "runId": "2025-01-01T11-58-03-120Z",
                  "resourceUrl": "https://..."}]}
"""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, List, Optional

from dateutil.parser import isoparse
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..errors import RateLimitLogError
from ..logging import get_logger

logger = get_logger(__name__)

DEFAULT_LOG_PATH = Path("logs") / "audio-generation.json"
DEFAULT_RATE_LIMIT = 3
DEFAULT_WINDOW = timedelta(hours=24)
DEFAULT_RETENTION = timedelta(days=7)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def make_run_id(now: Optional[datetime] = None) -> str:
    """Build a filesystem-safe run identifier from the current instant."""
    now = now or _utc_now()
    stamp = _format_timestamp(now)
    return stamp.replace(":", "-").replace(".", "-")


def _format_timestamp(value: datetime) -> str:
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RateLimitEntry(BaseModel):
    """One recorded generation trigger.

    Unknown keys written by other versions are kept on rewrite.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    timestamp: datetime
    run_id: str = Field(alias="runId")
    resource_url: str = Field(alias="resourceUrl")

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_timestamp(cls, v: Any) -> datetime:
        if isinstance(v, str):
            v = isoparse(v)
        if isinstance(v, datetime) and v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        return v

    @field_serializer("timestamp")
    def serialize_timestamp(self, value: datetime) -> str:
        return _format_timestamp(value)


class RateLimitLog(BaseModel):
    """Persisted generation log."""

    model_config = ConfigDict(extra="allow")

    entries: List[RateLimitEntry] = Field(default_factory=list)


class RateLimitTracker:
    """Tracks generation triggers against a rolling-window quota.

    Single-process, sequential use only: there is no locking around the
    read-modify-write of the log file.
    """

    def __init__(
        self,
        log_path: Path = DEFAULT_LOG_PATH,
        limit: int = DEFAULT_RATE_LIMIT,
        window: timedelta = DEFAULT_WINDOW,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Callable[[], datetime] = _utc_now,
        run_id: Optional[str] = None,
    ):
        """Initialize rate limit tracker.

        Args:
            log_path: JSON log file location
            limit: Generations allowed per window
            window: Rolling window counted backward from now
            retention: Entries older than this are pruned on every write
            clock: Source of the current time (timezone-aware)
            run_id: Identifier stamped on entries written by this process
        """
        self.log_path = Path(log_path)
        self.limit = limit
        self.window = window
        self.retention = retention
        self._clock = clock
        self.run_id = run_id or make_run_id(clock())

    def validate_rate_limit(self) -> int:
        """Return how many new generations are still allowed right now.

        Never raises on exhaustion; zero is the backpressure signal.

        Raises:
            RateLimitLogError: If the log exists but cannot be read or parsed
        """
        logger.info(
            "Checking audio generation rate limit",
            limit=self.limit,
            window_hours=self.window.total_seconds() / 3600,
        )
        if not self.log_path.exists():
            self._write_log(RateLimitLog())

        log = self._read_log()
        recent = self._entries_since(log, self._clock() - self.window)
        remaining = max(0, self.limit - len(recent))

        if remaining == 0:
            logger.warning(
                "Audio generation rate limit reached",
                used=len(recent),
                limit=self.limit,
            )
        else:
            logger.info("Audio generation slots available", remaining=remaining, used=len(recent))
        return remaining

    def record_audio_generation(self, resource_url: str) -> None:
        """Append a generation entry and prune entries past retention.

        Raises:
            RateLimitLogError: If the log cannot be read or written
        """
        now = self._clock()
        log = self._read_log()
        log.entries.append(
            RateLimitEntry(timestamp=now, run_id=self.run_id, resource_url=resource_url)
        )

        before = len(log.entries)
        log.entries = self._entries_since(log, now - self.retention)
        pruned = before - len(log.entries)

        self._write_log(log)
        logger.info(
            "Recorded audio generation",
            run_id=self.run_id,
            resource_url=resource_url,
            pruned=pruned,
        )

    def recent_entries(self) -> List[RateLimitEntry]:
        """Entries that currently count against the quota, oldest first."""
        log = self._read_log()
        return sorted(
            self._entries_since(log, self._clock() - self.window),
            key=lambda e: e.timestamp,
        )

    @staticmethod
    def _entries_since(log: RateLimitLog, cutoff: datetime) -> List[RateLimitEntry]:
        return [e for e in log.entries if e.timestamp > cutoff]

    def _read_log(self) -> RateLimitLog:
        try:
            raw = self.log_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return RateLimitLog()
        except OSError as e:
            raise RateLimitLogError(
                f"Failed to read audio generation log {self.log_path}: {e}"
            ) from e

        try:
            return RateLimitLog.model_validate(json.loads(raw))
        except (json.JSONDecodeError, PydanticValidationError) as e:
            raise RateLimitLogError(
                f"Failed to read audio generation log {self.log_path}: {e}"
            ) from e

    def _write_log(self, log: RateLimitLog) -> None:
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            self.log_path.write_text(
                json.dumps(log.model_dump(mode="json", by_alias=True), indent=2),
                encoding="utf-8",
            )
        except OSError as e:
            raise RateLimitLogError(
                f"Failed to write audio generation log {self.log_path}: {e}"
            ) from e
