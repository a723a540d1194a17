"""Durable session cache backed by a single JSON file.

Stores the raw login response so a later process can reuse a still-valid
token instead of logging in again. The file is never locked or replaced
atomically; concurrent clients sharing a path may race.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pydantic
import structlog
from structlog.typing import FilteringBoundLogger

from .restapi.types import LoginResponse

logger = structlog.get_logger(__name__)

DEFAULT_CACHE_FILE = Path(__file__).resolve().parent / "cvv.json"


def is_future(moment: datetime | None) -> bool:
    """Return True if ``moment`` is strictly later than now.

    Naive datetimes are interpreted in local time.
    """
    if moment is None:
        return False
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return moment > datetime.now(timezone.utc)


class SessionCache:
    """Single-slot store for the last successful login response."""

    def __init__(
        self,
        path: str | Path | None = None,
        log: FilteringBoundLogger | None = None,
    ):
        """Initialize the cache.

        Args:
            path: Location of the JSON file (default: ``cvv.json`` next to
                the installed package).
            log: structlog logger for cache events (default: the module
                logger).
        """
        self.path = Path(path) if path else DEFAULT_CACHE_FILE
        self._log = log if log is not None else logger

    def load(self) -> LoginResponse | None:
        """Return the cached login response if it has not expired yet.

        Missing, unreadable, malformed or expired records are all treated as
        absent. Expired records are left on disk.
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError:
            self._log.debug("No cached session", path=str(self.path))
            return None
        if not raw.strip():
            return None

        try:
            record = LoginResponse.model_validate(json.loads(raw))
        except (ValueError, pydantic.ValidationError):
            self._log.debug("Ignoring unreadable cached session", path=str(self.path))
            return None

        if not is_future(record.expire):
            self._log.debug("Cached session expired", expire=str(record.expire))
            return None
        return record

    def save(self, payload: dict[str, Any]) -> None:
        """Overwrite the cache file with a raw login response."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            self._log.warning("Could not write session cache", path=str(self.path))
