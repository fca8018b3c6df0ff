"""Append-only run records: one JSON file per flow run."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .models import Clock
from .storage import ensure_directories, write_json

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d_%H%M%S"


class SystemClock:
    """Clock returning the current UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def run_timestamp(value: datetime) -> str:
    """Format ``value`` as the second-resolution UTC key used for run log names."""
    return to_utc(value).strftime(TIMESTAMP_FORMAT)


def iso_timestamp(value: datetime) -> str:
    return to_utc(value).isoformat().replace("+00:00", "Z")


class RunLog:
    """Writes run records below a per-flow directory.

    Each call to :meth:`persist` creates ``<directory>/<YYYY-MM-DD_HHMMSS>.json``
    and never touches earlier records.
    """

    def __init__(self, flow_name: str, directory: Path, clock: Optional[Clock] = None) -> None:
        self._flow_name = flow_name
        self._directory = Path(directory)
        self._clock = clock or SystemClock()

    @property
    def directory(self) -> Path:
        return self._directory

    def persist(
        self,
        inputs: Mapping[str, Any],
        outputs: Mapping[str, Any],
        metadata: Optional[Mapping[str, Any]] = None,
        timestamp: Optional[datetime] = None,
    ) -> Path:
        moment = to_utc(timestamp or self._clock.now())
        payload: Dict[str, Any] = {
            "flow": self._flow_name,
            "timestamp": run_timestamp(moment),
            "inputs": dict(inputs),
            "outputs": dict(outputs),
        }
        compact_metadata = {key: value for key, value in (metadata or {}).items() if value is not None}
        if compact_metadata:
            payload["metadata"] = compact_metadata

        ensure_directories(self._directory)
        path = write_json(self._directory / f"{run_timestamp(moment)}.json", payload)
        logger.info("Logged run", extra={"flow": self._flow_name, "path": str(path)})
        return path
