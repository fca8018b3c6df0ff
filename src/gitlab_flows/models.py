"""Domain models shared by the GitLab client, the flows and the tool bridge.

Raw GitLab resources stay plain JSON dictionaries: both flows persist them
verbatim, so only the values the flows compute themselves get a dataclass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol


class Clock(Protocol):
    """Anything exposing ``now()``; tests inject fixed clocks."""

    def now(self) -> datetime:
        ...


@dataclass(slots=True)
class ApiResponse:
    """Decoded body plus headers of a single GitLab API response."""

    data: Any
    headers: Mapping[str, str]


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Half-open ``[start, end)`` reporting week."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end - self.start != timedelta(days=7):
            raise ValueError("A reporting window must span exactly 7 days.")

    @property
    def start_iso(self) -> str:
        return self.start.isoformat()

    @property
    def end_iso(self) -> str:
        return self.end.isoformat()

    def as_dict(self) -> Dict[str, str]:
        return {"start": self.start_iso, "end": self.end_iso}

    def as_aggregate_window(self) -> Dict[str, str]:
        return {"since": self.start_iso, "until": self.end_iso}


@dataclass(frozen=True, slots=True)
class MergeRequestReference:
    """Parsed merge request URL."""

    base_url: str
    project_path: str
    iid: str
    slug: str
    url: str


@dataclass(slots=True)
class SummaryResult:
    """Output of one summarizer invocation."""

    command: List[str]
    stdout: str
    stderr: str = ""


@dataclass(slots=True)
class GroupResult:
    """Artifacts produced for one group of a weekly pulse run."""

    group: str
    slug: str
    aggregate_path: Path
    aggregate: Dict[str, Any]
    summary_path: Path
    summary: str
    summarizer_command: List[str]


@dataclass(slots=True)
class OverallResult:
    """Artifacts produced for the cross-group part of a weekly pulse run."""

    aggregate_path: Path
    summary_path: Path
    summary: str
    summarizer_command: List[str]
    webhook_status: Optional[int] = None


@dataclass(slots=True)
class WeeklyPulseResult:
    """Everything a weekly pulse run wrote."""

    out_dir: Path
    window: TimeWindow
    groups: List[GroupResult] = field(default_factory=list)
    overall: Optional[OverallResult] = None
    log_path: Optional[Path] = None


@dataclass(slots=True)
class ReviewResult:
    """Paths written by a merge request review run."""

    review_dir: Path
    review_path: Path
    results_path: Path
    aggregate_path: Path
    diff_path: Path
