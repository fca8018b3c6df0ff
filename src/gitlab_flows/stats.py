"""Reporting-window and statistics helpers for the weekly pulse.

This module provides utilities for:
- Anchoring a reference date to its Monday-to-Monday reporting week.
- Naming the ISO year-week output directory.
- Building filesystem-safe slugs from group and project paths.
- Deriving commit, pipeline, issue and merge request statistics from raw
  GitLab resources.
"""

from __future__ import annotations

import re
from datetime import date, timedelta
from typing import Any, Dict, List, Mapping, Sequence

from .models import TimeWindow

_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


def week_window(reference: date) -> TimeWindow:
    """Return the ``[Monday, next Monday)`` window containing ``reference``.

    Args:
        reference: Any calendar date.

    Returns:
        ``TimeWindow`` whose start is the Monday on or before ``reference``.
    """
    start = reference - timedelta(days=reference.weekday())
    return TimeWindow(start=start, end=start + timedelta(days=7))


def iso_week(reference: date) -> str:
    """Format the ISO year and week of ``reference`` as ``YYYY_WW``."""
    iso_year, iso_week_number, _ = reference.isocalendar()
    return f"{iso_year}_{iso_week_number:02d}"


def slugify(value: str) -> str:
    """Lowercase ``value`` and collapse every non-alphanumeric run into ``-``."""
    return _SLUG_PATTERN.sub("-", value.lower()).strip("-")


def commit_stats(commits: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    """Count commits overall and per author name.

    Authors are ordered by descending commit count; authors with equal counts
    keep the order in which they were first seen.
    """
    per_author: Dict[Any, int] = {}
    for commit in commits:
        name = commit.get("author_name")
        per_author[name] = per_author.get(name, 0) + 1

    authors: List[Dict[str, Any]] = [
        {"name": name, "commits": count} for name, count in per_author.items()
    ]
    authors.sort(key=lambda entry: -entry["commits"])
    return {"count": len(commits), "authors": authors}


def pipeline_stats(pipelines: Sequence[Mapping[str, Any]]) -> Dict[str, int]:
    """Count pipelines overall and by ``success``/``failed`` status."""
    return {
        "count": len(pipelines),
        "succeeded": sum(1 for pipeline in pipelines if pipeline.get("status") == "success"),
        "failed": sum(1 for pipeline in pipelines if pipeline.get("status") == "failed"),
    }


def issue_stats(issues: Sequence[Mapping[str, Any]]) -> Dict[str, int]:
    return {"open_or_updated": len(issues)}


def merge_request_stats(merge_requests: Sequence[Mapping[str, Any]]) -> Dict[str, int]:
    """Count updated merge requests and those carrying a ``merged_at`` timestamp."""
    return {
        "updated": len(merge_requests),
        "merged": sum(1 for mr in merge_requests if mr.get("merged_at") is not None),
    }
