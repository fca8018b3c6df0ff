"""Tests for reporting-window and statistics helpers."""

import sys
from datetime import date, timedelta
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from gitlab_flows.models import TimeWindow
from gitlab_flows.stats import (
    commit_stats,
    iso_week,
    issue_stats,
    merge_request_stats,
    pipeline_stats,
    slugify,
    week_window,
)


def test_week_window_starts_on_monday_and_contains_reference_date():
    """Verify every day of a fortnight maps to a Monday-anchored 7-day window containing it."""
    for offset in range(14):
        reference = date(2024, 1, 1) + timedelta(days=offset)
        window = week_window(reference)

        assert window.start.weekday() == 0
        assert window.end - window.start == timedelta(days=7)
        assert window.start <= reference < window.end


def test_week_window_for_midweek_date():
    """Verify a Wednesday maps to the preceding Monday."""
    window = week_window(date(2024, 1, 3))

    assert window.as_dict() == {"start": "2024-01-01", "end": "2024-01-08"}
    assert window.as_aggregate_window() == {"since": "2024-01-01", "until": "2024-01-08"}


def test_time_window_rejects_non_week_span():
    """Verify a window not spanning exactly seven days is rejected."""
    with pytest.raises(ValueError):
        TimeWindow(start=date(2024, 1, 1), end=date(2024, 1, 5))


def test_iso_week_uses_iso_year_and_zero_padded_week():
    """Verify ISO year-week keys, including dates that belong to the previous ISO year."""
    assert iso_week(date(2024, 1, 3)) == "2024_01"
    assert iso_week(date(2021, 1, 1)) == "2020_53"


def test_slugify_collapses_non_alphanumerics():
    """Verify slugs are lowercase with single dashes and no leading/trailing dashes."""
    assert slugify("Engineering") == "engineering"
    assert slugify("group/Sub Group") == "group-sub-group"
    assert slugify("--Platform__Team--") == "platform-team"


def test_commit_stats_single_author():
    """Verify a single commit produces one author entry."""
    assert commit_stats([{"author_name": "Dev"}]) == {"count": 1, "authors": [{"name": "Dev", "commits": 1}]}


def test_commit_stats_orders_by_count_then_first_seen():
    """Verify authors sort by descending count and ties keep first-seen order."""
    commits = [
        {"author_name": "Bea"},
        {"author_name": "Ann"},
        {"author_name": "Cid"},
        {"author_name": "Cid"},
        {"author_name": "Ann"},
        {"author_name": "Cid"},
    ]

    stats = commit_stats(commits)

    assert stats["count"] == 6
    assert [author["name"] for author in stats["authors"]] == ["Cid", "Ann", "Bea"]


def test_commit_stats_ties_keep_first_seen_order():
    """Verify authors with equal commit counts stay in the order they first appeared."""
    commits = [
        {"author_name": "Bea"},
        {"author_name": "Ann"},
        {"author_name": "Dan"},
        {"author_name": "Ann"},
        {"author_name": "Dan"},
    ]

    stats = commit_stats(commits)

    assert stats["authors"] == [
        {"name": "Ann", "commits": 2},
        {"name": "Dan", "commits": 2},
        {"name": "Bea", "commits": 1},
    ]
    assert [author["name"] for author in commit_stats([{"author_name": "Bea"}, {"author_name": "Ann"}])["authors"]] == [
        "Bea",
        "Ann",
    ]


def test_pipeline_stats_counts_success_and_failed_independently():
    """Verify pipeline statuses other than success/failed only count toward the total."""
    pipelines = [{"status": "success"}, {"status": "failed"}, {"status": "running"}, {"status": "success"}]

    assert pipeline_stats(pipelines) == {"count": 4, "succeeded": 2, "failed": 1}


def test_merge_request_stats_only_counts_non_null_merge_timestamps():
    """Verify merged counts only entries with a merged_at value."""
    merge_requests = [{"merged_at": "2024-01-08T00:00:00Z"}, {"merged_at": None}, {}]

    assert merge_request_stats(merge_requests) == {"updated": 3, "merged": 1}
    assert issue_stats([{"id": 1}, {"id": 2}]) == {"open_or_updated": 2}
