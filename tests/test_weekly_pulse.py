"""Tests for the weekly pulse flow with fake GitLab and summarizer collaborators."""

import json
import sys
from datetime import date, datetime, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from gitlab_flows.errors import TransportError
from gitlab_flows.flows import FlowRegistry
from gitlab_flows.flows.weekly_pulse import FLOW_NAME, WeeklyPulse
from gitlab_flows.main import orchestrate_flow
from gitlab_flows.models import SummaryResult

WINDOW_START = "2024-01-01"
WINDOW_END = "2024-01-08"
SINCE = f"{WINDOW_START}T00:00:00Z"
UNTIL = f"{WINDOW_END}T00:00:00Z"


class FakeClock:
    def __init__(self, moment: datetime) -> None:
        self.moment = moment

    def now(self) -> datetime:
        return self.moment


class FakeSummarizer:
    def __init__(self) -> None:
        self.prompts = []

    def invoke(self, prompt, config_path):
        self.prompts.append(prompt)
        return SummaryResult(command=["crush", "--config", str(config_path)], stdout=f"Generated summary {len(self.prompts)}")


class FakeGitlabClient:
    """Serves one group 'Engineering' with one project and checks query parameters."""

    def __init__(self) -> None:
        self.requests = []

    def get(self, path, params=None):
        self.requests.append(("get", path, params))
        assert path == "/api/v4/groups/Engineering"
        return {"id": 321}

    def paginate(self, path, params=None):
        self.requests.append(("paginate", path, params))
        expected = {
            "/api/v4/groups/321/projects": (
                {"include_subgroups": "true", "with_shared": "true"},
                [{"id": 99, "name": "App"}],
            ),
            "/api/v4/groups/321/issues": (
                {"updated_after": SINCE, "updated_before": UNTIL, "scope": "all", "state": "opened"},
                [{"id": 1, "title": "Improve docs"}],
            ),
            "/api/v4/groups/321/merge_requests": (
                {"updated_after": SINCE, "updated_before": UNTIL, "scope": "all"},
                [{"id": 2, "title": "Add feature", "merged_at": UNTIL}],
            ),
            "/api/v4/projects/99/repository/commits": (
                {"since": SINCE, "until": UNTIL},
                [{"id": "abc123", "author_name": "Dev"}],
            ),
            "/api/v4/projects/99/pipelines": (
                {"updated_after": SINCE, "updated_before": UNTIL},
                [{"id": 10, "status": "success"}, {"id": 11, "status": "failed"}],
            ),
            "/api/v4/projects/99/events": (
                {"after": WINDOW_START, "before": WINDOW_END},
                [{"id": 5, "action_name": "pushed"}],
            ),
        }
        assert path in expected, f"Unexpected path: {path}"
        expected_params, payload = expected[path]
        assert params == expected_params
        return payload


def _config(tmp_path: Path, **overrides) -> dict:
    config = {
        "gitlab_base": "https://gitlab.example.com",
        "gitlab_token": "secret",
        "groups": ["Engineering"],
        "out_root": str(tmp_path / "out"),
        "log_root": str(tmp_path / "logs"),
        "summarizer_config": str(tmp_path / "lead.crush.json"),
        "per_page": 50,
        "date": date(2024, 1, 3),
    }
    config.update(overrides)
    return config


def _build_flow(tmp_path: Path, client: FakeGitlabClient, summarizer: FakeSummarizer, **kwargs) -> WeeklyPulse:
    config = kwargs.pop("config", None) or _config(tmp_path)
    return WeeklyPulse(
        argv=kwargs.pop("argv", []),
        config=config,
        clock=FakeClock(datetime(2024, 1, 4, 12, 0, 0, tzinfo=timezone.utc)),
        client_factory=lambda base_url, token, per_page: client,
        summarizer=summarizer,
        environ={},
        **kwargs,
    )


def test_run_generates_reports_and_logs(tmp_path):
    """Verify an end-to-end run writes raw data, stats, aggregates, summaries and a run log."""
    client = FakeGitlabClient()
    summarizer = FakeSummarizer()
    flow = _build_flow(tmp_path, client, summarizer)

    result = flow.run()

    out_dir = tmp_path / "out" / "2024_01"
    group_dir = out_dir / "engineering"
    assert result.out_dir == out_dir

    assert (group_dir / "summary.md").read_text() == "Generated summary 1"
    assert (out_dir / "overall_summary.md").read_text() == "Generated summary 2"

    aggregate = json.loads((group_dir / "group_aggregate.json").read_text())
    assert aggregate["group"] == "Engineering"
    assert aggregate["window"] == {"since": WINDOW_START, "until": WINDOW_END}
    assert len(aggregate["issues"]) == 1
    assert len(aggregate["pipelines"]) == 2

    commit_stats = json.loads((group_dir / "stats" / "commits.json").read_text())
    assert commit_stats["count"] == 1
    assert commit_stats["authors"][0]["name"] == "Dev"
    pipeline_stats = json.loads((group_dir / "stats" / "pipelines.json").read_text())
    assert pipeline_stats == {"count": 2, "succeeded": 1, "failed": 1}
    mr_stats = json.loads((group_dir / "stats" / "mrs.json").read_text())
    assert mr_stats == {"updated": 1, "merged": 1}

    for name in ("projects.json", "issues.json", "mrs.json", "99-commits.json", "99-events.json", "events.all.json"):
        assert (group_dir / "raw" / name).is_file()

    overall = json.loads((out_dir / "overall_aggregate.json").read_text())
    assert [group["group"] for group in overall["groups"]] == ["Engineering"]

    log_path = tmp_path / "logs" / "pulse" / "weekly" / "2024-01-04_120000.json"
    assert result.log_path == log_path
    log_payload = json.loads(log_path.read_text())
    assert log_payload["inputs"]["groups"] == ["Engineering"]
    assert log_payload["inputs"]["webhook_configured"] is False
    assert "secret" not in log_path.read_text()
    assert len(log_payload["outputs"]["groups"]) == 1
    assert log_payload["outputs"]["overall"]["summary"] == "Generated summary 2"

    assert len(summarizer.prompts) == 2
    assert all("Engineering" in prompt for prompt in summarizer.prompts)
    assert client.requests[0][0] == "get"
    assert sum(1 for request in client.requests if request[0] == "paginate") == 6


def test_run_posts_overall_summary_to_webhook(tmp_path):
    """Verify a configured webhook receives the overall summary and its status is logged."""
    notifier = Mock(return_value=200)
    flow = _build_flow(
        tmp_path,
        FakeGitlabClient(),
        FakeSummarizer(),
        config=_config(tmp_path, webhook_url="https://chat.example.com/hooks/abc"),
        notifier=notifier,
    )

    result = flow.run()

    notifier.assert_called_once_with("https://chat.example.com/hooks/abc", "Generated summary 2")
    assert result.overall.webhook_status == 200
    log_payload = json.loads(result.log_path.read_text())
    assert log_payload["outputs"]["overall"]["webhook_status"] == 200
    assert "hooks/abc" not in result.log_path.read_text()


def test_failing_webhook_aborts_run(tmp_path):
    """Verify a webhook failure propagates after the summaries were written."""
    notifier = Mock(side_effect=TransportError("Webhook request failed: 500 boom", status_code=500, body="boom"))
    flow = _build_flow(
        tmp_path,
        FakeGitlabClient(),
        FakeSummarizer(),
        config=_config(tmp_path, webhook_url="https://chat.example.com/hooks/abc"),
        notifier=notifier,
    )

    with pytest.raises(TransportError):
        flow.run()

    assert (tmp_path / "out" / "2024_01" / "overall_summary.md").is_file()
    assert not (tmp_path / "logs" / "pulse" / "weekly").exists()


def test_date_argument_overrides_configured_date(tmp_path):
    """Verify --date in the flow arguments selects the reporting week."""
    flow = _build_flow(
        tmp_path,
        FakeGitlabClient(),
        FakeSummarizer(),
        argv=["--date", "2024-02-14"],
    )

    assert flow.configuration.date == date(2024, 2, 14)
    assert flow.configuration.out_dir == tmp_path / "out" / "2024_07"


def test_cli_dispatches_registered_flow(tmp_path):
    """Verify the CLI resolves the flow by name and runs it."""
    client = FakeGitlabClient()
    summarizer = FakeSummarizer()
    flow = _build_flow(tmp_path, client, summarizer)
    factory = Mock(return_value=flow)
    registry = FlowRegistry()
    registry.register(FLOW_NAME, factory)

    exit_code = orchestrate_flow([FLOW_NAME], registry=registry)

    assert exit_code == 0
    factory.assert_called_once_with(argv=[])
    assert (tmp_path / "out" / "2024_01" / "overall_summary.md").is_file()
