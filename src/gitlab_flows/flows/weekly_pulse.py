"""Weekly pulse: per-group GitLab activity digests plus an overall summary.

For each configured group the flow fetches projects, issues, merge requests,
commits, pipelines and events for the reporting week, persists every raw list,
derives statistics, writes a group aggregate and asks the summarizer for a
Markdown summary. The group aggregates are then combined into an overall
aggregate and summary, optionally posted to a webhook, and the run is logged.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union
from urllib.parse import quote

from ..config import WeeklyPulseConfig, load_weekly_pulse_config, parse_date
from ..errors import ConfigurationError
from ..gitlab_client import GitlabClient
from ..models import Clock, GroupResult, OverallResult, TimeWindow, WeeklyPulseResult
from ..notifier import post_webhook
from ..run_log import RunLog, SystemClock
from ..stats import commit_stats, issue_stats, merge_request_stats, pipeline_stats, slugify, week_window
from ..storage import ensure_directories, write_json, write_text
from ..summarizer import Summarizer
from ..templates import PromptRenderer
from .registry import FlowRegistry

logger = logging.getLogger(__name__)

FLOW_NAME = "pulse.weekly"

ClientFactory = Callable[[str, str, int], GitlabClient]
Notifier = Callable[[str, str], int]


def _default_client_factory(base_url: str, token: str, per_page: int) -> GitlabClient:
    return GitlabClient(base_url=base_url, token=token, per_page=per_page)


def _parse_argv(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog=FLOW_NAME, description="Generate the weekly GitLab pulse.")
    parser.add_argument("--date", default=None, help="Reference date (YYYY-MM-DD); defaults to today.")
    try:
        return parser.parse_args(list(argv))
    except SystemExit as exc:
        raise ConfigurationError(f"Invalid arguments for {FLOW_NAME}: {' '.join(argv)}") from exc


class WeeklyPulse:
    """Weekly pulse flow; one instance performs one run."""

    def __init__(
        self,
        argv: Sequence[str] = (),
        config: Union[WeeklyPulseConfig, Mapping[str, Any], None] = None,
        clock: Optional[Clock] = None,
        client_factory: Optional[ClientFactory] = None,
        summarizer: Optional[Summarizer] = None,
        renderer: Optional[PromptRenderer] = None,
        notifier: Optional[Notifier] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._argv = list(argv)
        self._config = config
        self._clock = clock or SystemClock()
        self._client_factory = client_factory or _default_client_factory
        self._summarizer = summarizer
        self._renderer = renderer or PromptRenderer()
        self._notifier = notifier or post_webhook
        self._environ = environ
        self._configuration: Optional[WeeklyPulseConfig] = None

    @property
    def configuration(self) -> WeeklyPulseConfig:
        """Resolved configuration: overrides, then environment, then defaults."""
        if self._configuration is None:
            options = _parse_argv(self._argv)
            if isinstance(self._config, WeeklyPulseConfig):
                resolved = self._config
                if options.date:
                    resolved = dataclasses.replace(resolved, date=parse_date(options.date, resolved.date))
            else:
                overrides: Dict[str, Any] = dict(self._config or {})
                if options.date:
                    overrides["date"] = options.date
                resolved = load_weekly_pulse_config(
                    overrides, environ=self._environ, today=self._clock.now().date()
                )
            self._configuration = resolved
        return self._configuration

    def run(self) -> WeeklyPulseResult:
        cfg = self.configuration
        window = week_window(cfg.date)
        out_dir = cfg.out_dir
        ensure_directories(out_dir)

        logger.info(
            "Weekly window %s .. %s -> %s",
            window.start_iso,
            window.end_iso,
            out_dir,
            extra={"groups": list(cfg.groups)},
        )

        client = self._client_factory(cfg.gitlab_base, cfg.gitlab_token, cfg.per_page)
        summarizer = self._summarizer or Summarizer(cfg.summarizer_command)

        result = WeeklyPulseResult(out_dir=out_dir, window=window)
        for group in cfg.groups:
            result.groups.append(self._process_group(group, cfg, client, summarizer, window))

        result.overall = self._summarize_overall(result.groups, cfg, summarizer, window)
        result.log_path = self._log_run(cfg, window, result)
        return result

    def _process_group(
        self,
        group: str,
        cfg: WeeklyPulseConfig,
        client: GitlabClient,
        summarizer: Summarizer,
        window: TimeWindow,
    ) -> GroupResult:
        slug = slugify(group)
        group_dir = cfg.out_dir / slug
        raw_dir = group_dir / "raw"
        ensure_directories(raw_dir)

        logger.info("Fetching group '%s'", group, extra={"group": group})
        group_json = client.get(f"/api/v4/groups/{quote(group, safe='')}")
        group_id = group_json["id"]

        since = f"{window.start_iso}T00:00:00Z"
        until = f"{window.end_iso}T00:00:00Z"

        projects = client.paginate(
            f"/api/v4/groups/{group_id}/projects",
            {"include_subgroups": "true", "with_shared": "true"},
        )
        issues = client.paginate(
            f"/api/v4/groups/{group_id}/issues",
            {"updated_after": since, "updated_before": until, "scope": "all", "state": "opened"},
        )
        merge_requests = client.paginate(
            f"/api/v4/groups/{group_id}/merge_requests",
            {"updated_after": since, "updated_before": until, "scope": "all"},
        )

        write_json(raw_dir / "projects.json", projects)
        write_json(raw_dir / "issues.json", issues)
        write_json(raw_dir / "mrs.json", merge_requests)

        commits_all: List[Any] = []
        pipelines_all: List[Any] = []
        events_all: List[Any] = []

        for project in projects:
            project_id = project["id"]
            commits = client.paginate(
                f"/api/v4/projects/{project_id}/repository/commits",
                {"since": since, "until": until},
            )
            pipelines = client.paginate(
                f"/api/v4/projects/{project_id}/pipelines",
                {"updated_after": since, "updated_before": until},
            )
            events = client.paginate(
                f"/api/v4/projects/{project_id}/events",
                {"after": window.start_iso, "before": window.end_iso},
            )

            commits_all.extend(commits)
            pipelines_all.extend(pipelines)
            events_all.extend(events)

            write_json(raw_dir / f"{project_id}-commits.json", commits)
            write_json(raw_dir / f"{project_id}-pipelines.json", pipelines)
            write_json(raw_dir / f"{project_id}-events.json", events)

        write_json(raw_dir / "commits.all.json", commits_all)
        write_json(raw_dir / "pipelines.all.json", pipelines_all)
        write_json(raw_dir / "events.all.json", events_all)

        self._write_stats(group_dir, commits_all, pipelines_all, issues, merge_requests)

        aggregate = {
            "group": group,
            "window": window.as_aggregate_window(),
            "projects": projects,
            "issues": issues,
            "merge_requests": merge_requests,
            "commits": commits_all,
            "pipelines": pipelines_all,
            "events": events_all,
        }
        aggregate_path = write_json(group_dir / "group_aggregate.json", aggregate)

        prompt = self._renderer.render(
            "group_summary",
            {"aggregate_path": str(aggregate_path), "group": group, "window": window.as_dict()},
        )
        summary = summarizer.invoke(prompt, cfg.summarizer_config)
        summary_path = write_text(group_dir / "summary.md", summary.stdout)
        logger.info("Group summary: %s", summary_path, extra={"group": group, "projects": len(projects)})

        return GroupResult(
            group=group,
            slug=slug,
            aggregate_path=aggregate_path,
            aggregate=aggregate,
            summary_path=summary_path,
            summary=summary.stdout,
            summarizer_command=summary.command,
        )

    @staticmethod
    def _write_stats(
        group_dir: Path,
        commits: List[Any],
        pipelines: List[Any],
        issues: List[Any],
        merge_requests: List[Any],
    ) -> None:
        stats_dir = group_dir / "stats"
        ensure_directories(stats_dir)
        write_json(stats_dir / "commits.json", commit_stats(commits))
        write_json(stats_dir / "pipelines.json", pipeline_stats(pipelines))
        write_json(stats_dir / "issues.json", issue_stats(issues))
        write_json(stats_dir / "mrs.json", merge_request_stats(merge_requests))

    def _summarize_overall(
        self,
        group_results: List[GroupResult],
        cfg: WeeklyPulseConfig,
        summarizer: Summarizer,
        window: TimeWindow,
    ) -> OverallResult:
        overall = {
            "window": window.as_aggregate_window(),
            "groups": [result.aggregate for result in group_results],
        }
        aggregate_path = write_json(cfg.out_dir / "overall_aggregate.json", overall)

        prompt = self._renderer.render(
            "overall_summary",
            {
                "aggregate_path": str(aggregate_path),
                "window": window.as_dict(),
                "groups": [{"name": result.group, "slug": result.slug} for result in group_results],
            },
        )
        summary = summarizer.invoke(prompt, cfg.summarizer_config)
        summary_path = write_text(cfg.out_dir / "overall_summary.md", summary.stdout)
        logger.info("Overall summary: %s", summary_path)

        webhook_status: Optional[int] = None
        if cfg.webhook_url:
            webhook_status = self._notifier(cfg.webhook_url, summary.stdout)

        return OverallResult(
            aggregate_path=aggregate_path,
            summary_path=summary_path,
            summary=summary.stdout,
            summarizer_command=summary.command,
            webhook_status=webhook_status,
        )

    def _log_run(self, cfg: WeeklyPulseConfig, window: TimeWindow, result: WeeklyPulseResult) -> Path:
        inputs = {
            "gitlab_base": cfg.gitlab_base,
            "groups": list(cfg.groups),
            "window": window.as_dict(),
            "per_page": cfg.per_page,
            "out_dir": str(cfg.out_dir),
            "summarizer_config": str(cfg.summarizer_config),
            "webhook_configured": cfg.webhook_configured,
        }
        overall = result.overall
        outputs = {
            "groups": [
                {
                    "group": group.group,
                    "aggregate_path": str(group.aggregate_path),
                    "summary_path": str(group.summary_path),
                    "summary": group.summary,
                    "summarizer_command": group.summarizer_command,
                }
                for group in result.groups
            ],
            "overall": {
                "aggregate_path": str(overall.aggregate_path) if overall else None,
                "summary_path": str(overall.summary_path) if overall else None,
                "summary": overall.summary if overall else None,
                "summarizer_command": overall.summarizer_command if overall else None,
                "webhook_status": overall.webhook_status if overall else None,
            },
        }
        run_log = RunLog(FLOW_NAME, cfg.log_root / "pulse" / "weekly", clock=self._clock)
        return run_log.persist(inputs, outputs)


def register(registry: FlowRegistry) -> None:
    registry.register(FLOW_NAME, WeeklyPulse)
