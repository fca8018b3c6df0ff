"""Configuration parsing and validation for the GitLab reporting flows."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Tuple

from .errors import AuthenticationError, ConfigurationError
from .stats import iso_week

DEFAULT_GITLAB_BASE = "https://gitlab.example.com"
DEFAULT_GROUPS = "dbsys"
DEFAULT_PER_PAGE = 100
DEFAULT_SUMMARIZER_COMMAND = "crush"
DEFAULT_GIT_EXECUTABLE = "git"


@dataclass(frozen=True)
class WeeklyPulseConfig:
    """Validated runtime settings for the weekly pulse flow."""

    gitlab_base: str
    gitlab_token: str
    groups: Tuple[str, ...]
    out_root: Path
    summarizer_config: Path
    date: date
    per_page: int = DEFAULT_PER_PAGE
    log_root: Path = field(default_factory=lambda: Path("log").absolute())
    webhook_url: Optional[str] = None
    summarizer_command: str = DEFAULT_SUMMARIZER_COMMAND

    @property
    def out_dir(self) -> Path:
        """Directory holding this run's reports: ``<out_root>/<iso year>_<iso week>``."""
        return self.out_root / iso_week(self.date)

    @property
    def webhook_configured(self) -> bool:
        return bool(self.webhook_url)


@dataclass(frozen=True)
class MrReviewerConfig:
    """Validated runtime settings for the merge request reviewer flow."""

    gitlab_base: str
    gitlab_token: str
    out_root: Path
    summarizer_config: Path
    per_page: int = DEFAULT_PER_PAGE
    git_executable: str = DEFAULT_GIT_EXECUTABLE
    summarizer_command: str = DEFAULT_SUMMARIZER_COMMAND


def _lookup(overrides: Mapping[str, Any], environ: Mapping[str, str], key: str, env_key: str) -> Any:
    """Return the override for ``key`` if present and non-empty, else the environment value."""
    value = overrides.get(key)
    if value is not None and value != "":
        return value
    env_value = environ.get(env_key, "")
    return env_value.strip() or None


def _normalize_keys(overrides: Optional[Mapping[Any, Any]]) -> Mapping[str, Any]:
    return {str(key): value for key, value in (overrides or {}).items()}


def _path(value: Any, default: str) -> Path:
    return Path(str(value or default)).expanduser().absolute()


def _per_page(value: Any) -> int:
    if value is None:
        return DEFAULT_PER_PAGE
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid value for 'per_page': {value!r} is not an integer.") from exc
    if parsed <= 0:
        raise ConfigurationError("Invalid value for 'per_page': expected an integer greater than 0.")
    return parsed


def _token(value: Any) -> str:
    token = str(value or "").strip()
    if not token:
        raise AuthenticationError(
            "Missing required GitLab access token. "
            "Set 'GITLAB_TOKEN' via the environment or .env file, or pass 'gitlab_token'."
        )
    return token


def _groups(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        items: Sequence[Any] = value.split(",")
    else:
        items = list(value or [])
    groups = tuple(str(item).strip() for item in items if str(item).strip())
    if not groups:
        raise ConfigurationError("Invalid value for 'groups': expected at least one group.")
    return groups


def parse_date(value: Any, today: date) -> date:
    """Coerce ``value`` (``date`` or ISO string) to a date, defaulting to ``today``."""
    if value is None:
        return today
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise ConfigurationError(f"Invalid value for 'date': {value!r} is not an ISO date.") from exc


def load_weekly_pulse_config(
    overrides: Optional[Mapping[Any, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
    today: Optional[date] = None,
) -> WeeklyPulseConfig:
    """Build and validate weekly pulse configuration.

    Args:
        overrides: Explicit values keyed by field name (for example a tool-call
            ``config`` object). They win over the environment.
        environ: Environment mapping; defaults to ``os.environ``.
        today: Reference date used when neither overrides nor environment name one.

    Returns:
        A validated ``WeeklyPulseConfig`` instance.

    Raises:
        ConfigurationError: If groups, page size or date are invalid.
        AuthenticationError: If no GitLab token is configured.
    """
    values = _normalize_keys(overrides)
    env = os.environ if environ is None else environ

    gitlab_base = str(_lookup(values, env, "gitlab_base", "GITLAB_BASE") or DEFAULT_GITLAB_BASE)
    webhook = (
        values.get("webhook_url")
        or values.get("mattermost_webhook")
        or env.get("MATTERMOST_WEBHOOK", "").strip()
    )

    return WeeklyPulseConfig(
        gitlab_base=gitlab_base.rstrip("/"),
        gitlab_token=_token(_lookup(values, env, "gitlab_token", "GITLAB_TOKEN")),
        groups=_groups(_lookup(values, env, "groups", "GROUPS") or DEFAULT_GROUPS),
        out_root=_path(_lookup(values, env, "out_root", "PULSE_OUT_ROOT"), "reports/pulse"),
        summarizer_config=_path(
            _lookup(values, env, "summarizer_config", "PULSE_SUMMARIZER_CONFIG"),
            ".crush/lead.crush.json",
        ),
        date=parse_date(values.get("date"), today or date.today()),
        per_page=_per_page(_lookup(values, env, "per_page", "PER_PAGE")),
        log_root=_path(_lookup(values, env, "log_root", "LOG_ROOT"), "log"),
        webhook_url=str(webhook) if webhook else None,
        summarizer_command=str(
            _lookup(values, env, "summarizer_command", "SUMMARIZER_COMMAND") or DEFAULT_SUMMARIZER_COMMAND
        ),
    )


def load_mr_reviewer_config(
    base_url: str,
    overrides: Optional[Mapping[Any, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> MrReviewerConfig:
    """Build and validate merge request reviewer configuration.

    ``base_url`` comes from the merge request URL and always wins over any
    configured GitLab base, so the review talks to the instance hosting the MR.
    """
    values = _normalize_keys(overrides)
    env = os.environ if environ is None else environ

    return MrReviewerConfig(
        gitlab_base=base_url.rstrip("/"),
        gitlab_token=_token(_lookup(values, env, "gitlab_token", "GITLAB_TOKEN")),
        out_root=_path(_lookup(values, env, "out_root", "REVIEW_OUT_ROOT"), "reports/gitlab/mr_reviews"),
        summarizer_config=_path(
            _lookup(values, env, "summarizer_config", "REVIEW_SUMMARIZER_CONFIG"),
            ".crush/mr_reviewer.crush.json",
        ),
        per_page=_per_page(_lookup(values, env, "per_page", "PER_PAGE")),
        git_executable=str(_lookup(values, env, "git_executable", "GIT_EXECUTABLE") or DEFAULT_GIT_EXECUTABLE),
        summarizer_command=str(
            _lookup(values, env, "summarizer_command", "SUMMARIZER_COMMAND") or DEFAULT_SUMMARIZER_COMMAND
        ),
    )
