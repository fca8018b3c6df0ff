"""Merge request reviewer: builds a review package for one GitLab MR.

The flow parses the MR URL, fetches project/MR/changes metadata, clones the
repository with an authenticated URL, fetches the MR head and target branch,
writes the diff and an aggregate, and asks the summarizer for a Markdown
review. Every git failure is reported with the token redacted.
"""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import quote, urlsplit, urlunsplit

from ..config import MrReviewerConfig, load_mr_reviewer_config
from ..errors import ConfigurationError, InvalidReferenceError
from ..git_runner import REDACTED, GitRunner
from ..gitlab_client import GitlabClient
from ..models import Clock, MergeRequestReference, ReviewResult
from ..run_log import SystemClock, iso_timestamp
from ..stats import slugify
from ..storage import ensure_clean_directory, ensure_directories, write_json, write_text
from ..summarizer import Summarizer
from ..templates import PromptRenderer
from .registry import FlowRegistry

logger = logging.getLogger(__name__)

FLOW_NAME = "gitlab.mr_reviewer"

MERGE_REQUEST_MARKER = "/-/merge_requests/"

ClientFactory = Callable[[str, str, int], GitlabClient]


def parse_merge_request_url(url: str) -> MergeRequestReference:
    """Split a merge request URL into base URL, project path and IID.

    Raises:
        InvalidReferenceError: If the URL lacks a scheme, host or the
            ``/-/merge_requests/<iid>`` marker.
    """
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError as exc:
        raise InvalidReferenceError(f"Invalid MR URL: {url}") from exc

    if not parts.scheme or not parts.hostname:
        raise InvalidReferenceError(f"Invalid MR URL: {url}")
    if MERGE_REQUEST_MARKER not in parts.path:
        raise InvalidReferenceError(f"Invalid MR URL: {url}")

    project_path, iid_part = parts.path.split(MERGE_REQUEST_MARKER, 1)
    project_path = project_path.lstrip("/")
    iid = iid_part.split("/", 1)[0]
    if not project_path or not iid:
        raise InvalidReferenceError(f"Invalid MR URL: {url}")

    base_url = f"{parts.scheme}://{parts.hostname}"
    if port and port not in (80, 443):
        base_url += f":{port}"

    return MergeRequestReference(
        base_url=base_url,
        project_path=project_path,
        iid=iid,
        slug=slugify(project_path) or project_path.replace("/", "-"),
        url=url,
    )


def authenticated_clone_url(url: str, token: str) -> str:
    """Embed ``oauth2:<token>`` as user-info in an HTTP(S) clone URL."""
    if not token:
        return url
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return url
    if not parts.hostname:
        return url

    netloc = f"oauth2:{quote(token, safe='')}@{parts.hostname}"
    if port:
        netloc += f":{port}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def clone_redactions(plain_url: str, auth_url: str, token: str) -> List[Tuple[str, str]]:
    """Ordered ``(secret, placeholder)`` pairs hiding the token in git output."""
    redactions: List[Tuple[str, str]] = []
    if auth_url != plain_url:
        redactions.append((auth_url, plain_url))
    if token:
        redactions.append((token, REDACTED))
        quoted = quote(token, safe="")
        if quoted != token:
            redactions.append((quoted, REDACTED))
    return redactions


def _default_client_factory(base_url: str, token: str, per_page: int) -> GitlabClient:
    return GitlabClient(base_url=base_url, token=token, per_page=per_page)


class MrReviewer:
    """Merge request review flow; one instance reviews one MR."""

    def __init__(
        self,
        argv: Sequence[str] = (),
        config: Union[MrReviewerConfig, Mapping[str, Any], None] = None,
        client_factory: Optional[ClientFactory] = None,
        git_runner: Optional[GitRunner] = None,
        clock: Optional[Clock] = None,
        summarizer: Optional[Summarizer] = None,
        renderer: Optional[PromptRenderer] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._argv = list(argv)
        self._config = config
        self._client_factory = client_factory or _default_client_factory
        self._git_runner = git_runner
        self._clock = clock or SystemClock()
        self._summarizer = summarizer
        self._renderer = renderer or PromptRenderer()
        self._environ = environ
        self._reference: Optional[MergeRequestReference] = None
        self._configuration: Optional[MrReviewerConfig] = None

    @property
    def merge_request_url(self) -> str:
        url = self._argv[0] if self._argv else ""
        if not url or not url.strip():
            raise ConfigurationError("Provide a GitLab merge request URL")
        return url.strip()

    @property
    def reference(self) -> MergeRequestReference:
        if self._reference is None:
            self._reference = parse_merge_request_url(self.merge_request_url)
        return self._reference

    @property
    def configuration(self) -> MrReviewerConfig:
        """Resolved configuration; its GitLab base always comes from the MR URL."""
        if self._configuration is None:
            base_url = self.reference.base_url
            if isinstance(self._config, MrReviewerConfig):
                self._configuration = dataclasses.replace(self._config, gitlab_base=base_url)
            else:
                self._configuration = load_mr_reviewer_config(base_url, self._config, environ=self._environ)
        return self._configuration

    @property
    def review_directory(self) -> Path:
        ref = self.reference
        return self.configuration.out_root / ref.slug / f"mr-{ref.iid}"

    def run(self) -> ReviewResult:
        ref = self.reference
        cfg = self.configuration
        git = self._git_runner or GitRunner(executable=cfg.git_executable)
        summarizer = self._summarizer or Summarizer(cfg.summarizer_command)

        review_root = self.review_directory
        raw_dir = review_root / "raw"
        ensure_directories(review_root, raw_dir)
        stem = f"{ref.slug}-mr-{ref.iid}"

        logger.info("Reviewing merge request %s", ref.url, extra={"project_path": ref.project_path, "iid": ref.iid})
        client = self._client_factory(ref.base_url, cfg.gitlab_token, cfg.per_page)

        project = client.get(f"/api/v4/projects/{quote(ref.project_path, safe='')}")
        project_id = project["id"]
        merge_request = client.get(f"/api/v4/projects/{project_id}/merge_requests/{ref.iid}")
        changes = client.get(f"/api/v4/projects/{project_id}/merge_requests/{ref.iid}/changes")

        write_json(raw_dir / "project.json", project)
        write_json(raw_dir / "merge_request.json", merge_request)
        write_json(raw_dir / "changes.json", changes)

        repo_dir = ensure_clean_directory(review_root / "repo")
        clone_url = project["http_url_to_repo"]
        auth_url = authenticated_clone_url(clone_url, cfg.gitlab_token)
        redactions = clone_redactions(clone_url, auth_url, cfg.gitlab_token)

        git.clone(auth_url, repo_dir, redactions=redactions)

        head_branch = f"mr/{ref.iid}"
        target_branch = str(merge_request.get("target_branch") or "main")
        base_branch = f"mr/base-{ref.iid}"
        try:
            git.fetch(repo_dir, f"merge-requests/{ref.iid}/head:{head_branch}", redactions=redactions)
            # Only the target branch name goes over the wire here; nothing to redact.
            git.fetch(repo_dir, f"{target_branch}:{base_branch}")
        finally:
            # The clone stored the authenticated URL in .git/config.
            git.set_remote_url(repo_dir, clone_url, redactions=redactions)

        diff_text = git.diff(repo_dir, base_branch, head_branch) or ""
        diff_path = write_text(review_root / f"{stem}.diff", diff_text)

        aggregate = self._build_aggregate(project, merge_request, changes, diff_path, ref)
        aggregate_path = write_json(review_root / f"{stem}-aggregate.json", aggregate)

        prompt = self._renderer.render(
            "review_prompt",
            {
                "aggregate_path": str(aggregate_path),
                "diff_path": str(diff_path),
                "merge_request_url": merge_request.get("web_url") or ref.url,
                "project_path": project.get("path_with_namespace") or ref.project_path,
            },
        )
        summary = summarizer.invoke(prompt, cfg.summarizer_config)
        review_path = write_text(review_root / f"{stem}.md", summary.stdout)

        inputs = {
            "merge_request_url": ref.url,
            "project_path": ref.project_path,
            "project_id": project_id,
            "target_branch": merge_request.get("target_branch"),
            "source_branch": merge_request.get("source_branch"),
            "token_present": bool(cfg.gitlab_token),
            "review_directory": str(review_root),
        }
        outputs = {
            "aggregate_path": str(aggregate_path),
            "diff_path": str(diff_path),
            "review_path": str(review_path),
            "summary": summary.stdout,
            "summarizer_command": summary.command,
        }
        results_path = write_json(
            review_root / f"{stem}.json",
            {"timestamp": iso_timestamp(self._clock.now()), "inputs": inputs, "outputs": outputs},
        )

        logger.info("Review saved to %s", review_path, extra={"results_path": str(results_path)})
        return ReviewResult(
            review_dir=review_root,
            review_path=review_path,
            results_path=results_path,
            aggregate_path=aggregate_path,
            diff_path=diff_path,
        )

    def _build_aggregate(
        self,
        project: Mapping[str, Any],
        merge_request: Mapping[str, Any],
        changes: Any,
        diff_path: Path,
        ref: MergeRequestReference,
    ) -> Dict[str, Any]:
        change_entries = list(changes.get("changes") or []) if isinstance(changes, dict) else []
        return {
            "generated_at": iso_timestamp(self._clock.now()),
            "project": {
                key: project.get(key)
                for key in ("id", "name", "path_with_namespace", "description", "web_url")
            },
            "merge_request": {
                "iid": merge_request.get("iid"),
                "title": merge_request.get("title"),
                "description": merge_request.get("description"),
                "state": merge_request.get("state"),
                "draft": merge_request.get("draft"),
                "source_branch": merge_request.get("source_branch"),
                "target_branch": merge_request.get("target_branch"),
                "author": (merge_request.get("author") or {}).get("name"),
                "web_url": merge_request.get("web_url"),
                "sha": merge_request.get("sha"),
                "diff_refs": merge_request.get("diff_refs"),
                "changes_count": merge_request.get("changes_count"),
                "additions": merge_request.get("additions"),
                "deletions": merge_request.get("deletions"),
                "merged_at": merge_request.get("merged_at"),
                "created_at": merge_request.get("created_at"),
                "updated_at": merge_request.get("updated_at"),
                "user_notes_count": merge_request.get("user_notes_count"),
            },
            "stats": {
                "changed_files": len(change_entries),
                "additions": merge_request.get("additions"),
                "deletions": merge_request.get("deletions"),
                "changes_count": merge_request.get("changes_count"),
            },
            "changes": change_entries,
            "diff_path": str(diff_path),
            "mr_url": merge_request.get("web_url") or ref.url,
        }


def register(registry: FlowRegistry) -> None:
    registry.register(FLOW_NAME, MrReviewer)
