"""Maps tool calls onto flow runs and reshapes the persisted artifacts.

Each tool validates its declared-required arguments, runs its flow (through a
factory found in the call context when one is supplied), then reads the
summary and aggregate files back from their conventional locations. Absent or
unreadable files simply drop their fields from the response.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from .errors import ToolArgumentError, UnknownFlowError
from .flows import mr_reviewer, weekly_pulse
from .run_log import SystemClock
from .stats import slugify
from .storage import as_path, read_json, read_text

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Mapping[str, Any], Mapping[str, Any]], Dict[str, Any]]


@dataclass(frozen=True)
class ToolDefinition:
    """A callable tool: name, description, JSON input schema and handler."""

    name: str
    description: str
    input_schema: Dict[str, Any]
    handler: ToolHandler

    @property
    def required(self) -> List[str]:
        return list(self.input_schema.get("required", []))


def compact(values: Mapping[str, Any]) -> Dict[str, Any]:
    """Drop ``None`` values so no nulls appear in structured content."""
    return {key: value for key, value in values.items() if value is not None}


def tool_response(text: str, structured: Mapping[str, Any]) -> Dict[str, Any]:
    return {"content": [{"type": "text", "text": text}], "structuredContent": compact(structured)}


def _existing(path: Optional[Path]) -> Optional[Path]:
    return path if path is not None and path.is_file() else None


def _object_argument(arguments: Mapping[str, Any], key: str) -> Dict[str, Any]:
    value = arguments.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ToolArgumentError(f"Argument '{key}' must be an object.")
    return dict(value)


# -- weekly pulse -----------------------------------------------------------

WEEKLY_PULSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "config": {
            "type": "object",
            "description": (
                "Configuration passed directly to the Weekly Pulse flow. "
                "Must include GitLab credentials and output paths."
            ),
        }
    },
    "required": ["config"],
    "additionalProperties": True,
}


def _build_weekly_pulse(config: Dict[str, Any], context: Mapping[str, Any]) -> Any:
    factory = context.get("weekly_pulse_factory")
    clock = context.get("clock") or SystemClock()
    if factory is not None:
        return factory(argv=[], config=config, clock=clock)

    options: Dict[str, Any] = {}
    for key in ("client_factory", "summarizer"):
        if context.get(key) is not None:
            options[key] = context[key]
    return weekly_pulse.WeeklyPulse(argv=[], config=config, clock=clock, **options)


def _group_payload(out_dir: Optional[Path], group: str) -> Dict[str, Any]:
    slug = slugify(group)
    group_dir = out_dir / slug if out_dir is not None else None
    summary_path = _existing(group_dir / "summary.md") if group_dir else None
    aggregate_path = _existing(group_dir / "group_aggregate.json") if group_dir else None
    return compact(
        {
            "name": group,
            "slug": slug,
            "summary_path": str(summary_path) if summary_path else None,
            "summary": read_text(summary_path),
            "aggregate_path": str(aggregate_path) if aggregate_path else None,
            "aggregate": read_json(aggregate_path),
        }
    )


def _overall_payload(out_dir: Optional[Path]) -> Dict[str, Any]:
    summary_path = _existing(out_dir / "overall_summary.md") if out_dir else None
    aggregate_path = _existing(out_dir / "overall_aggregate.json") if out_dir else None
    return compact(
        {
            "summary_path": str(summary_path) if summary_path else None,
            "summary": read_text(summary_path),
            "aggregate_path": str(aggregate_path) if aggregate_path else None,
            "aggregate": read_json(aggregate_path),
        }
    )


def _weekly_pulse_text(groups: List[Dict[str, Any]], overall: Dict[str, Any]) -> str:
    header = "Weekly pulse summaries generated"
    summary = overall.get("summary")
    if summary:
        body = summary
    elif overall.get("summary_path"):
        body = f"Overall summary saved to {overall['summary_path']}"
    else:
        body = "\n".join(f"Summary saved to {group['summary_path']}" for group in groups if group.get("summary_path"))
    return "\n\n".join(part for part in (header, body) if part)


def call_weekly_pulse(arguments: Mapping[str, Any], context: Mapping[str, Any]) -> Dict[str, Any]:
    config = _object_argument(arguments, "config")
    flow = _build_weekly_pulse(config, context)
    flow.run()

    final_config = getattr(flow, "configuration", None)
    if final_config is not None:
        out_dir = as_path(final_config.out_dir)
        group_names = list(final_config.groups)
    else:
        out_dir = as_path(config.get("out_dir"))
        raw_groups = config.get("groups") or []
        group_names = [raw_groups] if isinstance(raw_groups, str) else list(raw_groups)

    groups = [_group_payload(out_dir, str(group)) for group in group_names]
    overall = _overall_payload(out_dir)

    return tool_response(
        _weekly_pulse_text(groups, overall),
        {
            "flow": weekly_pulse.FLOW_NAME,
            "out_dir": str(out_dir) if out_dir else None,
            "groups": groups,
            "overall": overall,
        },
    )


# -- merge request reviewer -------------------------------------------------

MR_REVIEWER_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "merge_request_url": {
            "type": "string",
            "description": "Full GitLab merge request URL.",
        },
        "config": {
            "type": "object",
            "description": "Optional configuration overrides passed directly to the flow.",
        },
    },
    "required": ["merge_request_url"],
    "additionalProperties": True,
}


def _build_mr_reviewer(url: str, config: Dict[str, Any], context: Mapping[str, Any]) -> Any:
    factory = context.get("mr_reviewer_factory")
    clock = context.get("clock") or SystemClock()
    client_factory = context.get("client_factory")
    git_runner = context.get("git_runner")

    if factory is not None:
        return factory(
            argv=[url],
            config=config,
            client_factory=client_factory,
            git_runner=git_runner,
            clock=clock,
        )

    options: Dict[str, Any] = {}
    if context.get("summarizer") is not None:
        options["summarizer"] = context["summarizer"]
    return mr_reviewer.MrReviewer(
        argv=[url],
        config=config,
        client_factory=client_factory,
        git_runner=git_runner,
        clock=clock,
        **options,
    )


def _mr_reviewer_text(url: str, review_path: Optional[Path], summary: Optional[str]) -> str:
    header = f"GitLab merge request review for {url}"
    if summary:
        return f"{header}\n\n{summary}"
    if review_path is not None:
        return f"{header}\n\nReview saved to {review_path}"
    return header


def call_mr_reviewer(arguments: Mapping[str, Any], context: Mapping[str, Any]) -> Dict[str, Any]:
    url = arguments.get("merge_request_url")
    if not isinstance(url, str):
        raise ToolArgumentError("Argument 'merge_request_url' must be a string.")
    config = _object_argument(arguments, "config")

    flow = _build_mr_reviewer(url, config, context)
    result = flow.run()

    review_path = _existing(as_path(getattr(result, "review_path", None)))
    results_path = _existing(as_path(getattr(result, "results_path", None)))
    aggregate_path = _existing(as_path(getattr(result, "aggregate_path", None)))

    results_payload = read_json(results_path)
    aggregate_payload = read_json(aggregate_path)
    if not isinstance(results_payload, dict):
        results_payload = {}

    summary = (results_payload.get("outputs") or {}).get("summary") or read_text(review_path)

    return tool_response(
        _mr_reviewer_text(url, review_path, summary),
        {
            "flow": mr_reviewer.FLOW_NAME,
            "merge_request_url": url,
            "review_path": str(review_path) if review_path else None,
            "results_path": str(results_path) if results_path else None,
            "aggregate_path": str(aggregate_path) if aggregate_path else None,
            "inputs": results_payload.get("inputs"),
            "outputs": results_payload.get("outputs"),
            "aggregate": aggregate_payload,
        },
    )


DEFAULT_TOOLS = (
    ToolDefinition(
        name=weekly_pulse.FLOW_NAME,
        description="Run the Weekly Pulse flow for one or more GitLab groups and surface the generated summaries.",
        input_schema=WEEKLY_PULSE_SCHEMA,
        handler=call_weekly_pulse,
    ),
    ToolDefinition(
        name=mr_reviewer.FLOW_NAME,
        description="Run the GitLab merge request reviewer flow and return the generated review artifacts.",
        input_schema=MR_REVIEWER_SCHEMA,
        handler=call_mr_reviewer,
    ),
)


class ToolCallBridge:
    """Dispatches tool calls by name and returns ``{content, structuredContent}``."""

    def __init__(self, tools: Optional[List[ToolDefinition]] = None, context: Optional[Mapping[str, Any]] = None) -> None:
        self._tools: Dict[str, ToolDefinition] = {tool.name: tool for tool in (tools or DEFAULT_TOOLS)}
        self._context: Dict[str, Any] = dict(context or {})

    def list_tools(self) -> List[ToolDefinition]:
        return list(self._tools.values())

    def call(
        self,
        tool_name: str,
        arguments: Optional[Mapping[str, Any]] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Validate ``arguments`` and run the tool named ``tool_name``.

        Per-call ``context`` entries override the bridge-wide context.

        Raises:
            UnknownFlowError: If no tool has that name.
            ToolArgumentError: If a required argument is missing.
        """
        tool = self._tools.get(tool_name)
        if tool is None:
            raise UnknownFlowError(tool_name)

        args = dict(arguments or {})
        missing = [key for key in tool.required if args.get(key) is None]
        if missing:
            raise ToolArgumentError(f"Missing required argument(s) for {tool_name}: {', '.join(missing)}")

        merged_context = {**self._context, **dict(context or {})}
        merged_context.setdefault("clock", SystemClock())

        logger.info("Handling tool call", extra={"tool": tool_name})
        return tool.handler(args, merged_context)
