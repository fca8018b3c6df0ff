"""Prompt rendering with Jinja templates shipped inside the package."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound

from .errors import ConfigurationError

TEMPLATES_DIR = Path(__file__).parent / "templates"


class PromptRenderer:
    """Renders ``<name>.md.j2`` templates with an explicit variable mapping."""

    def __init__(self, templates_dir: Optional[Path] = None) -> None:
        self._env = Environment(
            loader=FileSystemLoader(str(templates_dir or TEMPLATES_DIR)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )

    def render(self, template_name: str, variables: Mapping[str, Any]) -> str:
        try:
            template = self._env.get_template(f"{template_name}.md.j2")
        except TemplateNotFound as exc:
            raise ConfigurationError(f"Prompt template '{template_name}' does not exist.") from exc
        return template.render(**variables)
