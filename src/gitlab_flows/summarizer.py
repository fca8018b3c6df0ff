"""Adapter around the external summarization CLI."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Union

from .errors import ExternalCommandError
from .models import SummaryResult

logger = logging.getLogger(__name__)


class Summarizer:
    """Runs ``<command> --config <file> --yolo -c <prompt>`` and returns its stdout."""

    def __init__(self, command: str = "crush") -> None:
        self._command = command

    def build_command(self, prompt: str, config_path: Union[str, Path]) -> List[str]:
        return [self._command, "--config", str(config_path), "--yolo", "-c", prompt]

    def invoke(self, prompt: str, config_path: Union[str, Path]) -> SummaryResult:
        """Generate a summary for ``prompt``.

        Raises:
            ExternalCommandError: If the command cannot start or exits non-zero.
        """
        command = self.build_command(prompt, config_path)
        logger.info(
            "Running summarizer",
            extra={"summarizer": self._command, "config": str(config_path), "prompt_chars": len(prompt)},
        )
        try:
            completed = subprocess.run(
                command, capture_output=True, text=True, encoding="utf-8", errors="replace", check=False
            )
        except OSError as exc:
            raise ExternalCommandError(
                f"Summarizer command could not be started: {self._command}: {exc}",
                command=self._command,
            ) from exc

        if completed.returncode != 0:
            raise ExternalCommandError(
                f"Summarizer command failed (exit {completed.returncode}): {completed.stderr.strip()}",
                command=self._command,
                returncode=completed.returncode,
                stderr=completed.stderr,
            )

        return SummaryResult(command=command, stdout=completed.stdout, stderr=completed.stderr)
