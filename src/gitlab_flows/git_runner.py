"""Thin wrapper over the git CLI with secret redaction on every failure path."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from .errors import ExternalCommandError

logger = logging.getLogger(__name__)

Redactions = Sequence[Tuple[str, str]]

REDACTED = "[REDACTED]"


def redact(text: str, redactions: Redactions) -> str:
    """Apply ``(secret, placeholder)`` pairs to ``text`` in order."""
    for secret, placeholder in redactions:
        if secret:
            text = text.replace(secret, placeholder)
    return text


class GitRunner:
    """Executes the handful of git commands the reviewer flow needs."""

    def __init__(self, executable: str = "git") -> None:
        self._executable = executable

    def clone(self, url: str, directory: Union[str, Path], redactions: Redactions = ()) -> None:
        self._run(["clone", "--origin", "origin", "--quiet", url, str(directory)], redactions=redactions)

    def fetch(self, directory: Union[str, Path], refspec: str, redactions: Redactions = ()) -> None:
        self._run(["-C", str(directory), "fetch", "origin", refspec], redactions=redactions)

    def set_remote_url(self, directory: Union[str, Path], url: str, redactions: Redactions = ()) -> None:
        self._run(["-C", str(directory), "remote", "set-url", "origin", url], redactions=redactions)

    def diff(self, directory: Union[str, Path], base_ref: str, head_ref: str) -> str:
        return self._run(["-C", str(directory), "diff", base_ref, head_ref], capture=True) or ""

    def _run(self, args: List[str], capture: bool = False, redactions: Redactions = ()) -> Optional[str]:
        command = [self._executable, *args]
        printable = redact(" ".join(command), redactions)
        logger.debug("Running git command", extra={"command": printable})

        try:
            completed = subprocess.run(
                command, capture_output=True, text=True, encoding="utf-8", errors="replace", check=False
            )
        except OSError as exc:
            raise ExternalCommandError(
                f"Git command failed ({printable}): {redact(str(exc), redactions)}",
                command=printable,
            ) from None

        if completed.returncode != 0:
            stderr = redact(completed.stderr or "", redactions).strip()
            raise ExternalCommandError(
                f"Git command failed ({printable}): {stderr}",
                command=printable,
                returncode=completed.returncode,
                stderr=stderr,
            )

        return completed.stdout if capture else None
