"""Filesystem helpers for persisted flow artifacts."""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def ensure_directories(*paths: PathLike) -> None:
    """Create each directory (and parents); existing directories are fine."""
    for path in paths:
        Path(path).mkdir(parents=True, exist_ok=True)


def ensure_clean_directory(path: PathLike) -> Path:
    """Remove ``path`` if it exists and recreate it empty."""
    directory = Path(path)
    if directory.exists():
        shutil.rmtree(directory)
    directory.mkdir(parents=True)
    return directory


def write_json(path: PathLike, data: Any) -> Path:
    """Write ``data`` as pretty-printed UTF-8 JSON."""
    target = Path(path)
    target.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return target


def write_text(path: PathLike, text: str) -> Path:
    target = Path(path)
    target.write_text(text, encoding="utf-8")
    return target


def as_path(value: Optional[PathLike]) -> Optional[Path]:
    if value is None:
        return None
    return value if isinstance(value, Path) else Path(value)


def read_json(path: Optional[PathLike]) -> Any:
    """Return parsed JSON from ``path``, or ``None`` when it is absent or unreadable."""
    target = as_path(path)
    if target is None or not target.is_file():
        return None
    try:
        return json.loads(target.read_text(encoding="utf-8"))
    except ValueError:
        logger.warning("Ignoring unparseable JSON artifact", extra={"path": str(target)})
        return None


def read_text(path: Optional[PathLike]) -> Optional[str]:
    """Return the text of ``path``, or ``None`` when it is absent."""
    target = as_path(path)
    if target is None or not target.is_file():
        return None
    return target.read_text(encoding="utf-8")
