"""Tests for artifact persistence helpers."""

import sys
from pathlib import Path

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from gitlab_flows.storage import ensure_clean_directory, read_json, read_text, write_json


def test_write_json_is_pretty_and_newline_terminated(tmp_path):
    """Verify JSON artifacts are indented, keep non-ASCII text and end with a newline."""
    path = write_json(tmp_path / "data.json", {"name": "Zoë", "items": [1]})

    text = path.read_text(encoding="utf-8")
    assert text == '{\n  "name": "Zoë",\n  "items": [\n    1\n  ]\n}\n'
    assert read_json(path) == {"name": "Zoë", "items": [1]}


def test_read_helpers_return_none_for_missing_or_invalid(tmp_path):
    """Verify absent or unparseable artifacts read as None."""
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")

    assert read_json(tmp_path / "missing.json") is None
    assert read_json(broken) is None
    assert read_json(None) is None
    assert read_text(tmp_path / "missing.md") is None


def test_ensure_clean_directory_removes_previous_content(tmp_path):
    """Verify a reused directory starts empty."""
    target = tmp_path / "repo"
    (target / "nested").mkdir(parents=True)
    (target / "nested" / "old.txt").write_text("old")

    result = ensure_clean_directory(target)

    assert result == target
    assert target.is_dir()
    assert list(target.iterdir()) == []
