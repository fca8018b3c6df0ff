"""Tests for flow orchestration and exit codes in the main module."""

import sys
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from gitlab_flows.errors import (
    AuthenticationError,
    ConfigurationError,
    DecodeError,
    ExternalCommandError,
    InvalidReferenceError,
    TransportError,
    UnknownFlowError,
)
from gitlab_flows.flows import FlowRegistry
from gitlab_flows.main import main, orchestrate_flow


def _registry_raising(exc: Exception) -> Mock:
    registry = Mock()
    registry.dispatch.side_effect = exc
    return registry


def test_orchestrate_flow_success():
    """Verify orchestration dispatches the named flow with its arguments and returns 0."""
    registry = Mock()

    exit_code = orchestrate_flow(["gitlab.mr_reviewer", "https://gitlab.example.com/g/p/-/merge_requests/1"], registry)

    assert exit_code == 0
    registry.dispatch.assert_called_once_with(
        "gitlab.mr_reviewer", argv=["https://gitlab.example.com/g/p/-/merge_requests/1"]
    )


def test_orchestrate_flow_passes_flow_options_through():
    """Verify options after the flow name belong to the flow, not the CLI."""
    registry = Mock()

    exit_code = orchestrate_flow(["--log-level", "debug", "pulse.weekly", "--date", "2024-01-03"], registry)

    assert exit_code == 0
    registry.dispatch.assert_called_once_with("pulse.weekly", argv=["--date", "2024-01-03"])


def test_orchestrate_flow_lists_flows(capsys):
    """Verify --list prints registered flow names without running anything."""
    registry = FlowRegistry()
    registry.register("b.flow", Mock())
    registry.register("a.flow", Mock())

    exit_code = orchestrate_flow(["--list"], registry)

    assert exit_code == 0
    assert capsys.readouterr().out.splitlines() == ["a.flow", "b.flow"]


def test_orchestrate_flow_without_name_returns_usage(capsys):
    """Verify a missing flow name returns exit code 2."""
    exit_code = orchestrate_flow([], Mock())

    assert exit_code == 2
    assert "No flow name provided" in capsys.readouterr().err


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (AuthenticationError("Missing required GitLab access token."), 3),
        (ConfigurationError("bad per_page"), 2),
        (UnknownFlowError("nope"), 2),
        (InvalidReferenceError("Invalid MR URL: x"), 2),
        (TransportError("GitLab request failed: 500 boom", status_code=500), 4),
        (DecodeError("Failed to parse JSON response", body="{"), 4),
        (ExternalCommandError("Git command failed (git clone): denied"), 5),
        (RuntimeError("boom"), 1),
    ],
)
def test_orchestrate_flow_maps_errors_to_exit_codes(exc, expected, capsys):
    """Verify each failure category maps to its exit code."""
    exit_code = orchestrate_flow(["pulse.weekly"], _registry_raising(exc))

    assert exit_code == expected
    if expected != 1:
        assert f"ERROR: {exc}" in capsys.readouterr().err


def test_main_loads_dotenv_before_orchestration():
    """Verify main loads .env without overriding the environment and returns the exit code."""
    with patch("gitlab_flows.main.load_dotenv") as load_dotenv_mock, patch(
        "gitlab_flows.main.orchestrate_flow", return_value=4
    ) as orchestrate_mock:
        exit_code = main()

    assert exit_code == 4
    load_dotenv_mock.assert_called_once_with(override=False)
    orchestrate_mock.assert_called_once_with()
