"""Flow registry plus the weekly pulse and merge request reviewer flows."""

from __future__ import annotations

from .registry import Flow, FlowFactory, FlowRegistry


def build_registry() -> FlowRegistry:
    """Return a registry with every built-in flow registered."""
    from . import mr_reviewer, weekly_pulse

    registry = FlowRegistry()
    weekly_pulse.register(registry)
    mr_reviewer.register(registry)
    return registry


__all__ = ["Flow", "FlowFactory", "FlowRegistry", "build_registry"]
