# src/pipeline/state.py - v3
"""RunItem and tool-stage state machines.

    RunItem:  pending -> inspecting -> validating -> validated | failed
              (inspecting -> failed is allowed too)
    Tool:     queued -> running -> succeeded | failed

Transitions return a new frozen RunItem; nothing is mutated in place.
"""

from __future__ import annotations

from typing import Any

from runarchive.core.errors import InvalidTransition
from runarchive.core.models import FailureReason, RunItem, RunStatus, ToolStatus

RUN_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"inspecting"}),
    "inspecting": frozenset({"validating", "failed"}),
    "validating": frozenset({"validated", "failed"}),
    "validated": frozenset(),
    "failed": frozenset(),
}

TOOL_TRANSITIONS: dict[str, frozenset[str]] = {
    "queued": frozenset({"running", "failed"}),
    "running": frozenset({"succeeded", "failed"}),
    "succeeded": frozenset(),
    "failed": frozenset(),
}

TERMINAL_RUN_STATES = frozenset({"validated", "failed"})


def advance(item: RunItem, status: RunStatus, **updates: Any) -> RunItem:
    """Return a copy of ``item`` moved to ``status`` with extra field updates.

    Raises:
        InvalidTransition: If the edge is not part of the state machine.
    """
    if status not in RUN_TRANSITIONS.get(item.status, frozenset()):
        raise InvalidTransition(
            f"RunItem {item.run_id}: cannot go from {item.status} to {status}",
            member=item.run_id,
        )
    return item.model_copy(update={"status": status, **updates})


def fail(item: RunItem, *reasons: FailureReason) -> RunItem:
    """Move ``item`` to ``failed`` and append the failure reasons."""
    return advance(item, "failed", failures=item.failures + tuple(reasons))


def advance_tool(current: ToolStatus, status: ToolStatus) -> ToolStatus:
    if status not in TOOL_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransition(f"Tool stage cannot go from {current} to {status}")
    return status


def is_terminal(item: RunItem) -> bool:
    return item.status in TERMINAL_RUN_STATES


def requeue(item: RunItem) -> RunItem:
    """Return ``item`` as a fresh ``pending`` item for resubmission.

    Earlier status, failures and assay id are dropped; a pending item is
    returned as is.
    """
    if item.status == "pending":
        return item
    return item.model_copy(update={"status": "pending", "failures": (), "assay_id": None})
