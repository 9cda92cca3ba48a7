# src/logging/context.py - v2
"""Contextual logging support: attach run_id, assay_id, stage to log records.

Context variables are set per worker task. ``asyncio.to_thread`` copies
the current context, so records emitted from blocking archive I/O still
carry the item they belong to.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_assay_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "assay_id", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)


@dataclass(frozen=True)
class LogContext:
    """Immutable snapshot of current logging context."""

    run_id: str | None = None
    assay_id: str | None = None
    stage: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        run_id=_run_id.get(),
        assay_id=_assay_id.get(),
        stage=_stage.get(),
    )


def set_run_context(run_id: str, assay_id: str | None = None) -> None:
    """Set item-level context (once per RunItem, again when assay_id is known)."""
    _run_id.set(run_id)
    _assay_id.set(assay_id)


def set_stage_context(stage: str | None) -> None:
    """Set the pipeline stage (inspect, validate, publish, tool)."""
    _stage.set(stage)


def clear_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _assay_id.set(None)
    _stage.set(None)
