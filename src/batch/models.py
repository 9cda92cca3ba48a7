# src/batch/models.py - v2
"""Batch processing models: RunOutcome, BatchSummary."""

from __future__ import annotations

from pydantic import BaseModel, Field

from runarchive.core.models import (
    FailureReason,
    HandOff,
    RunItem,
    ToolStatus,
    ValidationReport,
)


class RunOutcome(BaseModel):
    """Terminal (or last known) state of one RunItem."""

    item: RunItem
    report: ValidationReport | None = None
    handoff: HandOff | None = None
    tool_status: ToolStatus | None = None
    tool_returncode: int | None = None
    tool_failure: FailureReason | None = None

    @property
    def run_id(self) -> str:
        return self.item.run_id

    @property
    def validated(self) -> bool:
        return self.item.status == "validated"

    def reasons(self) -> list[FailureReason]:
        """Validation failures followed by the tool failure, if any."""
        reasons = list(self.item.failures)
        if self.tool_failure is not None:
            reasons.append(self.tool_failure)
        return reasons


class BatchSummary(BaseModel):
    """Summary result of one pipeline run over an input list."""

    input_list: str = ""
    total: int
    validated: int
    failed: int
    pending: int
    handed_off: int
    tool_succeeded: int = 0
    tool_failed: int = 0
    cancelled: bool = False
    outcomes: list[RunOutcome] = Field(default_factory=list)
    duration_seconds: float

    @property
    def ok(self) -> bool:
        return (
            not self.cancelled
            and self.failed == 0
            and self.pending == 0
            and self.tool_failed == 0
        )

    def failed_outcomes(self) -> list[RunOutcome]:
        return [o for o in self.outcomes if o.item.status == "failed"]

    @classmethod
    def from_outcomes(
        cls,
        outcomes: list[RunOutcome],
        duration_seconds: float,
        input_list: str = "",
        cancelled: bool = False,
    ) -> BatchSummary:
        return cls(
            input_list=input_list,
            total=len(outcomes),
            validated=sum(1 for o in outcomes if o.item.status == "validated"),
            failed=sum(1 for o in outcomes if o.item.status == "failed"),
            pending=sum(
                1 for o in outcomes if o.item.status not in ("validated", "failed")
            ),
            handed_off=sum(1 for o in outcomes if o.handoff is not None),
            tool_succeeded=sum(1 for o in outcomes if o.tool_status == "succeeded"),
            tool_failed=sum(1 for o in outcomes if o.tool_status == "failed"),
            cancelled=cancelled,
            outcomes=outcomes,
            duration_seconds=round(duration_seconds, 2),
        )
