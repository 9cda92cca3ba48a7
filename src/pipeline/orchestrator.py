# src/pipeline/orchestrator.py - v3
"""Pipeline orchestrator: Inspect -> Validate/Extract -> Publish -> Hand-off.

Drives a batch of RunItems through two bounded worker pools:

  Validation pool (``validation_concurrency`` workers, default 1)
      Takes items from a FIFO queue in input order. Inspection, validation
      and metadata publishing are blocking archive I/O and run in
      ``asyncio.to_thread``.
  Tool pool (``tool_concurrency`` workers, default 1)
      Consumes hand-offs from a bounded queue and calls the external tool.

A failure is terminal for its own item only: the worker records it and
moves on to the next pending item. ``cancel()`` stops dispatching; items
not yet taken stay ``pending``.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING

from runarchive.archive.inspector import ArchiveInspector
from runarchive.batch.input_list import load_input_list
from runarchive.batch.models import BatchSummary, RunOutcome
from runarchive.core.classification import MemberClassifier
from runarchive.core.errors import (
    ExternalToolFailure,
    RunArchiveError,
    UnreadableArchive,
)
from runarchive.core.models import FailureReason, HandOff, RunItem
from runarchive.extraction.metadata_extractor import MetadataExtractor
from runarchive.logging.context import set_run_context, set_stage_context
from runarchive.pipeline.state import advance, advance_tool, fail, is_terminal, requeue
from runarchive.storage import layout
from runarchive.validation.validator import CANCELLED, StreamingChecksumValidator

if TYPE_CHECKING:
    from runarchive.config.settings import Settings
    from runarchive.core.models import ArchiveHandle, ValidationReport
    from runarchive.tools.base_invoker import ExternalToolInvoker

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """Chain the per-item stages over a batch with bounded concurrency.

    Args:
        settings: Application settings (output root, concurrency bounds).
        invoker: External tool; None = record hand-offs without running a tool.
        inspector: Archive inspector; built from settings if None.
        validator: Checksum validator; built from settings if None.
        extractor: Metadata extractor used for publishing; built if None.
    """

    def __init__(
        self,
        settings: Settings,
        invoker: ExternalToolInvoker | None = None,
        inspector: ArchiveInspector | None = None,
        validator: StreamingChecksumValidator | None = None,
        extractor: MetadataExtractor | None = None,
    ) -> None:
        self._settings = settings
        self._invoker = invoker
        self._classifier = MemberClassifier.from_settings(settings)
        self._extractor = extractor or MetadataExtractor(settings)
        self._inspector = inspector or ArchiveInspector(settings, self._classifier)
        self._validator = validator or StreamingChecksumValidator(
            settings, self._extractor, self._classifier,
        )
        self._cancel_event = threading.Event()
        self._outcomes: dict[str, RunOutcome] = {}

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Stop dispatching new items; in-flight validation stops between entries."""
        if not self._cancel_event.is_set():
            logger.warning("Cancellation requested: no new items will be dispatched")
        self._cancel_event.set()

    async def run_input_list(self, input_list: Path) -> BatchSummary:
        """Load an input list and run every item in it.

        Raises:
            InputListError: If the list cannot be read (nothing is processed).
        """
        items = load_input_list(input_list, self._settings)
        return await self.run(items, input_list=str(input_list))

    async def run(self, items: list[RunItem], input_list: str = "") -> BatchSummary:
        """Process ``items`` and return the batch summary.

        Items that already went through a run are requeued as ``pending``.

        Raises:
            ValueError: If two items share a run id (their working
                directories would collide).
        """
        _check_unique_run_ids(items)
        resubmitted = [item.run_id for item in items if item.status != "pending"]
        if resubmitted:
            logger.info("Requeueing %d previously processed items: %s",
                        len(resubmitted), ", ".join(resubmitted))
        items = [requeue(item) for item in items]
        start = time.perf_counter()
        self._outcomes = {}

        pending: asyncio.Queue[RunItem] = asyncio.Queue()
        for item in items:
            pending.put_nowait(item)
        handoffs: asyncio.Queue[RunOutcome | None] = asyncio.Queue(
            maxsize=self._settings.handoff_queue_size,
        )

        logger.info(
            "Starting batch: %d items, validation_concurrency=%d, tool_concurrency=%d, tool=%s",
            len(items),
            self._settings.validation_concurrency,
            self._settings.tool_concurrency,
            self._invoker.tool_name if self._invoker else "none",
        )

        tool_workers = []
        if self._invoker is not None:
            tool_workers = [
                asyncio.create_task(self._tool_worker(handoffs), name=f"tool-{i}")
                for i in range(self._settings.tool_concurrency)
            ]
        validation_workers = [
            asyncio.create_task(self._validation_worker(pending, handoffs), name=f"validate-{i}")
            for i in range(self._settings.validation_concurrency)
        ]

        try:
            await asyncio.gather(*validation_workers)
            for _ in tool_workers:
                await handoffs.put(None)
            await asyncio.gather(*tool_workers)
        finally:
            for task in (*validation_workers, *tool_workers):
                if not task.done():
                    task.cancel()

        outcomes = [self._outcomes.get(item.run_id) or RunOutcome(item=item) for item in items]
        summary = BatchSummary.from_outcomes(
            outcomes,
            duration_seconds=time.perf_counter() - start,
            input_list=input_list,
            cancelled=self.cancelled,
        )
        _log_summary(summary)
        return summary

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    async def _validation_worker(
        self,
        pending: asyncio.Queue[RunItem],
        handoffs: asyncio.Queue[RunOutcome | None],
    ) -> None:
        while not self._cancel_event.is_set():
            try:
                item = pending.get_nowait()
            except asyncio.QueueEmpty:
                return

            set_run_context(item.run_id)
            outcome = await asyncio.to_thread(self.process_item, item)
            self._outcomes[item.run_id] = outcome
            set_run_context(item.run_id, outcome.item.assay_id)

            if outcome.handoff is not None and self._invoker is not None:
                outcome.tool_status = "queued"
                await handoffs.put(outcome)

    async def _tool_worker(self, handoffs: asyncio.Queue[RunOutcome | None]) -> None:
        assert self._invoker is not None
        while True:
            outcome = await handoffs.get()
            if outcome is None:
                return
            if self._cancel_event.is_set():
                logger.info("Cancelled: leaving %s queued for the tool stage", outcome.run_id)
                continue
            await self._run_tool(outcome)

    async def _run_tool(self, outcome: RunOutcome) -> None:
        handoff = outcome.handoff
        assert handoff is not None and self._invoker is not None and outcome.tool_status
        set_run_context(handoff.run_id, handoff.assay_id)
        set_stage_context("tool")

        outcome.tool_status = advance_tool(outcome.tool_status, "running")
        output_dir = layout.tool_dir(self._settings.output_root, handoff.run_id)
        try:
            result = await self._invoker.invoke(handoff, output_dir)
        except ExternalToolFailure as exc:
            outcome.tool_status = advance_tool(outcome.tool_status, "failed")
            outcome.tool_returncode = exc.returncode
            outcome.tool_failure = FailureReason.from_error(exc)
            logger.error("Tool failed for %s: %s", handoff.run_id, exc)
        except Exception as exc:
            outcome.tool_status = advance_tool(outcome.tool_status, "failed")
            outcome.tool_failure = FailureReason(
                kind=ExternalToolFailure.kind, message=f"{type(exc).__name__}: {exc}",
            )
            logger.exception("Tool invocation crashed for %s", handoff.run_id)
        else:
            outcome.tool_status = advance_tool(outcome.tool_status, "succeeded")
            outcome.tool_returncode = result.returncode
        finally:
            set_stage_context(None)

    # ------------------------------------------------------------------
    # Per-item stages (blocking, run in a worker thread)
    # ------------------------------------------------------------------

    def process_item(self, item: RunItem) -> RunOutcome:
        """Inspect, validate and publish one item. Never raises for item errors."""
        item = requeue(item)
        set_run_context(item.run_id)
        report: ValidationReport | None = None
        try:
            set_stage_context("inspect")
            item = advance(item, "inspecting")
            handle = self._inspect(item)

            item = advance(item, "validating", assay_id=handle.assay_id)
            set_run_context(item.run_id, handle.assay_id)
            set_stage_context("validate")
            layout.ensure_run_directories(self._settings.output_root, item.run_id)
            report = self._validator.validate(
                handle,
                layout.work_dir(self._settings.output_root, item.run_id),
                run_id=item.run_id,
                cancel_event=self._cancel_event,
            )
            if not report.passed:
                item = fail(item, *_report_failures(report))
                _log_item(item)
                return RunOutcome(item=item, report=report)

            set_stage_context("publish")
            handoff = self._publish(item, handle, report)
            item = advance(item, "validated")
            _log_item(item)
            return RunOutcome(item=item, report=report, handoff=handoff)

        except RunArchiveError as exc:
            item = _record_failure(item, FailureReason.from_error(exc))
        except Exception as exc:
            logger.exception("Unexpected error while processing %s", item.run_id)
            item = _record_failure(item, FailureReason.from_error(exc))
        finally:
            set_stage_context(None)

        _log_item(item)
        return RunOutcome(item=item, report=report)

    def _inspect(self, item: RunItem) -> ArchiveHandle:
        if item.is_remote:
            raise UnreadableArchive(
                f"Remote location must be staged locally first: {item.location}"
            )
        return self._inspector.inspect(item.source_path)

    def _publish(
        self, item: RunItem, handle: ArchiveHandle, report: ValidationReport,
    ) -> HandOff:
        """Copy verified metadata to the metadata directory; build the hand-off."""
        metadata_dir = layout.metadata_dir(self._settings.output_root, item.run_id)
        for extracted in report.extracted:
            self._extractor.publish(extracted, metadata_dir)
        logger.info("Published %d metadata files to %s", len(report.extracted), metadata_dir)

        # Leftovers of an earlier run whose manifest listed other files.
        published = {extracted.published_name for extracted in report.extracted}
        for stale in sorted(metadata_dir.iterdir()):
            if stale.name not in published and stale.is_file():
                logger.info("Removing stale metadata file %s", stale.name)
                stale.unlink()

        bulk_members: dict[str, str] = {}
        for record in report.records:
            classification = self._classifier.classify(record.member)
            member = handle.find_member(record.member)
            if classification.role and member is not None:
                bulk_members.setdefault(classification.role, member.name)

        return HandOff(
            run_id=item.run_id,
            assay_id=handle.assay_id,
            archive_path=handle.path,
            bulk_members=bulk_members,
            metadata_dir=metadata_dir,
        )


def _check_unique_run_ids(items: list[RunItem]) -> None:
    seen: set[str] = set()
    for item in items:
        if item.run_id in seen:
            raise ValueError(f"Duplicate run id in batch: {item.run_id}")
        seen.add(item.run_id)


def _record_failure(item: RunItem, reason: FailureReason) -> RunItem:
    """Fail ``item`` even when its status has no edge to ``failed``."""
    if item.status == "pending" or is_terminal(item):
        return item.model_copy(
            update={"status": "failed", "failures": item.failures + (reason,)},
        )
    return fail(item, reason)


def _report_failures(report: ValidationReport) -> list[FailureReason]:
    reasons = report.failures()
    if any(r.detail == CANCELLED for r in report.skipped_records()):
        reasons.append(FailureReason(
            kind="Cancelled", message="Validation abandoned after cancellation",
        ))
    if not reasons:
        reasons.append(FailureReason(
            kind="ValidationFailed", message="Validation did not pass",
        ))
    return reasons


def _log_item(item: RunItem) -> None:
    if item.status == "validated":
        logger.info("Run %s validated (assay %s)", item.run_id, item.assay_id)
        return
    reasons = "; ".join(
        f"{r.kind}({r.member})" if r.member else r.kind for r in item.failures
    )
    logger.error("Run %s failed: %s", item.run_id, reasons)


def _log_summary(summary: BatchSummary) -> None:
    logger.info(
        "Batch complete: %d items, %d validated, %d failed, %d pending, "
        "%d handed off, tool %d ok / %d failed, %.1fs",
        summary.total, summary.validated, summary.failed, summary.pending,
        summary.handed_off, summary.tool_succeeded, summary.tool_failed,
        summary.duration_seconds,
    )
