# src/validation/validator.py - v1
"""Streaming checksum validator.

Validates every manifest entry of one archive:

  1. Locate, materialize and parse the manifest (always metadata).
  2. Resolve each entry against the archive listing and classify it.
  3. Metadata entries: extract to the work directory, digest the written
     bytes, normalize hidden names on success.
  4. Required-file check on the normalized, verified files.
  5. Bulk entries: stream the member through a digest accumulator inside
     the archive, discarding the bytes.

Every entry gets exactly one ValidationRecord, reported in manifest order.
Bulk streaming is skipped (records marked ``skipped``) when a declared bulk
member is absent from the archive, and also after an earlier failure when
``fail_policy`` is ``fail_fast``.
"""

from __future__ import annotations

import logging
import tarfile
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from runarchive.archive.digest import digest_stream, digests_match, normalize_digest
from runarchive.archive.inspector import ARCHIVE_READ_ERRORS, open_archive
from runarchive.core.classification import MemberClassifier
from runarchive.core.errors import (
    ChecksumMismatch,
    NoManifestEntries,
    RequiredFileMissing,
    RunArchiveError,
    UnreadableArchive,
)
from runarchive.core.models import ValidationRecord, ValidationReport
from runarchive.extraction.metadata_extractor import MetadataExtractor
from runarchive.manifest.parser import find_manifest_member, load_manifest

if TYPE_CHECKING:
    from runarchive.config.settings import Settings
    from runarchive.core.models import (
        ArchiveHandle,
        ArchiveMember,
        Classification,
        ManifestEntry,
    )

logger = logging.getLogger(__name__)

CANCELLED = "cancelled"


class StreamingChecksumValidator:
    """Verify an archive against its embedded manifest.

    Args:
        settings: Application settings (chunk size, fail policy, naming).
        extractor: Metadata extractor; built from settings if None.
        classifier: Member classifier; built from settings if None.
    """

    def __init__(
        self,
        settings: Settings,
        extractor: MetadataExtractor | None = None,
        classifier: MemberClassifier | None = None,
    ) -> None:
        self._settings = settings
        self._extractor = extractor or MetadataExtractor(settings)
        self._classifier = classifier or MemberClassifier.from_settings(settings)

    def validate(
        self,
        handle: ArchiveHandle,
        work_dir: Path,
        run_id: str = "",
        cancel_event: threading.Event | None = None,
    ) -> ValidationReport:
        """Validate ``handle`` and materialize its metadata into ``work_dir``.

        Raises:
            UnreadableArchive: If the archive or its manifest cannot be read.
            ManifestMissing: If the archive holds no manifest.
            NoManifestEntries: If the manifest parses to zero entries.
        """
        manifest_member = find_manifest_member(handle, self._classifier)

        with open_archive(handle.path) as tar:
            try:
                manifest_file = self._extractor.extract(tar, manifest_member, work_dir)
            except RequiredFileMissing as exc:
                raise UnreadableArchive(str(exc), manifest_member.name) from exc
            except ARCHIVE_READ_ERRORS as exc:
                raise UnreadableArchive(
                    f"Cannot read manifest {manifest_member.name}: {exc}",
                    manifest_member.name,
                ) from exc

            manifest = load_manifest(
                manifest_file.published_path or manifest_file.original_path,
                source=manifest_member.name,
            )
            if not manifest.entries:
                raise NoManifestEntries(
                    f"Manifest {manifest_member.name} has no valid entries",
                    manifest_member.name,
                )

            report = ValidationReport(
                run_id=run_id or handle.assay_id,
                manifest_member=manifest_member.name,
                extracted=[manifest_file],
            )
            records: dict[str, ValidationRecord] = {}
            plan = [
                (entry, self._classifier.classify(entry.member), handle.find_member(entry.member))
                for entry in manifest.entries
            ]
            logger.info(
                "Validating %d manifest entries (%d bulk) from %s",
                len(plan), sum(1 for _, c, _ in plan if c.is_bulk), manifest_member.name,
            )

            for entry, classification, member in plan:
                if member is None:
                    records[entry.member] = _record(
                        entry, classification, "failed",
                        error=RequiredFileMissing.kind,
                        detail=f"{entry.member} is declared in the manifest but absent "
                               "from the archive",
                    )

            # Metadata first: the required-file check depends on it.
            for entry, classification, member in plan:
                if member is None or classification.is_bulk:
                    continue
                if _cancelled(cancel_event):
                    records[entry.member] = _record(
                        entry, classification, "skipped", detail=CANCELLED,
                    )
                    continue
                records[entry.member] = self._check_metadata(
                    tar, entry, classification, member, work_dir, report,
                )

            report.missing_required = self._missing_required(handle, report)
            for name in report.missing_required:
                logger.warning("Required file missing after extraction: %s", name)

            skip_reason = self._bulk_skip_reason(plan, records, report)
            for entry, classification, member in plan:
                if member is None or not classification.is_bulk:
                    continue
                if _cancelled(cancel_event):
                    records[entry.member] = _record(
                        entry, classification, "skipped", detail=CANCELLED,
                    )
                elif skip_reason:
                    records[entry.member] = _record(
                        entry, classification, "skipped", detail=skip_reason,
                    )
                else:
                    records[entry.member] = self._check_bulk(
                        tar, entry, classification, member,
                    )

        report.records = [records[name] for name in manifest.members()]
        for record in report.records:
            _log_record(record)

        logger.info(
            "Validation %s: %d passed, %d failed, %d skipped, %d required missing",
            "passed" if report.passed else "failed",
            sum(1 for r in report.records if r.passed),
            len(report.failed_records()),
            len(report.skipped_records()),
            len(report.missing_required),
        )
        return report

    # ------------------------------------------------------------------
    # Per-category checks
    # ------------------------------------------------------------------

    def _check_metadata(
        self,
        tar: tarfile.TarFile,
        entry: ManifestEntry,
        classification: Classification,
        member: ArchiveMember,
        work_dir: Path,
        report: ValidationReport,
    ) -> ValidationRecord:
        """Extract, digest the written bytes, compare."""
        try:
            extracted = self._extractor.extract(
                tar, member, work_dir,
                expected=entry.digest, algorithm=entry.algorithm,
            )
        except RunArchiveError as exc:
            return _record(
                entry, classification, "failed",
                computed=getattr(exc, "computed", None),
                error=exc.kind, detail=str(exc),
            )
        except ARCHIVE_READ_ERRORS as exc:
            return _record(
                entry, classification, "failed",
                error=UnreadableArchive.kind, detail=f"Cannot extract {member.name}: {exc}",
            )

        report.extracted.append(extracted)
        detail = "reused existing file" if extracted.reused else ""
        if extracted.was_hidden:
            detail = (detail + "; " if detail else "") + f"normalized to {extracted.published_name}"
        return _record(
            entry, classification, "passed", computed=extracted.digest, detail=detail,
        )

    def _check_bulk(
        self,
        tar: tarfile.TarFile,
        entry: ManifestEntry,
        classification: Classification,
        member: ArchiveMember,
    ) -> ValidationRecord:
        """Stream the member through a digest accumulator; nothing is written."""
        try:
            stream = tar.extractfile(member.name)
            if stream is None:
                return _record(
                    entry, classification, "failed",
                    error=RequiredFileMissing.kind,
                    detail=f"{member.name} is not a regular file",
                )
            with stream:
                computed, nbytes = digest_stream(
                    stream, entry.algorithm, self._settings.stream_chunk_size,
                )
        except KeyError:
            return _record(
                entry, classification, "failed",
                error=RequiredFileMissing.kind, detail=f"{member.name} not in archive",
            )
        except ARCHIVE_READ_ERRORS as exc:
            return _record(
                entry, classification, "failed",
                error=UnreadableArchive.kind, detail=f"Cannot stream {member.name}: {exc}",
            )

        logger.debug("Streamed %s: %d bytes", member.name, nbytes)
        if digests_match(entry.digest, computed):
            return _record(entry, classification, "passed", computed=computed)
        return _record(
            entry, classification, "failed", computed=computed,
            error=ChecksumMismatch.kind,
            detail=f"Checksum mismatch for {entry.member}: expected {entry.digest}, "
                   f"got {computed}",
        )

    # ------------------------------------------------------------------
    # Aggregation helpers
    # ------------------------------------------------------------------

    def _missing_required(
        self, handle: ArchiveHandle, report: ValidationReport,
    ) -> list[str]:
        """Required names absent from the verified, normalized files."""
        verified = {f.published_name for f in report.extracted}
        required = self._settings.required_file_names(handle.assay_id)
        return [name for name in required if name not in verified]

    def _bulk_skip_reason(
        self,
        plan: list[tuple[ManifestEntry, Classification, ArchiveMember | None]],
        records: dict[str, ValidationRecord],
        report: ValidationReport,
    ) -> str:
        absent = [e.member for e, c, m in plan if c.is_bulk and m is None]
        if absent:
            return f"bulk member(s) absent from archive: {', '.join(absent)}"
        if self._settings.fail_policy == "fail_fast" and (
            report.missing_required
            or any(r.status == "failed" for r in records.values())
        ):
            return "fail_fast: earlier metadata failure"
        return ""


def _record(
    entry: ManifestEntry,
    classification: Classification,
    status: str,
    computed: str | None = None,
    error: str | None = None,
    detail: str = "",
) -> ValidationRecord:
    return ValidationRecord(
        member=entry.member,
        category=classification.category,
        expected=normalize_digest(entry.digest),
        computed=normalize_digest(computed) if computed else None,
        status=status,  # type: ignore[arg-type]
        error=error,
        detail=detail,
    )


def _cancelled(event: threading.Event | None) -> bool:
    return event is not None and event.is_set()


def _log_record(record: ValidationRecord) -> None:
    level = logging.INFO if record.status != "failed" else logging.WARNING
    logger.log(
        level,
        "Entry %s [%s]: %s%s",
        record.member, record.category, record.status,
        f" ({record.detail})" if record.detail else "",
        extra={"data": record.model_dump()},
    )
