# src/core/models.py - v1
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
Values that travel between stages (RunItem, ArchiveHandle, manifest
entries, records) are frozen: a stage returns an updated copy instead of
mutating what it was given.
"""

from __future__ import annotations

import posixpath
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from runarchive.core.errors import RunArchiveError

RunStatus = Literal["pending", "inspecting", "validating", "validated", "failed"]
ToolStatus = Literal["queued", "running", "succeeded", "failed"]
MemberCategory = Literal["bulk", "metadata"]
BulkRole = Literal["reads", "index", "descriptor"]
RecordStatus = Literal["passed", "failed", "skipped"]

HIDDEN_PREFIX = "."


# === FAILURES ===


class FailureReason(BaseModel):
    """Why a RunItem (or its tool stage) failed."""

    model_config = {"frozen": True}

    kind: str
    member: str | None = None
    message: str

    @classmethod
    def from_error(cls, error: BaseException) -> FailureReason:
        if isinstance(error, RunArchiveError):
            return cls(kind=error.kind, member=error.member, message=str(error))
        return cls(kind=type(error).__name__, message=str(error) or repr(error))


# === RUN ITEM ===


class RunItem(BaseModel):
    """One archive moving through the pipeline.

    Created from an input list line. Stages never mutate it; they return
    ``item.model_copy(update=...)``.
    """

    model_config = {"frozen": True}

    run_id: str
    location: str
    line_number: int = 0
    status: RunStatus = "pending"
    assay_id: str | None = None
    failures: tuple[FailureReason, ...] = ()

    @property
    def source_path(self) -> Path:
        """Local path of the archive (``file://`` URLs are unwrapped)."""
        if self.location.startswith("file://"):
            return Path(self.location[len("file://"):])
        return Path(self.location)

    @property
    def is_remote(self) -> bool:
        scheme, sep, _ = self.location.partition("://")
        return bool(sep) and scheme != "file"


# === ARCHIVE ===


class ArchiveMember(BaseModel):
    """A member listed in an archive, never read by the listing itself."""

    model_config = {"frozen": True}

    name: str
    size: int
    is_file: bool = True
    is_real: bool = True


class ArchiveHandle(BaseModel):
    """Compressed archive plus its structural metadata."""

    model_config = {"frozen": True}

    path: Path
    members: tuple[ArchiveMember, ...]
    depth: int
    assay_id: str

    def real_members(self) -> list[ArchiveMember]:
        return [m for m in self.members if m.is_real]

    def strip_prefix(self, name: str) -> str:
        """Drop the common ``depth`` leading path components of a member name."""
        parts = _clean_member_name(name).split("/")
        return "/".join(parts[self.depth:]) if len(parts) > self.depth else parts[-1]

    def find_member(self, name: str) -> ArchiveMember | None:
        """Resolve a manifest name to an archive member.

        Exact match after prefix stripping wins; otherwise the first real
        member with the same base name.
        """
        wanted = _clean_member_name(name)
        real = self.real_members()
        for member in real:
            if self.strip_prefix(member.name) == wanted:
                return member
        base = posixpath.basename(wanted)
        for member in real:
            if posixpath.basename(_clean_member_name(member.name)) == base:
                return member
        return None


def _clean_member_name(name: str) -> str:
    while name.startswith("./"):
        name = name[2:]
    return name.lstrip("/")


# === MANIFEST ===


_ALGORITHM_BY_LENGTH = {32: "md5", 40: "sha1", 64: "sha256", 128: "sha512"}


class ManifestEntry(BaseModel):
    """Expected digest for one member name."""

    model_config = {"frozen": True}

    digest: str
    member: str

    @property
    def algorithm(self) -> str:
        return _ALGORITHM_BY_LENGTH.get(len(self.digest), "md5")


class Classification(BaseModel):
    """Outcome of the single member-naming policy."""

    model_config = {"frozen": True}

    category: MemberCategory
    role: BulkRole | None = None

    @property
    def is_bulk(self) -> bool:
        return self.category == "bulk"


# === VALIDATION ===


class ValidationRecord(BaseModel):
    """Per-entry validation outcome."""

    model_config = {"frozen": True}

    member: str
    category: MemberCategory
    expected: str
    computed: str | None = None
    status: RecordStatus
    error: str | None = None
    detail: str = ""

    @property
    def passed(self) -> bool:
        return self.status == "passed"


class ValidationReport(BaseModel):
    """Aggregate validation result for one RunItem."""

    run_id: str
    manifest_member: str
    records: list[ValidationRecord] = Field(default_factory=list)
    missing_required: list[str] = Field(default_factory=list)
    extracted: list[ExtractedFile] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        return bool(self.records) and not self.missing_required and all(
            r.passed for r in self.records
        )

    def failed_records(self) -> list[ValidationRecord]:
        return [r for r in self.records if r.status == "failed"]

    def skipped_records(self) -> list[ValidationRecord]:
        return [r for r in self.records if r.status == "skipped"]

    def failures(self) -> list[FailureReason]:
        """Failure reasons naming every offending member."""
        reasons = [
            FailureReason(
                kind=r.error or "ValidationFailed",
                member=r.member,
                message=r.detail or f"{r.member} failed validation",
            )
            for r in self.failed_records()
        ]
        reasons.extend(
            FailureReason(
                kind="RequiredFileMissing",
                member=name,
                message=f"Required file missing: {name}",
            )
            for name in self.missing_required
        )
        return reasons


# === EXTRACTION / HAND-OFF ===


class ExtractedFile(BaseModel):
    """A metadata member materialized to the working directory."""

    model_config = {"frozen": True}

    original_name: str
    published_name: str
    original_path: Path
    published_path: Path | None = None
    digest: str
    reused: bool = False

    @property
    def was_hidden(self) -> bool:
        return self.original_name != self.published_name


class HandOff(BaseModel):
    """What the external tool stage receives for a validated RunItem."""

    model_config = {"frozen": True}

    run_id: str
    assay_id: str
    archive_path: Path
    bulk_members: dict[str, str] = Field(default_factory=dict)
    metadata_dir: Path


ValidationReport.model_rebuild()
