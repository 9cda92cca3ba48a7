# src/core/errors.py - v1
"""Error taxonomy for per-item pipeline failures.

Every error here is scoped to a single RunItem: the orchestrator records it
as the item's terminal failure and carries on with the rest of the batch.
Process-fatal problems (bad configuration, unreadable input list) live
next to the code that detects them.
"""

from __future__ import annotations


class RunArchiveError(Exception):
    """Base class for errors that fail one RunItem."""

    kind: str = "RunArchiveError"

    def __init__(self, message: str, member: str | None = None) -> None:
        self.member = member
        super().__init__(message)


class UnreadableArchive(RunArchiveError):
    """The archive cannot be opened or listed."""

    kind = "UnreadableArchive"


class EmptyArchive(RunArchiveError):
    """No member survives the real-file filter."""

    kind = "EmptyArchive"


class ManifestMissing(RunArchiveError):
    """No manifest member was found in the archive."""

    kind = "ManifestMissing"


class NoManifestEntries(RunArchiveError):
    """The manifest parsed to zero entries."""

    kind = "NoManifestEntries"


class ChecksumMismatch(RunArchiveError):
    """A member's computed digest differs from the manifest."""

    kind = "ChecksumMismatch"

    def __init__(self, member: str, expected: str, computed: str) -> None:
        self.expected = expected
        self.computed = computed
        super().__init__(
            f"Checksum mismatch for {member}: expected {expected}, got {computed}",
            member=member,
        )


class RequiredFileMissing(RunArchiveError):
    """A required or declared member is not available."""

    kind = "RequiredFileMissing"

    def __init__(self, name: str, message: str | None = None) -> None:
        super().__init__(message or f"Required file missing: {name}", member=name)


class ExternalToolFailure(RunArchiveError):
    """The downstream tool exited non-zero, timed out or could not start."""

    kind = "ExternalToolFailure"

    def __init__(
        self, message: str, returncode: int | None = None, member: str | None = None,
    ) -> None:
        self.returncode = returncode
        super().__init__(message, member=member)


class InvalidTransition(RunArchiveError):
    """A RunItem was moved along an edge the state machine does not allow."""

    kind = "InvalidTransition"
