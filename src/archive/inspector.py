# src/archive/inspector.py - v1
"""Archive introspection: member listing, nesting depth, assay identifier.

Listing reads tar headers only; no member content is written to disk.
"""

from __future__ import annotations

import logging
import posixpath
import tarfile
import zlib
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from runarchive.core.classification import MemberClassifier, normalize_hidden_name
from runarchive.core.errors import EmptyArchive, UnreadableArchive
from runarchive.core.models import ArchiveHandle, ArchiveMember

if TYPE_CHECKING:
    from runarchive.config.settings import Settings

logger = logging.getLogger(__name__)

# Errors tarfile/gzip raise on missing, truncated or corrupt archives.
ARCHIVE_READ_ERRORS = (OSError, EOFError, tarfile.TarError, zlib.error)


@contextmanager
def open_archive(path: Path) -> Iterator[tarfile.TarFile]:
    """Open an archive for random-access reading (compression auto-detected).

    Raises:
        UnreadableArchive: If the archive cannot be opened.
    """
    try:
        tar = tarfile.open(path, mode="r:*")
    except ARCHIVE_READ_ERRORS as exc:
        raise UnreadableArchive(f"Cannot open archive {path}: {exc}") from exc
    try:
        yield tar
    finally:
        tar.close()


def member_depth(name: str) -> int:
    """Number of path separators in a member name (leading ``./`` ignored)."""
    while name.startswith("./"):
        name = name[2:]
    return name.strip("/").count("/")


def assay_id_from_member(name: str) -> str:
    """Base name, one leading dot stripped, up to the first ``.``."""
    base = normalize_hidden_name(posixpath.basename(name.rstrip("/")))
    return base.split(".", 1)[0]


class ArchiveInspector:
    """List archive members and infer layout without extracting.

    Args:
        settings: Application settings (naming conventions).
        classifier: Optional pre-built classifier; derived from settings if None.
    """

    def __init__(
        self,
        settings: Settings,
        classifier: MemberClassifier | None = None,
    ) -> None:
        self._settings = settings
        self._classifier = classifier or MemberClassifier.from_settings(settings)

    def inspect(self, path: Path) -> ArchiveHandle:
        """Inspect an archive and return its immutable handle.

        Raises:
            UnreadableArchive: If the archive cannot be opened or listed.
            EmptyArchive: If no member qualifies as a real file.
        """
        if not path.is_file():
            raise UnreadableArchive(f"Archive not found: {path}")

        with open_archive(path) as tar:
            try:
                infos = tar.getmembers()
            except ARCHIVE_READ_ERRORS as exc:
                raise UnreadableArchive(f"Cannot list archive {path}: {exc}") from exc

        members = tuple(self._to_member(info) for info in infos)
        first_real = next((m for m in members if m.is_real), None)
        if first_real is None:
            raise EmptyArchive(
                f"No real members in {path.name} ({len(members)} entries listed)"
            )

        handle = ArchiveHandle(
            path=path,
            members=members,
            depth=member_depth(first_real.name),
            assay_id=assay_id_from_member(first_real.name),
        )
        logger.info(
            "Inspected %s: %d members (%d real), depth=%d, assay_id=%s",
            path.name, len(members), len(handle.real_members()),
            handle.depth, handle.assay_id,
        )
        return handle

    def _to_member(self, info: tarfile.TarInfo) -> ArchiveMember:
        is_file = info.isfile()
        return ArchiveMember(
            name=info.name,
            size=info.size,
            is_file=is_file,
            is_real=is_file and not self._classifier.is_transient(info.name),
        )
