# src/manifest/parser.py - v1
"""Checksum manifest model and parser.

Format: one ``<hex-digest> <member-name>`` pair per line, whitespace
delimited, as written by ``md5sum``. The binary-mode marker (``*name``)
is accepted. Lines that do not split into exactly a digest and a name are
skipped with a warning; a malformed line never fails the manifest.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from runarchive.core.errors import ManifestMissing
from runarchive.core.models import ManifestEntry

if TYPE_CHECKING:
    from runarchive.core.classification import MemberClassifier
    from runarchive.core.models import ArchiveHandle, ArchiveMember

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")
_DIGEST_LENGTHS = frozenset({32, 40, 64, 128})


class Manifest(BaseModel):
    """Ordered manifest entries; member names are unique."""

    source: str
    entries: list[ManifestEntry] = Field(default_factory=list)
    skipped_lines: list[int] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def members(self) -> list[str]:
        return [e.member for e in self.entries]


def parse_line(line: str) -> ManifestEntry | None:
    """Parse one manifest line, or return None if it is not digest + name."""
    parts = line.split()
    if len(parts) != 2:
        return None
    digest, name = parts
    if name.startswith("*"):
        name = name[1:]
    if not name or not _HEX_RE.match(digest) or len(digest) not in _DIGEST_LENGTHS:
        return None
    return ManifestEntry(digest=digest.lower(), member=name)


def parse_manifest(text: str, source: str = "") -> Manifest:
    """Parse manifest text into ordered entries."""
    manifest = Manifest(source=source)
    seen: set[str] = set()

    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        entry = parse_line(line)
        if entry is None:
            logger.warning("Skipping malformed manifest line %d in %s: %r",
                           lineno, source or "<manifest>", line)
            manifest.skipped_lines.append(lineno)
            continue
        if entry.member in seen:
            logger.warning("Duplicate manifest entry for %s (line %d), keeping first",
                           entry.member, lineno)
            manifest.skipped_lines.append(lineno)
            continue
        seen.add(entry.member)
        manifest.entries.append(entry)

    logger.debug("Parsed %d manifest entries from %s (%d lines skipped)",
                 len(manifest.entries), source or "<manifest>",
                 len(manifest.skipped_lines))
    return manifest


def load_manifest(path: Path, source: str | None = None) -> Manifest:
    """Read and parse a manifest file from disk."""
    text = path.read_text(encoding="utf-8", errors="replace")
    return parse_manifest(text, source=source or path.name)


def find_manifest_member(
    handle: ArchiveHandle, classifier: MemberClassifier,
) -> ArchiveMember:
    """Return the first real member carrying the manifest suffix.

    Raises:
        ManifestMissing: If the archive holds no manifest.
    """
    for member in handle.real_members():
        if classifier.is_manifest(member.name):
            return member
    raise ManifestMissing(f"No manifest member found in {handle.path.name}")
