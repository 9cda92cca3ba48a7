# src/extraction/metadata_extractor.py - v1
"""Metadata extractor: materialize small members, verify, normalize names.

Extraction is idempotent. A destination that already holds the expected
digest is kept without touching the archive, and a re-extracted member that
comes out byte-identical leaves the existing file in place. Members are
written flat (base name only) into the destination directory.
"""

from __future__ import annotations

import logging
import os
import posixpath
import shutil
import tarfile
import zlib
from pathlib import Path
from typing import TYPE_CHECKING

from runarchive.archive.digest import digests_match, file_digest
from runarchive.core.classification import is_hidden, normalize_hidden_name
from runarchive.core.errors import ChecksumMismatch, RequiredFileMissing, UnreadableArchive
from runarchive.core.models import ExtractedFile
from runarchive.storage import layout

if TYPE_CHECKING:
    from runarchive.config.settings import Settings
    from runarchive.core.models import ArchiveMember

logger = logging.getLogger(__name__)


class MetadataExtractor:
    """Write metadata members to a working directory and verify them."""

    def __init__(self, settings: Settings) -> None:
        self._chunk_size = settings.stream_chunk_size

    def extract(
        self,
        tar: tarfile.TarFile,
        member: ArchiveMember,
        dest_dir: Path,
        expected: str | None = None,
        algorithm: str = "md5",
    ) -> ExtractedFile:
        """Materialize one member under its original base name.

        Args:
            tar: Open archive.
            member: Member to extract.
            dest_dir: Working directory owned by the current RunItem.
            expected: Expected digest; None skips verification (manifest).
            algorithm: Digest algorithm for ``expected``.

        Returns:
            ExtractedFile with original and published (normalized) paths.

        Raises:
            RequiredFileMissing: If the member is not a readable regular file.
            ChecksumMismatch: If the written bytes do not match ``expected``.
                The file stays under its original name only.
        """
        original_name = _safe_base_name(member.name)
        published_name = normalize_hidden_name(original_name)
        dest_dir.mkdir(parents=True, exist_ok=True)
        original_path = dest_dir / original_name

        reused = False
        digest: str | None = None
        if expected is not None and original_path.is_file():
            existing = file_digest(original_path, algorithm, self._chunk_size)
            if digests_match(expected, existing):
                digest, reused = existing, True
                logger.debug("Reusing verified %s", original_path)

        if digest is None:
            digest, reused = self._materialize(tar, member, original_path, algorithm)

        if expected is not None and not digests_match(expected, digest):
            raise ChecksumMismatch(member.name, expected=expected, computed=digest)

        published_path = original_path
        if is_hidden(original_name):
            published_path = dest_dir / published_name
            _copy_if_changed(original_path, published_path, algorithm, self._chunk_size)

        return ExtractedFile(
            original_name=original_name,
            published_name=published_name,
            original_path=original_path,
            published_path=published_path,
            digest=digest,
            reused=reused,
        )

    def publish(
        self, extracted: ExtractedFile, metadata_dir: Path, algorithm: str = "md5",
    ) -> Path:
        """Copy the normalized file into the metadata directory."""
        source = extracted.published_path or extracted.original_path
        target = metadata_dir / extracted.published_name
        metadata_dir.mkdir(parents=True, exist_ok=True)
        _copy_if_changed(source, target, algorithm, self._chunk_size)
        return target

    def _materialize(
        self,
        tar: tarfile.TarFile,
        member: ArchiveMember,
        target: Path,
        algorithm: str,
    ) -> tuple[str, bool]:
        """Stream a member to ``target`` via a partial file.

        Returns (digest, reused). ``reused`` is True when ``target`` already
        held identical bytes and was left untouched.
        """
        partial = layout.partial_path(target)
        try:
            stream = tar.extractfile(member.name)
        except KeyError as exc:
            raise RequiredFileMissing(member.name) from exc
        except (OSError, EOFError, tarfile.TarError) as exc:
            raise UnreadableArchive(f"Cannot read {member.name}: {exc}", member.name) from exc
        if stream is None:
            raise RequiredFileMissing(member.name, f"Not a regular file: {member.name}")

        try:
            with stream, open(partial, "wb") as out:
                shutil.copyfileobj(stream, out, self._chunk_size)
        except (EOFError, tarfile.TarError, zlib.error) as exc:
            partial.unlink(missing_ok=True)
            raise UnreadableArchive(f"Cannot read {member.name}: {exc}", member.name) from exc
        except BaseException:
            partial.unlink(missing_ok=True)
            raise

        digest = file_digest(partial, algorithm, self._chunk_size)
        if target.is_file() and digests_match(
            digest, file_digest(target, algorithm, self._chunk_size),
        ):
            partial.unlink()
            return digest, True

        os.replace(partial, target)
        logger.debug("Extracted %s -> %s (%d bytes)", member.name, target, member.size)
        return digest, False


def _safe_base_name(name: str) -> str:
    base = posixpath.basename(name.rstrip("/"))
    if base in ("", ".", ".."):
        raise RequiredFileMissing(name, f"Member has no usable file name: {name!r}")
    return base


def _copy_if_changed(source: Path, target: Path, algorithm: str, chunk_size: int) -> None:
    """Copy ``source`` to ``target`` unless ``target`` is already identical."""
    if target.is_file() and digests_match(
        file_digest(source, algorithm, chunk_size),
        file_digest(target, algorithm, chunk_size),
    ):
        return
    partial = layout.partial_path(target)
    shutil.copyfile(source, partial)
    os.replace(partial, target)
