# tests/conftest.py - v1
"""Shared test fixtures for all unit and integration tests.

Builds real gzip-compressed run archives in tmp_path: a directory prefix
named after the assay, bulk members, hidden metadata members and an md5
manifest. No network, no external tools.
"""

from __future__ import annotations

import hashlib
import io
import tarfile
from collections.abc import Callable
from pathlib import Path

import pytest

from runarchive.config.settings import Settings
from runarchive.logging.context import clear_context

ASSAY_ID = "m84011_240101_000000_s1"


def md5_hex(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def default_members(assay_id: str = ASSAY_ID) -> dict[str, bytes]:
    """Member name (relative to the prefix) -> content, in archive order."""
    return {
        f"{assay_id}.consensusreadset.xml": b"<ConsensusReadSet UniqueId='run'/>\n",
        f"{assay_id}.hifi_reads.bam": b"BAM\x01" + bytes(range(256)) * 64,
        f"{assay_id}.hifi_reads.bam.pbi": b"PBI\x01" * 128,
        f"{assay_id}.hifi_reads.consensusreadset.xml": b"<ConsensusReadSet UniqueId='hifi'/>\n",
        f".{assay_id}.metadata.xml": b"<Metadata><Run Name='r84011'/></Metadata>\n",
        f".{assay_id}.sts.xml": b"<PipeStats><NumReads>42</NumReads></PipeStats>\n",
    }


def write_run_archive(
    path: Path,
    members: dict[str, bytes],
    *,
    prefix: str = ASSAY_ID,
    manifest: bool = True,
    manifest_name: str = f"{ASSAY_ID}.md5",
    digest_overrides: dict[str, str] | None = None,
    declared_only: dict[str, str] | None = None,
    extra_lines: tuple[str, ...] = (),
) -> Path:
    """Write a tar.gz archive and (optionally) its md5 manifest.

    Args:
        path: Destination archive path.
        members: Member name -> bytes, written under ``prefix``.
        prefix: Directory prefix inside the archive ("" = flat).
        manifest: Include a manifest member (appended last).
        manifest_name: Manifest member name.
        digest_overrides: Member -> digest written instead of the real md5.
        declared_only: Manifest entries for members not in the archive.
        extra_lines: Raw lines appended to the manifest.
    """
    overrides = digest_overrides or {}
    entries = dict(members)
    if manifest:
        lines = [f"{overrides.get(name, md5_hex(data))}  {name}" for name, data in members.items()]
        lines += [f"{digest}  {name}" for name, digest in (declared_only or {}).items()]
        lines += list(extra_lines)
        entries[manifest_name] = ("\n".join(lines) + "\n").encode()

    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, "w:gz") as tar:
        if prefix:
            info = tarfile.TarInfo(prefix)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tar.addfile(info)
        for name, data in entries.items():
            info = tarfile.TarInfo(f"{prefix}/{name}" if prefix else name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return path


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()


@pytest.fixture
def assay_id() -> str:
    return ASSAY_ID


@pytest.fixture
def run_members() -> dict[str, bytes]:
    return default_members()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from any .env file, writing under tmp_path."""
    return Settings(_env_file=None, output_root=tmp_path / "output")


@pytest.fixture
def make_archive(tmp_path: Path) -> Callable[..., Path]:
    """Factory: ``make_archive("sample_001", members=None, **options)``.

    Archives land in ``tmp_path/archives/<run_id>.raw.tar.gz``.
    """
    archive_dir = tmp_path / "archives"

    def _make(run_id: str = "sample_001", members: dict[str, bytes] | None = None,
              **options) -> Path:
        return write_run_archive(
            archive_dir / f"{run_id}.raw.tar.gz",
            default_members() if members is None else members,
            **options,
        )

    return _make
