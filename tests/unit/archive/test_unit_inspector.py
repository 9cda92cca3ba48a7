# tests/unit/archive/test_unit_inspector.py - v1
"""Tests for archive/inspector.py - listing, depth and assay id."""

from __future__ import annotations

from pathlib import Path

import pytest

from runarchive.archive.inspector import (
    ArchiveInspector,
    assay_id_from_member,
    member_depth,
    open_archive,
)
from runarchive.core.errors import EmptyArchive, UnreadableArchive


class TestHelpers:
    @pytest.mark.parametrize("name,depth", [
        ("m1.sts.xml", 0),
        ("run/m1.sts.xml", 1),
        ("./run/m1.sts.xml", 1),
        ("a/b/c/m1.sts.xml", 3),
    ])
    def test_member_depth(self, name, depth):
        assert member_depth(name) == depth

    @pytest.mark.parametrize("name,assay", [
        ("run/m84011_s1.consensusreadset.xml", "m84011_s1"),
        ("run/.m84011_s1.sts.xml", "m84011_s1"),
        ("m84011_s1", "m84011_s1"),
    ])
    def test_assay_id_from_member(self, name, assay):
        assert assay_id_from_member(name) == assay


class TestInspect:
    def test_structure(self, settings, make_archive, assay_id):
        path = make_archive()
        handle = ArchiveInspector(settings).inspect(path)

        assert handle.path == path
        assert handle.depth == 1
        assert handle.assay_id == assay_id
        # Directory entry is listed but not real; 6 members + manifest are.
        assert len(handle.members) == 8
        assert len(handle.real_members()) == 7

    def test_flat_archive(self, settings, make_archive, assay_id):
        handle = ArchiveInspector(settings).inspect(make_archive(prefix=""))
        assert handle.depth == 0
        assert handle.assay_id == assay_id

    def test_hidden_first_member(self, settings, make_archive):
        members = {".m9_s2.metadata.xml": b"<m/>", "m9_s2.sts.xml": b"<s/>"}
        handle = ArchiveInspector(settings).inspect(make_archive(members=members))
        assert handle.assay_id == "m9_s2"

    def test_transient_first_member_ignored(self, settings, make_archive, run_members, assay_id):
        members = {"._junk": b"x", "upload.transferdone": b"", **run_members}
        handle = ArchiveInspector(settings).inspect(make_archive(members=members))
        assert handle.assay_id == assay_id
        assert not any(m.is_real for m in handle.members if m.name.endswith("._junk"))

    def test_empty_archive(self, settings, make_archive):
        path = make_archive(members={"x.transferdone": b""}, manifest=False)
        with pytest.raises(EmptyArchive):
            ArchiveInspector(settings).inspect(path)

    def test_missing_file(self, settings, tmp_path: Path):
        with pytest.raises(UnreadableArchive, match="not found"):
            ArchiveInspector(settings).inspect(tmp_path / "nope.tar.gz")

    def test_corrupt_archive(self, settings, tmp_path: Path):
        path = tmp_path / "bad.tar.gz"
        path.write_bytes(b"\x1f\x8b\x08\x00garbage" * 10)
        with pytest.raises(UnreadableArchive):
            ArchiveInspector(settings).inspect(path)

    def test_truncated_archive(self, settings, make_archive):
        path = make_archive()
        data = path.read_bytes()
        path.write_bytes(data[: len(data) // 2])
        with pytest.raises(UnreadableArchive):
            ArchiveInspector(settings).inspect(path)


class TestOpenArchive:
    def test_not_an_archive(self, tmp_path: Path):
        path = tmp_path / "plain.txt"
        path.write_text("hello")
        with pytest.raises(UnreadableArchive):
            with open_archive(path):
                pass
