# tests/unit/core/test_errors.py - v1
"""Tests for core/errors.py - per-item error taxonomy."""

from __future__ import annotations

import pytest

from runarchive.core import errors


class TestErrorKinds:
    @pytest.mark.parametrize("cls", [
        errors.UnreadableArchive,
        errors.EmptyArchive,
        errors.ManifestMissing,
        errors.NoManifestEntries,
        errors.InvalidTransition,
    ])
    def test_kind_matches_class_name(self, cls):
        err = cls("boom", member="x")
        assert err.kind == cls.__name__
        assert err.member == "x"
        assert str(err) == "boom"
        assert isinstance(err, errors.RunArchiveError)

    def test_checksum_mismatch(self):
        err = errors.ChecksumMismatch("m1.bam", expected="a" * 32, computed="b" * 32)
        assert err.member == "m1.bam"
        assert err.expected == "a" * 32
        assert err.computed == "b" * 32
        assert "m1.bam" in str(err)

    def test_required_file_missing_default_message(self):
        err = errors.RequiredFileMissing("m1.sts.xml")
        assert err.member == "m1.sts.xml"
        assert str(err) == "Required file missing: m1.sts.xml"

    def test_external_tool_failure_returncode(self):
        err = errors.ExternalToolFailure("exit 2", returncode=2)
        assert err.returncode == 2
        assert err.kind == "ExternalToolFailure"
