# tests/unit/storage/test_layout.py - v1
"""Tests for storage/layout.py - per-run output directories."""

from __future__ import annotations

from pathlib import Path

from runarchive.storage import layout


class TestLayout:
    def test_paths(self, tmp_path: Path):
        root = tmp_path / "out"
        assert layout.run_root(root, "r1") == root / "r1"
        assert layout.metadata_dir(root, "r1") == root / "r1" / "metadata"
        assert layout.work_dir(root, "r1") == root / "r1" / "work"
        assert layout.tool_dir(root, "r1") == root / "r1" / "tool"

    def test_partial_path(self, tmp_path: Path):
        assert layout.partial_path(tmp_path / "a.xml") == tmp_path / "a.xml.partial"

    def test_ensure_run_directories(self, tmp_path: Path):
        layout.ensure_run_directories(tmp_path, "r1")
        layout.ensure_run_directories(tmp_path, "r1")
        assert sorted(p.name for p in (tmp_path / "r1").iterdir()) == ["metadata", "tool", "work"]
