# src/storage/layout.py - v2
"""Output directory structure definition.

    {output_root}/
        {run_id}/
            metadata/   normalized metadata files, nothing else
            work/       exclusive working area (original + normalized names)
            tool/       output directory handed to the external tool
"""

from __future__ import annotations

from pathlib import Path

METADATA_DIR = "metadata"
WORK_DIR = "work"
TOOL_DIR = "tool"
PARTIAL_SUFFIX = ".partial"


def run_root(output_root: Path, run_id: str) -> Path:
    """Return root directory for a run."""
    return output_root / run_id


def metadata_dir(output_root: Path, run_id: str) -> Path:
    return run_root(output_root, run_id) / METADATA_DIR


def work_dir(output_root: Path, run_id: str) -> Path:
    return run_root(output_root, run_id) / WORK_DIR


def tool_dir(output_root: Path, run_id: str) -> Path:
    return run_root(output_root, run_id) / TOOL_DIR


def partial_path(path: Path) -> Path:
    """Temporary sibling used while a file is being written."""
    return path.with_name(path.name + PARTIAL_SUFFIX)


def ensure_run_directories(output_root: Path, run_id: str) -> None:
    """Create the standard directories for a run."""
    for dir_fn in (metadata_dir, work_dir, tool_dir):
        dir_fn(output_root, run_id).mkdir(parents=True, exist_ok=True)
