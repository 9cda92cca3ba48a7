# src/batch/input_list.py - v1
"""Input list loading: one archive location per line.

Blank lines and ``#`` comments are ignored. Each remaining line becomes one
pending RunItem whose identifier is the final path segment with the archive
suffix removed (``sample_001.raw.tar.gz`` -> ``sample_001``).
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING

from runarchive.core.models import RunItem

if TYPE_CHECKING:
    from runarchive.config.settings import Settings

logger = logging.getLogger(__name__)

COMMENT_PREFIX = "#"


class InputListError(Exception):
    """The input list cannot be read. Fatal: raised before any RunItem exists."""


def derive_run_id(location: str, suffix_pattern: str | re.Pattern[str]) -> str:
    """Final path segment of ``location`` with the archive suffix removed."""
    pattern = re.compile(suffix_pattern) if isinstance(suffix_pattern, str) else suffix_pattern
    segment = location.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]
    return pattern.sub("", segment)


def parse_input_lines(
    lines: list[str],
    suffix_pattern: str,
    base_dir: Path | None = None,
) -> list[RunItem]:
    """Turn input list lines into pending RunItems, in input order."""
    pattern = re.compile(suffix_pattern)
    items: list[RunItem] = []
    seen: dict[str, int] = {}

    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith(COMMENT_PREFIX):
            continue

        run_id = derive_run_id(line, pattern)
        if not run_id:
            logger.warning("Line %d: cannot derive a run id from %r, skipping", lineno, line)
            continue
        if run_id in seen:
            logger.warning(
                "Line %d: duplicate run id %s (first seen on line %d), skipping",
                lineno, run_id, seen[run_id],
            )
            continue
        seen[run_id] = lineno

        location = line
        if base_dir is not None and "://" not in line and not Path(line).is_absolute():
            location = str(base_dir / line)

        items.append(RunItem(run_id=run_id, location=location, line_number=lineno))

    return items


def load_input_list(path: Path, settings: Settings) -> list[RunItem]:
    """Read the input list file.

    Relative locations are resolved against the list's directory.

    Raises:
        InputListError: If the file cannot be read.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise InputListError(f"Cannot read input list {path}: {exc}") from exc

    items = parse_input_lines(
        text.splitlines(), settings.archive_suffix_pattern, base_dir=path.parent,
    )
    logger.info("Loaded %d run items from %s", len(items), path)
    return items
