# src/tools/base_invoker.py - v1
"""Abstract external tool interface.

The tool stage receives a HandOff (run id, archive reference, bulk member
names, metadata directory) and returns a terminal status. What the tool
does with it is opaque to the pipeline.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel

from runarchive.core.models import HandOff


class ToolResult(BaseModel):
    """Outcome of one successful tool invocation."""

    returncode: int
    duration_seconds: float
    stdout_tail: str = ""
    stderr_tail: str = ""


class ExternalToolInvoker(ABC):
    """Unified interface for downstream processing tools."""

    @abstractmethod
    async def invoke(self, handoff: HandOff, output_dir: Path) -> ToolResult:
        """Run the tool for one validated archive.

        Raises:
            ExternalToolFailure: On non-zero exit, timeout or launch error.
        """

    @property
    @abstractmethod
    def tool_name(self) -> str:
        """Identifier used in logs."""
