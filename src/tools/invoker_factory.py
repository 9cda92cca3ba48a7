# src/tools/invoker_factory.py - v1
"""Factory: instantiate the external tool invoker from configuration."""

from __future__ import annotations

from runarchive.config.settings import Settings
from runarchive.tools.base_invoker import ExternalToolInvoker
from runarchive.tools.subprocess_invoker import SubprocessToolInvoker


def create_invoker(settings: Settings) -> ExternalToolInvoker | None:
    """Create the tool invoker described by settings.

    Returns:
        SubprocessToolInvoker when TOOL_COMMAND is set, otherwise None
        (validated items are handed off without running a tool).
    """
    if not settings.tool_command.strip():
        return None
    return SubprocessToolInvoker(
        command=settings.tool_command,
        timeout_s=settings.tool_timeout_s,
    )
