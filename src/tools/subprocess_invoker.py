# src/tools/subprocess_invoker.py - v2
"""Run the downstream tool as a command-line program.

The command is a shell-like template split with ``shlex``; each argument
is formatted with the hand-off placeholders:

    {run_id} {assay_id} {archive} {reads_member} {index_member}
    {descriptor_member} {metadata_dir} {output_dir}

No shell is involved, so placeholder values never need quoting.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
import time
from pathlib import Path

from runarchive.core.errors import ExternalToolFailure
from runarchive.core.models import HandOff
from runarchive.tools.base_invoker import ExternalToolInvoker, ToolResult

logger = logging.getLogger(__name__)

_TAIL_CHARS = 2000
_TAIL_BYTES = 4 * _TAIL_CHARS
_READ_CHUNK = 64 * 1024


class SubprocessToolInvoker(ExternalToolInvoker):
    """Launch one subprocess per hand-off and wait for its exit status.

    Args:
        command: Command template (shlex syntax).
        timeout_s: Kill the process after this many seconds (None = no limit).
    """

    def __init__(self, command: str, timeout_s: float | None = None) -> None:
        self._argv_template = shlex.split(command)
        if not self._argv_template:
            raise ValueError("Tool command must not be empty")
        self._timeout_s = timeout_s

    @property
    def tool_name(self) -> str:
        return Path(self._argv_template[0]).name

    def build_argv(self, handoff: HandOff, output_dir: Path) -> list[str]:
        """Format every template argument with the hand-off placeholders."""
        values = {
            "run_id": handoff.run_id,
            "assay_id": handoff.assay_id,
            "archive": str(handoff.archive_path),
            "reads_member": handoff.bulk_members.get("reads", ""),
            "index_member": handoff.bulk_members.get("index", ""),
            "descriptor_member": handoff.bulk_members.get("descriptor", ""),
            "metadata_dir": str(handoff.metadata_dir),
            "output_dir": str(output_dir),
        }
        try:
            return [arg.format(**values) for arg in self._argv_template]
        except (KeyError, IndexError, ValueError) as exc:
            raise ExternalToolFailure(
                f"Invalid tool command template {self._argv_template!r}: {exc}"
            ) from exc

    async def invoke(self, handoff: HandOff, output_dir: Path) -> ToolResult:
        argv = self.build_argv(handoff, output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Running %s for %s", self.tool_name, handoff.run_id)
        logger.debug("argv: %s", shlex.join(argv))

        start = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(output_dir),
            )
        except OSError as exc:
            raise ExternalToolFailure(f"Cannot launch {argv[0]}: {exc}") from exc

        try:
            stdout, stderr, _ = await asyncio.wait_for(
                asyncio.gather(
                    _read_tail(proc.stdout), _read_tail(proc.stderr), proc.wait(),
                ),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise ExternalToolFailure(
                f"{self.tool_name} timed out after {self._timeout_s}s",
                returncode=proc.returncode,
            ) from exc
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        duration = time.monotonic() - start
        stderr_tail = _tail(stderr)
        if proc.returncode != 0:
            raise ExternalToolFailure(
                f"{self.tool_name} exited with status {proc.returncode}: {stderr_tail}",
                returncode=proc.returncode,
            )

        logger.info("%s finished for %s in %.1fs", self.tool_name, handoff.run_id, duration)
        return ToolResult(
            returncode=0,
            duration_seconds=round(duration, 2),
            stdout_tail=_tail(stdout),
            stderr_tail=stderr_tail,
        )


async def _read_tail(stream: asyncio.StreamReader | None) -> bytes:
    """Drain ``stream`` keeping only its last ``_TAIL_BYTES`` bytes."""
    if stream is None:
        return b""
    tail = bytearray()
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            break
        tail += chunk
        if len(tail) > _TAIL_BYTES:
            del tail[:-_TAIL_BYTES]
    return bytes(tail)


def _tail(data: bytes | None) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")[-_TAIL_CHARS:].strip()
