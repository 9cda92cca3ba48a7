# src/config/settings.py - v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for operator-supplied settings: input list, output
root, concurrency bounds for the validation and tool stages, member naming
conventions and logging. Nothing in the core reads environment variables
directly.
"""

from __future__ import annotations

import re
import shlex
import string
from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


_TEMPLATE_FIELDS = frozenset({"assay_id"})


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Inputs / outputs ===
    input_list: Path | None = None
    output_root: Path = Path("./output")

    # === Scheduling ===
    validation_concurrency: int = 1
    tool_concurrency: int = 1
    handoff_queue_size: int = 8

    # === External tool stage ===
    tool_command: str = ""
    tool_timeout_s: float | None = None

    # === Naming conventions ===
    archive_suffix_pattern: str = r"(\.raw)?\.(tar\.gz|tgz|tar)$"
    manifest_suffix: str = ".md5"
    bulk_reads_suffix: str = ".hifi_reads.bam"
    bulk_index_suffix: str = ".hifi_reads.bam.pbi"
    bulk_descriptor_suffix: str = ".hifi_reads.consensusreadset.xml"
    required_files: str = (
        "{assay_id}.consensusreadset.xml,{assay_id}.metadata.xml,{assay_id}.sts.xml"
    )
    transient_markers: str = ".transferdone,.tmp,.part,.lock"

    # === Validation ===
    stream_chunk_size: int = 1024 * 1024
    fail_policy: Literal["complete", "fail_fast"] = "complete"

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: str | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    @field_validator("validation_concurrency", "tool_concurrency", "handoff_queue_size")
    @classmethod
    def validate_positive_bound(cls, v: int, info) -> int:  # noqa: N805
        if v < 1:
            raise ValueError(f"{info.field_name} must be >= 1")
        return v

    @field_validator("stream_chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:  # noqa: N805
        if v <= 0:
            raise ValueError("stream_chunk_size must be > 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        try:
            re.compile(self.archive_suffix_pattern)
        except re.error as exc:
            errors.append(f"ARCHIVE_SUFFIX_PATTERN is not a valid regex: {exc}")

        bulk = self.bulk_suffixes
        if not all(bulk.values()):
            errors.append("Bulk member suffixes must not be empty")
        if not self.manifest_suffix:
            errors.append("MANIFEST_SUFFIX must not be empty")
        elif any(self.manifest_suffix.endswith(s) for s in bulk.values() if s):
            errors.append("MANIFEST_SUFFIX must not be classified as a bulk member")

        if self.tool_command.strip():
            try:
                shlex.split(self.tool_command)
            except ValueError as exc:
                errors.append(f"TOOL_COMMAND cannot be parsed: {exc}")

        for template in self.required_files_list:
            fields = {
                name for _, name, _, _ in string.Formatter().parse(template) if name
            }
            unknown = fields - _TEMPLATE_FIELDS
            if unknown:
                errors.append(
                    f"REQUIRED_FILES template {template!r} uses unknown fields: "
                    f"{', '.join(sorted(unknown))}"
                )

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def bulk_suffixes(self) -> dict[str, str]:
        """Bulk role -> member-name suffix."""
        return {
            "reads": self.bulk_reads_suffix,
            "index": self.bulk_index_suffix,
            "descriptor": self.bulk_descriptor_suffix,
        }

    @property
    def required_files_list(self) -> list[str]:
        """Parse comma-separated required-file templates."""
        return [f.strip() for f in self.required_files.split(",") if f.strip()]

    @property
    def transient_markers_list(self) -> list[str]:
        """Parse comma-separated transient marker suffixes."""
        return [m.strip() for m in self.transient_markers.split(",") if m.strip()]

    def required_file_names(self, assay_id: str) -> list[str]:
        """Resolve required-file templates for one assay."""
        return [t.format(assay_id=assay_id) for t in self.required_files_list]


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (CLI flags or tests).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
