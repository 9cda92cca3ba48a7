# tests/unit/config/test_settings.py - v1
"""Tests for config/settings.py - typed Settings and validation rules."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from runarchive.config.settings import ConfigurationError, Settings, load_settings


class TestSettingsDefaults:
    def test_default_concurrency_is_sequential(self):
        s = Settings(_env_file=None)
        assert s.validation_concurrency == 1
        assert s.tool_concurrency == 1
        assert s.handoff_queue_size == 8

    def test_default_naming(self):
        s = Settings(_env_file=None)
        assert s.manifest_suffix == ".md5"
        assert s.bulk_suffixes == {
            "reads": ".hifi_reads.bam",
            "index": ".hifi_reads.bam.pbi",
            "descriptor": ".hifi_reads.consensusreadset.xml",
        }

    def test_default_tool_stage_disabled(self):
        s = Settings(_env_file=None)
        assert s.tool_command == ""
        assert s.tool_timeout_s is None

    def test_default_policy_and_output(self):
        s = Settings(_env_file=None)
        assert s.fail_policy == "complete"
        assert s.output_root == Path("./output")
        assert s.log_format == "text"


class TestSettingsHelpers:
    def test_required_file_names(self):
        s = Settings(_env_file=None)
        assert s.required_file_names("m1") == [
            "m1.consensusreadset.xml", "m1.metadata.xml", "m1.sts.xml",
        ]

    def test_required_files_list_strips_blanks(self):
        s = Settings(_env_file=None, required_files=" a.xml , ,{assay_id}.b ")
        assert s.required_files_list == ["a.xml", "{assay_id}.b"]

    def test_transient_markers_list(self):
        s = Settings(_env_file=None, transient_markers=".tmp, .lock")
        assert s.transient_markers_list == [".tmp", ".lock"]


class TestSettingsValidation:
    def test_bad_suffix_regex(self):
        with pytest.raises(ConfigurationError, match="ARCHIVE_SUFFIX_PATTERN"):
            Settings(_env_file=None, archive_suffix_pattern="(unclosed")

    def test_unknown_template_field(self):
        with pytest.raises(ConfigurationError, match="unknown fields: run_id"):
            Settings(_env_file=None, required_files="{run_id}.xml")

    def test_manifest_suffix_cannot_be_bulk(self):
        with pytest.raises(ConfigurationError, match="MANIFEST_SUFFIX"):
            Settings(_env_file=None, manifest_suffix=".hifi_reads.bam")

    def test_empty_bulk_suffix(self):
        with pytest.raises(ConfigurationError, match="Bulk member suffixes"):
            Settings(_env_file=None, bulk_index_suffix="")

    def test_unparseable_tool_command(self):
        with pytest.raises(ConfigurationError, match="TOOL_COMMAND"):
            Settings(_env_file=None, tool_command="tool 'unterminated")

    def test_errors_are_joined(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(
                _env_file=None,
                archive_suffix_pattern="(",
                required_files="{nope}",
            )
        assert "ARCHIVE_SUFFIX_PATTERN" in str(exc_info.value)
        assert "REQUIRED_FILES" in str(exc_info.value)

    @pytest.mark.parametrize("field", [
        "validation_concurrency", "tool_concurrency", "handoff_queue_size",
    ])
    def test_bounds_must_be_positive(self, field):
        with pytest.raises(ValidationError, match=field):
            Settings(_env_file=None, **{field: 0})

    def test_chunk_size_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, stream_chunk_size=0)

    def test_fail_policy_literal(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, fail_policy="sometimes")


class TestLoadSettings:
    def test_overrides(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        s = load_settings(tool_concurrency=4, output_root=tmp_path / "out")
        assert s.tool_concurrency == 4
        assert s.output_root == tmp_path / "out"

    def test_reads_environment(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("VALIDATION_CONCURRENCY", "3")
        monkeypatch.setenv("FAIL_POLICY", "fail_fast")
        s = load_settings()
        assert s.validation_concurrency == 3
        assert s.fail_policy == "fail_fast"

    def test_reads_env_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_text("TOOL_COMMAND=echo {run_id}\n")
        s = load_settings()
        assert s.tool_command == "echo {run_id}"
