# tests/unit/logging/test_logger.py - v1
"""Tests for logging/logger.py - logger factory and formatters."""

from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler

import pytest

from runarchive.logging.context import set_run_context, set_stage_context
from runarchive.logging.logger import (
    ROOT_LOGGER,
    JsonFormatter,
    TextFormatter,
    get_logger,
    parse_size,
    setup_logging,
)


def _record(msg: str = "Hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test", level=logging.INFO, pathname="", lineno=0,
        msg=msg, args=(), exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger(ROOT_LOGGER)
    saved = (list(root.handlers), root.level)
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in saved[0]:
        root.addHandler(handler)
    root.setLevel(saved[1])


class TestJsonFormatter:
    def test_format_basic(self):
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Hello"
        assert "timestamp" in parsed
        assert "context" not in parsed

    def test_format_with_context(self):
        set_run_context("sample_001", "m1")
        set_stage_context("validate")
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["context"] == {
            "run_id": "sample_001", "assay_id": "m1", "stage": "validate",
        }

    def test_structured_data(self):
        parsed = json.loads(JsonFormatter().format(_record(data={"member": "a.bam"})))
        assert parsed["data"] == {"member": "a.bam"}

    def test_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()
        parsed = json.loads(JsonFormatter().format(record))
        assert "ValueError: boom" in parsed["exception"]


class TestTextFormatter:
    def test_format_basic(self):
        output = TextFormatter().format(_record("Hello text"))
        assert "Hello text" in output
        assert "INFO" in output

    def test_includes_run_and_stage(self):
        set_run_context("sample_001")
        set_stage_context("inspect")
        output = TextFormatter().format(_record())
        assert "[sample_001]" in output
        assert "(inspect)" in output


class TestParseSize:
    @pytest.mark.parametrize("text,expected", [
        ("10MB", 10 * 1024**2), ("512kb", 512 * 1024), ("1 GB", 1024**3),
    ])
    def test_valid(self, text, expected):
        assert parse_size(text) == expected

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_size("ten megabytes")


class TestGetLogger:
    def test_returns_logger(self):
        assert get_logger("test_module").name == "runarchive.test_module"


class TestSetupLogging:
    def test_setup_json(self, restore_root_logger):
        setup_logging(level="DEBUG", log_format="json")
        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, JsonFormatter)

    def test_reinit_replaces_handlers(self, restore_root_logger):
        setup_logging(level="INFO")
        setup_logging(level="WARNING")
        assert restore_root_logger.level == logging.WARNING
        assert len(restore_root_logger.handlers) == 1

    def test_log_file(self, restore_root_logger, tmp_path):
        log_file = tmp_path / "logs" / "runarchive.log"
        setup_logging(level="INFO", log_file=str(log_file), rotation="1MB", retention=3)

        file_handlers = [
            h for h in restore_root_logger.handlers if isinstance(h, RotatingFileHandler)
        ]
        assert len(file_handlers) == 1
        assert file_handlers[0].maxBytes == 1024**2
        assert file_handlers[0].backupCount == 3

        logging.getLogger("runarchive.test").info("written to file")
        file_handlers[0].flush()
        assert "written to file" in log_file.read_text()
