"""Tests for the structured logging helpers."""

from __future__ import annotations

import json
import logging
import sys

from FallbackChain.logging_utils import (
    JSONFormatter,
    generate_run_id,
    mask_sensitive_data,
    setup_logging,
)


def _record(msg="hello", **extra):
    record = logging.LogRecord(
        name="FallbackChain.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestHelpers:
    def test_mask_sensitive_data(self):
        masked = mask_sensitive_data({"Authorization": "Bearer x", "status": 200})
        assert masked == {"Authorization": "***masked***", "status": 200}

    def test_run_ids_are_unique_hex(self):
        first, second = generate_run_id(), generate_run_id()
        assert first != second
        assert len(first) == 12
        int(first, 16)


class TestJSONFormatter:
    def test_basic_payload(self):
        payload = json.loads(JSONFormatter().format(_record(run_id="r1")))
        assert payload["message"] == "hello"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "FallbackChain.test"
        assert payload["run_id"] == "r1"
        assert payload["timestamp"].endswith("Z")

    def test_extra_fields_are_merged_and_masked(self):
        record = _record(extra_fields={"outcome": "timeout", "token": "abc"})
        payload = json.loads(JSONFormatter().format(record))
        assert payload["outcome"] == "timeout"
        assert payload["token"] == "***masked***"

    def test_exception_info(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()
        payload = json.loads(JSONFormatter().format(record))
        assert "ValueError: boom" in payload["exc_info"]


class TestSetupLogging:
    def test_installs_single_console_handler(self):
        setup_logging(level="DEBUG")
        logger = setup_logging(level="WARNING")
        managed = [h for h in logger.handlers if getattr(h, "_fallbackchain_managed", False)]
        assert len(managed) == 1
        assert logger.level == logging.WARNING
        assert logger.propagate is False

    def test_json_console(self):
        logger = setup_logging(json_logs=True)
        managed = [h for h in logger.handlers if getattr(h, "_fallbackchain_managed", False)]
        assert isinstance(managed[0].formatter, JSONFormatter)

    def test_log_file_receives_json_lines(self, tmp_path):
        path = tmp_path / "logs" / "fallback.jsonl"
        logger = setup_logging(level="INFO", log_file=path)
        logging.getLogger("FallbackChain.orchestrator").info(
            "attempt done", extra={"run_id": "r9", "extra_fields": {"attempt": 0}}
        )
        for handler in logger.handlers:
            handler.flush()
        line = path.read_text(encoding="utf-8").strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["run_id"] == "r9"
        assert payload["attempt"] == 0
        assert payload["logger"] == "FallbackChain.orchestrator"
