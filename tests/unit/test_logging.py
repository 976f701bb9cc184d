"""Unit tests for structured logging configuration."""

import json
import logging
import sys

import pytest

from jcfa.logging_config import StructuredFormatter, TextFormatter, configure_logging


def make_record(msg="bulk_create_chunk", **extras):
    record = logging.LogRecord(
        name="jcfa.jira.issues",
        level=logging.INFO,
        pathname="issues.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extras.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_required_fields(self):
        log_data = json.loads(StructuredFormatter().format(make_record()))

        assert log_data["level"] == "INFO"
        assert log_data["logger"] == "jcfa.jira.issues"
        assert log_data["message"] == "bulk_create_chunk"
        assert log_data["timestamp"].endswith("Z")
        assert "context" not in log_data

    def test_extras_in_context(self):
        output = StructuredFormatter().format(make_record(chunk=2, size=50))

        assert json.loads(output)["context"] == {"chunk": 2, "size": 50}

    def test_sensitive_extras_redacted(self):
        output = StructuredFormatter().format(
            make_record(api_token="abc123", Authorization="Basic xyz", issue_key="PROJ-1")
        )

        context = json.loads(output)["context"]
        assert context["api_token"] == "[REDACTED]"
        assert context["Authorization"] == "[REDACTED]"
        assert context["issue_key"] == "PROJ-1"
        assert "abc123" not in output

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record()
            record.exc_info = sys.exc_info()

        log_data = json.loads(StructuredFormatter().format(record))
        assert "RuntimeError: boom" in log_data["exception"]


class TestTextFormatter:
    def test_extras_appended_sorted(self):
        line = TextFormatter().format(make_record(size=50, chunk=2))

        assert "[INFO] jcfa.jira.issues: bulk_create_chunk" in line
        assert line.endswith("chunk=2 size=50")

    def test_token_redacted(self):
        line = TextFormatter().format(make_record(token="abc123"))
        assert "token=[REDACTED]" in line


class TestConfigureLogging:
    def test_level_and_no_propagation(self):
        configure_logging("DEBUG")

        logger = logging.getLogger("jcfa")
        assert logger.level == logging.DEBUG
        assert logger.propagate is False

    def test_no_handler_stacking(self):
        configure_logging()
        configure_logging("INFO", "json")

        logger = logging.getLogger("jcfa")
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, StructuredFormatter)

    @pytest.mark.parametrize(
        "env, expected_level, formatter",
        [
            ({}, logging.WARNING, TextFormatter),
            ({"JCFA_LOG_LEVEL": "error", "JCFA_LOG_FORMAT": "json"}, logging.ERROR, StructuredFormatter),
            ({"JCFA_LOG_LEVEL": "bogus"}, logging.WARNING, TextFormatter),
        ],
    )
    def test_environment(self, monkeypatch, env, expected_level, formatter):
        for key, value in env.items():
            monkeypatch.setenv(key, value)

        configure_logging()

        logger = logging.getLogger("jcfa")
        assert logger.level == expected_level
        assert isinstance(logger.handlers[0].formatter, formatter)

    def test_writes_to_stderr(self, capsys):
        configure_logging("INFO")

        logging.getLogger("jcfa.batch").info("batch_complete", extra={"created_count": 3})

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "batch_complete" in captured.err
        assert "created_count=3" in captured.err
