"""
Tests for monitor/logger.py -- console, verbose file and JSON output.
"""

import json
import logging
import os
import sys

import pytest

from monitor.logger import ConsoleFormatter, JSONFormatter, parse_level, setup_logging


def _record(level=logging.INFO, msg="Hello %s", args=("world",), exc_info=None):
    return logging.LogRecord(
        name="client.protocol", level=level, pathname="protocol.py",
        lineno=1, msg=msg, args=args, exc_info=exc_info,
    )


def _cleanup_handlers():
    root = logging.getLogger()
    for h in root.handlers[:]:
        if isinstance(h, logging.FileHandler):
            h.close()
            root.removeHandler(h)


class TestFormatters:
    def test_json_basic(self):
        parsed = json.loads(JSONFormatter().format(_record()))
        assert parsed["level"] == "INFO"
        assert parsed["logger"] == "client.protocol"
        assert parsed["msg"] == "Hello world"
        assert "ts" in parsed

    def test_json_with_exception(self):
        try:
            raise ValueError("bad frame")
        except ValueError:
            record = _record(level=logging.ERROR, msg="Failed", args=(), exc_info=sys.exc_info())
        parsed = json.loads(JSONFormatter().format(record))
        assert "bad frame" in parsed["exception"]

    def test_console_without_color(self):
        output = ConsoleFormatter(use_color=False).format(_record(level=logging.WARNING, msg="<< %s", args=("{}",)))
        assert "WRN" in output
        assert "<< {}" in output
        assert "\033[" not in output


class TestParseLevel:
    def test_known_levels(self):
        assert parse_level("debug") == logging.DEBUG
        assert parse_level("WARNING") == logging.WARNING

    def test_unknown_level_raises(self):
        with pytest.raises(ValueError):
            parse_level("chatty")


class TestSetupLogging:
    def teardown_method(self):
        _cleanup_handlers()

    def test_root_debug_console_at_level(self, tmp_path):
        setup_logging("WARNING", log_dir=str(tmp_path))
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        console = [
            h for h in root.handlers
            if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        ]
        assert len(console) == 1
        assert console[0].level == logging.WARNING

    def test_verbose_file_captures_debug_frames(self, tmp_path):
        log_path = setup_logging("INFO", log_dir=str(tmp_path))
        assert os.path.dirname(log_path) == str(tmp_path)
        assert os.path.basename(log_path).startswith("run_")

        logging.getLogger("client.protocol").debug(">> %s", '{"cmd":"getEvents"}')
        _cleanup_handlers()

        with open(log_path, encoding="utf-8") as f:
            assert '>> {"cmd":"getEvents"}' in f.read()

    def test_json_file_optional(self, tmp_path):
        setup_logging("INFO", log_dir=str(tmp_path))
        assert not any(isinstance(h.formatter, JSONFormatter) for h in logging.getLogger().handlers)
        _cleanup_handlers()

        json_path = tmp_path / "out.ndjson"
        setup_logging("INFO", json_log_file=str(json_path), log_dir=str(tmp_path))
        logging.getLogger("client.protocol").info("Match: %s", "e1")
        _cleanup_handlers()

        lines = json_path.read_text(encoding="utf-8").splitlines()
        assert json.loads(lines[-1])["msg"] == "Match: e1"

    def test_websockets_logger_quieted(self, tmp_path):
        setup_logging("DEBUG", log_dir=str(tmp_path))
        assert logging.getLogger("websockets").level == logging.WARNING
