"""Tests for the logging helpers."""

# pylint: disable=missing-function-docstring

import io
import json
import logging

from logsift.core.logger import SECURITY_CHANNEL, ColoredFormatter, JSONFormatter, get_logger, setup_logging


def _record(message="hello", level=logging.INFO):
    return logging.LogRecord("logsift.test", level, __file__, 1, message, (), None)


class TestFormatters:
    """Console and JSON formatting."""

    def test_plain_console_output(self):
        line = ColoredFormatter(use_color=False).format(_record())
        assert "[  INFO  ] logsift.test: hello" in line
        assert "\033[" not in line

    def test_colored_console_output(self):
        assert "\033[32m" in ColoredFormatter().format(_record())

    def test_json_output(self):
        record = _record("parsed", logging.WARNING)
        record.finding = {"event_type": "alert"}
        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "WARNING"
        assert data["message"] == "parsed"
        assert data["finding"] == {"event_type": "alert"}
        assert data["timestamp"].endswith("Z")


class TestSecurityChannel:
    """Structured findings."""

    def test_findings_go_to_security_channel(self, caplog):
        logger = get_logger("logsift.tests.channel")
        with caplog.at_level(logging.INFO):
            logger.security_event("malicious-activity", "high", "2 malicious events", file_name="auth.log", parser="SyslogParser")

        record = caplog.records[-1]
        assert record.name == SECURITY_CHANNEL
        assert record.levelno == logging.ERROR
        assert record.finding["file_name"] == "auth.log"
        assert record.finding["reported_by"] == "logsift.tests.channel"
        assert record.finding["parser"] == "SyslogParser"

    def test_alert_is_high(self, caplog):
        with caplog.at_level(logging.INFO):
            get_logger("logsift.tests.alert").alert("score 9/10", severity_score=9)
        assert caplog.records[-1].finding["event_type"] == "alert"
        assert caplog.records[-1].finding["severity_score"] == 9

    def test_security_log_file(self, tmp_path):
        security_log = tmp_path / "logs" / "findings.json"
        try:
            setup_logging(level="INFO", security_log=str(security_log), stream=io.StringIO())
            get_logger("logsift.tests.file").alert("score 9/10", file_name="x.log")
            for handler in logging.getLogger(SECURITY_CHANNEL).handlers:
                handler.flush()

            entry = json.loads(security_log.read_text().splitlines()[-1])
            assert entry["finding"]["file_name"] == "x.log"
        finally:
            for handler in logging.getLogger(SECURITY_CHANNEL).handlers:
                handler.close()
            setup_logging()

    def test_console_stream(self):
        stream = io.StringIO()
        try:
            setup_logging(level="WARNING", stream=stream)
            get_logger("logsift.tests.console").warning("disk nearly full")
            get_logger("logsift.tests.console").info("not shown")
        finally:
            setup_logging()
        output = stream.getvalue()
        assert "disk nearly full" in output
        assert "not shown" not in output
        assert "\033[" not in output
