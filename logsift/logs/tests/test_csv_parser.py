"""Tests for CsvLogParser: CSV exports and the plain-text fallback."""

# pylint: disable=missing-function-docstring

from datetime import datetime

import pytest

from logsift.core.models import Priority
from logsift.logs.csvlog import CsvLogParser

AUTH_CSV = "\n".join([
    "timestamp,severity,source_ip,message,event_type",
    "2025-06-10 12:00:00,high,203.0.113.5,Failed login for admin,auth",
    "2025-06-10 12:05:00,low,198.51.100.7,User logged out,session",
]) + "\n"


class TestCanParse:
    """Which files the parser accepts."""

    def test_csv_needs_a_delimited_header(self, write_file):
        parser = CsvLogParser()
        assert parser.can_parse(write_file("auth.csv", AUTH_CSV))
        assert not parser.can_parse(write_file("flat.csv", "just one column\nvalue\n"))

    def test_any_readable_text(self, write_file):
        parser = CsvLogParser()
        assert parser.can_parse(write_file("notes.txt", "nothing special here\n"))
        assert parser.can_parse(write_file("app.log", "service started\n"))

    def test_rejects_binary_and_other_extensions(self, write_file):
        parser = CsvLogParser()
        assert not parser.can_parse(write_file("blob.log", b"\x00\xff\xfe\x01" * 64))
        assert not parser.can_parse(write_file("data.json", '{"a": "failed"}'))
        assert not parser.can_parse(write_file("empty.txt", ""))

    def test_text_scores_below_recognized_formats(self, write_file):
        parser = CsvLogParser()
        assert parser.match_score(write_file("app.log", "failed\n")) == 0
        assert parser.match_score(write_file("auth.csv", AUTH_CSV)) == float("inf")


class TestCsvRecords:
    """Column mapping for CSV exports."""

    def test_security_rows_become_events(self, write_file):
        findings = CsvLogParser().parse(write_file("auth.csv", AUTH_CSV))

        assert len(findings.security_events) == 1
        event = findings.security_events[0]
        assert event.timestamp == datetime(2025, 6, 10, 12, 0, 0)
        assert event.severity == "high"
        assert event.event_type == "auth"
        assert event.description == "Failed login for admin"
        assert event.attributes["source_ip"] == "203.0.113.5"
        assert event.source == "csv"

    def test_iocs_come_from_every_row(self, write_file):
        findings = CsvLogParser().parse(write_file("auth.csv", AUTH_CSV))
        assert findings.detected_iocs == ["203.0.113.5", "198.51.100.7"]

    def test_raw_data(self, write_file):
        findings = CsvLogParser().parse(write_file("auth.csv", AUTH_CSV))
        assert findings.file_format == "CSV"
        assert findings.raw_data["record_count"] == 2
        assert findings.raw_data["columns"] == ["timestamp", "severity", "source_ip", "message", "event_type"]
        assert findings.total_lines == 3

    @pytest.mark.parametrize("value,expected", [
        ("4", "high"),
        ("Critical", "high"),
        ("moderate", "medium"),
        ("info", "low"),
        ("bogus", "medium"),
    ])
    def test_severity_column_mapping(self, write_file, value, expected):
        path = write_file("alerts.csv", f"level,details\n{value},connection blocked\n")
        assert CsvLogParser().parse(path).security_events[0].severity == expected

    def test_severity_from_content_without_column(self, write_file):
        path = write_file("alerts.csv", "host,details\nws01,malware quarantined\n")
        event = CsvLogParser().parse(path).security_events[0]
        assert event.severity == "high"
        assert event.priority == Priority.HIGH

    def test_description_falls_back_to_first_columns(self, write_file):
        path = write_file("alerts.csv", "host,user,action,extra\nws01,bob,denied,x\n")
        event = CsvLogParser().parse(path).security_events[0]
        assert event.description == "ws01, bob, denied"
        assert event.event_type == "denied"
        assert event.timestamp is None

    def test_header_only(self, write_file):
        findings = CsvLogParser().parse(write_file("empty.csv", "timestamp,message\n"))
        assert findings.security_events == []
        assert findings.raw_data["record_count"] == 0


class TestTextFallback:
    """Keyword scan of plain text logs."""

    def test_keyword_lines_become_events(self, write_file):
        path = write_file("app.log", "\n".join([
            "2025-06-10 12:00:00 ERROR disk check failed on ws01",
            "routine heartbeat",
            "",
            "Jun 10 12:01:00 malware beacon to 203.0.113.9",
        ]) + "\n")

        findings = CsvLogParser().parse(path)

        assert findings.file_format == "TEXT"
        assert findings.metadata.mime_type == "text/plain"
        assert findings.total_lines == 4
        first, second = findings.security_events
        assert first.timestamp == datetime(2025, 6, 10, 12, 0, 0)
        assert first.severity == "medium"
        assert first.attributes == {"line_number": "1"}
        assert second.severity == "high"
        assert (second.timestamp.month, second.timestamp.day) == (6, 10)
        assert findings.detected_iocs == ["203.0.113.9"]

    def test_quiet_file_has_no_events(self, write_file):
        findings = CsvLogParser().parse(write_file("notes.txt", "all good\nstill good\n"))
        assert findings.security_events == []
        assert findings.raw_data["line_count"] == 2
