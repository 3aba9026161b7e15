"""Tests for the shared data model.

Covers:
- Severity to priority mapping
- SecurityEvent construction invariants
- TechnicalFindings IOC bookkeeping
- FileMetadata built from the filesystem
"""

# pylint: disable=missing-function-docstring

import hashlib
from datetime import datetime

from logsift.core.models import (
    AnalysisRequest,
    AnalysisResult,
    FileMetadata,
    Priority,
    SecurityEvent,
    TechnicalFindings,
    get_priority_from_severity,
)


class TestPriorityMapping:
    """Tests for get_priority_from_severity."""

    def test_known_severities(self):
        assert get_priority_from_severity("critical") == Priority.CRITICAL
        assert get_priority_from_severity("4") == Priority.CRITICAL
        assert get_priority_from_severity("high") == Priority.HIGH
        assert get_priority_from_severity("medium") == Priority.MEDIUM
        assert get_priority_from_severity("info") == Priority.LOW
        assert get_priority_from_severity("0") == Priority.LOW

    def test_case_and_whitespace_are_ignored(self):
        assert get_priority_from_severity("  HIGH ") == Priority.HIGH

    def test_unknown_or_missing_is_medium(self):
        assert get_priority_from_severity(None) == Priority.MEDIUM
        assert get_priority_from_severity("") == Priority.MEDIUM
        assert get_priority_from_severity("bogus") == Priority.MEDIUM

    def test_priorities_are_ordered(self):
        assert Priority.LOW < Priority.MEDIUM < Priority.HIGH < Priority.CRITICAL


class TestSecurityEvent:
    """Tests for SecurityEvent invariants."""

    def test_priority_follows_severity(self):
        event = SecurityEvent(severity="critical")
        assert event.priority == Priority.CRITICAL
        event.severity = "low"
        assert event.priority == Priority.LOW

    def test_confidence_is_clamped(self):
        assert SecurityEvent(confidence_score=1.7).confidence_score == 1.0
        assert SecurityEvent(confidence_score=-3).confidence_score == 0.0

    def test_attribute_values_are_strings(self):
        event = SecurityEvent(attributes={"port": 22})
        assert event.attributes == {"port": "22"}

    def test_set_property_coerces_unsupported_types(self):
        event = SecurityEvent()
        stamp = datetime(2025, 6, 10, 12, 0, 0)
        event.set_property("count", 3)
        event.set_property("seen", stamp)
        event.set_property("items", [1, 2])
        assert event.properties == {"count": 3, "seen": stamp, "items": "[1, 2]"}

    def test_text_falls_back_to_message(self):
        assert SecurityEvent(message="raw line").text == "raw line"
        assert SecurityEvent(message="raw", description="nice").text == "nice"

    def test_event_ids_are_unique(self):
        assert SecurityEvent().event_id != SecurityEvent().event_id


class TestTechnicalFindings:
    """Tests for IOC and counter bookkeeping."""

    def test_iocs_are_deduplicated_in_order(self):
        findings = TechnicalFindings(detected_iocs=["8.8.8.8", "evil.com", "8.8.8.8"])
        assert findings.detected_iocs == ["8.8.8.8", "evil.com"]
        assert findings.add_ioc("evil.com") is False
        assert findings.add_ioc("1.2.3.4") is True
        assert findings.detected_iocs == ["8.8.8.8", "evil.com", "1.2.3.4"]

    def test_add_event_records_associated_iocs(self):
        findings = TechnicalFindings()
        findings.add_event(SecurityEvent(event_type="ssh", associated_iocs=["9.9.9.9"]))
        assert findings.detected_iocs == ["9.9.9.9"]

    def test_recount(self):
        findings = TechnicalFindings(detected_iocs=["8.8.8.8", "1.1.1.1", "evil.com"])
        findings.security_events.extend([
            SecurityEvent(event_type="firewall"),
            SecurityEvent(event_type="firewall"),
            SecurityEvent(),
        ])
        findings.recount()
        assert findings.iocs_by_category == {"ip": 2, "domain": 1}
        assert findings.events_by_type == {"firewall": 2, "unknown": 1}


class TestFileMetadata:
    """Tests for FileMetadata.from_path."""

    def test_from_path(self, write_file):
        content = "Jun 10 12:00:00 host app: one\nJun 10 12:00:01 host app: two\n"
        path = write_file("app.log", content)

        meta = FileMetadata.from_path(path, "text/plain")

        assert meta.file_name == "app.log"
        assert meta.size == len(content.encode())
        assert meta.line_count == 2
        assert meta.hash == hashlib.sha256(content.encode()).hexdigest()
        assert meta.file_type == "LogFile"
        assert meta.created is not None and meta.created.tzinfo is not None


class TestRequestAndResult:
    """Tests for request naming and result export."""

    def test_display_name(self):
        assert AnalysisRequest("/tmp/x/auth.log").display_name == "auth.log"
        assert AnalysisRequest("/tmp/upload.bin", original_file_name="auth.log").display_name == "auth.log"

    def test_to_dict_hides_internal_index(self):
        data = AnalysisResult(technical=TechnicalFindings(detected_iocs=["8.8.8.8"])).to_dict()
        assert "_ioc_index" not in data["technical"]
        assert data["technical"]["detected_iocs"] == ["8.8.8.8"]
