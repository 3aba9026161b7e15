"""Tests for WindowsEventLogParser on exported event XML."""

# pylint: disable=missing-function-docstring

from datetime import datetime, timezone

import pytest

from logsift.core.exceptions import FileParsingError
from logsift.logs.windows import WindowsEventLogParser

NS = 'xmlns="http://schemas.microsoft.com/win/2004/08/events/event"'

FAILED_LOGON = f"""<Event {NS}>
  <System>
    <Provider Name="Microsoft-Windows-Security-Auditing"/>
    <EventID>4625</EventID>
    <Level>0</Level>
    <TimeCreated SystemTime="2025-06-10T12:00:00.000Z"/>
    <Computer>WS01</Computer>
    <Channel>Security</Channel>
  </System>
  <EventData>
    <Data Name="TargetUserName">admin</Data>
    <Data Name="IpAddress">203.0.113.7</Data>
  </EventData>
</Event>"""

SERVICE_STATE = f"""<Event {NS}>
  <System>
    <Provider Name="Service Control Manager"/>
    <EventID>7036</EventID>
    <Level>4</Level>
    <TimeCreated SystemTime="not-a-time"/>
  </System>
  <EventData>
    <Data>Windows Update</Data>
    <Data>running</Data>
  </EventData>
</Event>"""

LOG_CLEARED = """<Event>
  <System>
    <EventID>1102</EventID>
    <Level>4</Level>
    <TimeCreated SystemTime="2025-06-10T12:05:00Z"/>
  </System>
</Event>"""


def _events_xml(*events):
    return "<?xml version=\"1.0\" encoding=\"utf-8\"?>\n<Events>\n" + "\n".join(events) + "\n</Events>\n"


class TestWindowsEventXml:
    """Parsing of exported event XML."""

    def test_known_security_event(self, write_file):
        path = write_file("security-events.xml", _events_xml(FAILED_LOGON))
        findings = WindowsEventLogParser().parse(path)

        assert len(findings.security_events) == 1
        event = findings.security_events[0]
        assert event.event_type == "WinEvent-4625"
        assert event.severity == "medium"
        assert event.category == "authentication"
        assert event.message == "Failed Logon: admin from 203.0.113.7"
        assert event.attributes["Computer"] == "WS01"
        assert event.attributes["TargetUserName"] == "admin"
        assert event.timestamp == datetime(2025, 6, 10, 12, 0, 0, tzinfo=timezone.utc)
        assert "203.0.113.7" in findings.detected_iocs
        assert findings.raw_data["container"] == "xml"

    def test_unknown_event_uses_level_and_unnamed_data(self, write_file):
        findings = WindowsEventLogParser().parse(write_file("system-events.xml", _events_xml(SERVICE_STATE)))

        event = findings.security_events[0]
        assert event.event_type == "WinEvent-7036"
        assert event.severity == "info"
        assert event.timestamp is None
        assert event.attributes["Data1"] == "Windows Update"
        assert event.attributes["Data2"] == "running"
        assert event.message == "Windows Update | running"

    def test_audit_log_cleared_is_critical(self, write_file):
        findings = WindowsEventLogParser().parse(write_file("events.xml", _events_xml(LOG_CLEARED)))
        assert findings.security_events[0].severity == "critical"

    def test_sequence_without_root_element(self, write_file):
        path = write_file("dump-events.xml", FAILED_LOGON + "\n" + LOG_CLEARED + "\n")
        findings = WindowsEventLogParser().parse(path)
        assert [e.event_type for e in findings.security_events] == ["WinEvent-4625", "WinEvent-1102"]

    def test_events_without_system_are_skipped(self, write_file):
        broken = "<Event><EventData><Data>x</Data></EventData></Event>"
        findings = WindowsEventLogParser().parse(write_file("events.xml", _events_xml(broken, LOG_CLEARED)))
        assert len(findings.security_events) == 1
        assert findings.raw_data["skipped_records"] == 1

    def test_xml_content_with_evtx_extension(self, write_file):
        path = write_file("exported.evtx", _events_xml(FAILED_LOGON))
        parser = WindowsEventLogParser()
        assert parser.can_parse(path)
        assert len(parser.parse(path).security_events) == 1

    def test_invalid_xml_raises(self, write_file):
        with pytest.raises(FileParsingError) as excinfo:
            WindowsEventLogParser().parse(write_file("bad-events.xml", "<Event><System>"))
        assert "EVTX" in str(excinfo.value)


class TestWindowsCanParse:
    """Claiming rules for Windows event files."""

    def test_plain_xml_is_not_claimed(self, write_file):
        assert not WindowsEventLogParser().can_parse(write_file("pom.xml", "<project></project>"))

    def test_xml_with_event_content_is_claimed(self, write_file):
        assert WindowsEventLogParser().can_parse(write_file("export.xml", _events_xml(LOG_CLEARED)))

    def test_empty_and_unrelated(self, write_file):
        parser = WindowsEventLogParser()
        assert not parser.can_parse(write_file("empty.evtx", b""))
        assert not parser.can_parse(write_file("notes.txt", "hello"))
