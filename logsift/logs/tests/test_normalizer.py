"""Tests for LogNormalizer."""

# pylint: disable=missing-function-docstring

from datetime import datetime, timedelta, timezone

from logsift.core.models import SecurityEvent
from logsift.logs.normalizer import LogNormalizer


class TestLogNormalizer:
    """Canonical timestamps, sources and attribute keys."""

    def test_local_timestamp_becomes_utc(self):
        local = datetime(2025, 6, 10, 12, 0, 0)
        event = SecurityEvent(timestamp=local, source="syslog", attributes={"source_ip": "1.1.1.1"})

        result = LogNormalizer().normalize([event])[0]

        assert result.timestamp.tzinfo == timezone.utc
        assert result.timestamp == local.astimezone()
        assert result.attributes == {"ip": "1.1.1.1"}

    def test_aware_timestamp_is_converted(self):
        stamp = datetime(2025, 6, 10, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        result = LogNormalizer().normalize_event(SecurityEvent(timestamp=stamp))
        assert result.timestamp == datetime(2025, 6, 10, 12, 0, tzinfo=timezone.utc)
        assert result.timestamp.utcoffset() == timedelta(0)

    def test_missing_timestamp_stays_missing(self):
        assert LogNormalizer().normalize_event(SecurityEvent()).timestamp is None

    def test_out_of_range_local_timestamp_is_kept(self):
        event = SecurityEvent(timestamp=datetime(1, 1, 1, 0, 0, 0), description="bogus clock")
        result = LogNormalizer().normalize([event])[0]
        assert result.timestamp.tzinfo == timezone.utc
        assert result.timestamp.year == 1

    def test_source_is_trimmed_and_upper_cased(self):
        assert LogNormalizer().normalize_event(SecurityEvent(source="  sshd ")).source == "SSHD"

    def test_aliases_are_case_insensitive(self):
        attributes = {
            "ClientIP": "10.0.0.1",
            "DST_IP": "10.0.0.2",
            "TargetUserName": "admin",
            "Computer": "WS01",
            "EventID": "4625",
        }
        result = LogNormalizer().normalize_event(SecurityEvent(attributes=attributes))
        assert result.attributes == {
            "ip": "10.0.0.1",
            "dest_ip": "10.0.0.2",
            "user": "admin",
            "host": "WS01",
            "EventID": "4625",
        }

    def test_explicit_canonical_key_wins(self):
        before = SecurityEvent(attributes={"src": "1.1.1.1", "ip": "2.2.2.2"})
        after = SecurityEvent(attributes={"ip": "2.2.2.2", "src": "1.1.1.1"})
        normalizer = LogNormalizer()
        assert normalizer.normalize_event(before).attributes == {"ip": "2.2.2.2"}
        assert normalizer.normalize_event(after).attributes == {"ip": "2.2.2.2"}

    def test_input_is_not_mutated(self):
        event = SecurityEvent(source="web", attributes={"client_ip": "1.1.1.1"}, associated_iocs=["1.1.1.1"])
        result = LogNormalizer().normalize_event(event)

        assert event.source == "web"
        assert event.attributes == {"client_ip": "1.1.1.1"}
        result.associated_iocs.append("2.2.2.2")
        assert event.associated_iocs == ["1.1.1.1"]
        assert result.event_id == event.event_id

    def test_idempotent(self):
        events = [
            SecurityEvent(timestamp=datetime(2025, 6, 10, 12, 0), source=" fw ",
                          attributes={"SRC": "1.1.1.1", "hostname": "gw"}),
            SecurityEvent(source="dns", attributes={"client_ip": "2.2.2.2", "query": "x.org"}),
        ]
        normalizer = LogNormalizer()
        once = normalizer.normalize(events)
        twice = normalizer.normalize(once)
        assert twice == once

    def test_custom_aliases(self):
        normalizer = LogNormalizer(aliases={"c-ip": "ip"})
        assert normalizer.normalize_event(SecurityEvent(attributes={"c-ip": "3.3.3.3"})).attributes == {"ip": "3.3.3.3"}
