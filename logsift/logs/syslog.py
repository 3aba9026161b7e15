"""
Syslog Parser - Parse syslog messages into security events.
"""

import re
from datetime import datetime
from typing import Any, Dict, Optional

from logsift.core.logger import get_logger
from logsift.core.models import SecurityEvent
from logsift.core.utils import parse_bsd_timestamp, parse_timestamp
from logsift.logs.base import IPV4_PATTERN, LineParser

logger = get_logger(__name__)


class SyslogParser(LineParser):
    """
    Parse syslog messages (RFC 3164 and RFC 5424).

    Features:
    - BSD syslog (RFC 3164)
    - Modern syslog (RFC 5424)
    - Structured data parsing
    - Facility/severity decoding
    - Authentication keyword detection
    """

    SUPPORTED_FILE_TYPE = "SYSLOG"
    PRIORITY = 65
    EXTENSIONS = (".syslog",)

    # Syslog facilities
    FACILITIES = {
        0: "kern", 1: "user", 2: "mail", 3: "daemon",
        4: "auth", 5: "syslog", 6: "lpr", 7: "news",
        8: "uucp", 9: "cron", 10: "authpriv", 11: "ftp",
        12: "ntp", 13: "audit", 14: "alert", 15: "clock",
        16: "local0", 17: "local1", 18: "local2", 19: "local3",
        20: "local4", 21: "local5", 22: "local6", 23: "local7",
    }

    # Syslog severities
    SEVERITIES = {
        0: "emerg", 1: "alert", 2: "crit", 3: "err",
        4: "warning", 5: "notice", 6: "info", 7: "debug",
    }

    # Syslog severity code -> event severity
    SEVERITY_LEVELS = {
        0: "critical", 1: "critical", 2: "critical", 3: "high",
        4: "medium", 5: "low", 6: "low", 7: "low",
    }

    # RFC 5424 regex
    RFC5424_PATTERN = re.compile(
        r'^<(?P<priority>\d+)>(?P<version>\d+)\s+'
        r'(?P<timestamp>\S+)\s+'
        r'(?P<hostname>\S+)\s+'
        r'(?P<appname>\S+)\s+'
        r'(?P<procid>\S+)\s+'
        r'(?P<msgid>\S+)\s+'
        r'(?P<sd>(?:\[.*?\])+|-)\s*'
        r'(?P<message>.*)?$'
    )

    # RFC 3164 regex
    RFC3164_PATTERN = re.compile(
        r'^(?:<(?P<priority>\d+)>)?'
        r'(?P<timestamp>\w{3}\s+\d{1,2}\s+\d{2}:\d{2}:\d{2})\s+'
        r'(?P<hostname>\S+)\s+'
        r'(?P<tag>[\w\-/.]+)(?:\[(?P<pid>\d+)\])?:\s*'
        r'(?P<message>.*)$'
    )

    # Structured data regex
    SD_PATTERN = re.compile(r'\[([^\]]+)\]')
    SD_PARAM_PATTERN = re.compile(r'(\S+)="([^"]*)"')

    # (keyword, minimum severity, category, subcategory)
    AUTH_KEYWORDS = [
        ("failed password", "medium", "authentication", "failure"),
        ("authentication failure", "medium", "authentication", "failure"),
        ("invalid user", "medium", "authentication", "failure"),
        ("accepted password", None, "authentication", "success"),
        ("accepted publickey", None, "authentication", "success"),
        ("session opened", None, "authentication", "session"),
        ("command=", None, "privilege", "sudo"),
    ]

    SEVERITY_RANK = {"low": 1, "medium": 2, "high": 3, "critical": 4}

    def recognizes(self, line: str) -> bool:
        return bool(self.RFC5424_PATTERN.match(line) or self.RFC3164_PATTERN.match(line))

    def parse_line(self, line: str, stats: Optional[Dict[str, Any]] = None) -> Optional[SecurityEvent]:
        """Parse a single syslog line."""
        # Try RFC 5424 first
        match = self.RFC5424_PATTERN.match(line)
        if match:
            self._count(stats, "formats", "rfc5424")
            fields = self._parse_rfc5424(match)
        else:
            match = self.RFC3164_PATTERN.match(line)
            if not match:
                return None
            self._count(stats, "formats", "rfc3164")
            fields = self._parse_rfc3164(match)

        facility = fields["priority"] >> 3
        severity_code = fields["priority"] & 0x07
        facility_name = self.FACILITIES.get(facility, str(facility))
        self._count(stats, "by_facility", facility_name)
        self._count(stats, "by_host", fields["hostname"] or "unknown")

        message = fields["message"]
        severity = self.SEVERITY_LEVELS.get(severity_code, "low")
        category, subcategory = "system", facility_name

        lowered = message.lower()
        for keyword, minimum, kw_category, kw_subcategory in self.AUTH_KEYWORDS:
            if keyword in lowered:
                category, subcategory = kw_category, kw_subcategory
                if minimum and self.SEVERITY_RANK[minimum] > self.SEVERITY_RANK[severity]:
                    severity = minimum
                break

        attributes = {
            "host": fields["hostname"],
            "app": fields["app"],
            "facility": facility_name,
            "syslog_severity": self.SEVERITIES.get(severity_code, str(severity_code)),
        }
        if fields["pid"]:
            attributes["pid"] = fields["pid"]
        ip_match = IPV4_PATTERN.search(message)
        if ip_match:
            attributes["source_ip"] = ip_match.group(0)
        user_match = re.search(r'(?:for|user)\s+(?:invalid user\s+)?(?P<user>[\w.\-]+)\s+from', message)
        if user_match:
            attributes["user"] = user_match.group("user")
        for sd_id, params in fields["structured_data"].items():
            for key, value in params.items():
                attributes[f"{sd_id}.{key}"] = value

        return SecurityEvent(
            timestamp=fields["timestamp"],
            event_type=fields["app"] or "syslog",
            source=fields["hostname"] or "syslog",
            message=message,
            description=self._truncate(message),
            severity=severity,
            attributes=attributes,
            category=category,
            subcategory=subcategory,
            confidence_score=0.8 if category == "authentication" else 0.5,
        )

    def _parse_rfc5424(self, match: re.Match) -> Dict[str, Any]:
        """Parse RFC 5424 format."""
        groups = match.groupdict()

        # Parse structured data
        sd: Dict[str, Dict[str, str]] = {}
        sd_raw = groups["sd"]
        if sd_raw != "-":
            for sd_match in self.SD_PATTERN.finditer(sd_raw):
                parts = sd_match.group(1).split(" ", 1)
                sd_id = parts[0]
                sd[sd_id] = {}
                if len(parts) > 1:
                    for param_match in self.SD_PARAM_PATTERN.finditer(parts[1]):
                        sd[sd_id][param_match.group(1)] = param_match.group(2)

        timestamp: Optional[datetime] = None
        if groups["timestamp"] != "-":
            timestamp = parse_timestamp(groups["timestamp"])

        return {
            "priority": int(groups["priority"]),
            "timestamp": timestamp,
            "hostname": groups["hostname"] if groups["hostname"] != "-" else "",
            "app": groups["appname"] if groups["appname"] != "-" else "",
            "pid": groups["procid"] if groups["procid"] != "-" else None,
            "structured_data": sd,
            "message": groups["message"] or "",
        }

    def _parse_rfc3164(self, match: re.Match) -> Dict[str, Any]:
        """Parse RFC 3164 (BSD) format."""
        groups = match.groupdict()

        return {
            "priority": int(groups["priority"] or 13),  # Default to user.notice
            "timestamp": parse_bsd_timestamp(groups["timestamp"]),
            "hostname": groups["hostname"],
            "app": groups["tag"],
            "pid": groups["pid"],
            "structured_data": {},
            "message": groups["message"],
        }
