"""
Database Log Parser - MySQL, PostgreSQL and SQL Server error/audit logs.
"""

import re
from typing import Any, Dict, Optional

from logsift.core.models import SecurityEvent
from logsift.core.utils import parse_timestamp
from logsift.logs.base import IPV4_PATTERN, LineParser


class DatabaseLogParser(LineParser):
    """
    Parse timestamped database server log lines.

    A line is recognized when it starts with an ISO-style timestamp and
    carries either a log level or a SQL keyword.
    """

    SUPPORTED_FILE_TYPE = "DB"
    PRIORITY = 50
    EXTENSIONS = (".dblog",)

    LINE_PATTERN = re.compile(
        r'^\[?(?P<timestamp>\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?:[.,]\d+)?(?:Z|[+-]\d{2}:?\d{2})?)\]?'
        r'(?:\s+(?:UTC|GMT|[A-Z]{2,4}T)\b)?\s+(?P<rest>.+)$'
    )
    LEVEL_PATTERN = re.compile(
        r'\[?\b(?P<level>FATAL|PANIC|ERROR|ERR|WARNING|WARN|NOTE|NOTICE|INFO|LOG|DEBUG)\b\]?:?',
        re.IGNORECASE,
    )
    SQL_PATTERN = re.compile(
        r'\b(?:SELECT|INSERT|UPDATE|DELETE|DROP|CREATE|ALTER|GRANT|REVOKE|TRUNCATE|Query|Connect|Login|Logon)\b'
    )

    LEVELS = {
        "fatal": "critical", "panic": "critical",
        "error": "high", "err": "high",
        "warning": "medium", "warn": "medium",
    }

    FAILED_LOGIN = re.compile(
        r'access denied|authentication failed|login failed|password authentication failed',
        re.IGNORECASE,
    )

    # Statement signatures that do not occur in ordinary query logging
    INJECTION_PATTERNS = [
        re.compile(p, re.IGNORECASE) for p in (
            r"union\s+(?:all\s+)?select",
            r"'\s*or\s*'1'\s*=\s*'1",
            r"'\s*or\s+1\s*=\s*1",
            r"xp_cmdshell",
            r"\bsleep\s*\(\s*\d+\s*\)",
            r"\bbenchmark\s*\(",
            r"information_schema\.tables",
        )
    ]

    USER_PATTERN = re.compile(r"""user(?:name)?[\s=:]+["'`]?(?P<user>[\w.\-@]+)["'`]?""", re.IGNORECASE)

    def recognizes(self, line: str) -> bool:
        match = self.LINE_PATTERN.match(line)
        if not match:
            return False
        rest = match.group("rest")
        return bool(self.LEVEL_PATTERN.search(rest) or self.SQL_PATTERN.search(rest))

    def parse_line(self, line: str, stats: Optional[Dict[str, Any]] = None) -> Optional[SecurityEvent]:
        match = self.LINE_PATTERN.match(line)
        if not match:
            return None
        rest = match.group("rest")

        level_match = self.LEVEL_PATTERN.search(rest)
        if not level_match and not self.SQL_PATTERN.search(rest):
            return None

        level = level_match.group("level").lower() if level_match else "query"
        self._count(stats, "by_level", level)
        severity = self.LEVELS.get(level, "low")
        subcategory = level
        description = rest
        is_malicious = False
        confidence = 0.5

        if self.FAILED_LOGIN.search(rest):
            self._count(stats, "failed_logins", "total")
            if severity == "low":
                severity = "medium"
            subcategory = "authentication"
            description = f"Database failed login: {rest}"
            confidence = 0.8

        if any(p.search(rest) for p in self.INJECTION_PATTERNS):
            self._count(stats, "injection_attempts", "total")
            severity = "high"
            subcategory = "sql_injection"
            description = f"Possible SQL injection: {rest}"
            is_malicious = True
            confidence = 0.8

        attributes = {"db_level": level}
        ip_match = IPV4_PATTERN.search(rest)
        if ip_match:
            attributes["source_ip"] = ip_match.group(0)
        user_match = self.USER_PATTERN.search(rest)
        if user_match:
            attributes["user"] = user_match.group("user")

        return SecurityEvent(
            timestamp=parse_timestamp(match.group("timestamp")),
            event_type="database",
            source="database",
            message=line,
            description=self._truncate(description),
            severity=severity,
            attributes=attributes,
            category="database",
            subcategory=subcategory,
            is_malicious=is_malicious,
            confidence_score=confidence,
        )
