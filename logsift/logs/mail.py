"""
Mail Server Log Parser - postfix, sendmail, dovecot and exim logs.
"""

import re
from typing import Any, Dict, Optional

from logsift.core.models import SecurityEvent
from logsift.core.utils import parse_bsd_timestamp, parse_timestamp
from logsift.logs.base import IPV4_PATTERN, LineParser


class MailServerLogParser(LineParser):
    """
    Parse mail transfer and delivery agent logs.

    Syslog-framed lines are accepted only when the program is a known
    mail daemon; exim's native main log layout is accepted as well.
    """

    SUPPORTED_FILE_TYPE = "MAILLOG"
    PRIORITY = 68
    EXTENSIONS = (".maillog",)

    SYSLOG_PATTERN = re.compile(
        r'^(?P<timestamp>\w{3}\s+\d{1,2}\s+\d{2}:\d{2}:\d{2})\s+'
        r'(?P<hostname>\S+)\s+'
        r'(?P<program>(?:postfix|sendmail|sm-mta|dovecot|exim|exim4|amavis|opendkim)[\w\-/]*)'
        r'(?:\[(?P<pid>\d+)\])?:\s*'
        r'(?P<message>.*)$',
        re.IGNORECASE,
    )
    EXIM_PATTERN = re.compile(
        r'^(?P<timestamp>\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2})\s+'
        r'(?:(?P<msgid>[\w]{6}-[\w]{6,11}-[\w]{2,4})\s+)?'
        r'(?P<message>(?:<=|=>|->|\*\*|==|Completed|H=|rejected|SMTP).*)$'
    )

    BRACKET_IP = re.compile(r'\[(?P<ip>(?:\d{1,3}\.){3}\d{1,3})\]')
    SENDER = re.compile(r'from=<(?P<value>[^>]*)>')
    RECIPIENT = re.compile(r'to=<(?P<value>[^>]*)>')
    STATUS = re.compile(r'status=(?P<value>\w+)')
    USER = re.compile(r'(?:user|sasl_username)=<?(?P<value>[^>,\s]+)>?')

    def recognizes(self, line: str) -> bool:
        return bool(self.SYSLOG_PATTERN.match(line) or self.EXIM_PATTERN.match(line))

    def parse_line(self, line: str, stats: Optional[Dict[str, Any]] = None) -> Optional[SecurityEvent]:
        match = self.SYSLOG_PATTERN.match(line)
        if match:
            timestamp = parse_bsd_timestamp(match.group("timestamp"))
            program = match.group("program")
            message = match.group("message")
            host = match.group("hostname")
        else:
            match = self.EXIM_PATTERN.match(line)
            if not match:
                return None
            timestamp = parse_timestamp(match.group("timestamp"))
            program = "exim"
            message = match.group("message")
            host = ""

        daemon = program.split("/", 1)[0].lower()
        self._count(stats, "by_program", daemon)

        attributes = {"app": program}
        if host:
            attributes["host"] = host
        bracket = self.BRACKET_IP.search(message)
        if bracket:
            attributes["source_ip"] = bracket.group("ip")
        else:
            plain = IPV4_PATTERN.search(message)
            if plain:
                attributes["source_ip"] = plain.group(0)
        for name, pattern in (("sender", self.SENDER), ("recipient", self.RECIPIENT),
                              ("status", self.STATUS), ("user", self.USER)):
            found = pattern.search(message)
            if found and found.group("value"):
                attributes[name] = found.group("value")

        lowered = message.lower()
        severity = "low"
        subcategory = "delivery"
        if "authentication failed" in lowered or "auth failed" in lowered or "login failed" in lowered:
            severity, subcategory = "medium", "authentication"
            description = f"Mail authentication failed: {message}"
        elif "reject" in lowered or "noqueue" in lowered or message.startswith("** "):
            severity, subcategory = "medium", "rejected"
            description = f"Mail rejected: {message}"
        elif lowered.startswith("connect from"):
            subcategory = "connection"
            description = f"Mail connection: {message}"
        else:
            status = attributes.get("status", "")
            if status in ("bounced", "deferred"):
                subcategory = status
            description = message
        self._count(stats, "by_type", subcategory)

        return SecurityEvent(
            timestamp=timestamp,
            event_type="mail",
            source=daemon,
            message=line,
            description=self._truncate(description),
            severity=severity,
            attributes=attributes,
            category="email",
            subcategory=subcategory,
            confidence_score=0.6,
        )
