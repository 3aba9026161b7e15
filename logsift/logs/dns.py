"""
DNS Log Parser - BIND query logs and Windows DNS debug logs.
"""

import re
from datetime import datetime
from typing import Any, Dict, Optional

from logsift.core.models import SecurityEvent
from logsift.core.utils import entropy, parse_timestamp
from logsift.logs.base import LineParser


class DnsLogParser(LineParser):
    """
    Parse DNS resolver query logs.

    Queries are flagged when they look like tunneling or DGA traffic:
    very long labels, high-entropy names or abuse-prone TLDs.
    """

    SUPPORTED_FILE_TYPE = "DNS"
    PRIORITY = 66
    EXTENSIONS = (".dnslog",)

    BIND_QUERY = re.compile(
        r'^(?:(?P<timestamp>\d{2}-\w{3}-\d{4} \d{2}:\d{2}:\d{2}(?:\.\d+)?)\s+)?'
        r'.*?\bclient\s+(?:@\S+\s+)?(?P<ip>[\da-fA-F.:]+)#(?P<port>\d+)'
        r'(?:\s+\([^)]*\))?:\s+(?:view\s+\S+:\s+)?'
        r'query:\s+(?P<query>\S+)\s+(?P<qclass>\S+)\s+(?P<qtype>\S+)'
    )
    BIND_FAILURE = re.compile(
        r'^(?:(?P<timestamp>\d{2}-\w{3}-\d{4} \d{2}:\d{2}:\d{2}(?:\.\d+)?)\s+)?'
        r'.*?\bclient\s+(?:@\S+\s+)?(?P<ip>[\da-fA-F.:]+)#(?P<port>\d+)'
        r'(?:\s+\([^)]*\))?:\s+'
        r'query failed \((?P<rcode>[^)]+)\) for (?P<query>[^/\s]+)/(?P<qclass>[^/\s]+)/(?P<qtype>\S+)'
    )
    WINDOWS_PACKET = re.compile(
        r'^(?P<date>\d{1,2}/\d{1,2}/\d{4})\s+(?P<time>\d{1,2}:\d{2}:\d{2})(?:\s+(?P<ampm>[AP]M))?\s+'
        r'\S+\s+PACKET\s+\S+\s+(?P<proto>UDP|TCP)\s+(?P<direction>Snd|Rcv)\s+(?P<ip>\S+)\s+\S+\s+'
        r'(?P<response>R)?\s*Q\s+\[(?P<flags>[^\]]*)\]\s+(?P<qtype>\S+)\s+(?P<query>\S+)'
    )

    SUSPICIOUS_TLDS = {"tk", "ml", "ga", "cf", "gq", "top", "xyz", "onion", "bit"}
    ERROR_CODES = {"NXDOMAIN", "SERVFAIL", "REFUSED", "FORMERR"}
    ERROR_WORD = re.compile(r"\berror\b", re.IGNORECASE)
    MAX_LABEL_LENGTH = 50
    ENTROPY_THRESHOLD = 4.0

    def recognizes(self, line: str) -> bool:
        return bool(
            self.BIND_QUERY.match(line)
            or self.BIND_FAILURE.match(line)
            or self.WINDOWS_PACKET.match(line)
        )

    def parse_line(self, line: str, stats: Optional[Dict[str, Any]] = None) -> Optional[SecurityEvent]:
        fields = self._match(line)
        if fields is None:
            return None

        query = fields["query"].rstrip(".").lower()
        qtype = fields["qtype"].upper()
        rcode = fields.get("rcode", "").upper()
        self._count(stats, "by_query_type", qtype)

        severity = "low"
        subcategory = "query"
        description = f"DNS {qtype} query for {query} from {fields['ip']}"

        reason = self.suspicion(query)
        if reason:
            self._count(stats, "suspicious", reason)
            severity, subcategory = "medium", "suspicious-query"
            description = f"Suspicious DNS query ({reason}): {query} from {fields['ip']}"
        elif rcode in self.ERROR_CODES or self.ERROR_WORD.search(line):
            self._count(stats, "errors", rcode or "error")
            severity, subcategory = "medium", "resolution-error"
            description = f"DNS {rcode or 'error'} for {query} from {fields['ip']}"

        attributes = {
            "client_ip": fields["ip"],
            "query": query,
            "query_type": qtype,
        }
        if fields.get("port"):
            attributes["client_port"] = fields["port"]
        if rcode:
            attributes["response_code"] = rcode

        return SecurityEvent(
            timestamp=fields["timestamp"],
            event_type="dns",
            source="dns",
            message=line,
            description=self._truncate(description),
            severity=severity,
            attributes=attributes,
            category="network",
            subcategory=subcategory,
            confidence_score=0.6 if reason else 0.5,
        )

    def _match(self, line: str) -> Optional[Dict[str, Any]]:
        match = self.BIND_QUERY.match(line) or self.BIND_FAILURE.match(line)
        if match:
            fields = match.groupdict()
            fields["timestamp"] = parse_timestamp(fields["timestamp"] or "")
            return fields

        match = self.WINDOWS_PACKET.match(line)
        if match:
            fields = match.groupdict()
            fields["timestamp"] = self._windows_timestamp(fields["date"], fields["time"], fields["ampm"])
            fields["query"] = re.sub(r'\(\d+\)', '.', fields["query"]).strip(".")
            flags = fields["flags"].split()
            if fields["response"] and flags:
                fields["rcode"] = flags[-1]
            return fields
        return None

    @staticmethod
    def _windows_timestamp(date: str, time: str, ampm: Optional[str]) -> Optional[datetime]:
        try:
            if ampm:
                return datetime.strptime(f"{date} {time} {ampm}", "%m/%d/%Y %I:%M:%S %p")
            return datetime.strptime(f"{date} {time}", "%m/%d/%Y %H:%M:%S")
        except ValueError:
            return None

    def suspicion(self, name: str) -> Optional[str]:
        """Reason a query name looks like tunneling or DGA, or None."""
        labels = [label for label in name.split(".") if label]
        if not labels:
            return None
        if any(len(label) > self.MAX_LABEL_LENGTH for label in labels):
            return "long label"
        if labels[-1] in self.SUSPICIOUS_TLDS:
            return "suspicious TLD"
        subject = "".join(labels[:-1])
        if len(subject) > 20 and entropy(subject) > self.ENTROPY_THRESHOLD:
            return "high entropy"
        return None
