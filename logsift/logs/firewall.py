"""
Firewall Log Parser - iptables/UFW, Windows Firewall and generic action logs.
"""

import re
from typing import Any, Dict, Optional

from logsift.core.models import SecurityEvent
from logsift.core.utils import parse_bsd_timestamp, parse_timestamp
from logsift.logs.base import IPV4_PATTERN, LineParser


class FirewallLogParser(LineParser):
    """
    Parse firewall decisions.

    Supported layouts:
    - netfilter key=value lines (iptables LOG target, UFW)
    - Windows Firewall pfirewall.log
    - any line carrying an upper-case action keyword and an IPv4 address
    """

    SUPPORTED_FILE_TYPE = "FIREWALL"
    PRIORITY = 67
    EXTENSIONS = (".fwlog",)

    BLOCK_ACTIONS = {"DROP", "DENY", "BLOCK", "REJECT"}
    ALLOW_ACTIONS = {"ACCEPT", "ALLOW", "PASS"}

    ACTION_PATTERN = re.compile(r'\b(DROP|DENY|BLOCK|REJECT|ACCEPT|ALLOW|PASS)\b')
    KV_PATTERN = re.compile(r'\b(SRC|DST|SPT|DPT|PROTO|IN|OUT)=(\S*)')
    WINFW_PATTERN = re.compile(
        r'^(?P<date>\d{4}-\d{2}-\d{2})\s+(?P<time>\d{2}:\d{2}:\d{2})\s+'
        r'(?P<action>ALLOW|DROP|OPEN|CLOSE|INFO-EVENTS-LOST)\s+(?P<protocol>\S+)\s+'
        r'(?P<src>\S+)\s+(?P<dst>\S+)\s+(?P<spt>\S+)\s+(?P<dpt>\S+)'
    )
    BSD_PREFIX = re.compile(r'^(?P<timestamp>[A-Z][a-z]{2}\s+\d{1,2}\s+\d{2}:\d{2}:\d{2})\s')
    ISO_PREFIX = re.compile(r'^(?P<timestamp>\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?)')

    def recognizes(self, line: str) -> bool:
        if "SRC=" in line and "DST=" in line:
            return True
        if self.WINFW_PATTERN.match(line):
            return True
        return bool(self.ACTION_PATTERN.search(line) and IPV4_PATTERN.search(line))

    def parse_line(self, line: str, stats: Optional[Dict[str, Any]] = None) -> Optional[SecurityEvent]:
        if not self.recognizes(line):
            return None

        fields: Dict[str, str] = {}
        timestamp = None

        winfw = self.WINFW_PATTERN.match(line)
        if winfw:
            groups = winfw.groupdict()
            timestamp = parse_timestamp(f"{groups['date']} {groups['time']}")
            fields = {
                "action": groups["action"],
                "protocol": groups["protocol"],
                "source_ip": groups["src"],
                "dest_ip": groups["dst"],
                "src_port": groups["spt"],
                "dst_port": groups["dpt"],
            }
        else:
            kv = dict(self.KV_PATTERN.findall(line))
            action_match = self.ACTION_PATTERN.search(line)
            fields["action"] = action_match.group(1) if action_match else "LOG"
            mapping = {
                "SRC": "source_ip", "DST": "dest_ip", "SPT": "src_port",
                "DPT": "dst_port", "PROTO": "protocol", "IN": "in_interface",
                "OUT": "out_interface",
            }
            for key, name in mapping.items():
                if kv.get(key):
                    fields[name] = kv[key]
            if "source_ip" not in fields:
                addresses = IPV4_PATTERN.findall(line)
                if addresses:
                    fields["source_ip"] = addresses[0]
                if len(addresses) > 1:
                    fields["dest_ip"] = addresses[1]

            prefix = self.BSD_PREFIX.match(line)
            if prefix:
                timestamp = parse_bsd_timestamp(prefix.group("timestamp"))
            else:
                prefix = self.ISO_PREFIX.match(line)
                if prefix:
                    timestamp = parse_timestamp(prefix.group("timestamp"))

        action = fields["action"]
        self._count(stats, "by_action", action)
        if action in self.BLOCK_ACTIONS:
            severity, subcategory = "medium", "blocked"
            self._count(stats, "blocked_sources", fields.get("source_ip", "unknown"))
        elif action in self.ALLOW_ACTIONS:
            severity, subcategory = "low", "allowed"
        else:
            severity, subcategory = "low", action.lower()

        description = f"Firewall {action}"
        if fields.get("protocol"):
            description += f" {fields['protocol']}"
        description += f" {fields.get('source_ip', '?')}"
        if fields.get("src_port"):
            description += f":{fields['src_port']}"
        description += f" -> {fields.get('dest_ip', '?')}"
        if fields.get("dst_port"):
            description += f":{fields['dst_port']}"

        return SecurityEvent(
            timestamp=timestamp,
            event_type="firewall",
            source="firewall",
            message=line,
            description=self._truncate(description),
            severity=severity,
            attributes=fields,
            category="network",
            subcategory=subcategory,
            confidence_score=0.7,
        )
