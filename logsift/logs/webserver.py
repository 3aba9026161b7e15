"""
Web Server Log Parser - Apache/Nginx access logs.
"""

import re
from typing import Any, Dict, Optional
from urllib.parse import unquote_plus

from logsift.core.models import SecurityEvent
from logsift.core.utils import parse_timestamp
from logsift.logs.base import LineParser, match_attack


class WebServerLogParser(LineParser):
    """
    Parse Common and Combined Log Format access logs.

    Requests are checked for injection, traversal and XSS signatures and
    for well-known scanner user agents.
    """

    SUPPORTED_FILE_TYPE = "WEBLOG"
    PRIORITY = 70
    EXTENSIONS = (".access", ".weblog")

    ACCESS_PATTERN = re.compile(
        r'^(?P<ip>\S+)\s+(?P<ident>\S+)\s+(?P<user>\S+)\s+'
        r'\[(?P<timestamp>[^\]]+)\]\s+'
        r'"(?P<method>[A-Z]+)\s+(?P<url>\S+)(?:\s+(?P<protocol>[^"]*))?"\s+'
        r'(?P<status>\d{3})\s+(?P<size>\d+|-)'
        r'(?:\s+"(?P<referrer>[^"]*)"\s+"(?P<user_agent>[^"]*)")?'
    )
    SNIFF_PATTERN = ACCESS_PATTERN

    SCANNER_AGENTS = ("sqlmap", "nikto", "nmap", "masscan", "dirbuster", "gobuster", "wpscan")

    def parse_line(self, line: str, stats: Optional[Dict[str, Any]] = None) -> Optional[SecurityEvent]:
        match = self.ACCESS_PATTERN.match(line)
        if not match:
            return None

        groups = match.groupdict()
        status = int(groups["status"])
        method = groups["method"]
        url = groups["url"]
        user_agent = groups.get("user_agent") or ""

        self._count(stats, "by_status", groups["status"])
        self._count(stats, "by_method", method)

        severity = "low"
        if status >= 500 or status in (401, 403):
            severity = "medium"
        category, subcategory = "web", f"{status // 100}xx"
        description = f"{method} {url} -> {status}"
        is_malicious = False
        confidence = 0.5

        attack = match_attack(unquote_plus(url))
        if attack:
            self._count(stats, "attacks", attack)
            severity = "high"
            category, subcategory = "web-attack", attack
            description = f"Possible {attack.replace('_', ' ')} attempt: {method} {url} -> {status}"
            is_malicious = True
            confidence = 0.8
        else:
            agent = user_agent.lower()
            scanner = next((s for s in self.SCANNER_AGENTS if s in agent), None)
            if scanner:
                self._count(stats, "scanners", scanner)
                severity = "medium"
                category, subcategory = "reconnaissance", scanner
                description = f"Web scan by {scanner}: {method} {url} -> {status}"
                confidence = 0.7

        attributes = {
            "source_ip": groups["ip"],
            "method": method,
            "url": url,
            "status": groups["status"],
            "size": groups["size"] if groups["size"] != "-" else "0",
        }
        if groups["user"] != "-":
            attributes["user"] = groups["user"]
        if user_agent:
            attributes["user_agent"] = user_agent
        if groups.get("referrer") and groups["referrer"] != "-":
            attributes["referrer"] = groups["referrer"]

        return SecurityEvent(
            timestamp=parse_timestamp(groups["timestamp"]),
            event_type="http",
            source="webserver",
            message=line,
            description=self._truncate(description),
            severity=severity,
            attributes=attributes,
            category=category,
            subcategory=subcategory,
            is_malicious=is_malicious,
            confidence_score=confidence,
        )
