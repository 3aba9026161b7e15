"""
CSV Log Parser - delimited exports and the plain-text fallback.
"""

import csv
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union

from logsift.core.logger import get_logger
from logsift.core.models import SecurityEvent, TechnicalFindings
from logsift.core.utils import extract_ioc_list, open_text, parse_bsd_timestamp, parse_timestamp
from logsift.logs.base import FormatParser, effective_suffix

logger = get_logger(__name__)


class CsvLogParser(FormatParser):
    """
    Parse CSV log exports and any readable .log/.txt file.

    CSV columns are matched by name: the first column whose header
    contains "timestamp", "time", "date", ... becomes the event time,
    and likewise for type, description and severity. Every column is
    kept as an attribute. A row or line becomes an event only when it
    mentions a security keyword; IOCs are collected from all of them.

    Text files are accepted as a last resort: any dedicated parser that
    recognizes even one sniffed line is preferred.
    """

    SUPPORTED_FILE_TYPE = "CSV,LOG,TXT"
    PRIORITY = 40
    MIME_TYPE = "text/csv"
    EXTENSIONS = (".csv",)
    TEXT_EXTENSIONS = (".log", ".txt")

    RECORD_KEYWORDS = {
        "failed", "error", "unauthorized", "blocked", "denied", "attack",
        "malware", "suspicious", "breach", "intrusion", "exploit", "vulnerability",
        "trojan", "virus", "scan", "escalation", "exfiltration", "alert", "warning",
    }
    LINE_KEYWORDS = RECORD_KEYWORDS | {
        "login", "authentication", "access", "permission", "firewall", "dropped",
    }
    WORD_SPLIT = re.compile(r"[\s,;:]+")

    TIMESTAMP_COLUMNS = ("timestamp", "time", "date", "datetime", "created", "modified", "when")
    TYPE_COLUMNS = ("eventtype", "type", "event", "category", "action")
    DESCRIPTION_COLUMNS = ("description", "message", "details", "summary", "info")
    SEVERITY_COLUMNS = ("severity", "level", "priority", "risk")

    SEVERITY_VALUES = {
        "critical": "high", "high": "high", "4": "high", "3": "high",
        "medium": "medium", "moderate": "medium", "2": "medium",
        "low": "low", "info": "low", "1": "low", "0": "low",
    }

    LINE_TIMESTAMPS = [
        re.compile(r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}"),
        re.compile(r"\d{2}/\d{2}/\d{4}\s+\d{2}:\d{2}:\d{2}"),
    ]
    BSD_TIMESTAMP = re.compile(r"[A-Z][a-z]{2}\s+\d{1,2}\s+\d{2}:\d{2}:\d{2}")

    def _can_parse(self, path: Path) -> bool:
        suffix = effective_suffix(path)
        if suffix in self.EXTENSIONS:
            with open_text(path, self.config.parsers.text_encoding) as f:
                for line in f:
                    if line.strip():
                        return "," in line
            return False
        if suffix in self.TEXT_EXTENSIONS:
            return self._is_text(path)
        return False

    def match_score(self, file_path: Union[str, Path]) -> float:
        if effective_suffix(Path(file_path)) in self.EXTENSIONS:
            return float("inf")
        return 0

    def _is_text(self, path: Path) -> bool:
        with open_text(path, self.config.parsers.text_encoding) as f:
            sample = f.read(4096)
        # undecodable bytes show up as U+FFFD
        return bool(sample.strip()) and "\x00" not in sample and "\ufffd" not in sample

    def parse(self, file_path: Union[str, Path]) -> TechnicalFindings:
        path = Path(file_path)
        findings = self._new_findings(path)
        if effective_suffix(path) in self.EXTENSIONS:
            self._parse_csv(path, findings)
        else:
            findings.file_format = "TEXT"
            findings.metadata.mime_type = "text/plain"
            self._parse_text(path, findings)

        findings.raw_data["parser"] = self.__class__.__name__
        findings.recount()
        logger.info(
            f"{path.name}: {len(findings.security_events)} security events, "
            f"{len(findings.detected_iocs)} IOCs"
        )
        return findings

    def _parse_csv(self, path: Path, findings: TechnicalFindings) -> None:
        records = 0
        skipped = 0

        with open_text(path, self.config.parsers.text_encoding) as f:
            reader = csv.DictReader(f)
            while True:
                try:
                    row = next(reader)
                except StopIteration:
                    break
                except csv.Error as e:
                    logger.debug(f"CSV record near line {reader.line_num} rejected: {e}")
                    skipped += 1
                    continue

                records += 1
                record = {k.strip(): (v or "").strip() for k, v in row.items() if isinstance(k, str) and k.strip()}

                for value in record.values():
                    for ioc in extract_ioc_list(value):
                        findings.add_ioc(ioc)

                if self._has_keyword(record.values()):
                    self._add_event(findings, self._record_event(record))

            columns = list(reader.fieldnames or [])
            findings.total_lines = reader.line_num

        findings.raw_data.update({
            "file_type": "CSV",
            "columns": columns,
            "record_count": records,
            "skipped_records": skipped,
        })

    def _parse_text(self, path: Path, findings: TechnicalFindings) -> None:
        total = 0
        with open_text(path, self.config.parsers.text_encoding) as f:
            for line_no, line in enumerate(f, 1):
                total += 1
                line = line.strip()
                if not line:
                    continue

                for ioc in extract_ioc_list(line):
                    findings.add_ioc(ioc)

                lowered = line.lower()
                if any(keyword in lowered for keyword in self.LINE_KEYWORDS):
                    self._add_event(findings, SecurityEvent(
                        timestamp=self._line_timestamp(line),
                        event_type="Log Entry",
                        source="text",
                        message=line,
                        description=self._truncate(line),
                        severity=self._content_severity(lowered),
                        attributes={"line_number": str(line_no)},
                        category="log",
                        confidence_score=0.3,
                    ))

        findings.total_lines = total
        findings.raw_data.update({
            "file_type": "LOG",
            "line_count": total,
        })

    def _has_keyword(self, values) -> bool:
        for value in values:
            words = self.WORD_SPLIT.split(value.lower())
            if any(word in self.RECORD_KEYWORDS for word in words):
                return True
        return False

    def _record_event(self, record: Dict[str, str]) -> SecurityEvent:
        description = self._column(record, self.DESCRIPTION_COLUMNS)
        if description is None:
            description = ", ".join(v for v in list(record.values())[:3] if v)

        severity = self._column(record, self.SEVERITY_COLUMNS)
        if severity is not None:
            severity = self.SEVERITY_VALUES.get(severity.lower(), "medium")
        else:
            severity = self._content_severity(description.lower())

        return SecurityEvent(
            timestamp=self._record_timestamp(record),
            event_type=self._column(record, self.TYPE_COLUMNS) or "Security Event",
            source="csv",
            message=", ".join(f"{k}={v}" for k, v in record.items()),
            description=self._truncate(description),
            severity=severity,
            attributes=record,
            category="log",
            confidence_score=0.5,
        )

    @staticmethod
    def _column(record: Dict[str, str], names) -> Optional[str]:
        """Value of the first column whose header contains one of names."""
        for name in names:
            for key, value in record.items():
                if name in key.lower().replace("_", "") and value:
                    return value
        return None

    def _record_timestamp(self, record: Dict[str, str]) -> Optional[datetime]:
        for name in self.TIMESTAMP_COLUMNS:
            for key, value in record.items():
                if name in key.lower() and value:
                    parsed = parse_timestamp(value)
                    if parsed:
                        return parsed
        return None

    def _line_timestamp(self, line: str) -> Optional[datetime]:
        for pattern in self.LINE_TIMESTAMPS:
            match = pattern.search(line)
            if match:
                parsed = parse_timestamp(match.group(0).replace("T", " "))
                if parsed:
                    return parsed
        match = self.BSD_TIMESTAMP.search(line)
        return parse_bsd_timestamp(match.group(0)) if match else None

    @staticmethod
    def _content_severity(text: str) -> str:
        if any(word in text for word in ("critical", "fatal", "attack", "malware")):
            return "high"
        if any(word in text for word in ("error", "failed", "blocked", "unauthorized", "warning", "alert")):
            return "medium"
        return "low"
