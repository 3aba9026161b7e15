"""
Parser Registry - pick the right format parser for an artifact.
"""

import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from logsift.core.config import Config, get_config
from logsift.core.exceptions import FileParsingError, UnsupportedFileTypeError
from logsift.core.logger import get_logger
from logsift.core.models import TechnicalFindings
from logsift.core.utils import detect_content_type
from logsift.logs.base import FormatParser

logger = get_logger(__name__)


def default_parsers(config: Optional[Config] = None) -> List[FormatParser]:
    """One instance of every built-in parser."""
    from logsift.logs.csvlog import CsvLogParser
    from logsift.logs.database import DatabaseLogParser
    from logsift.logs.dns import DnsLogParser
    from logsift.logs.firewall import FirewallLogParser
    from logsift.logs.mail import MailServerLogParser
    from logsift.logs.session import LinuxSessionLogParser
    from logsift.logs.syslog import SyslogParser
    from logsift.logs.webserver import WebServerLogParser
    from logsift.logs.windows import WindowsEventLogParser
    from logsift.network.pcap_parser import NetworkCaptureParser

    return [
        WindowsEventLogParser(config),
        LinuxSessionLogParser(config),
        WebServerLogParser(config),
        MailServerLogParser(config),
        FirewallLogParser(config),
        DnsLogParser(config),
        SyslogParser(config),
        NetworkCaptureParser(config),
        DatabaseLogParser(config),
        CsvLogParser(config),
    ]


class ParserRegistry:
    """
    Dispatch files to format parsers.

    Parsers are kept in descending priority; ties keep registration
    order. Among the parsers whose can_parse() accepts a file, the one
    with the best match_score() wins, the earliest on equal scores.
    """

    def __init__(self, parsers: Optional[Iterable[FormatParser]] = None, config: Optional[Config] = None):
        self.config = config or get_config()
        self._parsers: List[FormatParser] = []
        self._usage: Dict[str, int] = {}
        self._lock = threading.Lock()

        for parser in (default_parsers(self.config) if parsers is None else parsers):
            self.register(parser)

    @property
    def parsers(self) -> List[FormatParser]:
        return list(self._parsers)

    def register(self, parser: FormatParser) -> None:
        """Add a parser, keeping the priority order stable."""
        self._parsers.append(parser)
        # sort() is stable, so equal priorities keep registration order
        self._parsers.sort(key=lambda p: p.priority, reverse=True)
        logger.debug(f"Registered parser {parser.__class__.__name__} ({parser.SUPPORTED_FILE_TYPE}, priority {parser.priority})")

    def select_parser(self, file_path: Union[str, Path]) -> Optional[FormatParser]:
        """
        The accepting parser with the highest match score.

        Shared .log/.txt files go to the format that recognizes the most
        sniffed lines; priority breaks ties.
        """
        candidates = [p for p in self._parsers if p.can_parse(file_path)]
        if not candidates:
            return None
        # max() keeps the first of equal scores, i.e. the higher priority
        return max(candidates, key=lambda p: p.match_score(file_path))

    def get_supported_file_types(self) -> List[str]:
        types = set()
        for parser in self._parsers:
            types.update(parser.supported_file_types)
        return sorted(types)

    def can_process_file(self, file_path: Union[str, Path]) -> bool:
        return self.select_parser(file_path) is not None

    def parse_file(self, file_path: Union[str, Path]) -> TechnicalFindings:
        """
        Parse a file with the best matching parser.

        Raises:
            FileNotFoundError: path does not exist
            UnsupportedFileTypeError: no parser claims the file
            FileParsingError: file too large or content unreadable
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")

        size = path.stat().st_size
        limit = self.config.parsers.max_file_size
        if size > limit:
            raise FileParsingError(path, f"file size {size} exceeds limit of {limit} bytes")

        parser = self.select_parser(path)
        if parser is None:
            logger.warning(f"No parser accepts {path.name}")
            raise UnsupportedFileTypeError(path, path.suffix.lower())

        name = parser.__class__.__name__
        with self._lock:
            self._usage[name] = self._usage.get(name, 0) + 1

        logger.info(f"Parsing {path.name} with {name}")
        started = time.perf_counter()
        findings = parser.parse(path)
        elapsed_ms = (time.perf_counter() - started) * 1000

        findings.raw_data.update({
            "parser_used": name,
            "processing_time_ms": round(elapsed_ms, 2),
            "detected_file_type": parser.format_tag,
            "processing_timestamp": datetime.now(timezone.utc).isoformat(),
        })

        logger.info(
            f"{path.name}: {len(findings.security_events)} events, "
            f"{len(findings.detected_iocs)} IOCs in {elapsed_ms:.1f}ms"
        )
        return findings

    def detect_file_type(self, file_path: Union[str, Path]) -> str:
        """Parser tag and content heuristic, e.g. 'Parser:SYSLOG|Heuristic:LogFile'."""
        parser = self.select_parser(file_path)
        tag = parser.format_tag if parser else "None"
        try:
            heuristic = detect_content_type(file_path)
        except OSError:
            heuristic = "Unknown"
        return f"Parser:{tag}|Heuristic:{heuristic}"

    def get_analytics(self) -> Dict[str, Any]:
        """Registered parsers and how often each was used."""
        with self._lock:
            usage = dict(self._usage)
        return {
            "total_parsers": len(self._parsers),
            "supported_file_types": self.get_supported_file_types(),
            "parsers": [
                {
                    "name": p.__class__.__name__,
                    "file_types": p.supported_file_types,
                    "priority": p.priority,
                    "usage_count": usage.get(p.__class__.__name__, 0),
                }
                for p in self._parsers
            ],
            "total_parsed": sum(usage.values()),
        }
