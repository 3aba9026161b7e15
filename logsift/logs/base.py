"""
Format Parser - common contract for every artifact parser.
"""

import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Pattern, Tuple, Union

from logsift.core.config import Config, get_config
from logsift.core.exceptions import FileParsingError
from logsift.core.logger import get_logger
from logsift.core.models import FileMetadata, SecurityEvent, TechnicalFindings
from logsift.core.utils import extract_ioc_list, open_text

logger = get_logger(__name__)

IPV4_PATTERN = re.compile(r'\b(?:\d{1,3}\.){3}\d{1,3}\b')


def effective_suffix(path: Path) -> str:
    """Lower-cased extension, looking through a trailing .gz."""
    suffixes = [s.lower() for s in path.suffixes]
    if suffixes and suffixes[-1] == ".gz":
        suffixes = suffixes[:-1]
    return suffixes[-1] if suffixes else ""


class FormatParser:
    """
    Base class for artifact parsers.

    Subclasses declare:
    - SUPPORTED_FILE_TYPE: comma separated format tags, first is primary
    - PRIORITY: higher wins when several parsers claim a file
    - MIME_TYPE: recorded in the file metadata
    - EXTENSIONS: dedicated extensions claimed without sniffing
    """

    SUPPORTED_FILE_TYPE = ""
    PRIORITY = 0
    MIME_TYPE = "text/plain"
    EXTENSIONS: Tuple[str, ...] = ()

    def __init__(self, config: Optional[Config] = None):
        self.config = config or get_config()

    @property
    def supported_file_types(self) -> List[str]:
        return [t.strip() for t in self.SUPPORTED_FILE_TYPE.split(",") if t.strip()]

    @property
    def format_tag(self) -> str:
        types = self.supported_file_types
        return types[0] if types else self.__class__.__name__

    @property
    def priority(self) -> int:
        return self.PRIORITY

    def can_parse(self, file_path: Union[str, Path]) -> bool:
        """Cheap check whether this parser handles the file. Never raises."""
        try:
            path = Path(file_path)
            if not path.is_file() or path.stat().st_size == 0:
                return False
            return self._can_parse(path)
        except Exception as e:
            logger.debug(f"{self.format_tag} sniff failed for {file_path}: {e}")
            return False

    def _can_parse(self, path: Path) -> bool:
        raise NotImplementedError

    def match_score(self, file_path: Union[str, Path]) -> float:
        """
        How strongly this parser claims a file it accepts.

        Formats identified by extension or magic claim the file outright;
        content-sniffed formats report how many sniffed lines they know.
        """
        return float("inf")

    def parse(self, file_path: Union[str, Path]) -> TechnicalFindings:
        raise NotImplementedError

    def _new_findings(self, path: Path) -> TechnicalFindings:
        return TechnicalFindings(
            metadata=FileMetadata.from_path(path, self.MIME_TYPE),
            file_format=self.format_tag,
        )

    def _error(self, path: Path, reason: str) -> FileParsingError:
        return FileParsingError(path, reason, self.format_tag)

    def _truncate(self, text: str) -> str:
        limit = self.config.parsers.max_description_length
        return text if len(text) <= limit else text[:limit - 3] + "..."

    def _add_event(self, findings: TechnicalFindings, event: SecurityEvent) -> None:
        """Attach IOCs found in the event text and record it."""
        text = " ".join([event.message, *event.attributes.values()])
        for ioc in extract_ioc_list(text):
            if ioc not in event.associated_iocs:
                event.associated_iocs.append(ioc)
        findings.add_event(event)


class LineParser(FormatParser):
    """
    Template for line-oriented text logs.

    One line yields at most one event. Lines the recognizer rejects are
    skipped and counted; a file with content but no recognized line is
    a parse failure.
    """

    SHARED_EXTENSIONS = (".log", ".txt")
    SNIFF_PATTERN: Optional[Pattern] = None

    def _can_parse(self, path: Path) -> bool:
        suffix = effective_suffix(path)
        if suffix in self.EXTENSIONS:
            return True
        if suffix in self.SHARED_EXTENSIONS:
            return self._sniff(path)
        return False

    def _sniff(self, path: Path) -> bool:
        return any(self.recognizes(line) for line in self._head(path))

    def _head(self, path: Path) -> List[str]:
        """The first non-blank lines, up to the configured sniff limit."""
        limit = self.config.parsers.sniff_lines
        lines: List[str] = []
        with open_text(path, self.config.parsers.text_encoding) as f:
            for line in f:
                line = line.strip()
                if line:
                    lines.append(line)
                    if len(lines) >= limit:
                        break
        return lines

    def match_score(self, file_path: Union[str, Path]) -> float:
        path = Path(file_path)
        if effective_suffix(path) not in self.SHARED_EXTENSIONS:
            return float("inf")
        try:
            return sum(1 for line in self._head(path) if self.recognizes(line))
        except (OSError, EOFError) as e:
            logger.debug(f"{self.format_tag} could not score {file_path}: {e}")
            return 0

    def recognizes(self, line: str) -> bool:
        """Whether a single line looks like this format."""
        return bool(self.SNIFF_PATTERN and self.SNIFF_PATTERN.search(line))

    def parse_line(self, line: str, stats: Optional[Dict[str, Any]] = None) -> Optional[SecurityEvent]:
        """Convert one line into an event, or None to skip it."""
        raise NotImplementedError

    def parse(self, file_path: Union[str, Path]) -> TechnicalFindings:
        path = Path(file_path)
        findings = self._new_findings(path)
        stats: Dict[str, Any] = {}

        total = 0
        content_lines = 0
        parsed = 0
        skipped = 0

        with open_text(path, self.config.parsers.text_encoding) as f:
            for line_no, line in enumerate(f, 1):
                total += 1
                line = line.strip()
                if not line:
                    continue
                content_lines += 1

                try:
                    event = self.parse_line(line, stats)
                except (ValueError, IndexError, KeyError) as e:
                    logger.debug(f"{self.format_tag} line {line_no} rejected: {e}")
                    event = None

                if event is None:
                    skipped += 1
                    continue

                if not event.source:
                    event.source = self.format_tag
                self._add_event(findings, event)
                parsed += 1

        if content_lines and not parsed:
            raise self._error(path, "no recognizable records found")

        findings.total_lines = total
        findings.raw_data.update({
            "parser": self.__class__.__name__,
            "total_lines": total,
            "parsed_lines": parsed,
            "skipped_lines": skipped,
        })
        findings.raw_data.update(stats)
        findings.recount()

        logger.debug(f"{self.format_tag}: {parsed} events from {path.name}, {skipped} lines skipped")
        return findings

    @staticmethod
    def _count(stats: Optional[Dict[str, Any]], key: str, value: str) -> None:
        """Increment a per-format statistic bucket."""
        if stats is None:
            return
        bucket = stats.setdefault(key, {})
        bucket[value] = bucket.get(value, 0) + 1


# Request/statement signatures, matched case-insensitively on decoded text
ATTACK_PATTERNS = {
    "sql_injection": [
        r"(?:union\s+(?:all\s+)?select|select\s+.*\s+from|insert\s+into|delete\s+from|drop\s+table)",
        r"(?:'\s*or\s*'1'\s*=\s*'1|'\s*or\s+1\s*=\s*1|'\s*--)",
        r"(?:exec\s*\(|execute\s*\(|xp_cmdshell)",
    ],
    "xss": [
        r"<script[^>]*>",
        r"javascript\s*:",
        r"on\w+\s*=\s*['\"]",
    ],
    "path_traversal": [
        r"\.\./\.\./",
        r"\.\.\\\.\.\\",
        r"%2e%2e[/\\]",
        r"etc/passwd",
        r"windows/system32",
    ],
    "command_injection": [
        r"[;|`]\s*(?:cat|ls|pwd|id|whoami|uname|wget|curl)\b",
        r"\$\(.*\)",
    ],
}

COMPILED_ATTACK_PATTERNS = {
    name: [re.compile(p, re.IGNORECASE) for p in patterns]
    for name, patterns in ATTACK_PATTERNS.items()
}


def match_attack(text: str, names=None) -> Optional[str]:
    """Name of the first attack family whose signature matches text."""
    for name, patterns in COMPILED_ATTACK_PATTERNS.items():
        if names and name not in names:
            continue
        if any(p.search(text) for p in patterns):
            return name
    return None
