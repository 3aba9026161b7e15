"""
Data model shared by every stage of the analysis pipeline.
"""

import os
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import IntEnum
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from logsift.core.utils import hash_file, categorize_ioc, detect_content_type


class Priority(IntEnum):
    """Ordinal priority levels for security events."""
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


SEVERITY_PRIORITIES = {
    "critical": Priority.CRITICAL,
    "4": Priority.CRITICAL,
    "high": Priority.HIGH,
    "3": Priority.HIGH,
    "medium": Priority.MEDIUM,
    "2": Priority.MEDIUM,
    "low": Priority.LOW,
    "info": Priority.LOW,
    "informational": Priority.LOW,
    "1": Priority.LOW,
    "0": Priority.LOW,
}


def get_priority_from_severity(severity: Optional[str]) -> Priority:
    """Map a textual severity to a priority; unknown values are MEDIUM."""
    if severity is None:
        return Priority.MEDIUM
    return SEVERITY_PRIORITIES.get(str(severity).strip().lower(), Priority.MEDIUM)


# Values allowed in SecurityEvent.properties
PropertyValue = Union[str, int, float, bool, datetime]


@dataclass
class SecurityEvent:
    """A single security-relevant record extracted from an artifact."""
    timestamp: Optional[datetime] = None
    event_type: str = ""
    source: str = ""
    message: str = ""
    description: str = ""
    severity: str = ""
    properties: Dict[str, PropertyValue] = field(default_factory=dict)
    attributes: Dict[str, str] = field(default_factory=dict)
    associated_iocs: List[str] = field(default_factory=list)
    category: str = ""
    subcategory: str = ""
    is_malicious: bool = False
    confidence_score: float = 0.0
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        self.confidence_score = min(max(float(self.confidence_score), 0.0), 1.0)
        self.properties = {k: _coerce_property(v) for k, v in self.properties.items()}
        self.attributes = {k: str(v) for k, v in self.attributes.items()}

    @property
    def priority(self) -> Priority:
        return get_priority_from_severity(self.severity)

    @property
    def text(self) -> str:
        """Description, falling back to the message."""
        return self.description or self.message

    def set_property(self, key: str, value: Any) -> None:
        self.properties[key] = _coerce_property(value)


def _coerce_property(value: Any) -> PropertyValue:
    if isinstance(value, (str, int, float, bool, datetime)):
        return value
    return str(value)


@dataclass
class FileMetadata:
    """Filesystem characteristics of one analyzed file."""
    file_name: str = ""
    size: int = 0
    created: Optional[datetime] = None
    modified: Optional[datetime] = None
    hash: str = ""
    mime_type: str = ""
    file_type: str = ""
    line_count: int = 0

    @classmethod
    def from_path(cls, file_path: Union[str, Path], mime_type: str = "text/plain") -> "FileMetadata":
        path = Path(file_path)
        stat = path.stat()

        line_count = 0
        with open(path, "rb") as f:
            while chunk := f.read(65536):
                line_count += chunk.count(b"\n")

        return cls(
            file_name=path.name,
            size=stat.st_size,
            created=datetime.fromtimestamp(stat.st_ctime, tz=timezone.utc),
            modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            hash=hash_file(path, ["sha256"])["sha256"],
            mime_type=mime_type,
            file_type=detect_content_type(path),
            line_count=line_count,
        )


@dataclass
class TechnicalFindings:
    """Parser output for one file, or several merged files."""
    security_events: List[SecurityEvent] = field(default_factory=list)
    detected_iocs: List[str] = field(default_factory=list)
    metadata: FileMetadata = field(default_factory=FileMetadata)
    raw_data: Dict[str, Any] = field(default_factory=dict)
    file_format: str = ""
    processed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    total_lines: int = 0
    iocs_by_category: Dict[str, int] = field(default_factory=dict)
    events_by_type: Dict[str, int] = field(default_factory=dict)
    _ioc_index: Set[str] = field(default_factory=set, repr=False, compare=False)

    def __post_init__(self):
        deduped = list(dict.fromkeys(self.detected_iocs))
        self.detected_iocs = deduped
        self._ioc_index = set(deduped)

    def add_event(self, event: SecurityEvent) -> None:
        self.security_events.append(event)
        for ioc in event.associated_iocs:
            self.add_ioc(ioc)

    def add_ioc(self, ioc: str) -> bool:
        """Append an IOC unless already present. Returns True if added."""
        if not ioc or ioc in self._ioc_index:
            return False
        self._ioc_index.add(ioc)
        self.detected_iocs.append(ioc)
        return True

    def recount(self) -> None:
        """Rebuild the per-category and per-type counters."""
        self.iocs_by_category = {}
        for ioc in self.detected_iocs:
            category = categorize_ioc(ioc)
            self.iocs_by_category[category] = self.iocs_by_category.get(category, 0) + 1

        self.events_by_type = {}
        for event in self.security_events:
            key = event.event_type or "unknown"
            self.events_by_type[key] = self.events_by_type.get(key, 0) + 1


@dataclass(frozen=True)
class CorrelatedGroup:
    """Events sharing one correlation key."""
    key: str
    events: Tuple[SecurityEvent, ...] = ()

    def __len__(self) -> int:
        return len(self.events)


@dataclass(frozen=True)
class CorrelationInsights:
    """All correlated groups for one analysis."""
    groups: Tuple[CorrelatedGroup, ...] = ()

    def get(self, key: str) -> Optional[CorrelatedGroup]:
        for group in self.groups:
            if group.key == key:
                return group
        return None

    @property
    def keys(self) -> List[str]:
        return [g.key for g in self.groups]


@dataclass(frozen=True)
class AIInsights:
    """Deterministic rule-based assessment of a findings set."""
    attack_vector: str = ""
    threat_assessment: str = ""
    severity_score: int = 0
    recommended_actions: List[str] = field(default_factory=list)
    business_impact: str = ""
    confidence_score: float = 0.0
    detected_patterns: List[str] = field(default_factory=list)
    risk_factors: Dict[str, int] = field(default_factory=dict)
    model_used: str = "InsightGenerator"
    analysis_timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class ExecutiveReport:
    summary: str = ""
    key_findings: str = ""
    risk_level: str = ""
    immediate_actions: str = ""
    long_term_recommendations: str = ""


@dataclass(frozen=True)
class TimelineEvent:
    timestamp: Optional[datetime]
    description: str
    source: str
    priority: Priority = Priority.LOW
    confidence: str = "High"


@dataclass(frozen=True)
class Timeline:
    events: Tuple[TimelineEvent, ...] = ()
    first_activity: Optional[datetime] = None
    last_activity: Optional[datetime] = None


@dataclass
class ForensicAnalysis:
    """Result of a digital forensic review of one findings set."""
    case_id: str = ""
    analysis_timestamp: Optional[datetime] = None
    evidence_integrity: str = ""
    chain_of_custody: List[str] = field(default_factory=list)
    key_findings: List[str] = field(default_factory=list)
    artifact_count: int = 0
    recommended_actions: List[str] = field(default_factory=list)


@dataclass
class DigitalArtifact:
    type: str
    value: str
    timestamp: Optional[datetime] = None
    source: str = ""
    hash: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AnalysisOptions:
    """Switches and limits that gate each pipeline stage."""
    enable_ai_analysis: bool = True
    generate_executive_report: bool = True
    include_timeline: bool = True
    perform_forensic_analysis: bool = True
    generate_ioc_list: bool = True
    enable_correlation: bool = True
    max_security_events: int = 10000
    max_iocs: int = 1000
    focus_keywords: List[str] = field(default_factory=list)
    exclude_patterns: List[str] = field(default_factory=list)
    minimum_event_priority: Priority = Priority.LOW
    deep_inspection: bool = False
    time_range_start: Optional[datetime] = None
    time_range_end: Optional[datetime] = None


@dataclass
class AnalysisRequest:
    file_path: str
    original_file_name: Optional[str] = None
    options: AnalysisOptions = field(default_factory=AnalysisOptions)
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    requested_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def display_name(self) -> str:
        return self.original_file_name or os.path.basename(self.file_path)


@dataclass(frozen=True)
class FileFailure:
    """A file that could not be analyzed as part of a batch."""
    file_path: str
    error_type: str
    message: str


@dataclass(frozen=True)
class AnalysisResult:
    """Everything the pipeline produced for one request or batch."""
    file_name: str = ""
    file_type: str = ""
    analysis_timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    technical: TechnicalFindings = field(default_factory=TechnicalFindings)
    ai: AIInsights = field(default_factory=AIInsights)
    executive: ExecutiveReport = field(default_factory=ExecutiveReport)
    timeline: Timeline = field(default_factory=Timeline)
    correlation: CorrelationInsights = field(default_factory=CorrelationInsights)
    forensics: Optional[ForensicAnalysis] = None
    failures: Tuple[FileFailure, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["technical"].pop("_ioc_index", None)
        return data
