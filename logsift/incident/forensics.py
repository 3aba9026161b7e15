"""
Forensic Service - Case summaries and digital artifacts for findings.
"""

from datetime import datetime, timezone
from typing import List

from logsift.core.logger import get_logger
from logsift.core.models import DigitalArtifact, ForensicAnalysis, Priority, TechnicalFindings
from logsift.core.utils import categorize_ioc, hash_string

logger = get_logger(__name__)


class ForensicService:
    """Interface for forensic collaborators used by the analysis engine."""

    def perform_forensic_analysis(self, findings: TechnicalFindings) -> ForensicAnalysis:
        raise NotImplementedError

    def extract_digital_artifacts(self, findings: TechnicalFindings) -> List[DigitalArtifact]:
        raise NotImplementedError


class BasicForensicService(ForensicService):
    """
    Summarize findings for a forensic case file.

    The case id combines the analysis date with the evidence hash so the
    same file analyzed on the same day maps to the same case.
    """

    MAX_KEY_FINDINGS = 10
    MAX_ARTIFACTS = 100

    RECOMMENDED_ACTIONS = [
        "Preserve all digital evidence",
        "Document analysis findings",
        "Coordinate with incident response team",
        "Implement containment measures",
    ]

    def __init__(self, examiner: str = "LogSift Analysis Engine"):
        self.examiner = examiner

    def perform_forensic_analysis(self, findings: TechnicalFindings) -> ForensicAnalysis:
        now = datetime.now(timezone.utc)
        evidence_hash = findings.metadata.hash
        seed = evidence_hash or findings.metadata.file_name or now.isoformat()
        case_id = f"CASE-{now:%Y%m%d}-{hash_string(seed)[:8]}"

        integrity = f"Verified (SHA256: {evidence_hash})" if evidence_hash else "Unverified - no hash"

        chain = [
            f"{findings.processed_at.isoformat()} - Evidence parsed as {findings.file_format or 'unknown'}",
            f"{now.isoformat()} - Forensic review by {self.examiner}",
        ]

        key_findings = [
            event.text for event in findings.security_events
            if event.is_malicious or event.priority >= Priority.HIGH
        ][:self.MAX_KEY_FINDINGS]

        by_category = {}
        for ioc in findings.detected_iocs:
            category = categorize_ioc(ioc)
            by_category[category] = by_category.get(category, 0) + 1
        key_findings.extend(f"{count} {category} indicators" for category, count in sorted(by_category.items()))

        artifacts = self.extract_digital_artifacts(findings)
        logger.info(f"Forensic analysis {case_id}: {len(artifacts)} artifacts")

        return ForensicAnalysis(
            case_id=case_id,
            analysis_timestamp=now,
            evidence_integrity=integrity,
            chain_of_custody=chain,
            key_findings=key_findings,
            artifact_count=len(artifacts),
            recommended_actions=list(self.RECOMMENDED_ACTIONS),
        )

    def extract_digital_artifacts(self, findings: TechnicalFindings) -> List[DigitalArtifact]:
        artifacts = []

        for ioc in findings.detected_iocs[:self.MAX_ARTIFACTS]:
            artifacts.append(DigitalArtifact(
                type="IOC",
                value=ioc,
                source="IOC Detection",
                hash=hash_string(ioc),
                metadata={"category": categorize_ioc(ioc)},
            ))

        malicious = [e for e in findings.security_events if e.is_malicious]
        for event in malicious[:self.MAX_ARTIFACTS]:
            artifacts.append(DigitalArtifact(
                type="SecurityEvent",
                value=event.message,
                timestamp=event.timestamp,
                source=event.source,
                hash=hash_string(event.message),
                metadata=dict(event.properties),
            ))

        return artifacts
