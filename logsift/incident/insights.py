"""
Insight Generator - Deterministic scoring and classification of findings.
"""

import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence

from logsift.core.logger import get_logger
from logsift.core.models import (
    AIInsights,
    ExecutiveReport,
    Priority,
    SecurityEvent,
    TechnicalFindings,
)

logger = get_logger(__name__)

MALWARE_PATTERN = re.compile(r"malware|ransomware|trojan", re.IGNORECASE)


def _texts(events: Sequence[SecurityEvent]) -> List[str]:
    return [event.text.lower() for event in events]


def _any_text(events: Sequence[SecurityEvent], predicate: Callable[[str], bool]) -> bool:
    return any(predicate(text) for text in _texts(events))


def _is_critical_or_high(event: SecurityEvent) -> bool:
    return event.severity.strip().lower() in ("critical", "high")


def is_malware(events: Sequence[SecurityEvent]) -> bool:
    return any(MALWARE_PATTERN.search(event.text) for event in events)


def is_failed_login(events: Sequence[SecurityEvent]) -> bool:
    return _any_text(events, lambda t: "failed" in t and ("login" in t or "logon" in t or "log on" in t or "password" in t))


def is_reconnaissance(events: Sequence[SecurityEvent]) -> bool:
    return any(e.category == "reconnaissance" for e in events) or _any_text(
        events, lambda t: "scan" in t or "reconnaissance" in t or "sweep" in t
    )


def is_exfiltration(events: Sequence[SecurityEvent]) -> bool:
    return _any_text(events, lambda t: "exfiltrat" in t or "data transfer" in t)


def is_privilege_escalation(events: Sequence[SecurityEvent]) -> bool:
    return _any_text(events, lambda t: "privilege" in t or "escalation" in t)


@dataclass(frozen=True)
class AttackRule:
    """One step of the attack-vector rule chain."""
    name: str
    matches: Callable[[Sequence[SecurityEvent]], bool]
    label: str


ATTACK_RULES: List[AttackRule] = [
    AttackRule("malware", is_malware,
               "Malware infection detected - endpoint compromise likely"),
    AttackRule("brute_force", is_failed_login,
               "Brute force authentication attack - credential compromise attempt"),
    AttackRule("reconnaissance", is_reconnaissance,
               "Reconnaissance activity detected - scanning or sweeping of exposed services"),
    AttackRule("exfiltration", is_exfiltration,
               "Possible data exfiltration - unusual outbound data transfer"),
    AttackRule("privilege_escalation", is_privilege_escalation,
               "Privilege escalation activity - elevated access was requested or granted"),
]

NO_ATTACK_VECTOR = "No attack vectors identified - routine security monitoring"
MULTIPLE_EVENTS = "Multiple security events detected - comprehensive investigation required"


@dataclass(frozen=True)
class ActionRule:
    """Recommended actions that apply when the predicate holds."""
    name: str
    applies: Callable[[TechnicalFindings], bool]
    actions: Sequence[str]


ACTION_RULES: List[ActionRule] = [
    ActionRule("malware", lambda f: is_malware(f.security_events), (
        "Isolate affected endpoints from the network",
        "Run a full anti-malware scan on affected systems",
    )),
    ActionRule("iocs", lambda f: bool(f.detected_iocs), (
        "Block identified malicious IPs and domains",
        "Cross-reference IOCs with threat intelligence",
    )),
    ActionRule("failed_login", lambda f: is_failed_login(f.security_events), (
        "Reset credentials for targeted accounts",
        "Monitor authentication logs for repeated failures",
    )),
    ActionRule("network", lambda f: any(e.category == "network" for e in f.security_events), (
        "Review firewall logs for related traffic",
    )),
    ActionRule("critical", lambda f: any(e.priority == Priority.CRITICAL for e in f.security_events), (
        "Activate the incident response team immediately",
    )),
    ActionRule("events", lambda f: bool(f.security_events), (
        "Review and validate all detected security events",
    )),
]

DEFAULT_ACTIONS = ("Continue routine security monitoring",)


class InsightGenerator:
    """
    Rule-based threat assessment.

    Every method is a pure function of its input; no model or network
    service is consulted.
    """

    model_name = "InsightGenerator"

    def __init__(self, attack_rules: Sequence[AttackRule] = None, action_rules: Sequence[ActionRule] = None):
        self.attack_rules = list(ATTACK_RULES if attack_rules is None else attack_rules)
        self.action_rules = list(ACTION_RULES if action_rules is None else action_rules)

    def is_available(self) -> bool:
        return True

    def generate_insights(self, findings: TechnicalFindings) -> AIInsights:
        events = findings.security_events
        logger.info(f"Generating insights for {len(events)} security events")

        components = self.score_components(findings)
        score = self._clamp(sum(components.values()))

        insights = AIInsights(
            attack_vector=self.determine_attack_vector(events),
            threat_assessment=self.generate_threat_assessment(findings),
            severity_score=score,
            recommended_actions=self.generate_recommended_actions(findings),
            business_impact=self.generate_business_impact(score),
            confidence_score=min(1.0, 0.3 + 0.05 * len(events)) if events else 0.0,
            detected_patterns=self.detected_patterns(events),
            risk_factors=components,
            model_used=self.model_name,
        )

        if score >= 8:
            logger.alert(
                f"High severity findings ({score}/10): {insights.attack_vector}",
                severity_score=score,
                file_name=findings.metadata.file_name,
            )
        return insights

    def score_components(self, findings: TechnicalFindings) -> Dict[str, int]:
        """Per-term breakdown of the severity score."""
        events = findings.security_events
        critical_or_high = [e for e in events if _is_critical_or_high(e)]
        malware_only = [
            e for e in events
            if not _is_critical_or_high(e) and MALWARE_PATTERN.search(e.text)
        ]
        return {
            "base": 1,
            "event_volume": min(len(events) // 5, 4),
            "ioc_volume": min(len(findings.detected_iocs) // 3, 3),
            "critical_high_events": min(len(critical_or_high) * 2, 5),
            "malware_events": min(len(malware_only) * 3, 6),
        }

    def calculate_severity(self, findings: TechnicalFindings) -> int:
        return self._clamp(sum(self.score_components(findings).values()))

    @staticmethod
    def _clamp(score: int) -> int:
        return max(1, min(score, 10))

    def determine_attack_vector(self, events: Sequence[SecurityEvent]) -> str:
        if not events:
            return NO_ATTACK_VECTOR
        for rule in self.attack_rules:
            if rule.matches(events):
                return rule.label
        return MULTIPLE_EVENTS

    def detected_patterns(self, events: Sequence[SecurityEvent]) -> List[str]:
        if not events:
            return []
        return [rule.name for rule in self.attack_rules if rule.matches(events)]

    def generate_recommended_actions(self, findings: TechnicalFindings) -> List[str]:
        actions: List[str] = []
        for rule in self.action_rules:
            if rule.applies(findings):
                actions.extend(a for a in rule.actions if a not in actions)
        return actions or list(DEFAULT_ACTIONS)

    @staticmethod
    def generate_business_impact(score: int) -> str:
        if score >= 8:
            return "Critical business impact - immediate executive attention required."
        if score >= 6:
            return "High business impact - business continuity measures should be evaluated."
        if score >= 4:
            return "Moderate business impact - requires monitoring to prevent escalation."
        return "Low business impact - routine security monitoring sufficient."

    @staticmethod
    def generate_threat_assessment(findings: TechnicalFindings) -> str:
        count = len(findings.security_events)
        confidence = "High" if count > 20 else "Medium" if count > 5 else "Low"
        return (
            f"Analysis identified {count} security events and "
            f"{len(findings.detected_iocs)} indicators of compromise. "
            f"Confidence level: {confidence} based on evidence volume."
        )

    @staticmethod
    def risk_level(score: int) -> str:
        if score > 7:
            return "HIGH"
        if score > 4:
            return "MEDIUM"
        return "LOW"

    def generate_executive_report(self, findings: TechnicalFindings, insights: AIInsights) -> ExecutiveReport:
        score = insights.severity_score
        count = len(findings.security_events)
        logger.info(f"Generating executive report with severity score {score}")

        key_findings = "\n".join([
            f"- {count} security events detected",
            f"- {len(findings.detected_iocs)} indicators of compromise identified",
            f"- Primary attack vector: {insights.attack_vector or 'not assessed'}",
            f"- Threat severity: {score}/10",
        ])

        return ExecutiveReport(
            summary=(
                f"Security analysis completed revealing {score}/10 risk level. "
                f"{count} security events analyzed. "
                f"Immediate {'response' if score > 6 else 'review'} recommended."
            ),
            key_findings=key_findings,
            risk_level=self.risk_level(score),
            immediate_actions="; ".join(insights.recommended_actions[:2]),
            long_term_recommendations=(
                "Implement comprehensive security monitoring and establish "
                "regular threat assessment procedures."
            ),
        )
