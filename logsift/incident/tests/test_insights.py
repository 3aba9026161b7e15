"""Tests for the rule-based insight generator."""

# pylint: disable=missing-function-docstring

import pytest

from logsift.core.models import AIInsights, SecurityEvent, TechnicalFindings
from logsift.incident.insights import (
    DEFAULT_ACTIONS,
    MULTIPLE_EVENTS,
    NO_ATTACK_VECTOR,
    AttackRule,
    InsightGenerator,
)


def _findings(events, iocs=()):
    return TechnicalFindings(security_events=list(events), detected_iocs=list(iocs))


def _event(description, severity="low", category=""):
    return SecurityEvent(description=description, severity=severity, category=category)


@pytest.fixture
def incident():
    events = [
        _event("Malware detected in attachment", "high"),
        _event("Ransomware malware beacon observed", "critical"),
        _event("Failed login for admin", "medium"),
        _event("User session opened"),
        _event("Cron job completed"),
        _event("Service restarted"),
    ]
    return _findings(events, ["203.0.113.5", "evil.example.org", "198.51.100.7"])


class TestSeverityScore:
    """Additive severity scoring."""

    def test_mixed_incident_scores_seven(self, incident):
        insights = InsightGenerator().generate_insights(incident)
        assert insights.severity_score == 7
        assert "Malware" in insights.attack_vector

    def test_score_components(self, incident):
        assert InsightGenerator().score_components(incident) == {
            "base": 1,
            "event_volume": 1,
            "ioc_volume": 1,
            "critical_high_events": 4,
            "malware_events": 0,
        }

    def test_no_events(self):
        insights = InsightGenerator().generate_insights(_findings([]))
        assert insights.severity_score == 1
        assert insights.attack_vector == NO_ATTACK_VECTOR
        assert insights.recommended_actions == list(DEFAULT_ACTIONS)
        assert insights.detected_patterns == []
        assert insights.confidence_score == 0.0

    def test_clamped_to_ten(self):
        events = [_event("Critical event", "critical") for _ in range(20)]
        findings = _findings(events, [f"203.0.113.{i}" for i in range(1, 10)])
        assert InsightGenerator().calculate_severity(findings) == 10

    def test_low_severity_malware_term(self):
        generator = InsightGenerator()
        assert generator.calculate_severity(_findings([_event("trojan found")])) == 4
        assert generator.calculate_severity(_findings([_event("trojan found"), _event("trojan again")])) == 7

    def test_only_textual_critical_or_high_counts(self):
        generator = InsightGenerator()
        numeric = _findings([_event("disk warning", "4"), _event("disk warning", "3")])
        assert generator.score_components(numeric)["critical_high_events"] == 0
        padded = _findings([_event("disk warning", " High ")])
        assert generator.score_components(padded)["critical_high_events"] == 2

    def test_confidence_grows_with_events(self, incident):
        assert InsightGenerator().generate_insights(incident).confidence_score == pytest.approx(0.6)
        many = _findings([_event("x") for _ in range(30)])
        assert InsightGenerator().generate_insights(many).confidence_score == 1.0

    @pytest.mark.parametrize("score,level", [(10, "HIGH"), (8, "HIGH"), (7, "MEDIUM"), (5, "MEDIUM"), (4, "LOW"), (1, "LOW")])
    def test_risk_level(self, score, level):
        assert InsightGenerator.risk_level(score) == level

    @pytest.mark.parametrize("score,prefix", [(9, "Critical"), (6, "High"), (4, "Moderate"), (2, "Low")])
    def test_business_impact(self, score, prefix):
        assert InsightGenerator.generate_business_impact(score).startswith(prefix)


class TestClassification:
    """Attack vectors, patterns and recommended actions."""

    def test_brute_force(self):
        findings = _findings([_event("Failed password for root"), _event("Failed logon for bob")])
        insights = InsightGenerator().generate_insights(findings)
        assert insights.attack_vector.startswith("Brute force")
        assert insights.detected_patterns == ["brute_force"]
        assert insights.recommended_actions == [
            "Reset credentials for targeted accounts",
            "Monitor authentication logs for repeated failures",
            "Review and validate all detected security events",
        ]

    def test_reconnaissance_by_category(self):
        events = [_event("Requests from sqlmap", category="reconnaissance")]
        assert InsightGenerator().determine_attack_vector(events).startswith("Reconnaissance")

    def test_unclassified_events(self):
        assert InsightGenerator().determine_attack_vector([_event("Service restarted")]) == MULTIPLE_EVENTS

    @pytest.mark.parametrize("description,rule,prefix", [
        ("Trojan dropped on ws01", "malware", "Malware"),
        ("Failed password for root", "brute_force", "Brute force"),
        ("Port scan from 203.0.113.9", "reconnaissance", "Reconnaissance"),
        ("Large data transfer to unknown host", "exfiltration", "Possible data exfiltration"),
        ("Special privilege assigned to new logon", "privilege_escalation", "Privilege escalation"),
    ])
    def test_each_attack_rule(self, description, rule, prefix):
        events = [_event(description)]
        generator = InsightGenerator()
        assert generator.determine_attack_vector(events).startswith(prefix)
        assert generator.detected_patterns(events) == [rule]

    def test_first_matching_rule_wins(self):
        generator = InsightGenerator()
        events = [_event("Outbound data transfer of 2GB"), _event("Port scan against dmz")]
        assert generator.determine_attack_vector(events).startswith("Reconnaissance")
        assert generator.detected_patterns(events) == ["reconnaissance", "exfiltration"]

        events = [_event("Special privilege assigned to new logon"), _event("Outbound data transfer of 2GB")]
        assert generator.determine_attack_vector(events).startswith("Possible data exfiltration")

    def test_network_events_add_firewall_review(self):
        findings = _findings([_event("Connection reset", category="network")])
        assert InsightGenerator().generate_recommended_actions(findings) == [
            "Review firewall logs for related traffic",
            "Review and validate all detected security events",
        ]

    def test_critical_events_activate_response_team(self):
        findings = _findings([_event("Domain admin created", "critical")])
        assert InsightGenerator().generate_recommended_actions(findings) == [
            "Activate the incident response team immediately",
            "Review and validate all detected security events",
        ]

    def test_patterns_keep_rule_order(self, incident):
        assert InsightGenerator().detected_patterns(incident.security_events) == ["malware", "brute_force"]

    def test_actions_are_deduplicated(self, incident):
        actions = InsightGenerator().generate_recommended_actions(incident)
        assert len(actions) == len(set(actions))
        assert actions[0] == "Isolate affected endpoints from the network"
        assert "Activate the incident response team immediately" in actions
        assert "Block identified malicious IPs and domains" in actions

    def test_custom_rules(self):
        generator = InsightGenerator(attack_rules=[AttackRule("everything", lambda events: True, "Custom vector")])
        assert generator.determine_attack_vector([_event("anything")]) == "Custom vector"

    def test_threat_assessment_confidence(self):
        assert "Confidence level: Low" in InsightGenerator.generate_threat_assessment(_findings([_event("a")] * 5))
        assert "Confidence level: Medium" in InsightGenerator.generate_threat_assessment(_findings([_event("a")] * 6))
        assert "Confidence level: High" in InsightGenerator.generate_threat_assessment(_findings([_event("a")] * 21))


class TestExecutiveReport:
    """Executive summary text."""

    def test_report(self, incident):
        generator = InsightGenerator()
        insights = generator.generate_insights(incident)
        report = generator.generate_executive_report(incident, insights)

        assert report.summary == (
            "Security analysis completed revealing 7/10 risk level. "
            "6 security events analyzed. Immediate response recommended."
        )
        assert report.risk_level == "MEDIUM"
        assert "- 3 indicators of compromise identified" in report.key_findings
        assert report.immediate_actions == "; ".join(insights.recommended_actions[:2])

    def test_report_without_insights(self):
        report = InsightGenerator().generate_executive_report(_findings([]), AIInsights(severity_score=1))
        assert report.risk_level == "LOW"
        assert report.summary.endswith("Immediate review recommended.")
        assert "not assessed" in report.key_findings
