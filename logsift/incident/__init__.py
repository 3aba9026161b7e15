"""
Incident Module for LogSift.
Scoring, timelines and forensic summaries.
"""

from logsift.incident.insights import InsightGenerator, AttackRule, ActionRule
from logsift.incident.timeline import TimelineBuilder
from logsift.incident.forensics import ForensicService, BasicForensicService

__all__ = [
    "InsightGenerator",
    "AttackRule",
    "ActionRule",
    "TimelineBuilder",
    "ForensicService",
    "BasicForensicService",
]
