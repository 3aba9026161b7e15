"""
Timeline Builder - Reconstruct incident timelines from findings.
"""

from datetime import datetime, timezone
from typing import Optional, Tuple

from logsift.core.logger import get_logger
from logsift.core.models import Priority, TechnicalFindings, Timeline, TimelineEvent
from logsift.core.utils import to_utc

logger = get_logger(__name__)

_UNKNOWN = datetime.max.replace(tzinfo=timezone.utc)


class TimelineBuilder:
    """
    Build chronological incident timelines.

    Features:
    - One entry per security event, oldest first
    - Events without a timestamp are listed last
    - Evidence-file fallback entry when nothing happened
    """

    def build(self, findings: TechnicalFindings) -> Timeline:
        entries = [
            TimelineEvent(
                timestamp=event.timestamp,
                description=event.text,
                source=event.source or event.event_type,
                priority=event.priority,
                confidence=self._confidence(event.confidence_score),
            )
            for event in findings.security_events
        ]
        entries.sort(key=self._sort_key)

        if not entries:
            entries.append(TimelineEvent(
                timestamp=findings.metadata.created,
                description="Evidence file created",
                source="File System",
                priority=Priority.LOW,
                confidence="High",
            ))

        first, last = self._bounds(entries)
        logger.debug(f"Built timeline with {len(entries)} entries")
        return Timeline(events=tuple(entries), first_activity=first, last_activity=last)

    @staticmethod
    def _sort_key(entry: TimelineEvent) -> datetime:
        return to_utc(entry.timestamp) if entry.timestamp else _UNKNOWN

    @staticmethod
    def _confidence(score: float) -> str:
        if score >= 0.7:
            return "High"
        if score >= 0.4:
            return "Medium"
        return "Low"

    @staticmethod
    def _bounds(entries) -> Tuple[Optional[datetime], Optional[datetime]]:
        known = [e.timestamp for e in entries if e.timestamp]
        if not known:
            return None, None
        return min(known, key=to_utc), max(known, key=to_utc)
