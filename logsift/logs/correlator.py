"""
Event Correlator - Group events that share an indicator.
"""

from collections import defaultdict
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from logsift.core.config import Config, get_config
from logsift.core.logger import get_logger
from logsift.core.models import CorrelatedGroup, CorrelationInsights, SecurityEvent
from logsift.core.utils import to_utc

logger = get_logger(__name__)


class CorrelationEngine:
    """
    Correlate security events across multiple log sources.

    Features:
    - Grouping by canonical attribute keys (ip, user, host, ...)
    - Optional time-window splitting of each group
    - Optional per-minute time buckets
    """

    def __init__(
        self,
        keys: Optional[Sequence[str]] = None,
        time_window: Optional[int] = None,
        time_buckets: Optional[bool] = None,
        min_group_size: Optional[int] = None,
        config: Optional[Config] = None,
    ):
        settings = (config or get_config()).correlation
        self.keys = list(keys) if keys is not None else list(settings.keys)
        self.time_window = time_window if time_window is not None else settings.time_window
        self.time_buckets = time_buckets if time_buckets is not None else settings.time_buckets
        self.min_group_size = max(1, min_group_size if min_group_size is not None else settings.min_group_size)

    def correlate(self, events: Iterable[SecurityEvent], extra_keys: Sequence[str] = ()) -> CorrelationInsights:
        """
        Group events by attribute value.

        Args:
            events: Normalized events
            extra_keys: Keys to correlate on in addition to the configured ones

        Returns:
            CorrelationInsights with groups in first-appearance order
        """
        events = list(events)
        keys = list(dict.fromkeys([*self.keys, *extra_keys]))
        groups: List[CorrelatedGroup] = []

        for key in keys:
            for label, members in self._group_by(events, key):
                if self.time_window:
                    groups.extend(self._split_by_window(label, members))
                else:
                    groups.append(CorrelatedGroup(key=label, events=tuple(members)))

        if self.time_buckets:
            groups.extend(self._bucket_by_minute(events))

        groups = [g for g in groups if len(g) >= self.min_group_size]
        logger.debug(f"Correlated {len(events)} events into {len(groups)} groups")
        return CorrelationInsights(groups=tuple(groups))

    @staticmethod
    def _group_by(events: List[SecurityEvent], key: str) -> List[Tuple[str, List[SecurityEvent]]]:
        grouped: Dict[str, List[SecurityEvent]] = defaultdict(list)
        for event in events:
            value = event.attributes.get(key, "").strip()
            if value:
                grouped[value].append(event)
        # dicts keep insertion order, i.e. first appearance
        return [(f"{key.upper()}:{value}", members) for value, members in grouped.items()]

    def _split_by_window(self, label: str, members: List[SecurityEvent]) -> List[CorrelatedGroup]:
        window = timedelta(seconds=self.time_window)
        undated = [e for e in members if e.timestamp is None]
        dated = sorted((e for e in members if e.timestamp is not None), key=lambda e: to_utc(e.timestamp))

        chunks: List[List[SecurityEvent]] = [[]]
        previous = None
        for event in dated:
            current = to_utc(event.timestamp)
            if previous is not None and current - previous > window:
                chunks.append([])
            chunks[-1].append(event)
            previous = current
        chunks[0].extend(undated)

        return [
            CorrelatedGroup(key=label if i == 0 else f"{label}#{i + 1}", events=tuple(chunk))
            for i, chunk in enumerate(chunks)
            if chunk
        ]

    @staticmethod
    def _bucket_by_minute(events: List[SecurityEvent]) -> List[CorrelatedGroup]:
        buckets: Dict[str, List[SecurityEvent]] = defaultdict(list)
        for event in events:
            if event.timestamp is None:
                continue
            minute = to_utc(event.timestamp).replace(second=0, microsecond=0)
            buckets[minute.isoformat()].append(event)
        return [
            CorrelatedGroup(key=f"TIME:{minute}", events=tuple(members))
            for minute, members in buckets.items()
            if len(members) >= 2
        ]
