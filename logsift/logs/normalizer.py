"""
Log Normalizer - canonical timestamps, sources and attribute names.
"""

from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from logsift.core.logger import get_logger
from logsift.core.models import SecurityEvent
from logsift.core.utils import to_utc

logger = get_logger(__name__)


class LogNormalizer:
    """
    Bring events from different parsers into one shape.

    - timestamps become timezone-aware UTC (naive values are local time)
    - source is trimmed and upper-cased
    - attribute aliases are renamed to their canonical key

    normalize() never mutates its input and is idempotent.
    """

    FIELD_ALIASES = {
        "ip": "ip",
        "src": "ip",
        "src_ip": "ip",
        "source_ip": "ip",
        "sourceip": "ip",
        "client_ip": "ip",
        "clientip": "ip",
        "ipaddress": "ip",
        "remote_addr": "ip",
        "dst": "dest_ip",
        "dst_ip": "dest_ip",
        "dest_ip": "dest_ip",
        "destination_ip": "dest_ip",
        "user": "user",
        "username": "user",
        "user_name": "user",
        "targetusername": "user",
        "host": "host",
        "hostname": "host",
        "computer": "host",
        "machinename": "host",
    }

    def __init__(self, aliases: Optional[Dict[str, str]] = None):
        self.aliases = dict(self.FIELD_ALIASES)
        if aliases:
            self.aliases.update({k.lower(): v for k, v in aliases.items()})

    def normalize(self, events: Iterable[SecurityEvent]) -> List[SecurityEvent]:
        normalized = [self.normalize_event(event) for event in events]
        logger.debug(f"Normalized {len(normalized)} events")
        return normalized

    def normalize_event(self, event: SecurityEvent) -> SecurityEvent:
        return replace(
            event,
            timestamp=to_utc(event.timestamp),
            source=event.source.strip().upper(),
            attributes=self.normalize_attributes(event.attributes),
            properties=dict(event.properties),
            associated_iocs=list(event.associated_iocs),
        )

    def normalize_attributes(self, attributes: Dict[str, str]) -> Dict[str, str]:
        result: Dict[str, str] = {}
        explicit = set()

        for key, value in attributes.items():
            canonical = self.aliases.get(key.lower())
            if canonical is None:
                result.setdefault(key, value)
                continue

            if key.lower() == canonical:
                result[canonical] = value
                explicit.add(canonical)
            elif canonical not in explicit and canonical not in result:
                result[canonical] = value

        return result
