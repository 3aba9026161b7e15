"""
Windows Event Log Parser - Parse binary EVTX files and exported event XML.
"""

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple, Union

import Evtx.Evtx as evtx

from logsift.core.logger import get_logger
from logsift.core.models import SecurityEvent, TechnicalFindings
from logsift.core.utils import EVTX_MAGIC, parse_timestamp, read_head
from logsift.logs.base import FormatParser, effective_suffix

logger = get_logger(__name__)


def _local(tag: str) -> str:
    """Strip an XML namespace from a tag."""
    return tag.rsplit("}", 1)[-1]


def _child(elem: ET.Element, name: str) -> Optional[ET.Element]:
    for child in elem:
        if _local(child.tag) == name:
            return child
    return None


class WindowsEventLogParser(FormatParser):
    """
    Parse Windows Event Logs.

    Binary EVTX files are read with python-evtx; exported XML (including
    wevtutil output without a root element) is read with ElementTree.
    Namespaces are ignored so both schema-qualified and bare exports work.
    """

    SUPPORTED_FILE_TYPE = "EVTX,EVT,XML"
    PRIORITY = 95
    MIME_TYPE = "application/x-ms-evtx"
    EXTENSIONS = (".evtx", ".evt")

    # Security Event IDs: (description, severity, category)
    SECURITY_EVENTS = {
        # Logon events
        4624: ("Successful Logon", "low", "authentication"),
        4625: ("Failed Logon", "medium", "authentication"),
        4634: ("Logoff", "low", "authentication"),
        4648: ("Explicit Credentials Logon", "medium", "authentication"),
        4672: ("Special Privileges Assigned", "medium", "privilege"),
        4776: ("Credential Validation", "low", "authentication"),

        # Account management
        4720: ("User Account Created", "high", "account"),
        4722: ("User Account Enabled", "medium", "account"),
        4724: ("Password Reset Attempt", "medium", "account"),
        4725: ("User Account Disabled", "medium", "account"),
        4726: ("User Account Deleted", "high", "account"),
        4728: ("Member Added to Security Group", "high", "account"),
        4732: ("Member Added to Local Group", "medium", "account"),

        # Process and persistence
        4688: ("Process Creation", "low", "process"),
        4697: ("Service Installed", "high", "persistence"),
        7045: ("New Service Installed", "high", "persistence"),
        4698: ("Scheduled Task Created", "high", "persistence"),

        # Policy and audit tampering
        4719: ("Audit Policy Changed", "high", "policy"),
        1102: ("Audit Log Cleared", "critical", "defense-evasion"),
        4946: ("Firewall Rule Added", "high", "policy"),
        4950: ("Firewall Setting Changed", "high", "policy"),
    }

    # Sysmon event IDs overlap with other providers
    SYSMON_EVENTS = {
        1: ("Sysmon - Process Create", "low", "process"),
        3: ("Sysmon - Network Connection", "low", "network"),
        8: ("Sysmon - CreateRemoteThread", "high", "process"),
        10: ("Sysmon - Process Access", "medium", "process"),
        22: ("Sysmon - DNS Query", "low", "network"),
    }

    # Logon Types
    LOGON_TYPES = {
        2: "Interactive",
        3: "Network",
        4: "Batch",
        5: "Service",
        7: "Unlock",
        8: "NetworkCleartext",
        9: "NewCredentials",
        10: "RemoteInteractive",
        11: "CachedInteractive",
    }

    LEVELS = {"1": "critical", "2": "high", "3": "medium", "4": "info", "5": "low"}

    def _can_parse(self, path: Path) -> bool:
        suffix = effective_suffix(path)
        if suffix in self.EXTENSIONS:
            return True
        if suffix == ".xml":
            if "event" in path.name.lower():
                return True
            return b"<Event" in read_head(path, 4096)
        return False

    def parse(self, file_path: Union[str, Path]) -> TechnicalFindings:
        path = Path(file_path)
        findings = self._new_findings(path)

        if read_head(path, len(EVTX_MAGIC)) == EVTX_MAGIC:
            container = "evtx"
            records = self._evtx_records(path)
        else:
            container = "xml"
            records = self._xml_records(path)

        total = 0
        skipped = 0
        event_ids: Dict[str, int] = {}

        for elem in records:
            total += 1
            event = self._parse_event_element(elem)
            if event is None:
                skipped += 1
                continue
            event_ids[event.event_type] = event_ids.get(event.event_type, 0) + 1
            self._add_event(findings, event)

        findings.total_lines = total
        findings.raw_data.update({
            "parser": self.__class__.__name__,
            "container": container,
            "total_records": total,
            "parsed_records": total - skipped,
            "skipped_records": skipped,
            "event_ids": event_ids,
        })
        findings.recount()
        return findings

    def _evtx_records(self, path: Path) -> Iterator[ET.Element]:
        """Yield event elements from a binary EVTX file."""
        opened = False
        try:
            with evtx.Evtx(str(path)) as log:
                opened = True
                for record in log.records():
                    try:
                        elem = ET.fromstring(record.xml())
                    except Exception as e:
                        logger.debug(f"Error parsing EVTX record: {e}")
                        continue
                    yield elem
        except Exception as e:
            if not opened:
                raise self._error(path, f"unreadable EVTX container: {e}") from e
            logger.warning(f"EVTX chunk walk stopped early in {path.name}: {e}")

    def _xml_records(self, path: Path) -> Iterator[ET.Element]:
        """Yield <Event> elements from exported XML."""
        content = path.read_text(encoding="utf-8", errors="replace").lstrip("\ufeff")
        try:
            root = ET.fromstring(content)
        except ET.ParseError:
            # wevtutil emits a sequence of <Event> elements with no root
            body = content.split("?>", 1)[1] if content.lstrip().startswith("<?xml") else content
            try:
                root = ET.fromstring(f"<Events>{body}</Events>")
            except ET.ParseError as e:
                raise self._error(path, f"invalid event XML: {e}") from e

        if _local(root.tag) == "Event":
            yield root
            return
        for elem in root.iter():
            if _local(elem.tag) == "Event":
                yield elem

    def _parse_event_element(self, root: ET.Element) -> Optional[SecurityEvent]:
        """Convert one <Event> element; None when it has no System block."""
        system = _child(root, "System")
        if system is None:
            return None

        event_id_elem = _child(system, "EventID")
        event_id_text = (event_id_elem.text or "").strip() if event_id_elem is not None else ""
        if not event_id_text:
            return None

        timestamp = None
        time_elem = _child(system, "TimeCreated")
        if time_elem is not None:
            timestamp = parse_timestamp(time_elem.get("SystemTime", ""))

        provider_elem = _child(system, "Provider")
        provider = provider_elem.get("Name", "") if provider_elem is not None else ""

        level_elem = _child(system, "Level")
        level = (level_elem.text or "4").strip() if level_elem is not None else "4"
        severity = self.LEVELS.get(level, "medium")

        attributes: Dict[str, str] = {"EventID": event_id_text}
        for name in ("Computer", "Channel"):
            elem = _child(system, name)
            if elem is not None and elem.text:
                attributes[name] = elem.text.strip()
        if provider:
            attributes["Provider"] = provider

        data, values = self._event_data(root)
        attributes.update(data)

        known = self._lookup(event_id_text, provider)
        category = "windows"
        if known:
            title, severity, category = known
            message = self._build_message(int(event_id_text), title, data)
        else:
            message = " | ".join(values) if values else f"Event ID {event_id_text}"

        return SecurityEvent(
            timestamp=timestamp,
            event_type=f"WinEvent-{event_id_text}",
            source=provider or "WindowsEventLog",
            message=message,
            description=self._truncate(message),
            severity=severity,
            attributes=attributes,
            category=category,
            confidence_score=0.9 if known else 0.6,
        )

    def _lookup(self, event_id: str, provider: str) -> Optional[Tuple[str, str, str]]:
        try:
            numeric = int(event_id)
        except ValueError:
            return None
        if "sysmon" in provider.lower():
            return self.SYSMON_EVENTS.get(numeric)
        return self.SECURITY_EVENTS.get(numeric)

    @staticmethod
    def _event_data(root: ET.Element) -> Tuple[Dict[str, str], list]:
        """Named Data items as attributes; unnamed ones become Data<n>."""
        data: Dict[str, str] = {}
        values = []
        for block_name in ("EventData", "UserData"):
            block = _child(root, block_name)
            if block is None:
                continue
            unnamed = 0
            for elem in block.iter():
                if elem is block or len(elem):
                    continue
                text = (elem.text or "").strip()
                name = elem.get("Name")
                if not name and _local(elem.tag) == "Data":
                    unnamed += 1
                    name = f"Data{unnamed}"
                data[name or _local(elem.tag)] = text
                if text:
                    values.append(text)
        return data, values

    def _build_message(self, event_id: int, title: str, data: Dict[str, Any]) -> str:
        """Build human-readable message from event data."""
        if event_id == 4624:  # Logon
            try:
                logon_type = self.LOGON_TYPES.get(int(data.get("LogonType", 0)), "Unknown")
            except ValueError:
                logon_type = "Unknown"
            return f"{title}: {data.get('TargetUserName', 'N/A')} ({logon_type}) from {data.get('IpAddress', 'N/A')}"

        elif event_id == 4625:  # Failed logon
            return f"{title}: {data.get('TargetUserName', 'N/A')} from {data.get('IpAddress', 'N/A')}"

        elif event_id == 4688:  # Process creation
            return f"{title}: {data.get('NewProcessName', 'N/A')} by {data.get('SubjectUserName', 'N/A')}"

        elif event_id in (4720, 4726):  # User account changes
            return f"{title}: {data.get('TargetUserName', 'N/A')} by {data.get('SubjectUserName', 'N/A')}"

        elif event_id in (4697, 7045):  # Service installed
            return f"{title}: {data.get('ServiceName', 'N/A')} - {data.get('ServiceFileName', data.get('ImagePath', 'N/A'))}"

        return title
