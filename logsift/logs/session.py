"""
Linux Session Log Parser - wtmp/utmp/btmp/lastlog records.
"""

import re
import struct
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple, Union

from logsift.core.logger import get_logger
from logsift.core.models import SecurityEvent, TechnicalFindings
from logsift.core.utils import read_head, validate_ip
from logsift.logs.base import LineParser, effective_suffix

logger = get_logger(__name__)


class LinuxSessionLogParser(LineParser):
    """
    Parse Linux login accounting.

    Accepts the text output of last/lastb/lastlog as well as the raw
    glibc utmp (384 byte) and lastlog (292 byte) record files.
    """

    SUPPORTED_FILE_TYPE = "WTMP,UTMP,BTMP,LASTLOG"
    PRIORITY = 80
    MIME_TYPE = "application/octet-stream"
    EXTENSIONS = (".wtmp", ".utmp", ".btmp", ".lastlog")
    SHARED_EXTENSIONS = ()

    # glibc struct utmp: type, pid, line, id, user, host, exit, session, tv, addr_v6
    UTMP_FORMAT = "<h2xi32s4s32s256shhiii4i20s"
    UTMP_SIZE = struct.calcsize(UTMP_FORMAT)

    # struct lastlog: time, line, host
    LASTLOG_FORMAT = "<i32s256s"
    LASTLOG_SIZE = struct.calcsize(LASTLOG_FORMAT)

    UT_TYPES = {
        1: "RUN_LVL", 2: "BOOT_TIME", 5: "INIT_PROCESS",
        6: "LOGIN_PROCESS", 7: "USER_PROCESS", 8: "DEAD_PROCESS",
    }

    LAST_PATTERN = re.compile(
        r'^(?P<user>\S+)\s+(?P<tty>\S+)\s+(?:(?P<host>\S+)\s+)?'
        r'(?P<dow>Mon|Tue|Wed|Thu|Fri|Sat|Sun)\s+(?P<month>[A-Z][a-z]{2})\s+(?P<day>\d{1,2})\s+'
        r'(?P<time>\d{2}:\d{2})(?::(?P<seconds>\d{2}))?(?:\s+[+-]\d{4})?(?:\s+(?P<year>\d{4}))?'
        r'\s*(?P<rest>.*)$'
    )
    SNIFF_PATTERN = LAST_PATTERN

    def parse(self, file_path: Union[str, Path]) -> TechnicalFindings:
        path = Path(file_path)
        head = read_head(path, 4096)
        if b"\x00" not in head:
            findings = super().parse(path)
            if effective_suffix(path) == ".btmp":
                self._mark_failed(findings)
            return findings

        size = path.stat().st_size
        if effective_suffix(path) == ".lastlog" and size >= self.LASTLOG_SIZE:
            return self._parse_binary(path, self._lastlog_records(path))
        if size >= self.UTMP_SIZE:
            return self._parse_binary(path, self._utmp_records(path))
        raise self._error(path, "binary content too short for a session record")

    def recognizes(self, line: str) -> bool:
        match = self.LAST_PATTERN.match(line)
        return bool(match) and match.group("tty") != "begins"

    def parse_line(self, line: str, stats: Optional[Dict[str, Any]] = None) -> Optional[SecurityEvent]:
        match = self.LAST_PATTERN.match(line)
        if not match or match.group("tty") == "begins":
            return None

        groups = match.groupdict()
        timestamp = self._last_timestamp(groups)
        rest = groups["rest"] or ""
        state = "active" if "still logged in" in rest else ("ended" if rest else "")
        return self._session_event(
            user=groups["user"],
            tty=groups["tty"],
            host=groups["host"] or "",
            timestamp=timestamp,
            message=line,
            stats=stats,
            extra={"session_state": state} if state else None,
        )

    def _mark_failed(self, findings: TechnicalFindings) -> None:
        """lastb output lists failed attempts in the same layout as last."""
        for event in findings.security_events:
            user = event.attributes.get("user", "")
            tty = event.attributes.get("tty", "")
            origin = event.attributes.get("source_ip") or event.attributes.get("host")
            event.severity = "medium"
            event.subcategory = "failed-login"
            event.description = self._truncate(
                f"Failed login attempt for {user} on {tty}" + (f" from {origin}" if origin else "")
            )
        findings.raw_data["by_type"] = {"failed-login": len(findings.security_events)}

    def _last_timestamp(self, groups: Dict[str, str]) -> Optional[datetime]:
        year = groups["year"] or str(datetime.now().year)
        seconds = groups["seconds"] or "00"
        try:
            return datetime.strptime(
                f"{year} {groups['month']} {groups['day']} {groups['time']}:{seconds}",
                "%Y %b %d %H:%M:%S",
            )
        except ValueError:
            return None

    def _session_event(
        self,
        user: str,
        tty: str,
        host: str,
        timestamp: Optional[datetime],
        message: str,
        stats: Optional[Dict[str, Any]],
        failed: bool = False,
        extra: Optional[Dict[str, str]] = None,
    ) -> SecurityEvent:
        attributes = {"user": user, "tty": tty}
        if host:
            attributes["source_ip" if validate_ip(host) else "host"] = host
        if extra:
            attributes.update(extra)

        remote = bool(host) and host not in ("0.0.0.0", ":0", ":0.0")
        if failed:
            severity, subcategory = "medium", "failed-login"
            description = f"Failed login attempt for {user} on {tty}" + (f" from {host}" if host else "")
        elif user in ("reboot", "shutdown"):
            severity, subcategory = "low", "system-boot"
            description = f"System {user} recorded ({tty})"
        else:
            severity = "medium" if user == "root" and remote else "low"
            subcategory = "login"
            description = f"User {user} logged in on {tty}" + (f" from {host}" if host else "")

        self._count(stats, "by_user", user)
        self._count(stats, "by_type", subcategory)

        return SecurityEvent(
            timestamp=timestamp,
            event_type="session",
            source="session",
            message=message,
            description=self._truncate(description),
            severity=severity,
            attributes=attributes,
            category="authentication",
            subcategory=subcategory,
            confidence_score=0.9,
        )

    def _parse_binary(self, path: Path, records: Iterator[Tuple[str, str, str, Optional[datetime], str]]) -> TechnicalFindings:
        findings = self._new_findings(path)
        stats: Dict[str, Any] = {}
        failed = effective_suffix(path) == ".btmp"

        total = 0
        parsed = 0
        for user, tty, host, timestamp, record_type in records:
            total += 1
            if not user:
                continue
            message = f"{record_type} {user} {tty} {host}".strip()
            event = self._session_event(user, tty, host, timestamp, message, stats, failed=failed)
            self._add_event(findings, event)
            parsed += 1

        if total and not parsed:
            logger.debug(f"No user sessions in {path.name}")

        findings.total_lines = total
        findings.raw_data.update({
            "parser": self.__class__.__name__,
            "record_format": "binary",
            "total_records": total,
            "parsed_records": parsed,
            "skipped_records": total - parsed,
        })
        findings.raw_data.update(stats)
        findings.recount()
        return findings

    def _utmp_records(self, path: Path) -> Iterator[Tuple[str, str, str, Optional[datetime], str]]:
        failed = effective_suffix(path) == ".btmp"
        with open(path, "rb") as f:
            while True:
                chunk = f.read(self.UTMP_SIZE)
                if len(chunk) < self.UTMP_SIZE:
                    break
                fields = struct.unpack(self.UTMP_FORMAT, chunk)
                ut_type, _pid, line, _id, user, host = fields[:6]
                tv_sec = fields[9]
                record_type = self.UT_TYPES.get(ut_type, str(ut_type))
                # wtmp keeps logins as USER_PROCESS; btmp stores every failure
                if not failed and ut_type not in (2, 7):
                    yield "", "", "", None, record_type
                    continue
                name = "reboot" if ut_type == 2 else _cstr(user)
                yield name, _cstr(line), _cstr(host), _epoch(tv_sec), record_type

    def _lastlog_records(self, path: Path) -> Iterator[Tuple[str, str, str, Optional[datetime], str]]:
        with open(path, "rb") as f:
            uid = 0
            while True:
                chunk = f.read(self.LASTLOG_SIZE)
                if len(chunk) < self.LASTLOG_SIZE:
                    break
                ll_time, line, host = struct.unpack(self.LASTLOG_FORMAT, chunk)
                if ll_time:
                    yield f"uid:{uid}", _cstr(line), _cstr(host), _epoch(ll_time), "LASTLOG"
                uid += 1


def _cstr(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("utf-8", errors="replace").strip()


def _epoch(seconds: int) -> Optional[datetime]:
    if seconds <= 0:
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
