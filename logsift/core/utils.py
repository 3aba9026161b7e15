"""
Utility functions for LogSift: hashing, IOC extraction, timestamps and
content sniffing.
"""

import gzip
import hashlib
import ipaddress
import math
import re
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, IO, List, Optional, Union


# Values that look like IOCs but never are
FALSE_POSITIVE_DOMAINS = {"example.com", "localhost", "test.com", "domain.com"}
FALSE_POSITIVE_IPS = {"127.0.0.1", "0.0.0.0", "255.255.255.255"}

IP_PATTERN = re.compile(
    r'\b(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}'
    r'(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\b'
)
URL_PATTERN = re.compile(r'https?://[^\s<>"{}|\\^`\[\]]+')
EMAIL_PATTERN = re.compile(r'[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}')
MD5_PATTERN = re.compile(r'\b[a-fA-F0-9]{32}\b')
SHA1_PATTERN = re.compile(r'\b[a-fA-F0-9]{40}\b')
SHA256_PATTERN = re.compile(r'\b[a-fA-F0-9]{64}\b')
DOMAIN_PATTERN = re.compile(
    r'\b(?:[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+'
    r'(?:com|net|org|io|co|info|biz|xyz|top|online|site|club|tech|app|dev|cloud|ru|cn|tk|ml|ga|cf|gq)\b',
    re.IGNORECASE,
)

# Magic numbers for content sniffing
EVTX_MAGIC = b"ElfFile\x00"
PCAP_MAGICS = (
    b"\xd4\xc3\xb2\xa1",  # little-endian, microseconds
    b"\xa1\xb2\xc3\xd4",  # big-endian, microseconds
    b"\x4d\x3c\xb2\xa1",  # little-endian, nanoseconds
    b"\xa1\xb2\x3c\x4d",  # big-endian, nanoseconds
)
PCAPNG_MAGIC = b"\x0a\x0d\x0d\x0a"

LOG_LINE_PATTERN = re.compile(
    r'^(?:<\d{1,3}>|\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}|[A-Z][a-z]{2}\s+\d{1,2}\s+\d{2}:\d{2}:\d{2}'
    r'|\S+ \S+ \S+ \[\d{2}/\w{3}/\d{4})'
)


def hash_file(file_path: Union[str, Path], algorithms: List[str] = None) -> Dict[str, str]:
    """Calculate file hashes."""
    if algorithms is None:
        algorithms = ["md5", "sha1", "sha256"]

    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    hash_objects = {alg: hashlib.new(alg) for alg in algorithms}

    with open(file_path, "rb") as f:
        while chunk := f.read(8192):
            for h in hash_objects.values():
                h.update(chunk)

    return {alg: h.hexdigest() for alg, h in hash_objects.items()}


def hash_string(data: str, algorithm: str = "sha256") -> str:
    """Calculate hash of a string."""
    return hashlib.new(algorithm, data.encode()).hexdigest()


def validate_ip(ip: str) -> bool:
    """Validate an IP address."""
    try:
        ipaddress.ip_address(ip)
        return True
    except ValueError:
        return False


def refang_ioc(ioc: str) -> str:
    """Refang an IOC for analysis."""
    ioc = ioc.replace("hxxp://", "http://")
    ioc = ioc.replace("hxxps://", "https://")
    ioc = ioc.replace("[.]", ".")
    ioc = ioc.replace("[@]", "@")
    return ioc


def extract_iocs(text: str) -> Dict[str, List[str]]:
    """
    Extract IOCs from text, grouped by kind.

    Known false positives (loopback, broadcast, placeholder domains) are
    dropped. Each list keeps first-seen order.
    """
    text = refang_ioc(text)

    def unique(values):
        return list(dict.fromkeys(values))

    iocs = {
        "ips": [ip for ip in unique(IP_PATTERN.findall(text)) if ip not in FALSE_POSITIVE_IPS],
        "urls": unique(URL_PATTERN.findall(text)),
        "emails": unique(EMAIL_PATTERN.findall(text)),
        "md5": unique(MD5_PATTERN.findall(text)),
        "sha1": unique(SHA1_PATTERN.findall(text)),
        "sha256": unique(SHA256_PATTERN.findall(text)),
    }

    email_domains = {e.split("@", 1)[1].lower() for e in iocs["emails"]}
    url_hosts = {re.sub(r'^https?://', '', u).split("/", 1)[0].split(":", 1)[0].lower() for u in iocs["urls"]}
    iocs["domains"] = [
        d for d in unique(m.lower() for m in DOMAIN_PATTERN.findall(text))
        if d not in FALSE_POSITIVE_DOMAINS and d not in email_domains and d not in url_hosts
    ]

    return iocs


def extract_ioc_list(text: str) -> List[str]:
    """Flat, deduplicated IOC list in a stable kind order."""
    grouped = extract_iocs(text)
    result: List[str] = []
    for kind in ("ips", "domains", "urls", "emails", "md5", "sha1", "sha256"):
        for value in grouped[kind]:
            if value not in result:
                result.append(value)
    return result


def categorize_ioc(value: str) -> str:
    """Classify a single IOC as ip, domain, url, email, hash or other."""
    value = value.strip()
    if validate_ip(value):
        return "ip"
    if URL_PATTERN.fullmatch(value):
        return "url"
    if EMAIL_PATTERN.fullmatch(value):
        return "email"
    if re.fullmatch(r'[a-fA-F0-9]{32}|[a-fA-F0-9]{40}|[a-fA-F0-9]{64}', value):
        return "hash"
    if DOMAIN_PATTERN.fullmatch(value):
        return "domain"
    return "other"


def parse_timestamp(timestamp: str) -> Optional[datetime]:
    """Parse various timestamp formats. Returns None when nothing matches."""
    timestamp = timestamp.strip()
    if not timestamp:
        return None

    # ISO 8601 with offset or Z suffix
    iso = timestamp.replace("Z", "+00:00") if timestamp.endswith("Z") else timestamp
    iso = re.sub(r'(\.\d{6})\d+', r'\1', iso)
    try:
        return datetime.fromisoformat(iso)
    except ValueError:
        pass

    formats = [
        "%Y-%m-%d %H:%M:%S.%f",
        "%Y-%m-%d %H:%M:%S,%f",
        "%Y-%m-%d %H:%M:%S",
        "%Y/%m/%d %H:%M:%S",
        "%d/%m/%Y %H:%M:%S",
        "%d/%b/%Y:%H:%M:%S %z",
        "%d-%b-%Y %H:%M:%S.%f",
        "%d-%b-%Y %H:%M:%S",
        "%Y-%m-%d",
    ]

    for fmt in formats:
        try:
            return datetime.strptime(timestamp, fmt)
        except ValueError:
            continue
    return None


def parse_bsd_timestamp(timestamp: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Parse a year-less 'Mmm dd HH:MM:SS' stamp, assuming the current year."""
    now = now or datetime.now()
    try:
        parsed = datetime.strptime(f"{now.year} {' '.join(timestamp.split())}", "%Y %b %d %H:%M:%S")
    except ValueError:
        return None
    # A stamp in the future belongs to last year
    if (parsed - now).days > 1:
        try:
            parsed = parsed.replace(year=now.year - 1)
        except ValueError:
            # Feb 29 has no counterpart last year
            pass
    return parsed


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Convert to aware UTC. Naive values are taken as local time.

    Values the platform cannot shift (e.g. year 1 or 9999 with an offset)
    keep their wall-clock reading and are labelled UTC.
    """
    if value is None:
        return None
    try:
        if value.tzinfo is None:
            value = value.astimezone()
        return value.astimezone(timezone.utc)
    except (OverflowError, ValueError, OSError):
        return value.replace(tzinfo=timezone.utc)


def entropy(data: Union[bytes, str]) -> float:
    """Calculate Shannon entropy of data."""
    if not data:
        return 0.0

    counter = Counter(data)
    length = len(data)

    ent = 0.0
    for count in counter.values():
        p = count / length
        ent -= p * math.log2(p)

    return ent


def open_text(file_path: Union[str, Path], encoding: str = "utf-8") -> IO[str]:
    """Open a text log, transparently decompressing .gz files."""
    file_path = Path(file_path)
    if file_path.suffix == ".gz":
        return gzip.open(file_path, "rt", encoding=encoding, errors="replace")
    return open(file_path, "r", encoding=encoding, errors="replace")


def read_head(file_path: Union[str, Path], size: int = 4096) -> bytes:
    """Read the first bytes of a file."""
    with open(file_path, "rb") as f:
        return f.read(size)


def detect_content_type(file_path: Union[str, Path]) -> str:
    """
    Classify a file by its content.

    Returns one of: Empty, WindowsEventLog, PCAP, PCAPNG, JSON, XML, CSV,
    LogFile, Binary, Text, Unknown.
    """
    try:
        header = read_head(file_path, 4096)
    except OSError:
        return "Unknown"

    if not header:
        return "Empty"
    if header.startswith(EVTX_MAGIC):
        return "WindowsEventLog"
    if header[:4] in PCAP_MAGICS:
        return "PCAP"
    if header.startswith(PCAPNG_MAGIC):
        return "PCAPNG"

    sample = header.decode("utf-8", errors="replace")
    stripped = sample.lstrip("\ufeff \t\r\n")

    if stripped.startswith("<"):
        if "<Event" in stripped:
            return "WindowsEventLog"
        return "XML"
    if stripped.startswith(("{", "[")):
        return "JSON"

    non_printable = sum(1 for b in header if b < 9 or 13 < b < 32)
    if b"\x00" in header or non_printable > len(header) * 0.1:
        return "Binary"

    lines = [line for line in stripped.splitlines() if line.strip()][:10]
    if len(lines) >= 2:
        commas = [line.count(",") for line in lines[:-1]]
        if commas[0] >= 2 and len(set(commas)) == 1:
            return "CSV"
    if any(LOG_LINE_PATTERN.match(line) for line in lines):
        return "LogFile"
    return "Text"
