"""
PCAP File Parser - Summarize PCAP/PCAPNG captures as security events.
"""

import socket
import struct
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, BinaryIO, Dict, Generator, List, Optional, Tuple, Union

from logsift.core.logger import get_logger
from logsift.core.models import SecurityEvent, TechnicalFindings
from logsift.core.utils import PCAP_MAGICS, PCAPNG_MAGIC, read_head
from logsift.logs.base import FormatParser, effective_suffix

logger = get_logger(__name__)


@dataclass
class PcapPacket:
    """Represents a packet from a PCAP file."""
    timestamp: Optional[datetime]
    captured_len: int
    original_len: int
    data: bytes
    link_type: int = 1


@dataclass
class Conversation:
    """Traffic between two hosts over one protocol."""
    src: str
    dst: str
    protocol: str
    packets: int = 0
    bytes: int = 0
    first_seen: Optional[datetime] = None
    last_seen: Optional[datetime] = None
    dst_ports: Dict[int, int] = field(default_factory=dict)


def _timestamp(seconds: float) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


class PcapReader:
    """
    Read packets from PCAP and PCAPNG files.

    Supports:
    - PCAP format (libpcap), both byte orders, micro and nanosecond stamps
    - PCAPNG Enhanced and Simple Packet Blocks
    Truncated trailing data ends the packet stream without an error.
    """

    # PCAP magic numbers, read as little endian
    PCAP_MAGIC_LE = 0xa1b2c3d4  # Little endian microseconds
    PCAP_MAGIC_BE = 0xd4c3b2a1  # Big endian microseconds
    PCAP_MAGIC_NS_LE = 0xa1b23c4d  # Little endian nanoseconds
    PCAP_MAGIC_NS_BE = 0x4d3cb2a1  # Big endian nanoseconds
    PCAPNG_MAGIC = 0x0a0d0d0a  # PCAPNG Section Header Block
    PCAPNG_BYTE_ORDER_MAGIC = 0x1a2b3c4d

    def __init__(self, file_path: Union[str, Path]):
        self.file_path = Path(file_path)
        self.format = "unknown"
        self.is_nanoseconds = False
        self.byte_order = "<"  # Little endian default
        self.link_type = 1  # Ethernet default

        if not self.file_path.exists():
            raise FileNotFoundError(f"PCAP file not found: {file_path}")

    def parse(self) -> Generator[PcapPacket, None, None]:
        """Parse capture file and yield packets. Unknown magic raises ValueError."""
        with open(self.file_path, "rb") as f:
            raw = f.read(4)
            if len(raw) < 4:
                raise ValueError("File too short for a capture header")
            magic = struct.unpack("<I", raw)[0]

            if magic == self.PCAPNG_MAGIC:
                self.format = "pcapng"
                f.seek(0)
                yield from self._parse_pcapng(f)
            elif magic in (self.PCAP_MAGIC_LE, self.PCAP_MAGIC_NS_LE):
                self.format = "pcap"
                self.byte_order = "<"
                self.is_nanoseconds = magic == self.PCAP_MAGIC_NS_LE
                yield from self._parse_pcap(f)
            elif magic in (self.PCAP_MAGIC_BE, self.PCAP_MAGIC_NS_BE):
                self.format = "pcap"
                self.byte_order = ">"
                self.is_nanoseconds = magic == self.PCAP_MAGIC_NS_BE
                yield from self._parse_pcap(f)
            else:
                raise ValueError(f"Unknown PCAP format: {hex(magic)}")

    def _parse_pcap(self, f: BinaryIO) -> Generator[PcapPacket, None, None]:
        """Parse standard PCAP file."""
        # Read global header (already read magic)
        header = f.read(20)
        if len(header) < 20:
            return

        version_major, version_minor, _thiszone, _sigfigs, snaplen, network = struct.unpack(
            f"{self.byte_order}HHiIII", header
        )
        self.link_type = network

        logger.debug(f"PCAP version {version_major}.{version_minor}, snaplen={snaplen}")

        divisor = 1e9 if self.is_nanoseconds else 1e6
        while True:
            packet_header = f.read(16)
            if len(packet_header) < 16:
                break

            ts_sec, ts_frac, incl_len, orig_len = struct.unpack(
                f"{self.byte_order}IIII", packet_header
            )

            data = f.read(incl_len)
            if len(data) < incl_len:
                break

            yield PcapPacket(
                timestamp=_timestamp(ts_sec + ts_frac / divisor),
                captured_len=incl_len,
                original_len=orig_len,
                data=data,
                link_type=network,
            )

    def _parse_pcapng(self, f: BinaryIO) -> Generator[PcapPacket, None, None]:
        """Parse PCAPNG file."""
        order = "<"
        link_types: List[int] = []

        while True:
            block_header = f.read(8)
            if len(block_header) < 8:
                break

            block_type = struct.unpack("<I", block_header[:4])[0]
            if block_type == self.PCAPNG_MAGIC:
                # Section header: byte-order magic decides the endianness
                bom = f.read(4)
                if len(bom) < 4:
                    break
                order = "<" if struct.unpack("<I", bom)[0] == self.PCAPNG_BYTE_ORDER_MAGIC else ">"
                self.byte_order = order
                link_types = []
                block_len = struct.unpack(f"{order}I", block_header[4:8])[0]
                if block_len < 16:
                    break
                rest = f.read(block_len - 12)
                if len(rest) < block_len - 12:
                    break
                continue

            block_type, block_len = struct.unpack(f"{order}II", block_header)
            if block_len < 12:
                break

            block_data = f.read(block_len - 12)
            trailer = f.read(4)  # Block length trailer
            if len(block_data) < block_len - 12 or len(trailer) < 4:
                break

            if block_type == 0x00000001:  # Interface Description Block
                if len(block_data) >= 2:
                    link_types.append(struct.unpack(f"{order}H", block_data[:2])[0])

            elif block_type == 0x00000006:  # Enhanced Packet Block
                if len(block_data) >= 20:
                    interface_id, ts_high, ts_low, cap_len, orig_len = struct.unpack(
                        f"{order}IIIII", block_data[:20]
                    )

                    # Microseconds since epoch (default if_tsresol)
                    timestamp_us = (ts_high << 32) | ts_low
                    link = link_types[interface_id] if interface_id < len(link_types) else 1

                    yield PcapPacket(
                        timestamp=_timestamp(timestamp_us / 1e6),
                        captured_len=cap_len,
                        original_len=orig_len,
                        data=block_data[20:20 + cap_len],
                        link_type=link,
                    )

            elif block_type == 0x00000003:  # Simple Packet Block
                if len(block_data) >= 4:
                    orig_len = struct.unpack(f"{order}I", block_data[:4])[0]
                    data = block_data[4:4 + orig_len]
                    yield PcapPacket(
                        timestamp=None,
                        captured_len=len(data),
                        original_len=orig_len,
                        data=data,
                        link_type=link_types[0] if link_types else 1,
                    )


PROTOCOLS = {1: "ICMP", 6: "TCP", 17: "UDP", 58: "ICMPv6"}


def decode_packet(packet: PcapPacket) -> Optional[Tuple[str, str, str, Optional[int], Optional[int]]]:
    """
    Decode link and network headers.

    Returns (src, dst, protocol, src_port, dst_port) or None when the
    packet is not IPv4/IPv6 over a supported link type.
    """
    data = packet.data
    if packet.link_type == 1:  # Ethernet
        if len(data) < 14:
            return None
        ethertype = struct.unpack("!H", data[12:14])[0]
        offset = 14
        if ethertype == 0x8100 and len(data) >= 18:  # 802.1Q
            ethertype = struct.unpack("!H", data[16:18])[0]
            offset = 18
    elif packet.link_type == 113:  # Linux cooked capture
        if len(data) < 16:
            return None
        ethertype = struct.unpack("!H", data[14:16])[0]
        offset = 16
    elif packet.link_type in (101, 228, 229, 12):  # Raw IP
        if not data:
            return None
        ethertype = 0x0800 if data[0] >> 4 == 4 else 0x86dd
        offset = 0
    else:
        return None

    ip_data = data[offset:]
    if ethertype == 0x0800:
        if len(ip_data) < 20:
            return None
        protocol = ip_data[9]
        src_ip = socket.inet_ntoa(ip_data[12:16])
        dst_ip = socket.inet_ntoa(ip_data[16:20])
        transport = ip_data[(ip_data[0] & 0x0F) * 4:]
    elif ethertype == 0x86dd:
        if len(ip_data) < 40:
            return None
        protocol = ip_data[6]
        src_ip = socket.inet_ntop(socket.AF_INET6, ip_data[8:24])
        dst_ip = socket.inet_ntop(socket.AF_INET6, ip_data[24:40])
        transport = ip_data[40:]
    else:
        return None

    src_port = dst_port = None
    if protocol in (6, 17) and len(transport) >= 4:
        src_port, dst_port = struct.unpack("!HH", transport[:4])

    return src_ip, dst_ip, PROTOCOLS.get(protocol, str(protocol)), src_port, dst_port


class NetworkCaptureParser(FormatParser):
    """
    Best-effort capture summarizer.

    Emits one event per conversation (source, destination, protocol)
    plus an overall capture summary. Files with an unknown header yield
    empty findings rather than an error.
    """

    SUPPORTED_FILE_TYPE = "PCAP,PCAPNG"
    PRIORITY = 60
    MIME_TYPE = "application/vnd.tcpdump.pcap"
    EXTENSIONS = (".pcap", ".pcapng", ".cap")

    # Ports commonly tied to backdoors, C2 or cleartext remote access
    SUSPICIOUS_PORTS = {23, 1337, 4444, 5555, 6667, 12345, 31337}
    MAX_CONVERSATION_EVENTS = 500

    def _can_parse(self, path: Path) -> bool:
        if effective_suffix(path) in self.EXTENSIONS:
            return True
        head = read_head(path, 4)
        return head in PCAP_MAGICS or head == PCAPNG_MAGIC

    def parse(self, file_path: Union[str, Path]) -> TechnicalFindings:
        path = Path(file_path)
        findings = self._new_findings(path)
        reader = PcapReader(path)

        conversations: Dict[Tuple[str, str, str], Conversation] = {}
        protocols: Dict[str, int] = {}
        total_packets = 0
        total_bytes = 0
        undecoded = 0
        first_seen: Optional[datetime] = None
        last_seen: Optional[datetime] = None

        try:
            for packet in reader.parse():
                total_packets += 1
                total_bytes += packet.original_len
                if packet.timestamp:
                    first_seen = first_seen or packet.timestamp
                    last_seen = packet.timestamp

                decoded = decode_packet(packet)
                if decoded is None:
                    undecoded += 1
                    continue
                src, dst, proto, _sport, dport = decoded
                protocols[proto] = protocols.get(proto, 0) + 1

                conv = conversations.get((src, dst, proto))
                if conv is None:
                    conv = Conversation(src=src, dst=dst, protocol=proto, first_seen=packet.timestamp)
                    conversations[(src, dst, proto)] = conv
                conv.packets += 1
                conv.bytes += packet.original_len
                conv.last_seen = packet.timestamp or conv.last_seen
                if dport is not None:
                    conv.dst_ports[dport] = conv.dst_ports.get(dport, 0) + 1
        except ValueError as e:
            logger.warning(f"Unrecognized capture {path.name}: {e}")
            findings.raw_data.update({
                "parser": self.__class__.__name__,
                "capture_format": "unknown",
            })
            findings.recount()
            return findings

        ranked = sorted(conversations.values(), key=lambda c: c.bytes, reverse=True)
        for conv in ranked[:self.MAX_CONVERSATION_EVENTS]:
            self._add_event(findings, self._conversation_event(conv))

        if total_packets:
            summary = (
                f"Capture summary: {total_packets} packets, {total_bytes} bytes, "
                f"{len(conversations)} conversations"
            )
            self._add_event(findings, SecurityEvent(
                timestamp=first_seen,
                event_type="pcap",
                source="pcap",
                message=summary,
                description=summary,
                severity="info",
                attributes={"packets": str(total_packets), "bytes": str(total_bytes)},
                category="network",
                subcategory="capture-summary",
                confidence_score=1.0,
            ))

        findings.total_lines = total_packets
        findings.raw_data.update({
            "parser": self.__class__.__name__,
            "capture_format": reader.format,
            "link_type": reader.link_type,
            "total_packets": total_packets,
            "total_bytes": total_bytes,
            "undecoded_packets": undecoded,
            "conversations": len(conversations),
            "protocols": protocols,
            "start_time": first_seen.isoformat() if first_seen else None,
            "end_time": last_seen.isoformat() if last_seen else None,
        })
        findings.recount()
        return findings

    def _conversation_event(self, conv: Conversation) -> SecurityEvent:
        ports = sorted(conv.dst_ports, key=conv.dst_ports.get, reverse=True)[:10]
        flagged = [p for p in ports if p in self.SUSPICIOUS_PORTS]

        description = f"{conv.protocol} {conv.src} -> {conv.dst}: {conv.packets} packets, {conv.bytes} bytes"
        if ports:
            description += f" (ports {', '.join(str(p) for p in ports)})"
        if flagged:
            description = f"Traffic to suspicious port {flagged[0]}: " + description

        attributes = {
            "source_ip": conv.src,
            "dest_ip": conv.dst,
            "protocol": conv.protocol,
            "packets": str(conv.packets),
            "bytes": str(conv.bytes),
        }
        if ports:
            attributes["dst_port"] = str(ports[0])

        return SecurityEvent(
            timestamp=conv.first_seen,
            event_type="pcap",
            source="pcap",
            message=description,
            description=self._truncate(description),
            severity="medium" if flagged else "low",
            attributes=attributes,
            category="network",
            subcategory="conversation",
            confidence_score=0.6,
        )
