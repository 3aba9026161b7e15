"""
Network Capture Module for LogSift.
Summarizes raw packet captures as security events.
"""

from logsift.network.pcap_parser import PcapReader, PcapPacket, NetworkCaptureParser, decode_packet

__all__ = [
    "PcapReader",
    "PcapPacket",
    "NetworkCaptureParser",
    "decode_packet",
]
