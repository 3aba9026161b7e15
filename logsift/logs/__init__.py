"""
Log Analysis Module for LogSift.
Format parsers, dispatch, normalization and correlation.
"""

from logsift.logs.base import FormatParser, LineParser
from logsift.logs.syslog import SyslogParser
from logsift.logs.windows import WindowsEventLogParser
from logsift.logs.webserver import WebServerLogParser
from logsift.logs.firewall import FirewallLogParser
from logsift.logs.database import DatabaseLogParser
from logsift.logs.mail import MailServerLogParser
from logsift.logs.dns import DnsLogParser
from logsift.logs.session import LinuxSessionLogParser
from logsift.logs.csvlog import CsvLogParser
from logsift.logs.registry import ParserRegistry, default_parsers
from logsift.logs.normalizer import LogNormalizer
from logsift.logs.correlator import CorrelationEngine

__all__ = [
    "FormatParser",
    "LineParser",
    "SyslogParser",
    "WindowsEventLogParser",
    "WebServerLogParser",
    "FirewallLogParser",
    "DatabaseLogParser",
    "MailServerLogParser",
    "DnsLogParser",
    "LinuxSessionLogParser",
    "CsvLogParser",
    "ParserRegistry",
    "default_parsers",
    "LogNormalizer",
    "CorrelationEngine",
]
