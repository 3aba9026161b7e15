"""Core utilities and shared components."""

from logsift.core.config import Config, get_config
from logsift.core.logger import setup_logging, get_logger
from logsift.core.exceptions import (
    LogSiftError,
    UnsupportedFileTypeError,
    FileParsingError,
    AnalysisError,
)
from logsift.core.utils import (
    hash_file,
    validate_ip,
    extract_iocs,
    extract_ioc_list,
    categorize_ioc,
    parse_timestamp,
    detect_content_type,
)

__all__ = [
    "Config",
    "get_config",
    "setup_logging",
    "get_logger",
    "LogSiftError",
    "UnsupportedFileTypeError",
    "FileParsingError",
    "AnalysisError",
    "hash_file",
    "validate_ip",
    "extract_iocs",
    "extract_ioc_list",
    "categorize_ioc",
    "parse_timestamp",
    "detect_content_type",
]
