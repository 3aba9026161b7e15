"""
Logging configuration for LogSift.

Console output is colored for humans, file output can be JSON. Findings
worth keeping (malicious activity, high severity scores) go through
SecurityLogger.security_event(), which writes to the dedicated
"logsift.security" channel so they can be collected in their own log.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path
from typing import IO, Optional

SECURITY_CHANNEL = "logsift.security"


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "thread": record.threadName,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "finding"):
            log_data["finding"] = record.finding

        return json.dumps(log_data, default=str)


class ColoredFormatter(logging.Formatter):
    """Colored console output; plain text when the stream is not a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[90m"

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        origin = record.name
        # batch workers are named logsift_0, logsift_1, ...
        if record.threadName.startswith("logsift"):
            origin = f"{origin} ({record.threadName})"

        if self.use_color:
            color = self.COLORS.get(record.levelname, self.RESET)
            level = f"{color}{self.BOLD}[{record.levelname:^8}]{self.RESET}"
            origin = f"{self.DIM}{origin}{self.RESET}"
        else:
            level = f"[{record.levelname:^8}]"

        formatted = f"{timestamp} {level} {origin}: {record.getMessage()}"

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


class SecurityLogger(logging.Logger):
    """
    Logger with a structured channel for analysis findings.
    """

    LEVEL_MAP = {
        "info": logging.INFO,
        "low": logging.INFO,
        "medium": logging.WARNING,
        "high": logging.ERROR,
        "critical": logging.CRITICAL,
    }

    def security_event(
        self,
        event_type: str,
        severity: str,
        message: str,
        file_name: Optional[str] = None,
        **fields
    ):
        """
        Record a finding on the security channel.

        Args:
            event_type: Short kind, e.g. "malicious-activity" or "alert"
            severity: low/medium/high/critical
            message: Human readable summary
            file_name: Evidence file the finding came from
            **fields: Extra structured data kept in the JSON record
        """
        level = self.LEVEL_MAP.get(severity.lower(), logging.WARNING)
        channel = logging.getLogger(SECURITY_CHANNEL)
        if not channel.isEnabledFor(level):
            return

        record = channel.makeRecord(channel.name, level, "(security)", 0, message, (), None)
        record.finding = {
            "event_type": event_type,
            "severity": severity,
            "file_name": file_name,
            "reported_by": self.name,
            **fields,
        }
        channel.handle(record)

    def alert(self, message: str, **fields):
        """High severity finding that needs an analyst's attention."""
        self.security_event("alert", "high", message, **fields)


# Register our custom logger class
logging.setLoggerClass(SecurityLogger)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    json_format: bool = False,
    security_log: Optional[str] = None,
    max_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    stream: Optional[IO[str]] = None,
) -> None:
    """
    Set up logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file
        json_format: Use JSON format for file logs
        security_log: Optional path for the JSON findings log
        max_size: Max size of log file before rotation
        backup_count: Number of backup files to keep
        stream: Console stream (default: stdout)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    stream = stream or sys.stdout
    console_handler = logging.StreamHandler(stream)
    console_handler.setFormatter(ColoredFormatter(use_color=_is_terminal(stream)))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(log_path, maxBytes=max_size, backupCount=backup_count)
        if json_format:
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s (%(threadName)s): %(message)s"
            ))
        root_logger.addHandler(file_handler)

    # Findings log is always JSON; records still propagate to the console
    security_logger = logging.getLogger(SECURITY_CHANNEL)
    security_logger.handlers.clear()
    if security_log:
        security_path = Path(security_log)
        security_path.parent.mkdir(parents=True, exist_ok=True)

        security_handler = TimedRotatingFileHandler(security_path, when="midnight", backupCount=30)
        security_handler.setFormatter(JSONFormatter())
        security_handler.setLevel(logging.WARNING)
        security_logger.addHandler(security_handler)


def _is_terminal(stream: IO[str]) -> bool:
    isatty = getattr(stream, "isatty", None)
    try:
        return bool(isatty and isatty())
    except ValueError:
        # closed stream
        return False


def get_logger(name: str) -> SecurityLogger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)
