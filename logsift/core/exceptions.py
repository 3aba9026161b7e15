"""
Error taxonomy for LogSift.
"""

from pathlib import Path
from typing import Optional, Union


class LogSiftError(Exception):
    """Base exception for LogSift operations."""


class UnsupportedFileTypeError(LogSiftError):
    """No registered parser claims the file."""

    def __init__(self, file_path: Union[str, Path], file_type: str):
        self.file_path = str(file_path)
        self.file_type = file_type or "<none>"
        super().__init__(
            f"File type '{self.file_type}' is not supported for file: {self.file_path}"
        )


class FileParsingError(LogSiftError):
    """A matched parser could not extract any usable structure."""

    def __init__(self, file_path: Union[str, Path], reason: str, parser: Optional[str] = None):
        self.file_path = str(file_path)
        self.reason = reason
        self.parser = parser
        fmt = f" as {parser}" if parser else ""
        super().__init__(f"Error parsing file '{self.file_path}'{fmt}: {reason}")


class AnalysisError(LogSiftError):
    """Unexpected internal fault during orchestration."""
