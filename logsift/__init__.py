"""
LogSift - Security Log and Artifact Analysis Pipeline
======================================================

Turns heterogeneous security artifacts (Windows event logs, syslog,
firewall, web-server, DNS, mail, database and session logs, network
captures) into a uniform stream of security events, then derives IOCs,
timelines, correlated event groups and a deterministic risk score.

Modules:
    - core: configuration, logging, data model, shared utilities
    - logs: format parsers, dispatch, normalization, correlation
    - network: packet capture parsing
    - incident: scoring, timelines, forensic summaries
    - analysis: the end-to-end analysis engine

License: MIT
"""

__version__ = "1.0.0"
__author__ = "LogSift Contributors"
__license__ = "MIT"

from logsift.core.config import Config
from logsift.core.logger import setup_logging

# Initialize logging
setup_logging()

__all__ = [
    "Config",
    "__version__",
    "__author__",
    "__license__",
]
