"""
Analysis Module for LogSift.
The end-to-end analysis engine and its command-line front end.
"""

from logsift.analysis.engine import AnalysisEngine

__all__ = [
    "AnalysisEngine",
]
