"""Command-line entry point for LogSift.

Usage::

    logsift auth.log firewall.fwlog capture.pcap
    logsift events.evtx --json --no-ai
    logsift /var/log/syslog --config logsift.yaml --log-level DEBUG
"""

import argparse
import json
import sys
from typing import Any, Dict, List, Optional

import yaml

from logsift.analysis.engine import AnalysisEngine
from logsift.core.config import get_config
from logsift.core.exceptions import LogSiftError
from logsift.core.logger import get_logger, setup_logging
from logsift.core.models import AnalysisOptions, AnalysisRequest, AnalysisResult

logger = get_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="logsift",
        description="Analyze security logs and captures and print a JSON summary.",
    )
    parser.add_argument(
        "files",
        nargs="+",
        help="Evidence files to analyze",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the complete analysis result instead of the summary",
    )
    parser.add_argument(
        "--no-ai",
        action="store_true",
        help="Skip scoring and classification",
    )
    parser.add_argument(
        "--config",
        help="Path to a YAML or JSON configuration file",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Console log level (default: from configuration)",
    )
    return parser


def summarize(result: AnalysisResult) -> Dict[str, Any]:
    """Compact view of a result for terminal output."""
    return {
        "file_name": result.file_name,
        "file_type": result.file_type,
        "events": len(result.technical.security_events),
        "events_by_type": result.technical.events_by_type,
        "iocs": len(result.technical.detected_iocs),
        "iocs_by_category": result.technical.iocs_by_category,
        "severity_score": result.ai.severity_score,
        "risk_level": result.executive.risk_level,
        "attack_vector": result.ai.attack_vector,
        "recommended_actions": result.ai.recommended_actions,
        "correlated_groups": [
            {"key": g.key, "events": len(g)} for g in result.correlation.groups if len(g) > 1
        ],
        "first_activity": result.timeline.first_activity,
        "last_activity": result.timeline.last_activity,
        "case_id": result.forensics.case_id if result.forensics else None,
        "failures": [
            {"file": f.file_path, "error": f.error_type, "message": f.message}
            for f in result.failures
        ],
    }


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the logsift CLI."""
    args = _build_parser().parse_args(argv)

    config = get_config()
    if args.config:
        try:
            config.load_file(args.config)
        except (OSError, ValueError, yaml.YAMLError) as e:
            print(json.dumps({"error": "ConfigurationError", "message": str(e)}), file=sys.stderr)
            return 2

    setup_logging(
        level=args.log_level or config.logging.level,
        log_file=config.logging.log_file,
        json_format=config.logging.json_format,
        security_log=config.logging.security_log,
        stream=sys.stderr,
    )

    options = AnalysisOptions(enable_ai_analysis=not args.no_ai)
    requests = [AnalysisRequest(file_path=path, options=options) for path in args.files]

    try:
        result = AnalysisEngine(config=config).analyze_files(requests)
    except (LogSiftError, FileNotFoundError) as e:
        logger.error(str(e))
        print(json.dumps({"error": type(e).__name__, "message": str(e)}), file=sys.stderr)
        return 1

    payload = result.to_dict() if args.json else summarize(result)
    print(json.dumps(payload, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
