"""
Analysis Engine - parse, normalize, correlate and score security artifacts.
"""

import re
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

from logsift.core.config import Config, get_config
from logsift.core.exceptions import AnalysisError, LogSiftError
from logsift.core.logger import get_logger
from logsift.core.models import (
    AIInsights,
    AnalysisOptions,
    AnalysisRequest,
    AnalysisResult,
    CorrelatedGroup,
    CorrelationInsights,
    ExecutiveReport,
    FileFailure,
    FileMetadata,
    SecurityEvent,
    TechnicalFindings,
    Timeline,
)
from logsift.core.utils import to_utc
from logsift.incident.forensics import BasicForensicService, ForensicService
from logsift.incident.insights import InsightGenerator
from logsift.incident.timeline import TimelineBuilder
from logsift.logs.correlator import CorrelationEngine
from logsift.logs.normalizer import LogNormalizer
from logsift.logs.registry import ParserRegistry

logger = get_logger(__name__)


class AnalysisEngine:
    """
    End-to-end analysis of one or more evidence files.

    Pipeline per file:
    1. Dispatch to a format parser
    2. Normalize events
    3. Apply option filters
    4. Correlate
    5. Score and classify
    6. Executive report, timeline and forensic summary

    Batches are analyzed concurrently and merged. A failing file is
    recorded in the result's failures; the batch only fails when every
    file fails.
    """

    def __init__(
        self,
        registry: Optional[ParserRegistry] = None,
        normalizer: Optional[LogNormalizer] = None,
        correlator: Optional[CorrelationEngine] = None,
        insights: Optional[InsightGenerator] = None,
        forensics: Optional[ForensicService] = None,
        timeline: Optional[TimelineBuilder] = None,
        config: Optional[Config] = None,
    ):
        self.config = config or get_config()
        self.registry = registry or ParserRegistry(config=self.config)
        self.normalizer = normalizer or LogNormalizer()
        self.correlator = correlator or CorrelationEngine(config=self.config)
        self.insights = insights or InsightGenerator()
        self.timeline = timeline or TimelineBuilder()
        if forensics is None and self.config.analysis.enable_forensics:
            forensics = BasicForensicService()
        self.forensics = forensics

    def get_supported_file_types(self) -> List[str]:
        return self.registry.get_supported_file_types()

    def can_process_file(self, file_path: Union[str, Path]) -> bool:
        return self.registry.can_process_file(file_path)

    def analyze_file(self, request: AnalysisRequest) -> AnalysisResult:
        """
        Analyze a single file.

        Raises:
            FileNotFoundError: file does not exist
            UnsupportedFileTypeError: no parser accepts the file
            FileParsingError: the selected parser could not read it
            AnalysisError: any other failure
        """
        logger.info(f"Starting analysis for: {request.file_path}")
        try:
            result = self._run_pipeline(request)
        except (LogSiftError, FileNotFoundError) as e:
            logger.error(f"Analysis failed for {request.file_path}: {e}")
            raise
        except Exception as e:
            logger.error(f"Unexpected error analyzing {request.file_path}: {e}", exc_info=True)
            raise AnalysisError(f"Analysis failed for file '{request.file_path}': {e}") from e

        logger.info(
            f"Analysis completed for {request.display_name}: "
            f"{len(result.technical.security_events)} events, score {result.ai.severity_score}"
        )
        return result

    def _run_pipeline(self, request: AnalysisRequest) -> AnalysisResult:
        options = request.options
        findings = self.registry.parse_file(request.file_path)

        events = self.normalizer.normalize(findings.security_events)
        parsed_count = len(events)
        events = self.apply_filters(events, options)

        iocs = findings.detected_iocs[:options.max_iocs] if options.generate_ioc_list else []
        technical = replace(findings, security_events=events, detected_iocs=iocs, raw_data=dict(findings.raw_data))
        technical.raw_data["events_before_filtering"] = parsed_count
        technical.recount()

        malicious = sum(1 for e in events if e.is_malicious)
        if malicious:
            logger.security_event(
                "malicious-activity",
                "high",
                f"{malicious} malicious events in {request.display_name}",
                file_name=request.display_name,
                parser=technical.raw_data.get("parser_used"),
            )

        if options.enable_correlation:
            extra_keys = self.config.correlation.deep_inspection_keys if options.deep_inspection else ()
            correlation = self.correlator.correlate(events, extra_keys)
        else:
            correlation = CorrelationInsights()

        if options.enable_ai_analysis and self.insights.is_available():
            ai = self.insights.generate_insights(technical)
        else:
            logger.info("AI analysis disabled; skipping insights")
            ai = AIInsights()

        executive = (
            self.insights.generate_executive_report(technical, ai)
            if options.generate_executive_report else ExecutiveReport()
        )
        timeline = self.timeline.build(technical) if options.include_timeline else Timeline()

        forensics = None
        if options.perform_forensic_analysis and self.forensics is not None:
            forensics = self.forensics.perform_forensic_analysis(technical)

        return AnalysisResult(
            file_name=request.display_name,
            file_type=f"Parser:{findings.raw_data.get('detected_file_type', findings.file_format)}"
                      f"|Heuristic:{findings.metadata.file_type or 'Unknown'}",
            technical=technical,
            ai=ai,
            executive=executive,
            timeline=timeline,
            correlation=correlation,
            forensics=forensics,
        )

    @staticmethod
    def apply_filters(events: List[SecurityEvent], options: AnalysisOptions) -> List[SecurityEvent]:
        """Time range, priority, exclude patterns, focus keywords, then the event cap."""
        start = _utc_bound(options.time_range_start)
        end = _utc_bound(options.time_range_end)
        if start or end:
            events = [
                e for e in events
                if e.timestamp is not None
                and (start is None or to_utc(e.timestamp) >= start)
                and (end is None or to_utc(e.timestamp) <= end)
            ]

        events = [e for e in events if e.priority >= options.minimum_event_priority]

        if options.exclude_patterns:
            excludes = [re.compile(p, re.IGNORECASE) for p in options.exclude_patterns]
            events = [
                e for e in events
                if not any(p.search(e.message) or p.search(e.description) for p in excludes)
            ]

        if options.focus_keywords:
            keywords = [k.lower() for k in options.focus_keywords if k]
            events = [e for e in events if any(k in _searchable(e) for k in keywords)]

        return events[:max(options.max_security_events, 0)]

    def analyze_files(self, requests: Iterable[AnalysisRequest]) -> AnalysisResult:
        """
        Analyze several files concurrently and merge the results.

        Files that fail or exceed the timeout are listed in
        AnalysisResult.failures. If all files fail, AnalysisError is
        raised; a lone request re-raises its own error.
        """
        requests = list(requests)
        if not requests:
            raise AnalysisError("No files to analyze")

        settings = self.config.analysis
        workers = max(1, min(settings.max_workers, len(requests)))
        logger.info(f"Analyzing {len(requests)} files with {workers} workers")

        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="logsift")
        try:
            futures = [pool.submit(self.analyze_file, r) for r in requests]
            done, _pending = wait(futures, timeout=settings.file_timeout)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        results: List[AnalysisResult] = []
        failures: List[FileFailure] = []
        errors: List[BaseException] = []
        for request, future in zip(requests, futures):
            if future not in done:
                logger.warning(f"Timed out analyzing {request.file_path} after {settings.file_timeout}s")
                failures.append(FileFailure(
                    file_path=request.file_path,
                    error_type="TimeoutError",
                    message=f"Analysis exceeded {settings.file_timeout} seconds",
                ))
                errors.append(TimeoutError(f"Analysis of '{request.file_path}' timed out"))
                continue
            try:
                results.append(future.result())
            except Exception as e:
                logger.warning(f"Skipping {request.file_path}: {e}")
                failures.append(FileFailure(
                    file_path=request.file_path,
                    error_type=type(e).__name__,
                    message=str(e),
                ))
                errors.append(e)

        if not results:
            if len(requests) == 1 and not isinstance(errors[0], TimeoutError):
                raise errors[0]
            raise AnalysisError(f"All {len(requests)} files failed to analyze") from errors[0]

        merged = results[0] if len(results) == 1 else self.merge_results(results)
        if failures:
            merged = replace(merged, failures=merged.failures + tuple(failures))
            logger.warning(f"{len(failures)} of {len(requests)} files failed")
        return merged

    @staticmethod
    def merge_results(results: Sequence[AnalysisResult]) -> AnalysisResult:
        """
        Combine per-file results into one.

        The merged score is the maximum of the inputs; attack vector and
        business impact come from the highest scoring input.
        """
        results = list(results)
        if not results:
            raise AnalysisError("Nothing to merge")

        events: List[SecurityEvent] = []
        for r in results:
            events.extend(r.technical.security_events)

        technical = TechnicalFindings(
            security_events=events,
            detected_iocs=[ioc for r in results for ioc in r.technical.detected_iocs],
            metadata=_merge_metadata([r.technical.metadata for r in results]),
            raw_data={
                "merged_files": [r.file_name for r in results],
                "sources": [
                    {
                        "file_name": r.file_name,
                        "file_format": r.technical.file_format,
                        "parser_used": r.technical.raw_data.get("parser_used"),
                        "events": len(r.technical.security_events),
                    }
                    for r in results
                ],
            },
            file_format=",".join(dict.fromkeys(r.technical.file_format for r in results if r.technical.file_format)),
            total_lines=sum(r.technical.total_lines for r in results),
        )
        technical.recount()

        generator = InsightGenerator()
        top = max(results, key=lambda r: r.ai.severity_score)
        ai = replace(
            top.ai,
            threat_assessment=generator.generate_threat_assessment(technical),
            recommended_actions=_union(a for r in results for a in r.ai.recommended_actions),
            detected_patterns=_union(p for r in results for p in r.ai.detected_patterns),
            confidence_score=max(r.ai.confidence_score for r in results),
            risk_factors=dict(top.ai.risk_factors),
            analysis_timestamp=datetime.now(timezone.utc),
        )

        groups: Dict[str, List[SecurityEvent]] = {}
        for r in results:
            for group in r.correlation.groups:
                groups.setdefault(group.key, []).extend(group.events)
        correlation = CorrelationInsights(groups=tuple(
            CorrelatedGroup(key=key, events=tuple(members)) for key, members in groups.items()
        ))

        has_timeline = any(r.timeline.events for r in results)
        has_report = any(r.executive.risk_level for r in results)

        return AnalysisResult(
            file_name=", ".join(r.file_name for r in results),
            file_type=", ".join(dict.fromkeys(r.file_type for r in results)),
            technical=technical,
            ai=ai,
            executive=generator.generate_executive_report(technical, ai) if has_report else ExecutiveReport(),
            timeline=TimelineBuilder().build(technical) if has_timeline else Timeline(),
            correlation=correlation,
            forensics=next((r.forensics for r in results if r.forensics is not None), None),
            failures=tuple(f for r in results for f in r.failures),
        )


def _utc_bound(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _searchable(event: SecurityEvent) -> str:
    return " ".join([event.message, event.description, *event.attributes.values()]).lower()


def _union(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(values))


def _merge_metadata(items: List[FileMetadata]) -> FileMetadata:
    created = [m.created for m in items if m.created]
    modified = [m.modified for m in items if m.modified]
    return FileMetadata(
        file_name=", ".join(m.file_name for m in items),
        size=sum(m.size for m in items),
        created=min(created) if created else None,
        modified=max(modified) if modified else None,
        mime_type="multipart/mixed",
        file_type="Multiple",
        line_count=sum(m.line_count for m in items),
    )
