"""
Symscout Mandatory Analyzer

Answers "is it safe to introduce a new symbol named X of kind Y?" in one
call, by fanning out four independent search operations and folding their
results into an :class:`AnalysisReport` with warnings, recommendations and
a ``can_proceed`` verdict.

The numeric thresholds come from :class:`AnalysisPolicy`; they are tuned
defaults, not properties of code search.
"""

import dataclasses
import json
import logging
import time
from typing import List, Optional

from symscout.core.config import AnalysisPolicy
from symscout.core.models import (
    AnalysisChecks,
    AnalysisReport,
    DuplicateFinding,
    PatternFindings,
    SimilarImplementations,
    SymbolExistence,
)
from symscout.core.query import QueryBuilder
from symscout.core.search import SearchOperations, gather_all
from symscout.core.telemetry import (
    ErrorReporter,
    LoggingErrorReporter,
    correlation_scope,
    log_event,
    report_error,
)

logger = logging.getLogger(__name__)


class MandatoryAnalyzer:
    """
    Composite pre-authoring analysis over :class:`SearchOperations`.

    Args:
        operations: Search operations sharing the client's cache and transport.
        policy: Decision thresholds.
        error_reporter: Sink for analysis failures.
    """

    def __init__(
        self,
        operations: SearchOperations,
        policy: Optional[AnalysisPolicy] = None,
        error_reporter: Optional[ErrorReporter] = None,
    ):
        self._operations = operations
        self.policy = policy or AnalysisPolicy()
        self._error_reporter = error_reporter or LoggingErrorReporter()

    async def perform_mandatory_analysis(self, code_type: str, code_name: str) -> AnalysisReport:
        """
        Run the four mandatory checks for *code_name* concurrently.

        Runs ``find_duplicates``, ``check_symbol_exists``,
        ``find_similar_implementations`` and a whole-word ``find_patterns``.
        If any of them fails the analysis fails with that error; no partial
        report is produced and nothing is retried at this level.

        Returns:
            A fresh :class:`AnalysisReport` (never cached).
        """
        started = time.perf_counter()
        with correlation_scope() as cid:
            log_event(
                logger, logging.INFO, "mandatory_analysis_start",
                code_type=code_type, code_name=code_name,
            )
            try:
                duplicates, symbol, similar, patterns = await gather_all(
                    self._operations.find_duplicates(code_type, code_name),
                    self._operations.check_symbol_exists(code_name, code_type),
                    self._operations.find_similar_implementations(code_name),
                    self._operations.find_patterns(QueryBuilder.word(code_name)),
                )
                report = self._build_report(
                    cid, code_type, code_name, duplicates, symbol, similar, patterns,
                )
            except Exception as e:
                duration_ms = round((time.perf_counter() - started) * 1000, 3)
                log_event(
                    logger, logging.ERROR, "mandatory_analysis_failed",
                    f"Mandatory analysis of {code_type} {code_name} failed: {e}",
                    exc_info=True, code_type=code_type, code_name=code_name,
                    error=type(e).__name__, duration_ms=duration_ms,
                )
                report_error(
                    self._error_reporter, e, "perform_mandatory_analysis", cid,
                    code_type=code_type, code_name=code_name, duration_ms=duration_ms,
                )
                raise

            log_event(
                logger, logging.INFO, "mandatory_analysis_success",
                code_type=code_type, code_name=code_name,
                can_proceed=report.can_proceed,
                warning_count=len(report.warnings),
                recommendation_count=len(report.recommendations),
                duration_ms=round((time.perf_counter() - started) * 1000, 3),
            )
            # Audit entry: the full report, for later correlation
            log_event(
                logger, logging.INFO, "sourcegraph_analysis",
                json.dumps(report.to_dict(), default=str),
                report=report.to_dict(),
            )
            return report

    def _build_report(
        self,
        correlation_id: str,
        code_type: str,
        code_name: str,
        duplicates: DuplicateFinding,
        symbol: SymbolExistence,
        similar: SimilarImplementations,
        patterns: PatternFindings,
    ) -> AnalysisReport:
        policy = self.policy
        warnings: List[str] = []
        recommendations: List[str] = []

        if duplicates.is_duplicate:
            warnings.append(
                f"Found {duplicates.duplicate_count} existing implementations of {code_name}"
            )
            recommendations.append("Consider using or extending existing implementation")

        if symbol.exists:
            warnings.append(
                f'Symbol "{code_name}" already exists in {symbol.location_count} location(s)'
            )
            recommendations.append("Consider using a different name or namespace")

        if similar.implementation_count > policy.similar_review_threshold:
            recommendations.append(
                f"Found {similar.implementation_count} similar implementations - review for patterns"
            )

        can_proceed = not (
            duplicates.duplicate_count > policy.max_duplicate_locations
            or symbol.location_count > policy.max_symbol_locations
        )
        if not can_proceed:
            warnings.append("Too many duplicates found - manual review required")

        sample = policy.report_sample_size
        checks = AnalysisChecks(
            duplicates=duplicates,
            symbol_exists=symbol,
            similar_implementations=dataclasses.replace(
                similar, implementations=similar.implementations[:sample],
            ),
            patterns=dataclasses.replace(patterns, matches=patterns.matches[:sample]),
        )
        return AnalysisReport(
            correlation_id=correlation_id,
            code_type=code_type,
            code_name=code_name,
            checks=checks,
            warnings=tuple(warnings),
            recommendations=tuple(recommendations),
            can_proceed=can_proceed,
        )

    @staticmethod
    def validate_no_duplicates(finding: DuplicateFinding) -> bool:
        """True when *finding* reports no duplicate (or nothing at all)."""
        valid = not finding.is_duplicate or finding.duplicate_count == 0
        log_event(
            logger, logging.INFO, "validate_duplicates",
            name=finding.name, type=finding.type,
            is_duplicate=finding.is_duplicate,
            duplicate_count=finding.duplicate_count, valid=valid,
        )
        return valid
