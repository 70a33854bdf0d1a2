"""Assemble privacy reports from a normalized scan context.

The generator runs the heuristic engine, scores the resulting signals and
packages everything into an immutable :class:`PrivacyReport`. Reports for the
same context are identical apart from the timestamp.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Sequence

from privacy_scanner.heuristics.engine import HeuristicEngine, sort_signals
from privacy_scanner.normalization.schema import ScanContext
from privacy_scanner.reports.models import PrivacyReport, PrivacySignal, ReportSummary, Severity
from privacy_scanner.scoring.aggregator import generate_mitigations, overall_risk, severity_counts

LOGGER = logging.getLogger(__name__)

DEFAULT_SCHEMA_VERSION = "1.0.0"

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _summarize(signals: Sequence[PrivacySignal], transactions_analyzed: int) -> ReportSummary:
    counts = severity_counts(signals)
    return ReportSummary(
        total_signals=len(signals),
        high_risk_signals=counts[Severity.HIGH],
        medium_risk_signals=counts[Severity.MEDIUM],
        low_risk_signals=counts[Severity.LOW],
        transactions_analyzed=transactions_analyzed,
    )


class ReportGenerator:
    """Build :class:`PrivacyReport` objects.

    Args:
        engine: Heuristic engine; defaults to one running every registered detector.
        schema_version: Version string stamped on each report.
        clock: Callable returning the current time, injectable for tests.
    """

    def __init__(
        self,
        engine: Optional[HeuristicEngine] = None,
        schema_version: str = DEFAULT_SCHEMA_VERSION,
        clock: Optional[Clock] = None,
    ) -> None:
        self.engine = engine or HeuristicEngine()
        self.schema_version = schema_version
        self._clock = clock or _utc_now

    def generate(self, context: ScanContext) -> PrivacyReport:
        """Evaluate ``context`` and return its report."""

        signals = self.engine.evaluate(context)
        report = PrivacyReport(
            version=self.schema_version,
            timestamp=int(self._clock().timestamp() * 1000),
            target_type=context.target_kind.value,
            target=context.target,
            overall_risk=overall_risk(signals),
            signals=signals,
            summary=_summarize(signals, context.transaction_count),
            mitigations=generate_mitigations(signals),
            known_entities=list(context.labels.values()),
        )
        LOGGER.debug(
            "Report for %s %s: risk=%s signals=%d",
            report.target_type,
            report.target,
            report.overall_risk.value,
            len(signals),
        )
        return report


def generate_report(context: ScanContext) -> PrivacyReport:
    """Generate a report with the default engine and schema version."""

    return ReportGenerator().generate(context)


def with_additional_signals(report: PrivacyReport, signals: Iterable[PrivacySignal]) -> PrivacyReport:
    """Return a copy of ``report`` with ``signals`` merged in.

    Signals are re-sorted by severity and the summary, overall risk and
    mitigations are recomputed. ``report`` itself is left untouched.
    """

    merged = sort_signals([*report.signals, *signals])
    return report.model_copy(
        update={
            "signals": merged,
            "summary": _summarize(merged, report.summary.transactions_analyzed),
            "overall_risk": overall_risk(merged),
            "mitigations": generate_mitigations(merged),
        }
    )


__all__ = ["DEFAULT_SCHEMA_VERSION", "ReportGenerator", "generate_report", "with_additional_signals"]
