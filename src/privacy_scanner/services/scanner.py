"""High-level orchestration for privacy scans."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional

from privacy_scanner.collection import LedgerSource, RawBatch, empty_batch
from privacy_scanner.labels import LabelResolver
from privacy_scanner.normalization.normalizer import normalize
from privacy_scanner.normalization.schema import ScanContext, TargetKind
from privacy_scanner.observability import Observability, get_observability
from privacy_scanner.reports.generator import ReportGenerator
from privacy_scanner.reports.models import PrivacyReport
from privacy_scanner.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)


class PrivacyScanner:
    """Coordinates collection, normalization, and report generation.

    Failures in the ledger source, the label resolver, or normalization never
    escape :meth:`scan`; they are logged and the scan continues with an empty
    batch, yielding a LOW report with no signals. Such scans also emit a
    ``scan.empty_collection`` event so they can be told apart from clean
    targets.
    """

    def __init__(
        self,
        ledger_source: LedgerSource,
        *,
        label_resolver: LabelResolver | None = None,
        generator: ReportGenerator | None = None,
        settings: Settings | None = None,
        observability: Observability | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.ledger_source = ledger_source
        self.label_resolver = label_resolver
        self.generator = generator or ReportGenerator(schema_version=self.settings.report.schema_version)
        self.observability = observability or get_observability(component="scanner", settings=self.settings)

    def scan(self, target: str, kind: TargetKind | str = TargetKind.WALLET) -> PrivacyReport:
        """Scan a single target and return its privacy report."""

        kind = TargetKind(kind)
        tags = {"kind": kind.value}
        with self.observability.timer("scan.duration", tags=tags):
            raw, collection_failed = self._collect(target, kind)
            context = self._normalize(raw, target, kind)
            report = self.generator.generate(context)

        if context.transaction_count == 0:
            LOGGER.warning("No ledger activity available for %s %s", kind.value, target)
            self.observability.emit_event(
                "scan.empty_collection",
                target=target,
                kind=kind,
                collection_failed=collection_failed,
            )
        self.observability.increment(
            "scan.signals",
            value=report.summary.total_signals,
            tags={**tags, "risk": report.overall_risk.value},
        )
        self.observability.emit_event(
            "scan.completed",
            target=target,
            kind=kind,
            overall_risk=report.overall_risk,
            signals=report.summary.total_signals,
            transactions=report.summary.transactions_analyzed,
            known_entities=len(report.known_entities),
        )
        return report

    def scan_wallet(self, address: str) -> PrivacyReport:
        return self.scan(address, TargetKind.WALLET)

    def scan_transaction(self, signature: str) -> PrivacyReport:
        return self.scan(signature, TargetKind.TRANSACTION)

    def scan_program(self, program_id: str) -> PrivacyReport:
        return self.scan(program_id, TargetKind.PROGRAM)

    def scan_many(
        self,
        targets: Iterable[str],
        kind: TargetKind | str = TargetKind.WALLET,
        max_workers: Optional[int] = None,
    ) -> List[PrivacyReport]:
        """Scan ``targets`` concurrently; reports are returned in input order."""

        ordered = list(targets)
        if not ordered:
            return []
        workers = max(1, min(max_workers or self.settings.scan.max_workers, len(ordered)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="pscan") as executor:
            return list(executor.map(lambda target: self.scan(target, kind), ordered))

    def _collect(self, target: str, kind: TargetKind) -> tuple[RawBatch, bool]:
        try:
            return self.ledger_source.collect(target, kind, max_history=self.settings.max_history), False
        except Exception:
            LOGGER.warning("Ledger collection failed for %s %s", kind.value, target, exc_info=True)
            return empty_batch(target, kind), True

    def _normalize(self, raw: RawBatch, target: str, kind: TargetKind) -> ScanContext:
        try:
            return normalize(raw, self.label_resolver)
        except Exception:
            LOGGER.warning("Normalization failed for %s %s", kind.value, target, exc_info=True)
            return normalize(empty_batch(target, kind))


__all__ = ["PrivacyScanner"]
