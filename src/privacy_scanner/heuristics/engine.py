"""Heuristic evaluation engine."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from privacy_scanner.heuristics.amounts import detect_amount_reuse, detect_balance_traceability
from privacy_scanner.heuristics.base import Detector, DetectorResult, HeuristicDetector, SignalList, run_detector
from privacy_scanner.heuristics.behavioral import (
    detect_instruction_fingerprinting,
    detect_priority_fee_fingerprinting,
    detect_staking_delegation,
    detect_timing_patterns,
)
from privacy_scanner.heuristics.exposure import (
    detect_identity_metadata_exposure,
    detect_known_entity_interaction,
    detect_memo_exposure,
)
from privacy_scanner.heuristics.linkability import (
    detect_address_reuse,
    detect_counterparty_reuse,
    detect_fee_payer_reuse,
    detect_signer_overlap,
)
from privacy_scanner.heuristics.token_accounts import detect_ata_linkage, detect_token_account_lifecycle
from privacy_scanner.normalization.schema import ScanContext
from privacy_scanner.observability import Observability

LOGGER = logging.getLogger(__name__)

DEFAULT_DETECTORS: tuple[Detector, ...] = (
    HeuristicDetector("fee-payer-reuse", detect_fee_payer_reuse),
    HeuristicDetector("signer-overlap", detect_signer_overlap),
    HeuristicDetector("memo-exposure", detect_memo_exposure),
    HeuristicDetector("address-reuse", detect_address_reuse),
    HeuristicDetector("known-entity-interaction", detect_known_entity_interaction),
    HeuristicDetector("counterparty-reuse", detect_counterparty_reuse),
    HeuristicDetector("instruction-fingerprinting", detect_instruction_fingerprinting),
    HeuristicDetector("token-account-lifecycle", detect_token_account_lifecycle),
    HeuristicDetector("timing-patterns", detect_timing_patterns),
    HeuristicDetector("amount-reuse", detect_amount_reuse),
    HeuristicDetector("balance-traceability", detect_balance_traceability),
    HeuristicDetector("priority-fee-fingerprinting", detect_priority_fee_fingerprinting),
    HeuristicDetector("ata-linkage", detect_ata_linkage),
    HeuristicDetector("staking-delegation", detect_staking_delegation),
    HeuristicDetector("identity-metadata", detect_identity_metadata_exposure),
)


class HeuristicEngine:
    """Run a fixed set of detectors against a scan context.

    Detectors run in registration order. A failing detector is logged and
    skipped; the remaining detectors still contribute their signals. The
    combined list is stable-sorted so HIGH signals come first while signals of
    equal severity keep their registration order.
    """

    def __init__(
        self,
        detectors: Optional[Sequence[Detector]] = None,
        *,
        observability: Optional[Observability] = None,
    ) -> None:
        self.detectors: tuple[Detector, ...] = DEFAULT_DETECTORS if detectors is None else tuple(detectors)
        self._observability = observability

    def evaluate_detailed(self, context: ScanContext) -> List[DetectorResult]:
        """Return one :class:`DetectorResult` per detector, in registration order."""

        results: List[DetectorResult] = []
        for detector in self.detectors:
            result = run_detector(detector, context)
            if not result.ok:
                LOGGER.warning(
                    "Detector %s failed for %s: %s",
                    result.detector,
                    context.target,
                    result.error,
                    exc_info=result.error,
                )
                if self._observability is not None:
                    self._observability.increment("heuristics.detector_failures", tags={"detector": result.detector})
            results.append(result)
        return results

    def evaluate(self, context: ScanContext) -> SignalList:
        """Return all signals for ``context`` sorted by severity."""

        return sort_signals(signal for result in self.evaluate_detailed(context) for signal in result.signals)


def sort_signals(signals: Iterable) -> SignalList:
    """Stable sort by severity rank (HIGH, MEDIUM, LOW)."""

    return sorted(signals, key=lambda signal: signal.severity.rank)


def evaluate_heuristics(context: ScanContext) -> SignalList:
    """Evaluate the default detectors against ``context``."""

    return HeuristicEngine().evaluate(context)


__all__ = ["DEFAULT_DETECTORS", "HeuristicEngine", "evaluate_heuristics", "sort_signals"]
