"""Privacy heuristics over normalized ledger activity."""

from privacy_scanner.heuristics.base import (
    Detector,
    DetectorResult,
    HeuristicDetector,
    SignalList,
    run_detector,
)
from privacy_scanner.heuristics.engine import (
    DEFAULT_DETECTORS,
    HeuristicEngine,
    evaluate_heuristics,
    sort_signals,
)

__all__ = [
    "DEFAULT_DETECTORS",
    "Detector",
    "DetectorResult",
    "HeuristicDetector",
    "HeuristicEngine",
    "SignalList",
    "evaluate_heuristics",
    "run_detector",
    "sort_signals",
]
