"""Detector capability and shared helpers for privacy heuristics."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Protocol, Sequence

from privacy_scanner.normalization.schema import ScanContext
from privacy_scanner.reports.models import PrivacySignal

LOGGER = logging.getLogger(__name__)

SignalList = List[PrivacySignal]


class Detector(Protocol):
    """Anything that inspects a scan context and reports privacy signals."""

    name: str

    def evaluate(self, context: ScanContext) -> SignalList:  # pragma: no cover - Protocol
        ...


@dataclass(frozen=True)
class HeuristicDetector:
    """Detector backed by a pure function of the scan context."""

    name: str
    func: Callable[[ScanContext], Iterable[PrivacySignal]]

    def evaluate(self, context: ScanContext) -> SignalList:
        return list(self.func(context))


@dataclass(frozen=True)
class DetectorResult:
    """Outcome of one detector run: its signals, or the error that stopped it."""

    detector: str
    signals: tuple[PrivacySignal, ...] = ()
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def run_detector(detector: Detector, context: ScanContext) -> DetectorResult:
    """Run ``detector`` and capture any failure in the result."""

    try:
        signals = tuple(detector.evaluate(context))
        invalid = [signal for signal in signals if not isinstance(signal, PrivacySignal)]
        if invalid:
            raise TypeError(f"Detector {detector.name} returned {type(invalid[0]).__name__}, expected PrivacySignal")
    except Exception as exc:
        return DetectorResult(detector=detector.name, error=exc)
    return DetectorResult(detector=detector.name, signals=signals)


def ceil_fraction(total: int, fraction: float) -> int:
    """Return ``ceil(total * fraction)``."""

    return math.ceil(total * fraction)


def coefficient_of_variation(values: Sequence[float]) -> Optional[float]:
    """Population standard deviation divided by the mean, or ``None``."""

    if not values:
        return None
    mean = sum(values) / len(values)
    if mean == 0:
        return None
    variance = sum((value - mean) ** 2 for value in values) / len(values)
    return math.sqrt(variance) / mean


def shorten(address: str, size: int = 8) -> str:
    """Abbreviate an address for human-readable descriptions."""

    if len(address) <= size + 3:
        return address
    return f"{address[:size]}..."


__all__ = [
    "Detector",
    "DetectorResult",
    "HeuristicDetector",
    "SignalList",
    "ceil_fraction",
    "coefficient_of_variation",
    "run_detector",
    "shorten",
]
