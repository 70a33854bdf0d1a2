"""Tests for the heuristic engine."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest

from privacy_scanner.heuristics import DEFAULT_DETECTORS, HeuristicDetector, HeuristicEngine, sort_signals
from privacy_scanner.reports.generator import ReportGenerator
from privacy_scanner.reports.models import PrivacySignal, Severity

from builders import RELAYER, make_context, make_transfer, make_tx


def _signal(signal_id: str, severity: Severity) -> PrivacySignal:
    return PrivacySignal(
        id=signal_id,
        name=signal_id,
        severity=severity,
        reason="reason",
        impact="impact",
        mitigation="mitigation",
    )


def _boom(context):
    raise RuntimeError("detector exploded")


def test_failing_detector_does_not_stop_the_others(caplog):
    observability = MagicMock()
    engine = HeuristicEngine(
        [
            HeuristicDetector("first", lambda context: [_signal("a", Severity.LOW)]),
            HeuristicDetector("broken", _boom),
            HeuristicDetector("last", lambda context: [_signal("b", Severity.MEDIUM)]),
        ],
        observability=observability,
    )

    with caplog.at_level(logging.WARNING, logger="privacy_scanner.heuristics.engine"):
        signals = engine.evaluate(make_context())

    assert [signal.id for signal in signals] == ["b", "a"]
    assert "Detector broken failed" in caplog.text
    observability.increment.assert_called_once_with("heuristics.detector_failures", tags={"detector": "broken"})


def test_evaluate_detailed_reports_errors_in_order():
    engine = HeuristicEngine(
        [
            HeuristicDetector("broken", _boom),
            HeuristicDetector("ok", lambda context: [_signal("a", Severity.HIGH)]),
        ]
    )

    results = engine.evaluate_detailed(make_context())

    assert [result.detector for result in results] == ["broken", "ok"]
    assert not results[0].ok and isinstance(results[0].error, RuntimeError)
    assert results[1].ok and results[1].signals[0].id == "a"


def test_sort_is_stable_within_severity():
    signals = [
        _signal("low-1", Severity.LOW),
        _signal("high-1", Severity.HIGH),
        _signal("medium-1", Severity.MEDIUM),
        _signal("low-2", Severity.LOW),
        _signal("high-2", Severity.HIGH),
    ]

    assert [signal.id for signal in sort_signals(signals)] == ["high-1", "high-2", "medium-1", "low-1", "low-2"]


def test_default_engine_is_deterministic():
    transactions = [make_tx(f"sig-{i}", fee_payer=RELAYER, block_time=1_700_000_000 + i * 60) for i in range(6)]
    transfers = [make_transfer(f"sig-{i}", amount=2.0, block_time=1_700_000_000 + i * 60) for i in range(6)]
    context = make_context(transactions=transactions, transfers=transfers)
    engine = HeuristicEngine()

    first = engine.evaluate(context)
    second = engine.evaluate(context)

    assert first == second
    assert [signal.severity.rank for signal in first] == sorted(signal.severity.rank for signal in first)
    assert "fee-payer-never-self" in {signal.id for signal in first}


def test_default_detector_registration_order():
    names = [detector.name for detector in DEFAULT_DETECTORS]

    assert names[0] == "fee-payer-reuse"
    assert names[-1] == "identity-metadata"
    assert len(names) == len(set(names))


class _NoneDetector:
    name = "returns-none"

    def evaluate(self, context):
        return None


def _raising_generator(context):
    yield _signal("partial", Severity.HIGH)
    raise RuntimeError("failed while iterating")


@pytest.mark.parametrize(
    "broken",
    [
        _NoneDetector(),
        HeuristicDetector("lazy", _raising_generator),
        HeuristicDetector("wrong-type", lambda context: [{"id": "not-a-signal"}]),
    ],
)
def test_misbehaving_detector_is_contained(broken):
    engine = HeuristicEngine([broken, HeuristicDetector("ok", lambda context: [_signal("a", Severity.LOW)])])

    results = engine.evaluate_detailed(make_context())
    report = ReportGenerator(engine=engine).generate(make_context())

    assert not results[0].ok
    assert results[0].signals == ()
    assert [signal.id for signal in report.signals] == ["a"]
