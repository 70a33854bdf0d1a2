"""Tests for report model validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from privacy_scanner.reports.models import PrivacySignal, Severity


def _signal(**overrides) -> PrivacySignal:
    fields = {
        "id": "fee-payer-external",
        "name": "External Fee Payer Detected",
        "severity": Severity.HIGH,
        "reason": "reason",
        "impact": "impact",
        "mitigation": "mitigation",
    }
    fields.update(overrides)
    return PrivacySignal(**fields)


@pytest.mark.parametrize("confidence", [1.5, -0.1])
def test_confidence_outside_unit_interval_is_rejected(confidence):
    with pytest.raises(ValidationError):
        _signal(confidence=confidence)


@pytest.mark.parametrize("confidence", [None, 0.0, 0.7, 1.0])
def test_confidence_inside_unit_interval_is_accepted(confidence):
    assert _signal(confidence=confidence).confidence == confidence


def test_signals_are_immutable():
    signal = _signal()

    with pytest.raises(ValidationError):
        signal.severity = Severity.LOW
