"""Tests for memo, known-entity and identity metadata heuristics."""

from __future__ import annotations

import pytest

from privacy_scanner.heuristics.exposure import (
    classify_memo,
    detect_identity_metadata_exposure,
    detect_known_entity_interaction,
    detect_memo_exposure,
)
from privacy_scanner.labels.models import LabelType
from privacy_scanner.normalization.reference_data import MEMO_PROGRAM, METAPLEX_METADATA_PROGRAM, NAME_SERVICE_PROGRAM
from privacy_scanner.reports.models import Severity

from builders import EXCHANGE, OTHER, make_context, make_instruction, make_label, make_transfer, make_tx


def _memo_context(*texts: str):
    return make_context(
        transactions=[make_tx(f"sig-{i}", programs=[MEMO_PROGRAM]) for i in range(len(texts))],
        instructions=[make_instruction(f"sig-{i}", MEMO_PROGRAM, payload=text) for i, text in enumerate(texts)],
    )


@pytest.mark.parametrize(
    "text,severity,pattern",
    [
        ("contact me at alice@example.com", Severity.HIGH, "email address"),
        ("call +1 555-123-4567", Severity.HIGH, "phone number"),
        ("see https://example.com/x", Severity.MEDIUM, "URL"),
        ("rent for John Smith", Severity.MEDIUM, "likely name"),
        ("invoice 42", Severity.MEDIUM, "payment reference"),
        ("gm", Severity.LOW, None),
    ],
)
def test_classify_memo(text, severity, pattern):
    found_severity, patterns = classify_memo(text)

    assert found_severity is severity
    if pattern is None:
        assert patterns == ()
    else:
        assert pattern in patterns


def test_payment_reference_requires_whole_word():
    assert "payment reference" not in classify_memo("ideally")[1]


def test_memo_pii_and_descriptive_signals():
    signals = detect_memo_exposure(_memo_context("mail bob@example.org", "order 77", "gm"))

    assert [signal.id for signal in signals] == ["memo-pii-exposure", "memo-descriptive-content"]
    assert signals[0].evidence[0].reference == "sig-0"
    assert signals[0].confidence == pytest.approx(0.9)


def test_plain_memo_is_low_usage():
    signals = detect_memo_exposure(_memo_context("gm", "wagmi"))

    assert [signal.id for signal in signals] == ["memo-usage"]
    assert signals[0].severity is Severity.LOW
    assert signals[0].evidence[0].data.signatures == ["sig-0", "sig-1"]


def test_long_memo_preview_is_truncated():
    text = "x" * 150
    signals = detect_memo_exposure(_memo_context(text))

    assert signals[0].id == "memo-descriptive-content"
    assert signals[0].evidence[0].description.startswith('"' + "x" * 100 + '..."')


def test_exchange_interaction_is_high_and_reports_examples():
    transfers = [make_transfer(f"sig-{i}", receiver=EXCHANGE) for i in range(4)] + [make_transfer("sig-9")]
    context = make_context(transfers=transfers, labels=[make_label(EXCHANGE)])

    signals = detect_known_entity_interaction(context)

    assert [signal.id for signal in signals] == ["known-entity-interaction"]
    evidence = signals[0].evidence[0].data
    assert signals[0].severity is Severity.HIGH
    assert evidence.type == "label"
    assert evidence.interaction_count == 4
    assert evidence.example_transactions == ["sig-0", "sig-1", "sig-2"]


def test_non_exchange_entity_is_medium_and_frequent():
    bridge = make_label(OTHER, "Example Bridge", LabelType.BRIDGE)
    transfers = [make_transfer(f"sig-{i}") for i in range(6)]
    context = make_context(transfers=transfers, labels=[bridge])

    signals = detect_known_entity_interaction(context)

    assert [signal.id for signal in signals] == ["known-entity-interaction", "known-entity-frequent"]
    assert all(signal.severity is Severity.MEDIUM for signal in signals)


def test_labels_without_transfers_are_ignored():
    context = make_context(transfers=[make_transfer("sig-1")], labels=[make_label(EXCHANGE)])

    assert detect_known_entity_interaction(context) == []


def test_identity_metadata_signals():
    context = make_context(
        instructions=[
            make_instruction("sig-1", METAPLEX_METADATA_PROGRAM, payload={"type": "createMetadataAccountV3"}),
            make_instruction("sig-2", NAME_SERVICE_PROGRAM),
        ]
    )

    signals = detect_identity_metadata_exposure(context)

    assert [(signal.id, signal.severity) for signal in signals] == [
        ("nft-metadata-exposure", Severity.MEDIUM),
        ("domain-name-linkage", Severity.HIGH),
    ]
