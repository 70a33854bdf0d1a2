"""Tests for amount reuse and balance traceability heuristics."""

from __future__ import annotations

from privacy_scanner.heuristics.amounts import detect_amount_reuse, detect_balance_traceability
from privacy_scanner.normalization.schema import TargetKind
from privacy_scanner.reports.models import Severity

from builders import OTHER, TARGET, make_context, make_transfer, make_tx


def _ids(signals):
    return [signal.id for signal in signals]


def test_needs_five_transfers():
    transfers = [make_transfer(f"sig-{i}", amount=1.0) for i in range(4)]

    assert detect_amount_reuse(make_context(transfers=transfers)) == []


def test_round_numbers_and_same_counterparty():
    transfers = [make_transfer(f"sig-{i}", amount=5.0) for i in range(5)]
    context = make_context(transfers=transfers, transactions=[make_tx(t.signature) for t in transfers])

    signals = detect_amount_reuse(context)

    assert _ids(signals) == ["amount-round-numbers", "amount-reuse-counterparty"]
    round_numbers = signals[0].evidence[0]
    assert round_numbers.data.round_numbers == [5.0] * 5
    reuse = signals[1].evidence[0].data
    assert (reuse.amount, reuse.token, reuse.count, reuse.counterparty) == (5.0, "SOL", 5, OTHER)
    assert signals[1].severity is Severity.MEDIUM


def test_signer_pattern_when_counterparties_vary():
    transfers = [make_transfer(f"sig-{i}", receiver=f"recipient-{i}", amount=0.25) for i in range(5)]
    context = make_context(transfers=transfers, transactions=[make_tx(t.signature) for t in transfers])

    signals = detect_amount_reuse(context)

    assert _ids(signals) == ["amount-reuse-pattern"]
    assert signals[0].severity is Severity.LOW


def test_frequency_when_signers_vary():
    transfers = [make_transfer(f"sig-{i}", receiver=f"recipient-{i}", amount=0.25) for i in range(12)]
    transactions = [make_tx(t.signature, signers=[TARGET, f"cosigner-{i}"]) for i, t in enumerate(transfers)]
    context = make_context(transfers=transfers, transactions=transactions)

    signals = detect_amount_reuse(context)

    assert _ids(signals) == ["amount-reuse-frequency"]
    assert signals[0].severity is Severity.MEDIUM
    assert signals[0].evidence[0].data.count == 12


def test_token_amounts_are_keyed_by_mint():
    transfers = [make_transfer(f"sig-{i}", amount=0.5, asset="mint-a" if i % 2 else "mint-b") for i in range(5)]
    context = make_context(transfers=transfers, transactions=[make_tx(t.signature) for t in transfers])

    signals = detect_amount_reuse(context)

    tokens = {evidence.data.token for evidence in signals[0].evidence}
    assert tokens == {"mint-b"}


def test_balance_traceability_matching_pairs():
    transfers = [
        make_transfer("sig-1", sender=OTHER, receiver=TARGET, amount=2.0, block_time=0),
        make_transfer("sig-2", amount=2.0, block_time=10_000),
        make_transfer("sig-3", sender=OTHER, receiver=TARGET, amount=3.0, block_time=20_000),
        make_transfer("sig-4", amount=3.0, block_time=30_000),
    ]

    signals = detect_balance_traceability(make_context(transfers=transfers))

    assert _ids(signals) == ["balance-traceability"]
    assert signals[0].severity is Severity.MEDIUM
    assert signals[0].evidence[0].data.matching_pairs == 2
    assert signals[0].confidence == 0.7


def test_balance_traceability_high_with_sequential_similar_transfers():
    transfers = [
        make_transfer("sig-1", sender=OTHER, receiver=TARGET, amount=2.0, block_time=0),
        make_transfer("sig-2", amount=2.0, block_time=600),
        make_transfer("sig-3", sender=OTHER, receiver=TARGET, amount=3.0, block_time=20_000),
        make_transfer("sig-4", amount=3.0, block_time=30_000),
    ]

    signals = detect_balance_traceability(make_context(transfers=transfers))

    assert signals[0].severity is Severity.HIGH
    descriptions = [evidence.description for evidence in signals[0].evidence]
    assert "Sequential transfers of similar amounts" in descriptions


def test_balance_traceability_only_for_wallets_with_matches():
    distinct = [make_transfer(f"sig-{i}", amount=float(i + 1), block_time=i * 10_000) for i in range(3)]
    assert detect_balance_traceability(make_context(transfers=distinct)) == []

    repeated = [make_transfer(f"sig-{i}", amount=1.0) for i in range(3)]
    context = make_context(target="Program111", kind=TargetKind.PROGRAM, transfers=repeated)
    assert detect_balance_traceability(context) == []
