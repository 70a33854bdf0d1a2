"""Tests for instruction, timing, fee and staking heuristics."""

from __future__ import annotations

from privacy_scanner.heuristics.behavioral import (
    detect_instruction_fingerprinting,
    detect_priority_fee_fingerprinting,
    detect_staking_delegation,
    detect_timing_patterns,
)
from privacy_scanner.normalization.reference_data import STAKE_PROGRAM, SYSTEM_PROGRAM
from privacy_scanner.normalization.schema import InstructionCategory, PDAInteraction
from privacy_scanner.reports.models import Severity

from builders import make_context, make_instruction, make_tx

DEX = "DexProgram11111111111111111111111111111111"
LENDING = "LendProgram1111111111111111111111111111111"
VALIDATOR = "Va1idatorVote111111111111111111111111111111"
BASE_TIME = 1_700_000_000


def _ids(signals):
    return [signal.id for signal in signals]


def test_repeated_sequence_and_program_profile():
    transactions = [make_tx(f"sig-{i}", programs=[SYSTEM_PROGRAM, DEX, LENDING]) for i in range(4)]
    instructions = []
    for tx in transactions:
        instructions.extend(
            [
                make_instruction(tx.signature, SYSTEM_PROGRAM),
                make_instruction(tx.signature, DEX),
                make_instruction(tx.signature, LENDING),
            ]
        )
    context = make_context(transactions=transactions, instructions=instructions)

    signals = detect_instruction_fingerprinting(context)

    assert _ids(signals) == ["instruction-sequence-pattern", "program-usage-profile"]
    assert signals[0].severity is Severity.MEDIUM
    assert signals[0].evidence[0].data.signatures == ["sig-0", "sig-1"]


def test_sequence_threshold_needs_at_least_three_occurrences():
    transactions = [make_tx(f"sig-{i}") for i in range(3)]
    instructions = [make_instruction("sig-0", DEX), make_instruction("sig-1", DEX), make_instruction("sig-2", LENDING)]
    context = make_context(transactions=transactions, instructions=instructions)

    assert "instruction-sequence-pattern" not in _ids(detect_instruction_fingerprinting(context))


def test_instruction_pda_reuse_and_repeated_type():
    transactions = [make_tx(f"sig-{i}") for i in range(4)]
    instructions = [make_instruction(tx.signature, DEX, payload={"type": "swap", "info": {}}) for tx in transactions]
    pdas = tuple(PDAInteraction(pda="pool-pda", program_id=DEX, signature=tx.signature) for tx in transactions)
    context = make_context(transactions=transactions, instructions=instructions, pda_interactions=pdas)

    signals = {signal.id: signal for signal in detect_instruction_fingerprinting(context)}

    assert signals["instruction-pda-reuse"].severity is Severity.MEDIUM
    assert signals["instruction-type-repeated"].severity is Severity.LOW


def test_timing_burst_and_regular_hourly_interval():
    transactions = [make_tx(f"sig-{i}", block_time=BASE_TIME + i * 3600) for i in range(6)]
    context = make_context(transactions=transactions)

    signals = {signal.id: signal for signal in detect_timing_patterns(context)}

    assert "timing-burst" not in signals
    assert signals["timing-regular-interval"].severity is Severity.HIGH


def test_timing_burst_rate():
    transactions = [make_tx(f"sig-{i}", block_time=BASE_TIME + i * 60) for i in range(12)]
    context = make_context(transactions=transactions)

    burst = next(signal for signal in detect_timing_patterns(context) if signal.id == "timing-burst")

    assert burst.severity is Severity.HIGH
    assert burst.evidence[0].data.transaction_count == 12


def test_timing_timezone_concentration():
    day = 86_400
    transactions = [make_tx(f"sig-{i}", block_time=BASE_TIME + i * day + (i % 3) * 7) for i in range(10)]
    context = make_context(transactions=transactions)

    ids = _ids(detect_timing_patterns(context))

    assert "timing-timezone-pattern" in ids


def test_timing_requires_span():
    transactions = [make_tx(f"sig-{i}", block_time=BASE_TIME) for i in range(5)]

    assert detect_timing_patterns(make_context(transactions=transactions)) == []


def test_priority_fee_and_compute_fingerprint():
    transactions = [
        make_tx(f"sig-{i}", priority_fee=10_000, compute_units_used=41_000 + i * 100) for i in range(5)
    ]
    context = make_context(transactions=transactions)

    signals = detect_priority_fee_fingerprinting(context)

    assert _ids(signals) == ["priority-fee-consistent", "compute-budget-fingerprint"]


def test_priority_fee_needs_five_transactions():
    transactions = [make_tx(f"sig-{i}", priority_fee=10_000) for i in range(4)]

    assert detect_priority_fee_fingerprinting(make_context(transactions=transactions)) == []


def test_staking_concentration_and_schedule():
    day = 86_400
    instructions = [
        make_instruction(
            f"sig-{i}",
            STAKE_PROGRAM,
            category=InstructionCategory.STAKE,
            payload={"type": "delegate", "info": {"voteAccount": VALIDATOR}},
            block_time=BASE_TIME + i * day,
        )
        for i in range(4)
    ]
    context = make_context(instructions=instructions)

    signals = detect_staking_delegation(context)

    assert _ids(signals) == ["stake-delegation-pattern", "stake-timing-correlation"]
    assert signals[0].evidence[0].data.address == VALIDATOR


def test_staking_falls_back_to_instruction_accounts():
    instructions = [
        make_instruction(
            f"sig-{i}",
            STAKE_PROGRAM,
            category=InstructionCategory.STAKE,
            accounts=("stake-account", VALIDATOR),
        )
        for i in range(3)
    ]

    signals = detect_staking_delegation(make_context(instructions=instructions))

    assert _ids(signals) == ["stake-delegation-pattern"]
