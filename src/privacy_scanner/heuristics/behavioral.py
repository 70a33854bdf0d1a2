"""Behavioural heuristics: instruction habits, timing, fees and staking.

These detectors do not look at who the target deals with but at how it
transacts. Repeated structure, schedules and fee settings are fingerprints
that survive address changes.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List

from privacy_scanner.heuristics.base import SignalList, ceil_fraction, coefficient_of_variation, shorten
from privacy_scanner.normalization.reference_data import (
    ASSOCIATED_TOKEN_PROGRAM,
    COMPUTE_BUDGET_PROGRAM,
    MEMO_PROGRAM,
    SYSTEM_PROGRAM,
    TOKEN_PROGRAM,
)
from privacy_scanner.normalization.schema import InstructionCategory, ScanContext
from privacy_scanner.reports.models import (
    AddressEvidence,
    Evidence,
    PatternEvidence,
    PrivacySignal,
    Severity,
    TimingEvidence,
    TransactionEvidence,
)

COMMON_PROGRAMS = frozenset({SYSTEM_PROGRAM, TOKEN_PROGRAM, ASSOCIATED_TOKEN_PROGRAM, MEMO_PROGRAM, COMPUTE_BUDGET_PROGRAM})

COMPUTE_UNIT_BUCKET = 10_000
SECONDS_PER_HOUR = 3600


def _label_suffix(context: ScanContext, address: str) -> str:
    label = context.labels.get(address)
    return f" ({label.name})" if label else ""


def _gaps(timestamps: List[int]) -> List[int]:
    ordered = sorted(timestamps)
    return [later - earlier for earlier, later in zip(ordered, ordered[1:])]


def detect_instruction_fingerprinting(context: ScanContext) -> SignalList:
    """Flag repeated instruction sequences, niche programs and PDA reuse."""

    total = context.transaction_count
    if total < 3 or not context.transactions:
        return []

    signals: SignalList = []
    programs_by_signature: Dict[str, List[str]] = {}
    for instruction in context.instructions:
        programs_by_signature.setdefault(instruction.signature, []).append(instruction.program_id)

    sequences: Counter = Counter()
    examples: Dict[str, List[str]] = {}
    for tx in context.transactions:
        programs = programs_by_signature.get(tx.signature)
        if not programs:
            continue
        sequence = "->".join(programs)
        sequences[sequence] += 1
        examples.setdefault(sequence, []).append(tx.signature)

    sequence_threshold = max(3, ceil_fraction(total, 0.2))
    repeated = sorted(
        ((sequence, count) for sequence, count in sequences.items() if count >= sequence_threshold),
        key=lambda item: item[1],
        reverse=True,
    )
    if repeated:
        top_count = repeated[0][1]
        signals.append(
            PrivacySignal(
                id="instruction-sequence-pattern",
                name="Repeated Instruction Sequence Pattern",
                severity=Severity.MEDIUM if top_count > total * 0.5 else Severity.LOW,
                category="behavioral",
                reason=(
                    f"{len(repeated)} instruction sequence(s) recur; the most common appears in {top_count} of "
                    f"{total} transactions."
                ),
                impact="Doing the same sequence of operations every time links wallets that share the pattern.",
                mitigation="Vary the order and composition of operations where possible.",
                evidence=[
                    Evidence(
                        description=(
                            f"Sequence repeated {count} times: "
                            f"{' -> '.join(shorten(program) for program in sequence.split('->'))}"
                        ),
                        severity=Severity.MEDIUM if count > total * 0.5 else Severity.LOW,
                        reference=examples[sequence][0],
                        data=TransactionEvidence(signatures=examples[sequence][:2]),
                    )
                    for sequence, count in repeated[:5]
                ],
            )
        )

    program_usage = Counter(instruction.program_id for instruction in context.instructions)
    usage_threshold = max(2, ceil_fraction(total, 0.15))
    uncommon = sorted(
        (
            (program, count)
            for program, count in program_usage.items()
            if program not in COMMON_PROGRAMS and count >= usage_threshold
        ),
        key=lambda item: item[1],
        reverse=True,
    )
    if len(uncommon) >= 2:
        signals.append(
            PrivacySignal(
                id="program-usage-profile",
                name="Distinctive Program Usage Profile",
                severity=Severity.LOW,
                category="behavioral",
                reason=f"This wallet regularly uses {len(uncommon)} less common programs.",
                impact="An unusual combination of programs suggests that wallets sharing it belong to one owner.",
                mitigation="Be aware that niche protocols make a wallet more identifiable.",
                evidence=[
                    Evidence(
                        description=f"{shorten(program)}{_label_suffix(context, program)} used {count} times",
                        severity=Severity.LOW,
                        reference=program,
                        data=AddressEvidence(address=program, interaction_count=count),
                    )
                    for program, count in uncommon[:5]
                ],
            )
        )

    if context.pda_interactions:
        pda_usage: Dict[str, List] = {}
        for interaction in context.pda_interactions:
            entry = pda_usage.setdefault(interaction.pda, [0, interaction.program_id])
            entry[0] += 1
        repeated_pdas = sorted(
            ((pda, entry[0], entry[1]) for pda, entry in pda_usage.items() if entry[0] > 1),
            key=lambda item: item[1],
            reverse=True,
        )
        if repeated_pdas:
            max_count = repeated_pdas[0][1]
            signals.append(
                PrivacySignal(
                    id="instruction-pda-reuse",
                    name="Instruction-Level PDA Reuse",
                    severity=Severity.MEDIUM if max_count > 3 else Severity.LOW,
                    category="behavioral",
                    reason=(
                        f"Instructions repeatedly touch the same {len(repeated_pdas)} program-derived account(s); "
                        f"the most used appears in {max_count} transactions."
                    ),
                    impact="Every transaction touching the same PDA is connected to the others.",
                    mitigation="Use a fresh wallet for sensitive operations so they derive different accounts.",
                    evidence=[
                        Evidence(
                            description=f"PDA {shorten(pda)} used {count} times (program {shorten(program)})",
                            severity=Severity.MEDIUM if count > 3 else Severity.LOW,
                            reference=pda,
                            data=AddressEvidence(address=pda, interaction_count=count),
                        )
                        for pda, count, program in repeated_pdas[:5]
                    ],
                )
            )

    type_usage: Dict[str, Counter] = {}
    for instruction in context.instructions:
        if instruction.program_id in COMMON_PROGRAMS or instruction.instruction_type is None:
            continue
        type_usage.setdefault(instruction.program_id, Counter())[instruction.instruction_type] += 1
    for program, counts in type_usage.items():
        instruction_type, count = counts.most_common(1)[0]
        if count < 3:
            continue
        signals.append(
            PrivacySignal(
                id="instruction-type-repeated",
                name="Repeated Instruction Type",
                severity=Severity.LOW,
                category="behavioral",
                reason=(
                    f'The "{instruction_type}" operation on program {shorten(program)}'
                    f"{_label_suffix(context, program)} is used {count} times."
                ),
                impact="Repeating one operation on one program suggests a bot or a fixed strategy.",
                mitigation="Low risk alone, but varying operations reduces how distinctive the wallet is.",
                evidence=[
                    Evidence(
                        description=f'"{instruction_type}" instruction used {count} times',
                        severity=Severity.LOW,
                        reference=program,
                        data=PatternEvidence(occurrences=count),
                    )
                ],
            )
        )

    return signals


def detect_timing_patterns(context: ScanContext) -> SignalList:
    """Flag bursts, clock-like intervals and time-of-day concentration."""

    time_range = context.time_range
    total = context.transaction_count
    if not time_range.is_complete or total < 3:
        return []
    span_hours = time_range.span_seconds / SECONDS_PER_HOUR
    if span_hours == 0:
        return []

    signals: SignalList = []
    rate = total / span_hours
    burst_severity = None
    if rate > 10:
        burst_severity = Severity.HIGH
    elif rate > 5 or span_hours < 1:
        burst_severity = Severity.MEDIUM
    if burst_severity is not None:
        signals.append(
            PrivacySignal(
                id="timing-burst",
                name="Transaction Burst Pattern",
                severity=burst_severity,
                category="behavioral",
                reason=f"{total} transactions happened within {span_hours:.1f} hour(s).",
                impact="A spike of activity is easy to spot and to correlate with events or other wallets.",
                mitigation="Spread transactions out over a longer period.",
                evidence=[
                    Evidence(
                        description=f"{total} transactions in {span_hours:.1f} hours ({rate:.2f} tx/hour)",
                        severity=burst_severity,
                        data=TimingEvidence(
                            transaction_count=total,
                            span_hours=round(span_hours, 4),
                            rate_per_hour=round(rate, 4),
                        ),
                    )
                ],
                confidence=0.8,
            )
        )

    timestamps = [tx.block_time for tx in context.transactions if tx.block_time is not None]
    if len(timestamps) >= 5:
        gaps = _gaps(timestamps)
        average_gap = sum(gaps) / len(gaps)
        variation = coefficient_of_variation(gaps)
        if variation is not None and variation < 0.3 and average_gap > 60:
            interval_hours = average_gap / SECONDS_PER_HOUR
            if 23 <= interval_hours <= 25 or 0.9 <= interval_hours <= 1.1:
                severity = Severity.HIGH
            elif len(gaps) >= 10:
                severity = Severity.MEDIUM
            else:
                severity = Severity.LOW
            minutes = round(average_gap / 60)
            interval = f"{minutes}-minute" if minutes < 60 else f"{interval_hours:.1f}-hour"
            signals.append(
                PrivacySignal(
                    id="timing-regular-interval",
                    name="Regular Transaction Interval",
                    severity=severity,
                    category="behavioral",
                    reason=f"Transactions happen at regular {interval} intervals, a sign of automation or a fixed schedule.",
                    impact="Clock-like timing can reveal a bot, a routine or a timezone.",
                    mitigation="Add random delays between transactions.",
                    evidence=[
                        Evidence(
                            description=(
                                f"{len(gaps)} gaps averaging {minutes} minutes ({variation * 100:.1f}% variation)"
                            ),
                            severity=severity,
                            data=PatternEvidence(occurrences=len(gaps)),
                        )
                    ],
                    confidence=0.85,
                )
            )

    if len(timestamps) >= 10:
        hours = Counter(datetime.fromtimestamp(ts, tz=timezone.utc).hour for ts in timestamps)
        max_count = max(hours.values())
        concentration = max_count / len(timestamps)
        if concentration > 0.4:
            active = sorted(hour for hour, count in hours.items() if count >= max_count * 0.8)
            signals.append(
                PrivacySignal(
                    id="timing-timezone-pattern",
                    name="Consistent Time-of-Day Pattern",
                    severity=Severity.MEDIUM,
                    category="behavioral",
                    reason=(
                        f"{round(concentration * 100)}% of transactions happen in the same hour(s) of the day "
                        f"({', '.join(f'{hour}:00' for hour in active)} UTC)."
                    ),
                    impact="Activity concentrated in the same hours hints at the owner's timezone and schedule.",
                    mitigation="Send transactions at different times of day.",
                    evidence=[
                        Evidence(
                            description=f"{max_count}/{len(timestamps)} transactions during {len(active)} hour(s)",
                            severity=Severity.MEDIUM,
                            data=PatternEvidence(occurrences=max_count),
                        )
                    ],
                    confidence=0.7,
                )
            )

    return signals


def detect_priority_fee_fingerprinting(context: ScanContext) -> SignalList:
    """Flag consistent priority fees and compute-unit usage."""

    if len(context.transactions) < 5:
        return []

    signals: SignalList = []
    fees = [tx.priority_fee for tx in context.transactions if tx.priority_fee]
    if len(fees) >= 3:
        fee_counts = Counter(fees).most_common()
        top_fee, top_count = fee_counts[0]
        concentration = top_count / len(fees)
        if concentration >= 0.5 and top_count >= 3:
            signals.append(
                PrivacySignal(
                    id="priority-fee-consistent",
                    name="Consistent Priority Fee Usage",
                    severity=Severity.MEDIUM,
                    category="behavioral",
                    reason=(
                        f"The same priority fee ({top_fee} lamports) appears in {round(concentration * 100)}% of "
                        "fee-bearing transactions."
                    ),
                    impact="A fixed priority fee acts as a signature across otherwise unrelated transactions.",
                    mitigation="Randomise priority fees between transactions.",
                    evidence=[
                        Evidence(
                            description=f"Priority fee of {fee} lamports used in {count} transaction(s)",
                            severity=Severity.MEDIUM if concentration > 0.7 else Severity.LOW,
                            data=PatternEvidence(occurrences=count),
                        )
                        for fee, count in fee_counts[:3]
                    ],
                    confidence=0.7,
                )
            )

    units = [tx.compute_units_used for tx in context.transactions if tx.compute_units_used is not None]
    if len(units) >= 5:
        buckets = Counter((value // COMPUTE_UNIT_BUCKET) * COMPUTE_UNIT_BUCKET for value in units)
        top_bucket, bucket_count = buckets.most_common(1)[0]
        concentration = bucket_count / len(units)
        if concentration >= 0.6 and bucket_count >= 4:
            upper = top_bucket + COMPUTE_UNIT_BUCKET
            signals.append(
                PrivacySignal(
                    id="compute-budget-fingerprint",
                    name="Distinctive Compute Unit Pattern",
                    severity=Severity.LOW,
                    category="behavioral",
                    reason=(
                        f"{round(concentration * 100)}% of transactions use between {top_bucket} and {upper} "
                        "compute units."
                    ),
                    impact="Consistent compute usage helps pick the wallet's transactions out of the crowd.",
                    mitigation="Vary the operations bundled into each transaction.",
                    evidence=[
                        Evidence(
                            description=f"{bucket_count}/{len(units)} transactions use {top_bucket}-{upper} compute units",
                            severity=Severity.LOW,
                            data=PatternEvidence(occurrences=bucket_count),
                        )
                    ],
                    confidence=0.6,
                )
            )

    return signals


def detect_staking_delegation(context: ScanContext) -> SignalList:
    """Flag stake delegated to few validators or on a fixed schedule."""

    stake_instructions = [inst for inst in context.instructions if inst.category is InstructionCategory.STAKE]
    if len(stake_instructions) < 2:
        return []

    signals: SignalList = []
    delegations: Dict[str, int] = {}
    for instruction in stake_instructions:
        vote_account = instruction.info.get("voteAccount")
        if not isinstance(vote_account, str) and len(instruction.accounts) >= 2:
            vote_account = instruction.accounts[1]
        if isinstance(vote_account, str):
            delegations[vote_account] = delegations.get(vote_account, 0) + 1

    validators = sorted(delegations.items(), key=lambda item: item[1], reverse=True)
    if validators and len(validators) <= 2 and len(stake_instructions) >= 3:
        signals.append(
            PrivacySignal(
                id="stake-delegation-pattern",
                name="Concentrated Staking Delegation",
                severity=Severity.MEDIUM,
                category="behavioral",
                reason=f"All staking activity targets {len(validators)} validator(s).",
                impact="Validator choice is public; a small, stable set links stake accounts to one owner.",
                mitigation="Delegate to several well-known validators from different stake accounts.",
                evidence=[
                    Evidence(
                        description=f"Delegated to {shorten(validator)}{_label_suffix(context, validator)} {count} time(s)",
                        severity=Severity.MEDIUM,
                        reference=validator,
                        data=AddressEvidence(address=validator, interaction_count=count),
                    )
                    for validator, count in validators
                ],
                confidence=0.7,
            )
        )

    stake_times = [inst.block_time for inst in stake_instructions if inst.block_time is not None]
    if len(stake_times) >= 4:
        gaps = _gaps(stake_times)
        average_gap = sum(gaps) / len(gaps)
        variation = coefficient_of_variation(gaps)
        if variation is not None and variation < 0.3 and average_gap > SECONDS_PER_HOUR:
            interval_hours = round(average_gap / SECONDS_PER_HOUR)
            signals.append(
                PrivacySignal(
                    id="stake-timing-correlation",
                    name="Regular Staking Schedule",
                    severity=Severity.LOW,
                    category="behavioral",
                    reason=f"Staking operations happen roughly every {interval_hours} hour(s).",
                    impact="A regular staking schedule reveals automation or habit.",
                    mitigation="Add randomness to when you stake.",
                    evidence=[
                        Evidence(
                            description=(
                                f"{len(stake_times)} stake operations at ~{interval_hours}-hour intervals "
                                f"({variation * 100:.1f}% variation)"
                            ),
                            severity=Severity.LOW,
                            data=PatternEvidence(occurrences=len(stake_times)),
                        )
                    ],
                    confidence=0.6,
                )
            )

    return signals


__all__ = [
    "detect_instruction_fingerprinting",
    "detect_priority_fee_fingerprinting",
    "detect_staking_delegation",
    "detect_timing_patterns",
]
