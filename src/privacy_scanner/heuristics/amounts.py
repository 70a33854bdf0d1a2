"""Amount heuristics: repeated values and traceable balance flows.

Repeated amounts are weak evidence on Solana, where round SOL amounts and
fixed token decimals are common. They become meaningful when the same amount
keeps going to the same counterparty or is always signed by the same keys.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

from privacy_scanner.heuristics.base import SignalList, shorten
from privacy_scanner.normalization.schema import ScanContext, TargetKind
from privacy_scanner.reports.models import (
    AmountEvidence,
    Evidence,
    PatternEvidence,
    PrivacySignal,
    Severity,
)

MIN_TRANSFERS_FOR_REUSE = 5
REUSE_THRESHOLD = 3
SEQUENTIAL_WINDOW_SECONDS = 3600
SEQUENTIAL_TOLERANCE = 0.1


@dataclass
class _AmountUsage:
    amount: float
    token: str
    count: int = 0
    counterparties: Set[str] = field(default_factory=set)
    signers: Set[str] = field(default_factory=set)


def _is_round(amount: float) -> bool:
    return amount >= 1 and float(amount).is_integer()


def _format_amount(amount: float) -> str:
    return f"{amount:.9f}".rstrip("0").rstrip(".")


def detect_amount_reuse(context: ScanContext) -> SignalList:
    """Flag round-number habits and amounts that recur in a recognisable way."""

    if len(context.transfers) < MIN_TRANSFERS_FOR_REUSE:
        return []

    signers_by_signature = {tx.signature: tx.signers for tx in context.transactions}
    usage: Dict[Tuple[float, str], _AmountUsage] = {}
    round_numbers: List[float] = []

    for transfer in context.transfers:
        if _is_round(transfer.amount):
            round_numbers.append(transfer.amount)
        token = transfer.asset or "SOL"
        key = (round(transfer.amount, 9), token)
        entry = usage.setdefault(key, _AmountUsage(amount=key[0], token=token))
        entry.count += 1
        counterparty = transfer.receiver if transfer.sender == context.target else transfer.sender
        if counterparty != context.target:
            entry.counterparties.add(counterparty)
        entry.signers.update(signers_by_signature.get(transfer.signature, ()))

    reused = sorted(
        (entry for entry in usage.values() if entry.count >= REUSE_THRESHOLD),
        key=lambda entry: entry.count,
        reverse=True,
    )

    signals: SignalList = []
    if len(round_numbers) >= 5:
        sample = round_numbers[:5]
        signals.append(
            PrivacySignal(
                id="amount-round-numbers",
                name="Frequent Round Number Transfers",
                severity=Severity.LOW,
                category="behavioral",
                reason=f"{len(round_numbers)} transfers use whole-number amounts such as 1 or 10 SOL.",
                impact="Round amounts are common and weak alone, but they add to a behavioural fingerprint.",
                mitigation="Vary amounts slightly when it costs nothing to do so.",
                evidence=[
                    Evidence(
                        description=(
                            f"{len(round_numbers)} round-number transfers: "
                            f"{', '.join(_format_amount(value) for value in sample)}"
                        ),
                        severity=Severity.LOW,
                        data=AmountEvidence(round_numbers=sample),
                    )
                ],
            )
        )

    same_counterparty = [entry for entry in reused if len(entry.counterparties) == 1]
    if same_counterparty:
        evidence = []
        for entry in same_counterparty[:3]:
            counterparty = next(iter(entry.counterparties))
            evidence.append(
                Evidence(
                    description=(
                        f"{_format_amount(entry.amount)} {entry.token} exchanged with "
                        f"{shorten(counterparty)} {entry.count} times"
                    ),
                    severity=Severity.MEDIUM,
                    reference=counterparty,
                    data=AmountEvidence(
                        amount=entry.amount,
                        token=entry.token,
                        count=entry.count,
                        counterparty=counterparty,
                    ),
                )
            )
        signals.append(
            PrivacySignal(
                id="amount-reuse-counterparty",
                name="Same Amount to Same Counterparty",
                severity=Severity.MEDIUM,
                category="behavioral",
                reason=f"{len(same_counterparty)} amount(s) are repeatedly exchanged with a single counterparty.",
                impact="Sending one amount to one address again and again looks automated and is easy to match.",
                mitigation="Vary amounts when paying the same address repeatedly.",
                evidence=evidence,
            )
        )

    few_signers = [entry for entry in reused if len(entry.signers) <= 2]
    if few_signers and not same_counterparty:
        signals.append(
            PrivacySignal(
                id="amount-reuse-pattern",
                name="Repeated Amount Pattern",
                severity=Severity.LOW,
                category="behavioral",
                reason=f"{len(few_signers)} amount(s) recur under the same small set of signers.",
                impact="Repeated amounts signed by the same keys contribute to behavioural fingerprinting.",
                mitigation="Vary transaction amounts.",
                evidence=[
                    Evidence(
                        description=(
                            f"{_format_amount(entry.amount)} {entry.token} used {entry.count} times "
                            f"with {len(entry.signers)} signer(s)"
                        ),
                        severity=Severity.LOW,
                        data=AmountEvidence(amount=entry.amount, token=entry.token, count=entry.count),
                    )
                    for entry in few_signers[:3]
                ],
            )
        )

    frequent = [entry for entry in reused if entry.count >= 5]
    if frequent and not same_counterparty and not few_signers:
        top_count = frequent[0].count
        signals.append(
            PrivacySignal(
                id="amount-reuse-frequency",
                name="High-Frequency Amount Reuse",
                severity=Severity.MEDIUM if top_count > 10 else Severity.LOW,
                category="behavioral",
                reason=f"{len(frequent)} amount(s) recur very often; the top amount appears {top_count} times.",
                impact="Very frequent reuse of exact amounts points to automation and is easy to detect.",
                mitigation="Add randomisation to amounts produced by automated systems.",
                evidence=[
                    Evidence(
                        description=(
                            f"{_format_amount(entry.amount)} {entry.token} used {entry.count} times across "
                            f"{len(entry.counterparties)} counterparties"
                        ),
                        severity=Severity.MEDIUM if entry.count > 10 else Severity.LOW,
                        data=AmountEvidence(amount=entry.amount, token=entry.token, count=entry.count),
                    )
                    for entry in frequent[:3]
                ],
            )
        )

    return signals


def _has_sequential_similar(context: ScanContext) -> bool:
    timed = sorted(
        (transfer for transfer in context.transfers if transfer.block_time is not None),
        key=lambda transfer: transfer.block_time,
    )
    for previous, current in zip(timed, timed[1:]):
        gap = current.block_time - previous.block_time
        if gap > SEQUENTIAL_WINDOW_SECONDS:
            continue
        if abs(current.amount - previous.amount) < current.amount * SEQUENTIAL_TOLERANCE:
            return True
    return False


def detect_balance_traceability(context: ScanContext) -> SignalList:
    """Flag matching send/receive amounts that let funds be followed."""

    if context.target_kind is not TargetKind.WALLET or len(context.transfers) < 2:
        return []

    amounts = Counter(round(transfer.amount, 6) for transfer in context.transfers)
    matching_pairs = sum(1 for count in amounts.values() if count >= 2)

    patterns: List[str] = []
    if matching_pairs >= 2:
        patterns.append("Multiple matching send/receive amounts detected")
    if _has_sequential_similar(context):
        patterns.append("Sequential transfers of similar amounts")

    if not patterns and not matching_pairs:
        return []

    evidence = [
        Evidence(
            description=f"{matching_pairs} amount(s) appear in more than one transfer",
            severity=Severity.MEDIUM,
            data=PatternEvidence(matching_pairs=matching_pairs),
        )
    ]
    evidence.extend(
        Evidence(description=pattern, severity=Severity.MEDIUM, data=PatternEvidence(occurrences=1))
        for pattern in patterns
    )
    return [
        PrivacySignal(
            id="balance-traceability",
            name="Traceable Balance Flow",
            severity=Severity.HIGH if matching_pairs >= 3 or len(patterns) >= 2 else Severity.MEDIUM,
            category="linkability",
            reason=(
                f"{matching_pairs} amount(s) match across transfers and {len(patterns)} flow pattern(s) "
                "make funds easy to follow."
            ),
            impact="Observers can follow funds through this wallet by matching amounts and timing.",
            mitigation="Split or vary amounts and add delays between receiving and forwarding funds.",
            evidence=evidence,
            confidence=0.7,
        )
    ]


__all__ = ["detect_amount_reuse", "detect_balance_traceability"]
