"""Linkability heuristics: fee payers, signers, counterparties, address reuse.

These detectors look for on-chain facts that tie the target to other
addresses. Solana exposes the fee payer and every signer of a transaction,
which makes them the strongest linkage vectors.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Dict, List

from privacy_scanner.heuristics.base import SignalList, ceil_fraction, shorten
from privacy_scanner.labels.models import LabelType
from privacy_scanner.normalization.reference_data import (
    ASSOCIATED_TOKEN_PROGRAM,
    COMPUTE_BUDGET_PROGRAM,
    SYSTEM_PROGRAM,
    TOKEN_PROGRAM,
)
from privacy_scanner.normalization.schema import ScanContext, TargetKind
from privacy_scanner.reports.models import (
    AddressEvidence,
    Evidence,
    PatternEvidence,
    PrivacySignal,
    Severity,
    TimingEvidence,
    TransactionEvidence,
)

# Programs every wallet touches; reuse of these says nothing about the user.
INFRASTRUCTURE_PROGRAMS = frozenset({SYSTEM_PROGRAM, TOKEN_PROGRAM, ASSOCIATED_TOKEN_PROGRAM, COMPUTE_BUDGET_PROGRAM})

# Activity types inferred from program label names.
ACTIVITY_PATTERNS = {
    "DeFi": (
        frozenset({"JUP", "Jupiter", "Raydium", "Orca", "Marinade", "Lido", "Lifinity", "Serum"}),
        re.compile(r"swap|pool|stake|lend|borrow", re.IGNORECASE),
    ),
    "NFT": (
        frozenset({"Magic Eden", "Tensor", "OpenSea", "Metaplex"}),
        re.compile(r"nft|marketplace|mint", re.IGNORECASE),
    ),
    "Gaming": (
        frozenset({"Star Atlas", "Genopets", "Aurory"}),
        re.compile(r"game|play", re.IGNORECASE),
    ),
    "DAO": (
        frozenset({"Realms", "Squads", "Tribeca"}),
        re.compile(r"dao|governance|vote", re.IGNORECASE),
    ),
}

SECONDS_PER_DAY = 86_400


def _label_suffix(context: ScanContext, address: str) -> str:
    label = context.labels.get(address)
    return f" ({label.name})" if label else ""


def detect_fee_payer_reuse(context: ScanContext) -> SignalList:
    """Flag transactions whose fees were paid by someone other than the target."""

    if context.target_kind is TargetKind.TRANSACTION or not context.transactions:
        return []

    target = context.target
    payer_counts = Counter(tx.fee_payer for tx in context.transactions)
    target_pays = target in payer_counts
    signals: SignalList = []

    if target_pays and len(payer_counts) == 1:
        return signals

    if target_pays:
        for payer, count in payer_counts.items():
            if payer == target:
                continue
            label = context.labels.get(payer)
            severity = Severity.HIGH if label is not None or count > 1 else Severity.MEDIUM
            signatures = [tx.signature for tx in context.transactions if tx.fee_payer == payer]
            signals.append(
                PrivacySignal(
                    id="fee-payer-external",
                    name="External Fee Payer Detected",
                    severity=severity,
                    category="linkability",
                    reason=(
                        f"{shorten(payer)}{_label_suffix(context, payer)} paid fees for {count} transaction(s) "
                        "involving this address."
                    ),
                    impact=(
                        "The fee payer is recorded in every transaction. This address is publicly linked to the "
                        "payer, and identifying one identifies the other."
                    ),
                    mitigation=(
                        "Pay your own transaction fees. A relayer or sponsor that pays for you leaves a permanent "
                        "on-chain link."
                    ),
                    evidence=[
                        Evidence(
                            description=f"{payer}{_label_suffix(context, payer)} paid fees for {count} transaction(s)",
                            severity=severity,
                            reference=payer,
                            data=AddressEvidence(address=payer, interaction_count=count),
                        ),
                        Evidence(
                            description="Transactions paid by this fee payer",
                            data=TransactionEvidence(signatures=signatures[:3]),
                        ),
                    ],
                    confidence=0.9 if severity is Severity.HIGH else 0.75,
                )
            )
    else:
        signals.append(
            PrivacySignal(
                id="fee-payer-never-self",
                name="Never Self-Pays Transaction Fees",
                severity=Severity.HIGH,
                category="linkability",
                reason=(
                    f"This address never paid its own fees. All {len(context.transactions)} parsed transaction(s) "
                    f"were paid by {len(payer_counts)} external wallet(s)."
                ),
                impact=(
                    "The address is trivially linked to every fee payer. This is typical of managed, custodial or "
                    "program-controlled accounts, and it exposes the controlling entity."
                ),
                mitigation=(
                    "Fund the address and pay its fees yourself, or use a fresh address per operation. Otherwise "
                    "treat it as permanently linked to its fee payers."
                ),
                evidence=[
                    Evidence(
                        description=f"{payer}{_label_suffix(context, payer)} paid fees for {count} transaction(s)",
                        severity=Severity.HIGH,
                        reference=payer,
                        data=AddressEvidence(address=payer, interaction_count=count),
                    )
                    for payer, count in payer_counts.items()
                ],
                confidence=0.95,
            )
        )

    if context.target_kind is TargetKind.PROGRAM:
        signer_sets: Dict[str, set] = {}
        for tx in context.transactions:
            signer_sets.setdefault(tx.fee_payer, set()).add(tuple(sorted(tx.signers)))
        operators = [(payer, len(sets)) for payer, sets in signer_sets.items() if len(sets) > 1]
        if operators:
            signals.append(
                PrivacySignal(
                    id="fee-payer-multi-signer",
                    name="Fee Payer Controls Multiple Signers",
                    severity=Severity.HIGH,
                    category="linkability",
                    reason=(
                        f"{len(operators)} fee payer(s) fund transactions for several different signer sets, "
                        "which points at a single operator or bot."
                    ),
                    impact="Every address funded by the same fee payer is linkable, exposing operational infrastructure.",
                    mitigation="Give each managed account or bot its own fee payer.",
                    evidence=[
                        Evidence(
                            description=(
                                f"{payer} paid fees for {payer_counts[payer]} transaction(s) across "
                                f"{set_count} signer set(s)"
                            ),
                            severity=Severity.HIGH,
                            reference=payer,
                            data=AddressEvidence(address=payer, interaction_count=payer_counts[payer]),
                        )
                        for payer, set_count in operators
                    ],
                    confidence=0.85,
                )
            )

    return signals


def detect_signer_overlap(context: ScanContext) -> SignalList:
    """Flag repeated signers, reused signer sets and authority hubs."""

    if context.transaction_count < 2 or not context.transactions:
        return []

    total = context.transaction_count
    signals: SignalList = []

    signer_counts: Counter = Counter()
    for tx in context.transactions:
        signer_counts.update(set(tx.signers))

    threshold = min(3, ceil_fraction(total, 0.3))
    frequent = sorted(
        ((signer, count) for signer, count in signer_counts.items() if signer != context.target and count >= threshold),
        key=lambda item: item[1],
        reverse=True,
    )
    if frequent:
        top_count = frequent[0][1]
        severity = Severity.HIGH if top_count > total * 0.7 else Severity.MEDIUM
        signals.append(
            PrivacySignal(
                id="signer-repeated",
                name="Repeated Signer Across Transactions",
                severity=severity,
                category="linkability",
                reason=(
                    f"{len(frequent)} address(es) repeatedly sign transactions involving the target; the most "
                    f"frequent signer appears in {top_count}/{total} transactions."
                ),
                impact="Every transaction signed by the same key is trivially linkable to the others.",
                mitigation="Use separate signing keys for unrelated activities.",
                evidence=[
                    Evidence(
                        description=f"{signer}{_label_suffix(context, signer)} signed {count}/{total} transactions",
                        severity=Severity.HIGH if count > total * 0.7 else Severity.MEDIUM,
                        reference=signer,
                        data=AddressEvidence(address=signer, interaction_count=count),
                    )
                    for signer, count in frequent
                ],
                confidence=0.85,
            )
        )

    set_counts: Counter = Counter()
    set_examples: Dict[tuple, str] = {}
    for tx in context.transactions:
        key = tuple(sorted(tx.signers))
        set_counts[key] += 1
        set_examples.setdefault(key, tx.signature)
    repeated_sets = sorted(
        ((key, count) for key, count in set_counts.items() if count > 1), key=lambda item: item[1], reverse=True
    )
    if repeated_sets:
        signals.append(
            PrivacySignal(
                id="signer-set-reuse",
                name="Repeated Signer Set",
                severity=Severity.MEDIUM,
                category="linkability",
                reason=f"{len(repeated_sets)} distinct signer set(s) are reused across transactions.",
                impact="A recurring combination of signers is a unique fingerprint, even when other addresses change.",
                mitigation="Rotate signing keys or vary the signer set between unrelated transactions.",
                evidence=[
                    Evidence(
                        description=(
                            f"{count} transactions with identical signer set "
                            f"[{', '.join(shorten(signer) for signer in key)}]"
                        ),
                        severity=Severity.MEDIUM if count > 2 else Severity.LOW,
                        reference=set_examples[key],
                        data=PatternEvidence(occurrences=count),
                    )
                    for key, count in repeated_sets
                ],
            )
        )

    if context.target_kind is TargetKind.PROGRAM or total > 10:
        co_signers: Dict[str, set] = {}
        for tx in context.transactions:
            for signer in tx.signers:
                co_signers.setdefault(signer, set()).update(other for other in tx.signers if other != signer)
        hubs = sorted(
            ((signer, others) for signer, others in co_signers.items() if len(others) >= 3),
            key=lambda item: len(item[1]),
            reverse=True,
        )
        if hubs:
            signals.append(
                PrivacySignal(
                    id="signer-authority-hub",
                    name="Authority Signer Detected",
                    severity=Severity.HIGH,
                    category="linkability",
                    reason=f"{len(hubs)} address(es) co-sign with many different wallets, exposing a control hub.",
                    impact="An authority signer links every account it co-signs with and reveals organisational structure.",
                    mitigation="Use a distinct authority key for each group of accounts instead of one master signer.",
                    evidence=[
                        Evidence(
                            description=(
                                f"{signer}{_label_suffix(context, signer)} co-signed with {len(others)} addresses "
                                f"across {signer_counts[signer]} transactions"
                            ),
                            severity=Severity.HIGH,
                            reference=signer,
                            data=AddressEvidence(address=signer, interaction_count=signer_counts[signer]),
                        )
                        for signer, others in hubs[:3]
                    ],
                )
            )

    return signals


def detect_address_reuse(context: ScanContext) -> SignalList:
    """Flag wallets used for many unrelated activity types or for a very long time."""

    if context.target_kind is not TargetKind.WALLET or context.transaction_count < 5:
        return []

    signals: SignalList = []
    activities: Dict[str, Dict[str, object]] = {}

    def record(activity: str, count: int, source: str) -> None:
        details = activities.setdefault(activity, {"count": 0, "sources": set()})
        details["count"] = int(details["count"]) + count
        details["sources"].add(source)

    for instruction in context.instructions:
        label = context.labels.get(instruction.program_id)
        name = label.name if label else ""
        if not name:
            continue
        for activity, (known_names, pattern) in ACTIVITY_PATTERNS.items():
            if name in known_names or pattern.search(name):
                record(activity, 1, name)

    if any(label.type is LabelType.EXCHANGE for label in context.labels.values()):
        exchange_transfers = sum(
            1 for transfer in context.transfers if transfer.sender in context.labels or transfer.receiver in context.labels
        )
        record("Exchange", exchange_transfers, "CEX")

    program_counts = {tx.signature: len(tx.programs) for tx in context.transactions}
    simple_transfers = [
        transfer
        for transfer in context.transfers
        if transfer.signature in program_counts and program_counts[transfer.signature] <= 2
    ]
    if len(simple_transfers) >= 3:
        record("P2P Transfers", len(simple_transfers), "Direct")

    diversity = len(activities)
    if diversity >= 3:
        high = diversity >= 4
        severity = Severity.HIGH if high else Severity.MEDIUM
        signals.append(
            PrivacySignal(
                id="address-high-diversity" if high else "address-moderate-diversity",
                name=(
                    "High Activity Diversity on Single Address"
                    if high
                    else "Moderate Activity Diversity on Single Address"
                ),
                severity=severity,
                category="linkability",
                reason=f"This address is used for {diversity} distinct activity types: {', '.join(activities)}.",
                impact=(
                    "One address used for unrelated activities links them all into a single behavioural profile."
                ),
                mitigation="Use separate addresses for DeFi, NFTs, governance and transfers.",
                evidence=[
                    Evidence(
                        description=(
                            f"{activity}: {details['count']} transaction(s) across {len(details['sources'])} program(s)"
                        ),
                        severity=severity,
                        data=PatternEvidence(occurrences=int(details["count"])),
                    )
                    for activity, details in activities.items()
                ],
                confidence=0.85 if high else 0.7,
            )
        )

    time_range = context.time_range
    if time_range.is_complete:
        span_days = time_range.span_seconds / SECONDS_PER_DAY
        if span_days > 180 and context.transaction_count > 50:
            signals.append(
                PrivacySignal(
                    id="address-long-term-usage",
                    name="Long-Term Single Address Usage",
                    severity=Severity.MEDIUM,
                    category="behavioral",
                    reason=(
                        f"This address has been active for {round(span_days)} days with "
                        f"{context.transaction_count} transactions."
                    ),
                    impact="Long-lived addresses accumulate a rich, permanently linked activity history.",
                    mitigation="Rotate to new addresses periodically to separate periods of activity.",
                    evidence=[
                        Evidence(
                            description=f"{context.transaction_count} transactions over {round(span_days)} days",
                            severity=Severity.MEDIUM,
                            data=TimingEvidence(
                                transaction_count=context.transaction_count,
                                span_hours=round(time_range.span_seconds / 3600, 2),
                            ),
                        )
                    ],
                    confidence=0.75,
                )
            )

    return signals


def detect_counterparty_reuse(context: ScanContext) -> SignalList:
    """Flag repeated counterparties, programs, PDAs and counterparty/program pairs."""

    if context.target_kind is not TargetKind.WALLET or context.transaction_count < 2:
        return []

    target = context.target
    signals: SignalList = []

    interaction_counts: Counter = Counter()
    for transfer in context.transfers:
        other = transfer.counterparty_of(target)
        if other and other != target:
            interaction_counts[other] += 1

    reused = sorted(
        ((address, count) for address, count in interaction_counts.items() if count >= 3),
        key=lambda item: item[1],
        reverse=True,
    )
    if reused:
        total = len(context.transfers)
        top_count = reused[0][1]
        concentration = top_count / total
        if concentration > 0.5 or len(reused) >= 5:
            severity = Severity.HIGH
        elif concentration > 0.3 or len(reused) >= 3:
            severity = Severity.MEDIUM
        else:
            severity = Severity.LOW

        def evidence_severity(count: int) -> Severity:
            if count > total * 0.3:
                return Severity.HIGH
            if count > total * 0.15:
                return Severity.MEDIUM
            return Severity.LOW

        signals.append(
            PrivacySignal(
                id="counterparty-reuse",
                name="Repeated Transfer Counterparties",
                severity=severity,
                category="linkability",
                reason=(
                    f"This wallet repeatedly transacts with {len(reused)} address(es); the most frequent appears in "
                    f"{top_count} of {total} transfers."
                ),
                impact="Recurring transfers make the relationship between the wallets obvious to any observer.",
                mitigation="Use a separate wallet for each regular contact or service.",
                evidence=[
                    Evidence(
                        description=f"{count} transfers with {shorten(address)}{_label_suffix(context, address)}",
                        severity=evidence_severity(count),
                        reference=address,
                        data=AddressEvidence(address=address, interaction_count=count),
                    )
                    for address, count in reused[:5]
                ],
            )
        )

    if context.programs:
        program_usage = Counter(instruction.program_id for instruction in context.instructions)
        threshold = min(3, ceil_fraction(len(context.instructions), 0.1))
        significant = sorted(
            (
                (program, count)
                for program, count in program_usage.items()
                if program not in INFRASTRUCTURE_PROGRAMS and count >= threshold
            ),
            key=lambda item: item[1],
            reverse=True,
        )
        if len(significant) >= 2:
            signals.append(
                PrivacySignal(
                    id="program-reuse",
                    name="Repeated Program Interactions",
                    severity=Severity.LOW,
                    category="behavioral",
                    reason=f"This wallet repeatedly uses the same {len(significant)} program(s).",
                    impact="A distinctive set of programs acts as a signature that can match wallets to one owner.",
                    mitigation="Using a wider variety of protocols makes the usage pattern less distinctive.",
                    evidence=[
                        Evidence(
                            description=(
                                f"{shorten(program)}{_label_suffix(context, program)} used in {count} instruction(s)"
                            ),
                            severity=Severity.LOW,
                            reference=program,
                            data=AddressEvidence(address=program, interaction_count=count),
                        )
                        for program, count in significant[:5]
                    ],
                )
            )

    if context.pda_interactions:
        pda_usage: Dict[str, List] = {}
        for interaction in context.pda_interactions:
            entry = pda_usage.setdefault(interaction.pda, [0, interaction.program_id])
            entry[0] += 1
        repeated_pdas = sorted(
            ((pda, entry[0], entry[1]) for pda, entry in pda_usage.items() if entry[0] >= 2),
            key=lambda item: item[1],
            reverse=True,
        )
        if repeated_pdas:
            max_count = repeated_pdas[0][1]
            signals.append(
                PrivacySignal(
                    id="pda-reuse",
                    name="Repeated PDA Interactions",
                    severity=Severity.MEDIUM if max_count > 5 else Severity.LOW,
                    category="linkability",
                    reason=(
                        f"This wallet interacts with the same {len(repeated_pdas)} program-derived account(s); the "
                        f"most used appears {max_count} times."
                    ),
                    impact="A PDA tied to a wallet links every interaction with it.",
                    mitigation="Use a fresh wallet for sensitive activity so it derives different PDAs.",
                    evidence=[
                        Evidence(
                            description=f"PDA {shorten(pda)} (program {shorten(program)}) used {count} times",
                            severity=Severity.MEDIUM if count > 3 else Severity.LOW,
                            reference=pda,
                            data=AddressEvidence(address=pda, interaction_count=count),
                        )
                        for pda, count, program in repeated_pdas[:5]
                    ],
                )
            )

    if context.transfers and context.instructions:
        programs_by_signature: Dict[str, List[str]] = {}
        for instruction in context.instructions:
            programs_by_signature.setdefault(instruction.signature, []).append(instruction.program_id)
        combos: Counter = Counter()
        for transfer in context.transfers:
            other = transfer.counterparty_of(target)
            if not other or other == target:
                continue
            for program in programs_by_signature.get(transfer.signature, []):
                combos[(other, program)] += 1
        repeated_combos = sorted(
            ((combo, count) for combo, count in combos.items() if count >= 2), key=lambda item: item[1], reverse=True
        )
        if repeated_combos:
            signals.append(
                PrivacySignal(
                    id="counterparty-program-combo",
                    name="Repeated Counterparty-Program Combination",
                    severity=Severity.MEDIUM,
                    category="linkability",
                    reason=f"{len(repeated_combos)} counterparty and program pairing(s) recur in this wallet's history.",
                    impact="The pairing of who you transact with and through which program is highly identifying.",
                    mitigation="Vary counterparties and programs; avoid reusing both at once.",
                    evidence=[
                        Evidence(
                            description=(
                                f"{shorten(other)}{_label_suffix(context, other)} with program {shorten(program)} "
                                f"used {count} times"
                            ),
                            severity=Severity.MEDIUM,
                            reference=other,
                            data=AddressEvidence(address=other, interaction_count=count),
                        )
                        for (other, program), count in repeated_combos[:3]
                    ],
                )
            )

    return signals


__all__ = [
    "detect_address_reuse",
    "detect_counterparty_reuse",
    "detect_fee_payer_reuse",
    "detect_signer_overlap",
]
