"""Token account heuristics.

Creating and closing SPL token accounts leaves a trail: the account that paid
for creation and the address that received the rent refund on closure are both
recorded on-chain and tie otherwise separate wallets together.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Set

from privacy_scanner.heuristics.base import SignalList, shorten
from privacy_scanner.normalization.schema import ScanContext, TokenAccountEvent
from privacy_scanner.reports.models import (
    AddressEvidence,
    Evidence,
    PatternEvidence,
    PrivacySignal,
    Severity,
    TransactionEvidence,
)

SHORT_LIVED_SECONDS = 3600
BATCH_WINDOW_SECONDS = 600


def _label_suffix(context: ScanContext, address: str) -> str:
    label = context.labels.get(address)
    return f" ({label.name})" if label else ""


def _lifetimes(events: List[TokenAccountEvent]) -> Dict[str, int]:
    by_account: Dict[str, List[TokenAccountEvent]] = defaultdict(list)
    for event in events:
        by_account[event.token_account].append(event)

    lifetimes: Dict[str, int] = {}
    for account, account_events in by_account.items():
        creates = [event for event in account_events if event.kind == "create"]
        closes = [event for event in account_events if event.kind == "close"]
        if not creates or not closes:
            continue
        opened = creates[0].block_time
        closed = closes[-1].block_time
        if opened is None or closed is None:
            continue
        lifetimes[account] = closed - opened
    return lifetimes


def detect_token_account_lifecycle(context: ScanContext) -> SignalList:
    """Flag token account churn, burner accounts and rent refund linkage."""

    events = list(context.token_account_events)
    if not events:
        return []

    signals: SignalList = []
    creates = [event for event in events if event.kind == "create"]
    closes = [event for event in events if event.kind == "close"]

    refunds: Dict[str, List[float]] = defaultdict(list)
    for event in closes:
        if event.rent_refund:
            refunds[event.owner].append(event.rent_refund)

    if len(creates) >= 2 and len(closes) >= 2 and refunds:
        total_refunded = sum(sum(amounts) for amounts in refunds.values())
        signals.append(
            PrivacySignal(
                id="token-account-churn",
                name="Frequent Token Account Creation/Closure",
                severity=Severity.MEDIUM,
                category="behavioral",
                reason=(
                    f"{len(creates)} token account(s) created and {len(closes)} closed. "
                    f"Rent refunds totalling {total_refunded:.4f} SOL expose who owned them."
                ),
                impact="Every rent refund points from the closed account back to the wallet that controlled it.",
                mitigation="Keep token accounts open, or close them into a wallet not tied to your activity.",
                evidence=[
                    Evidence(
                        description=(
                            f"{sum(amounts):.4f} SOL refunded to {shorten(owner)} from "
                            f"{len(amounts)} closed account(s)"
                        ),
                        severity=Severity.MEDIUM,
                        reference=owner,
                        data=AddressEvidence(address=owner, interaction_count=len(amounts)),
                    )
                    for owner, amounts in refunds.items()
                ],
            )
        )

    lifetimes = _lifetimes(events)
    short_lived = [(account, seconds) for account, seconds in lifetimes.items() if seconds < SHORT_LIVED_SECONDS]
    if len(short_lived) >= 2:
        signals.append(
            PrivacySignal(
                id="token-account-short-lived",
                name="Short-Lived Token Accounts",
                severity=Severity.LOW,
                category="behavioral",
                reason=(
                    f"{len(short_lived)} token account(s) were created and closed within an hour, "
                    "which looks like burner account usage."
                ),
                impact="Burner token accounts still refund rent to their owner, so they hide less than expected.",
                mitigation="Do not rely on throwaway token accounts for privacy.",
                evidence=[
                    Evidence(
                        description=f"{shorten(account)} lived for {seconds // 60} minute(s)",
                        severity=Severity.LOW,
                        reference=account,
                        data=AddressEvidence(address=account, interaction_count=2),
                    )
                    for account, seconds in short_lived[:5]
                ],
            )
        )

    owned: Dict[str, Set[str]] = defaultdict(set)
    for event in creates:
        owned[event.owner].add(event.token_account)
    multi_owners = sorted(
        ((owner, accounts) for owner, accounts in owned.items() if len(accounts) >= 2),
        key=lambda item: len(item[1]),
        reverse=True,
    )
    only_target = len(multi_owners) == 1 and multi_owners[0][0] == context.target
    if multi_owners and not only_target:
        signals.append(
            PrivacySignal(
                id="token-account-common-owner",
                name="Common Owner Across Token Accounts",
                severity=Severity.LOW,
                category="linkability",
                reason=(
                    f"{len(multi_owners)} wallet(s) control multiple token accounts; "
                    f"the top owner controls {len(multi_owners[0][1])}."
                ),
                impact="Token accounts created for the same owner are trivially grouped together.",
                mitigation="Use separate wallets when token holdings should not be linked.",
                evidence=[
                    Evidence(
                        description=(
                            f"{shorten(owner)}{_label_suffix(context, owner)} owns "
                            f"{len(accounts)} token account(s)"
                        ),
                        severity=Severity.LOW,
                        reference=owner,
                        data=AddressEvidence(address=owner, interaction_count=len(accounts)),
                    )
                    for owner, accounts in multi_owners[:3]
                ],
            )
        )

    clustered = sorted(
        ((owner, amounts) for owner, amounts in refunds.items() if len(amounts) >= 3),
        key=lambda item: len(item[1]),
        reverse=True,
    )
    if clustered:
        top_owner, top_amounts = clustered[0]
        signals.append(
            PrivacySignal(
                id="rent-refund-clustering",
                name="Rent Refund Clustering",
                severity=Severity.MEDIUM,
                category="linkability",
                reason=(
                    f"{len(clustered)} address(es) receive repeated rent refunds; "
                    f"{shorten(top_owner)} received {len(top_amounts)}."
                ),
                impact="One refund destination for many closed accounts links all of those accounts together.",
                mitigation="Send rent refunds to different destinations, or avoid closing accounts.",
                evidence=[
                    Evidence(
                        description=(
                            f"{shorten(owner)} received {len(amounts)} rent refunds totalling "
                            f"{sum(amounts):.4f} SOL"
                        ),
                        severity=Severity.MEDIUM,
                        reference=owner,
                        data=AddressEvidence(address=owner, interaction_count=len(amounts)),
                    )
                    for owner, amounts in clustered[:3]
                ],
            )
        )

    return signals


def _largest_burst(timestamps: List[int], window: int) -> int:
    ordered = sorted(timestamps)
    largest = 0
    end = 0
    for start in range(len(ordered)):
        end = max(end, start)
        while end + 1 < len(ordered) and ordered[end + 1] - ordered[start] <= window:
            end += 1
        largest = max(largest, end - start + 1)
    return largest


def detect_ata_linkage(context: ScanContext) -> SignalList:
    """Flag wallets that fund token accounts for other owners, and batch setups."""

    creates = [event for event in context.token_account_events if event.kind == "create"]
    if len(creates) < 2:
        return []

    signals: SignalList = []
    fee_payer_by_signature = {tx.signature: tx.fee_payer for tx in context.transactions}
    owners_by_creator: Dict[str, Set[str]] = defaultdict(set)
    signatures_by_creator: Dict[str, List[str]] = defaultdict(list)
    for event in creates:
        creator = fee_payer_by_signature.get(event.signature)
        if creator is None or creator == event.owner:
            continue
        owners_by_creator[creator].add(event.owner)
        signatures_by_creator[creator].append(event.signature)

    funders = sorted(
        ((creator, owners) for creator, owners in owners_by_creator.items() if len(owners) >= 2),
        key=lambda item: len(item[1]),
        reverse=True,
    )
    if funders:
        signals.append(
            PrivacySignal(
                id="ata-creator-linkage",
                name="Token Account Creator Links Multiple Wallets",
                severity=Severity.HIGH,
                category="linkability",
                reason=(
                    f"One wallet created token accounts for {len(funders[0][1])} different owners, "
                    "tying all of them to a single funding source."
                ),
                impact=(
                    "The creator of a token account is recorded permanently, so every owner it funded is "
                    "visibly connected even without direct transfers."
                ),
                mitigation="Have each wallet create and fund its own token accounts.",
                evidence=[
                    Evidence(
                        description=(
                            f"{shorten(creator)}{_label_suffix(context, creator)} created token accounts for "
                            f"{len(owners)} different owner(s)"
                        ),
                        severity=Severity.HIGH,
                        reference=signatures_by_creator[creator][0],
                        data=TransactionEvidence(signatures=signatures_by_creator[creator][:3]),
                    )
                    for creator, owners in funders[:3]
                ],
                confidence=0.85,
            )
        )

    timestamps = [event.block_time for event in creates if event.block_time is not None]
    if len(timestamps) >= 3:
        burst = _largest_burst(timestamps, BATCH_WINDOW_SECONDS)
        if burst >= 3:
            signals.append(
                PrivacySignal(
                    id="ata-funding-pattern",
                    name="Batch Token Account Creation",
                    severity=Severity.MEDIUM,
                    category="behavioral",
                    reason=f"{burst} token accounts were created within a 10-minute window.",
                    impact="Batch setup suggests automated wallet preparation by a single operator.",
                    mitigation="Spread token account creation out over time.",
                    evidence=[
                        Evidence(
                            description=f"{burst} token accounts created within 10 minutes",
                            severity=Severity.MEDIUM,
                            data=PatternEvidence(occurrences=burst),
                        )
                    ],
                    confidence=0.7,
                )
            )

    return signals


__all__ = ["detect_ata_linkage", "detect_token_account_lifecycle"]
