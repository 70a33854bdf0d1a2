"""Overall risk level and mitigation advice derived from a signal list."""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Tuple

from privacy_scanner.reports.models import PrivacySignal, Severity

CLEAN_ADVICE = "Continue practicing good privacy hygiene to maintain low exposure."
OPENING_ADVICE = "Consider using multiple wallets to compartmentalize different activities."
CLOSING_ADVICE = "Research and consider privacy-preserving protocols when available."

# (trigger signal ids, advice), emitted in table order.
MITIGATION_TABLE: Tuple[Tuple[frozenset[str], str], ...] = (
    (
        frozenset({"fee-payer-never-self", "fee-payer-external", "fee-payer-multi-signer"}),
        "Always pay your own transaction fees to avoid linkage.",
    ),
    (
        frozenset({"signer-repeated", "signer-set-reuse", "signer-authority-hub"}),
        "Use separate signing keys for unrelated activities.",
    ),
    (
        frozenset(
            {
                "instruction-sequence-pattern",
                "program-usage-profile",
                "instruction-pda-reuse",
                "instruction-type-repeated",
                "program-reuse",
            }
        ),
        "Diversify transaction patterns and protocols to reduce behavioral fingerprinting.",
    ),
    (
        frozenset(
            {"token-account-churn", "token-account-short-lived", "token-account-common-owner", "rent-refund-clustering"}
        ),
        "Avoid closing token accounts if privacy is important - the rent refund creates linkage.",
    ),
    (
        frozenset({"memo-pii-exposure", "memo-descriptive-content", "memo-usage"}),
        "Never include personal information in transaction memos - they are permanently public.",
    ),
    (
        frozenset({"address-high-diversity", "address-moderate-diversity", "address-long-term-usage"}),
        "Use separate addresses for different activity types to compartmentalize your behavior.",
    ),
    (
        frozenset({"known-entity-interaction", "known-entity-frequent"}),
        "Avoid direct interactions between privacy-sensitive wallets and KYC services.",
    ),
    (
        frozenset({"counterparty-reuse", "pda-reuse", "counterparty-program-combo"}),
        "Use different addresses for different counterparties or contexts.",
    ),
    (
        frozenset({"timing-burst", "timing-regular-interval", "timing-timezone-pattern"}),
        "Introduce timing delays and vary transaction patterns to reduce correlation.",
    ),
    (
        frozenset({"balance-traceability"}),
        "Vary transfer amounts and add delays to reduce balance traceability.",
    ),
    (
        frozenset(
            {"amount-round-numbers", "amount-reuse-counterparty", "amount-reuse-pattern", "amount-reuse-frequency"}
        ),
        "Vary transaction amounts to avoid creating fingerprints.",
    ),
    (
        frozenset({"priority-fee-consistent", "compute-budget-fingerprint"}),
        "Randomize priority fees and compute budgets between transactions.",
    ),
    (
        frozenset({"ata-creator-linkage", "ata-funding-pattern"}),
        "Let each wallet create its own token accounts.",
    ),
    (
        frozenset({"stake-delegation-pattern", "stake-timing-correlation"}),
        "Spread stake across validators and vary staking times.",
    ),
    (
        frozenset({"nft-metadata-exposure", "domain-name-linkage"}),
        "Keep identity-bearing activity like domains and NFT creation on a dedicated wallet.",
    ),
)


def severity_counts(signals: Iterable[PrivacySignal]) -> Dict[Severity, int]:
    """Count signals per severity; every severity is present in the result."""

    counts = {severity: 0 for severity in Severity}
    for signal in signals:
        counts[signal.severity] += 1
    return counts


def overall_risk(signals: Sequence[PrivacySignal]) -> Severity:
    """Combine signal severities into a single risk level.

    Two HIGH signals, or one HIGH backed by two MEDIUM, make the target HIGH.
    Any remaining HIGH, two MEDIUM, or one MEDIUM with two LOW make it MEDIUM.
    """

    counts = severity_counts(signals)
    high, medium, low = counts[Severity.HIGH], counts[Severity.MEDIUM], counts[Severity.LOW]
    if high >= 2 or (high >= 1 and medium >= 2):
        return Severity.HIGH
    if high >= 1 or medium >= 2 or (medium >= 1 and low >= 2):
        return Severity.MEDIUM
    return Severity.LOW


def generate_mitigations(signals: Sequence[PrivacySignal]) -> List[str]:
    """Return deduplicated, ordered advice for the detected signals."""

    if not signals:
        return [CLEAN_ADVICE]

    present = {signal.id for signal in signals}
    advice = [OPENING_ADVICE]
    for triggers, text in MITIGATION_TABLE:
        if triggers & present and text not in advice:
            advice.append(text)
    advice.append(CLOSING_ADVICE)
    return advice


__all__ = [
    "CLEAN_ADVICE",
    "CLOSING_ADVICE",
    "MITIGATION_TABLE",
    "OPENING_ADVICE",
    "generate_mitigations",
    "overall_risk",
    "severity_counts",
]
