"""Exposure heuristics: memos, known entities and identity metadata."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

from privacy_scanner.heuristics.base import SignalList, shorten
from privacy_scanner.labels.models import Label, LabelType
from privacy_scanner.normalization.reference_data import (
    MEMO_PROGRAMS,
    METAPLEX_METADATA_PROGRAM,
    NAME_SERVICE_PROGRAM,
)
from privacy_scanner.normalization.schema import ScanContext
from privacy_scanner.reports.models import (
    Evidence,
    LabelEvidence,
    PatternEvidence,
    PrivacySignal,
    Severity,
    TransactionEvidence,
)

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
URL_PATTERN = re.compile(r"https?://\S+")
PHONE_PATTERN = re.compile(r"(\+\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")
NAME_PATTERN = re.compile(r"\b[A-Z][a-z]+(\s+[A-Z][a-z]+)+\b")
PAYMENT_REFERENCE_PATTERN = re.compile(r"\b(invoice|payment|order|transaction|ref|reference|id|bill)\b", re.IGNORECASE)

MEMO_PREVIEW_LENGTH = 100
LONG_MEMO_LENGTH = 50
IDENTITY_INSTRUCTION_PATTERN = re.compile(r"create|mint|update", re.IGNORECASE)


@dataclass(frozen=True)
class MemoFinding:
    """Classification of a single memo."""

    content: str
    signature: str
    severity: Severity
    patterns: tuple[str, ...]


def classify_memo(text: str) -> tuple[Severity, tuple[str, ...]]:
    """Return the severity of ``text`` and the sensitive patterns it contains.

    A memo with no pattern is ``LOW``; anything identifying a person is
    ``HIGH``; descriptive content is ``MEDIUM``.
    """

    patterns: List[str] = []
    severity = Severity.LOW
    if EMAIL_PATTERN.search(text):
        patterns.append("email address")
        severity = Severity.HIGH
    if URL_PATTERN.search(text):
        patterns.append("URL")
        if severity is not Severity.HIGH:
            severity = Severity.MEDIUM
    if PHONE_PATTERN.search(text):
        patterns.append("phone number")
        severity = Severity.HIGH
    if NAME_PATTERN.search(text):
        patterns.append("likely name")
        if severity is not Severity.HIGH:
            severity = Severity.MEDIUM
    if len(text) > LONG_MEMO_LENGTH and not patterns:
        patterns.append("long descriptive text")
        severity = Severity.MEDIUM
    if PAYMENT_REFERENCE_PATTERN.search(text):
        patterns.append("payment reference")
        if severity is not Severity.HIGH:
            severity = Severity.MEDIUM
    return severity, tuple(patterns)


def _preview(text: str) -> str:
    if len(text) > MEMO_PREVIEW_LENGTH:
        return f"{text[:MEMO_PREVIEW_LENGTH]}..."
    return text


def detect_memo_exposure(context: ScanContext) -> SignalList:
    """Flag memos that leak personal or descriptive information."""

    memo_instructions = [inst for inst in context.instructions if inst.program_id in MEMO_PROGRAMS]
    if context.transaction_count == 0 or not memo_instructions:
        return []

    findings: List[MemoFinding] = []
    for instruction in memo_instructions:
        if not isinstance(instruction.payload, str):
            continue
        text = instruction.payload.strip()
        if not text:
            continue
        severity, patterns = classify_memo(text)
        if patterns:
            findings.append(MemoFinding(_preview(text), instruction.signature, severity, patterns))

    if not findings:
        return [
            PrivacySignal(
                id="memo-usage",
                name="Memo Program Usage",
                severity=Severity.LOW,
                category="information-leak",
                reason=(
                    f"{len(memo_instructions)} instruction(s) attach memo data, which is public and stored "
                    "permanently."
                ),
                impact="Even harmless memos add readable context to your transactions.",
                mitigation="Avoid memos unless required and never put personal information in them.",
                evidence=[
                    Evidence(
                        description=f"{len(memo_instructions)} memo instruction(s)",
                        severity=Severity.LOW,
                        data=TransactionEvidence(
                            signatures=list(dict.fromkeys(inst.signature for inst in memo_instructions))[:5]
                        ),
                    )
                ],
                confidence=0.6,
            )
        ]

    signals: SignalList = []
    high = [finding for finding in findings if finding.severity is Severity.HIGH]
    medium = [finding for finding in findings if finding.severity is Severity.MEDIUM]
    if high:
        signals.append(
            PrivacySignal(
                id="memo-pii-exposure",
                name="Personal Information in Memo",
                severity=Severity.HIGH,
                category="information-leak",
                reason=(
                    f"{len(high)} memo(s) contain personal information such as email addresses or phone numbers."
                ),
                impact="Personal data in a memo ties the wallet to a real-world identity, permanently and searchably.",
                mitigation="Never put personal information in transaction memos.",
                evidence=[
                    Evidence(
                        description=f'"{finding.content}" ({", ".join(finding.patterns)})',
                        severity=Severity.HIGH,
                        reference=finding.signature,
                    )
                    for finding in high
                ],
                confidence=0.9,
            )
        )
    if medium:
        signals.append(
            PrivacySignal(
                id="memo-descriptive-content",
                name="Descriptive Content in Memo",
                severity=Severity.MEDIUM,
                category="information-leak",
                reason=(
                    f"{len(medium)} memo(s) contain descriptive text such as URLs, names or payment references."
                ),
                impact="Descriptive memos tell observers what a payment was for and who may be behind it.",
                mitigation="Keep memos short and generic; leave out URLs, invoice numbers and descriptions.",
                evidence=[
                    Evidence(
                        description=f'"{finding.content}" ({", ".join(finding.patterns)})',
                        severity=Severity.MEDIUM,
                        reference=finding.signature,
                    )
                    for finding in medium[:5]
                ],
                confidence=0.7,
            )
        )
    return signals


def detect_known_entity_interaction(context: ScanContext) -> SignalList:
    """Flag transfers with labeled entities such as exchanges and bridges."""

    if not context.labels or not context.transfers:
        return []

    involved: List[tuple[str, Label, int, List[str]]] = []
    for address, label in context.labels.items():
        count = 0
        examples: List[str] = []
        for transfer in context.transfers:
            if address in (transfer.sender, transfer.receiver):
                count += 1
                if len(examples) < 3 and transfer.signature not in examples:
                    examples.append(transfer.signature)
        if count:
            involved.append((address, label, count, examples))
    if not involved:
        return []

    has_exchange = any(label.type is LabelType.EXCHANGE for _, label, _, _ in involved)
    severity = Severity.HIGH if has_exchange or len(involved) >= 3 else Severity.MEDIUM
    total_transfers = len(context.transfers)
    names = ", ".join(label.name for _, label, _, _ in involved)

    signals: SignalList = [
        PrivacySignal(
            id="known-entity-interaction",
            name="Known Entity Interaction",
            severity=severity,
            category="identity-linkage",
            reason=f"Wallet transferred funds with {len(involved)} known entit{'y' if len(involved) == 1 else 'ies'}: {names}.",
            impact=(
                "Known services such as exchanges hold off-chain records. Direct transfers can tie this address "
                "to an identity through account data and deposit or withdrawal history."
            ),
            mitigation="Route funds through intermediate wallets instead of transacting with KYC services directly.",
            evidence=[
                Evidence(
                    description=f"{count} interaction(s) with {label.name} ({label.type.value})",
                    severity=Severity.HIGH if label.type is LabelType.EXCHANGE else Severity.MEDIUM,
                    reference=address,
                    data=LabelEvidence(
                        address=address,
                        name=label.name,
                        label_type=label.type.value,
                        interaction_count=count,
                        example_transactions=examples,
                    ),
                )
                for address, label, count, examples in involved
            ],
            confidence=0.95 if has_exchange else 0.8,
        )
    ]

    for address, label, count, _ in involved:
        concentration = count / total_transfers
        if concentration > 0.3 and count >= 5:
            entity_severity = Severity.HIGH if label.type is LabelType.EXCHANGE else Severity.MEDIUM
            signals.append(
                PrivacySignal(
                    id="known-entity-frequent",
                    name="Frequent Single Entity Interaction",
                    severity=entity_severity,
                    category="behavioral",
                    reason=f"{round(concentration * 100)}% of transfers ({count}/{total_transfers}) involve {label.name}.",
                    impact="Heavy reliance on one entity is an easily identified behavioural dependency.",
                    mitigation="Spread activity across services and use different addresses per provider.",
                    evidence=[
                        Evidence(
                            description=f"{count} transfers with {label.name} ({label.type.value})",
                            severity=entity_severity,
                            reference=address,
                            data=PatternEvidence(occurrences=count),
                        )
                    ],
                    confidence=0.85,
                )
            )
    return signals


def detect_identity_metadata_exposure(context: ScanContext) -> SignalList:
    """Flag NFT metadata and .sol domain activity that names the wallet."""

    if not context.instructions:
        return []

    signals: SignalList = []
    metaplex = [
        inst
        for inst in context.instructions
        if inst.program_id == METAPLEX_METADATA_PROGRAM
        and (inst.instruction_type is None or IDENTITY_INSTRUCTION_PATTERN.search(inst.instruction_type))
    ]
    if metaplex:
        signals.append(
            PrivacySignal(
                id="nft-metadata-exposure",
                name="NFT Metadata Links Wallet to Creator Identity",
                severity=Severity.MEDIUM,
                category="exposure",
                reason=f"This wallet has {len(metaplex)} Metaplex metadata interaction(s).",
                impact="NFT metadata is public and permanent; creating or updating NFTs ties the wallet to that content.",
                mitigation="Create NFTs from a dedicated wallet that is not used for personal transactions.",
                evidence=[
                    Evidence(
                        description=f"Metaplex interaction in transaction {shorten(inst.signature)}",
                        severity=Severity.MEDIUM,
                        reference=inst.signature,
                    )
                    for inst in metaplex[:5]
                ],
                confidence=0.75,
            )
        )

    name_service = [inst for inst in context.instructions if inst.program_id == NAME_SERVICE_PROGRAM]
    if name_service:
        signals.append(
            PrivacySignal(
                id="domain-name-linkage",
                name=".sol Domain Name Links Wallet to Identity",
                severity=Severity.HIGH,
                category="exposure",
                reason=f"This wallet interacted with the Solana Name Service {len(name_service)} time(s).",
                impact="A .sol domain is a public, permanent mapping between the wallet and a human-readable name.",
                mitigation="Register domains from a separate wallet you do not need to keep private.",
                evidence=[
                    Evidence(
                        description=f"Name service interaction in transaction {shorten(inst.signature)}",
                        severity=Severity.HIGH,
                        reference=inst.signature,
                    )
                    for inst in name_service[:5]
                ],
                confidence=0.9,
            )
        )
    return signals


__all__ = [
    "classify_memo",
    "detect_identity_metadata_exposure",
    "detect_known_entity_interaction",
    "detect_memo_exposure",
]
