"""Ledger normalization for the privacy scanner.

Turns raw ``jsonParsed`` transaction payloads into the immutable
:class:`~privacy_scanner.normalization.schema.ScanContext` consumed by the
heuristics. Parsing is tolerant: a structurally broken transaction is logged
and dropped as a whole, never allowed to abort the scan.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from privacy_scanner.collection.contracts import (
    RawBatch,
    RawProgramData,
    RawTransaction,
    RawTransactionData,
    RawWalletData,
)
from privacy_scanner.labels.models import Label
from privacy_scanner.labels.resolver import LabelResolver
from privacy_scanner.normalization.reference_data import (
    ASSOCIATED_TOKEN_PROGRAM,
    ATA_CREATE_TYPES,
    BASE_FEE_PER_SIGNATURE,
    CORE_PROGRAMS,
    KNOWN_SWAP_PROGRAMS,
    LAMPORTS_PER_SOL,
    MEMO_PROGRAMS,
    PROGRAM_CATEGORIES,
    TOKEN_2022_PROGRAM,
    TOKEN_ACCOUNT_CLOSE_TYPES,
    TOKEN_ACCOUNT_CREATE_TYPES,
    TOKEN_PROGRAM,
    TOKEN_PROGRAMS,
    TOKEN_TRANSFER_TYPES,
)
from privacy_scanner.normalization.schema import (
    InstructionCategory,
    NormalizedInstruction,
    PDAInteraction,
    ScanContext,
    TargetKind,
    TimeRange,
    TokenAccountEvent,
    TokenBalance,
    TransactionMetadata,
    Transfer,
)

LOGGER = logging.getLogger(__name__)

# Errors treated as a structural defect of a single raw record.
_RECORD_ERRORS = (ValueError, TypeError, KeyError, AttributeError, IndexError)


class MalformedTransactionError(ValueError):
    """Raised when a raw transaction payload cannot be interpreted."""


@dataclass
class ParsedTransaction:
    """Everything extracted from one raw transaction."""

    metadata: TransactionMetadata
    account_keys: List[str]
    transfers: List[Transfer] = field(default_factory=list)
    instructions: List[NormalizedInstruction] = field(default_factory=list)
    token_account_events: List[TokenAccountEvent] = field(default_factory=list)
    pda_interactions: List[PDAInteraction] = field(default_factory=list)


def categorize_instruction(program_id: str, parsed: Any = None) -> InstructionCategory:
    """Classify an instruction by its program id and parsed type."""

    if program_id in TOKEN_PROGRAMS:
        instruction_type = parsed.get("type") if isinstance(parsed, Mapping) else None
        if instruction_type in TOKEN_TRANSFER_TYPES:
            return InstructionCategory.TRANSFER
        return InstructionCategory.TOKEN_OPERATION
    known = PROGRAM_CATEGORIES.get(program_id)
    if known is not None:
        return known
    if "swap" in program_id.lower() or program_id in KNOWN_SWAP_PROGRAMS:
        return InstructionCategory.SWAP
    return InstructionCategory.PROGRAM_INTERACTION


def _require_mapping(value: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise MalformedTransactionError(f"missing {what}")
    return value


def _balances(meta: Mapping[str, Any], key: str, expected: int) -> List[int]:
    values = meta.get(key)
    if not isinstance(values, list) or len(values) < expected:
        raise MalformedTransactionError(f"missing or short {key}")
    if not all(isinstance(item, (int, float)) and not isinstance(item, bool) for item in values):
        raise MalformedTransactionError(f"non-numeric {key}")
    return values


def _account_keys(message: Mapping[str, Any]) -> tuple[List[str], List[Optional[bool]]]:
    entries = message.get("accountKeys")
    if not isinstance(entries, list) or not entries:
        raise MalformedTransactionError("missing account keys")
    addresses: List[str] = []
    signer_flags: List[Optional[bool]] = []
    for entry in entries:
        if isinstance(entry, str):
            addresses.append(entry)
            signer_flags.append(None)
        elif isinstance(entry, Mapping) and isinstance(entry.get("pubkey"), str):
            addresses.append(entry["pubkey"])
            signer_flags.append(bool(entry.get("signer", False)))
        else:
            raise MalformedTransactionError("unrecognised account key entry")
    return addresses, signer_flags


def _signers(message: Mapping[str, Any], addresses: List[str], flags: List[Optional[bool]]) -> tuple[str, ...]:
    if any(flag is not None for flag in flags):
        flagged = tuple(address for address, flag in zip(addresses, flags) if flag)
        if flagged:
            return flagged
    header = message.get("header")
    if isinstance(header, Mapping):
        required = header.get("numRequiredSignatures")
        if isinstance(required, int) and required > 0:
            return tuple(addresses[:required])
    return (addresses[0],)


def _ui_amount(entry: Mapping[str, Any]) -> float:
    token_amount = entry.get("uiTokenAmount")
    if not isinstance(token_amount, Mapping):
        return 0.0
    value = token_amount.get("uiAmount")
    if value is None:
        value = token_amount.get("uiAmountString")
    if value is None:
        return 0.0
    return float(value)


def _native_transfers(
    addresses: List[str], pre: List[int], post: List[int], *, signature: str, block_time: Optional[int]
) -> List[Transfer]:
    transfers: List[Transfer] = []
    count = len(addresses)
    for index in range(count):
        delta = post[index] - pre[index]
        if delta <= 0:
            continue
        # First decreasing account in declaration order funds every receiver.
        sender_index = next((j for j in range(count) if post[j] < pre[j]), None)
        if sender_index is None:
            continue
        transfers.append(
            Transfer(
                sender=addresses[sender_index],
                receiver=addresses[index],
                amount=delta / LAMPORTS_PER_SOL,
                signature=signature,
                block_time=block_time,
            )
        )
    return transfers


def _token_transfers(
    addresses: List[str], meta: Mapping[str, Any], *, signature: str, block_time: Optional[int]
) -> List[Transfer]:
    pre_entries = meta.get("preTokenBalances") or []
    post_entries = meta.get("postTokenBalances") or []
    if not isinstance(pre_entries, list) or not isinstance(post_entries, list):
        raise MalformedTransactionError("token balances are not lists")

    previous: dict[tuple[int, str], Mapping[str, Any]] = {}
    for entry in pre_entries:
        if isinstance(entry, Mapping) and isinstance(entry.get("accountIndex"), int) and isinstance(entry.get("mint"), str):
            previous[(entry["accountIndex"], entry["mint"])] = entry

    # account index -> (mint, delta, owner); insertion order follows post balances.
    deltas: dict[int, tuple[str, float, Optional[str]]] = {}
    for entry in post_entries:
        if not isinstance(entry, Mapping):
            continue
        index = entry.get("accountIndex")
        mint = entry.get("mint")
        if not isinstance(index, int) or not isinstance(mint, str):
            continue
        before = previous.get((index, mint))
        delta = _ui_amount(entry) - (_ui_amount(before) if before is not None else 0.0)
        owner = entry.get("owner")
        deltas[index] = (mint, round(delta, 9), owner if isinstance(owner, str) else None)

    def party(index: int, owner: Optional[str]) -> str:
        return owner or addresses[index]

    transfers: List[Transfer] = []
    for receiver_index, (mint, delta, receiver_owner) in deltas.items():
        if delta <= 0 or receiver_index >= len(addresses):
            continue
        for sender_index, (sender_mint, sender_delta, sender_owner) in deltas.items():
            if sender_index == receiver_index or sender_mint != mint or sender_delta >= 0:
                continue
            if sender_index >= len(addresses):
                continue
            transfers.append(
                Transfer(
                    sender=party(sender_index, sender_owner),
                    receiver=party(receiver_index, receiver_owner),
                    amount=delta,
                    signature=signature,
                    asset=mint,
                    block_time=block_time,
                )
            )
    return transfers


def _token_account_event(
    program_id: str,
    parsed: Any,
    *,
    addresses: List[str],
    pre: List[int],
    signature: str,
    block_time: Optional[int],
) -> Optional[TokenAccountEvent]:
    if not isinstance(parsed, Mapping):
        return None
    instruction_type = parsed.get("type")
    info = parsed.get("info")
    if not isinstance(info, Mapping):
        return None

    if program_id == ASSOCIATED_TOKEN_PROGRAM and instruction_type in ATA_CREATE_TYPES:
        kind, account, owner = "create", info.get("account"), info.get("wallet")
    elif program_id in (TOKEN_PROGRAM, TOKEN_2022_PROGRAM) and instruction_type in TOKEN_ACCOUNT_CREATE_TYPES:
        kind, account, owner = "create", info.get("account"), info.get("owner")
    elif program_id in (TOKEN_PROGRAM, TOKEN_2022_PROGRAM) and instruction_type in TOKEN_ACCOUNT_CLOSE_TYPES:
        kind, account, owner = "close", info.get("account"), info.get("destination")
    else:
        return None
    if not isinstance(account, str) or not isinstance(owner, str):
        return None

    rent_refund = None
    if kind == "close" and account in addresses:
        rent_refund = pre[addresses.index(account)] / LAMPORTS_PER_SOL
    mint = info.get("mint")
    return TokenAccountEvent(
        kind=kind,
        token_account=account,
        owner=owner,
        signature=signature,
        mint=mint if isinstance(mint, str) else None,
        block_time=block_time,
        rent_refund=rent_refund,
    )


def _priority_fee(meta: Mapping[str, Any], signature_count: int) -> Optional[int]:
    fee = meta.get("fee")
    if not isinstance(fee, int):
        return None
    priority = fee - BASE_FEE_PER_SIGNATURE * max(signature_count, 1)
    return priority if priority > 0 else None


def parse_transaction(raw: RawTransaction, *, target: Optional[str] = None) -> ParsedTransaction:
    """Extract transfers, instructions and metadata from one raw transaction.

    Args:
        raw: Raw record as returned by a ledger source.
        target: Scan target; excluded from PDA candidates.

    Returns:
        The parsed transaction.

    Raises:
        MalformedTransactionError: If the payload lacks required structure.
    """

    payload = _require_mapping(raw.transaction, "transaction payload")
    meta = _require_mapping(payload.get("meta"), "meta")
    envelope = _require_mapping(payload.get("transaction"), "transaction body")
    message = _require_mapping(envelope.get("message"), "message")

    addresses, signer_flags = _account_keys(message)
    pre = _balances(meta, "preBalances", len(addresses))
    post = _balances(meta, "postBalances", len(addresses))

    signatures = envelope.get("signatures")
    signature = raw.signature or (signatures[0] if isinstance(signatures, list) and signatures else None)
    if not isinstance(signature, str) or not signature:
        raise MalformedTransactionError("missing signature")
    block_time = raw.resolved_block_time
    signers = _signers(message, addresses, signer_flags)

    raw_instructions = message.get("instructions")
    if not isinstance(raw_instructions, list):
        raise MalformedTransactionError("missing instructions")

    transfers = _native_transfers(addresses, pre, post, signature=signature, block_time=block_time)
    transfers.extend(_token_transfers(addresses, meta, signature=signature, block_time=block_time))
    instructions: List[NormalizedInstruction] = []
    events: List[TokenAccountEvent] = []
    pdas: List[PDAInteraction] = []

    programs: List[str] = []
    memos: List[str] = []
    seen_pdas: set[tuple[str, str]] = set()
    for entry in raw_instructions:
        instruction = _require_mapping(entry, "instruction")
        program_id = instruction.get("programId")
        if not isinstance(program_id, str):
            raise MalformedTransactionError("instruction without programId")
        decoded = instruction.get("parsed")
        raw_accounts = instruction.get("accounts") or []
        accounts = tuple(item for item in raw_accounts if isinstance(item, str)) if isinstance(raw_accounts, list) else ()

        if program_id not in programs:
            programs.append(program_id)
        if program_id in MEMO_PROGRAMS and isinstance(decoded, str):
            memos.append(decoded)

        instructions.append(
            NormalizedInstruction(
                program_id=program_id,
                category=categorize_instruction(program_id, decoded),
                signature=signature,
                block_time=block_time,
                payload=copy.deepcopy(decoded),
                accounts=accounts,
            )
        )
        event = _token_account_event(
            program_id, decoded, addresses=addresses, pre=pre, signature=signature, block_time=block_time
        )
        if event is not None:
            events.append(event)

        if decoded is None and program_id not in CORE_PROGRAMS:
            for account in accounts:
                if account in signers or account in (target, program_id) or (account, program_id) in seen_pdas:
                    continue
                seen_pdas.add((account, program_id))
                pdas.append(PDAInteraction(pda=account, program_id=program_id, signature=signature))

    compute_units = meta.get("computeUnitsConsumed")
    signature_count = len(signatures) if isinstance(signatures, list) else len(signers)
    metadata = TransactionMetadata(
        signature=signature,
        fee_payer=addresses[0],
        signers=signers,
        programs=tuple(programs),
        block_time=block_time,
        compute_units_used=compute_units if isinstance(compute_units, int) else None,
        priority_fee=_priority_fee(meta, signature_count),
        memo=" | ".join(memos) if memos else None,
    )
    return ParsedTransaction(
        metadata=metadata,
        account_keys=addresses,
        transfers=transfers,
        instructions=instructions,
        token_account_events=events,
        pda_interactions=pdas,
    )


def _parse_all(records: Iterable[RawTransaction], *, target: str) -> List[ParsedTransaction]:
    parsed: List[ParsedTransaction] = []
    for record in records:
        if record.transaction is None:
            LOGGER.warning("Skipping transaction %s: payload unavailable", record.signature)
            continue
        try:
            parsed.append(parse_transaction(record, target=target))
        except _RECORD_ERRORS as exc:
            LOGGER.warning("Skipping malformed transaction %s: %s", record.signature, exc)
    return parsed


def _time_range(records: Sequence[RawTransaction]) -> TimeRange:
    times = [record.resolved_block_time for record in records if record.resolved_block_time is not None]
    if not times:
        return TimeRange()
    return TimeRange(earliest=min(times), latest=max(times))


def _resolve_labels(resolver: Optional[LabelResolver], addresses: Iterable[str]) -> dict[str, Label]:
    if resolver is None:
        return {}
    ordered = sorted(set(addresses))
    if not ordered:
        return {}
    try:
        resolved = resolver.lookup_many(ordered)
    except Exception:
        LOGGER.warning("Label lookup failed for %d addresses", len(ordered), exc_info=True)
        return {}
    return {address: resolved[address] for address in ordered if address in resolved}


def _token_balances(token_accounts: Iterable[Mapping[str, Any]]) -> tuple[TokenBalance, ...]:
    balances: List[TokenBalance] = []
    for entry in token_accounts:
        try:
            info = entry["account"]["data"]["parsed"]["info"]
            mint = info["mint"]
            amount = info["tokenAmount"].get("uiAmount")
            if not isinstance(mint, str):
                raise TypeError("mint is not a string")
            balances.append(
                TokenBalance(
                    mint=mint,
                    address=str(entry.get("pubkey", "")),
                    balance=float(amount) if amount is not None else 0.0,
                )
            )
        except _RECORD_ERRORS as exc:
            LOGGER.warning("Skipping malformed token account entry: %s", exc)
    return tuple(balances)


def _build_context(
    target: str,
    kind: TargetKind,
    records: Sequence[RawTransaction],
    resolver: Optional[LabelResolver],
    *,
    transaction_count: int,
    token_balances: tuple[TokenBalance, ...] = (),
) -> ScanContext:
    parsed = _parse_all(records, target=target)

    transfers = tuple(transfer for item in parsed for transfer in item.transfers)
    instructions = tuple(instruction for item in parsed for instruction in item.instructions)
    transactions = tuple(item.metadata for item in parsed)

    if kind is TargetKind.WALLET:
        counterparties = {
            other for other in (transfer.counterparty_of(target) for transfer in transfers) if other and other != target
        }
    else:
        counterparties = {address for item in parsed for address in item.account_keys if address != target}

    fee_payers = frozenset(tx.fee_payer for tx in transactions)
    signers = frozenset(signer for tx in transactions for signer in tx.signers)
    programs = frozenset(program for tx in transactions for program in tx.programs)
    label_candidates = (counterparties | fee_payers | signers | programs) - {target}

    return ScanContext(
        target=target,
        target_kind=kind,
        transfers=transfers,
        instructions=instructions,
        counterparties=frozenset(counterparties),
        labels=_resolve_labels(resolver, label_candidates),
        token_balances=token_balances,
        time_range=_time_range(records),
        transaction_count=transaction_count,
        transactions=transactions,
        token_account_events=tuple(event for item in parsed for event in item.token_account_events),
        pda_interactions=tuple(pda for item in parsed for pda in item.pda_interactions),
        fee_payers=fee_payers,
        signers=signers,
        programs=programs,
    )


def normalize_wallet_data(raw: RawWalletData, resolver: Optional[LabelResolver] = None) -> ScanContext:
    """Build the scan context for a wallet from its recent transactions."""

    records = list(raw.transactions)
    return _build_context(
        raw.address,
        TargetKind.WALLET,
        records,
        resolver,
        transaction_count=len(records),
        token_balances=_token_balances(item for item in raw.token_accounts if isinstance(item, Mapping)),
    )


def normalize_transaction_data(raw: RawTransactionData, resolver: Optional[LabelResolver] = None) -> ScanContext:
    """Build the scan context for a single transaction."""

    records = [raw.as_raw_transaction()]
    return _build_context(
        raw.signature,
        TargetKind.TRANSACTION,
        records,
        resolver,
        transaction_count=1 if raw.transaction is not None else 0,
    )


def normalize_program_data(raw: RawProgramData, resolver: Optional[LabelResolver] = None) -> ScanContext:
    """Build the scan context for a program from transactions that invoked it."""

    records = list(raw.related_transactions)
    return _build_context(
        raw.program_id,
        TargetKind.PROGRAM,
        records,
        resolver,
        transaction_count=len(records),
    )


def normalize(raw: RawBatch, resolver: Optional[LabelResolver] = None) -> ScanContext:
    """Dispatch ``raw`` to the matching normalizer."""

    if isinstance(raw, RawWalletData):
        return normalize_wallet_data(raw, resolver)
    if isinstance(raw, RawTransactionData):
        return normalize_transaction_data(raw, resolver)
    if isinstance(raw, RawProgramData):
        return normalize_program_data(raw, resolver)
    raise TypeError(f"Unsupported raw batch type: {type(raw).__name__}")


__all__ = [
    "MalformedTransactionError",
    "ParsedTransaction",
    "categorize_instruction",
    "normalize",
    "normalize_program_data",
    "normalize_transaction_data",
    "normalize_wallet_data",
    "parse_transaction",
]
