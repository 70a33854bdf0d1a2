"""Builders for scan contexts, ledger records and labels used across unit tests."""

from __future__ import annotations

from typing import Any, Iterable, Optional

from privacy_scanner.labels.models import Label, LabelType
from privacy_scanner.normalization.reference_data import SYSTEM_PROGRAM
from privacy_scanner.normalization.schema import (
    InstructionCategory,
    NormalizedInstruction,
    ScanContext,
    TargetKind,
    TimeRange,
    TransactionMetadata,
    Transfer,
)

TARGET = "TargetWa11et1111111111111111111111111111111"
OTHER = "0therWa11et1111111111111111111111111111111"
RELAYER = "Re1ayer111111111111111111111111111111111111"
EXCHANGE = "Exchange1111111111111111111111111111111111"


def make_tx(
    signature: str,
    fee_payer: str = TARGET,
    signers: Iterable[str] | None = None,
    *,
    programs: Iterable[str] = (SYSTEM_PROGRAM,),
    block_time: Optional[int] = None,
    compute_units_used: Optional[int] = None,
    priority_fee: Optional[int] = None,
    memo: Optional[str] = None,
) -> TransactionMetadata:
    return TransactionMetadata(
        signature=signature,
        fee_payer=fee_payer,
        signers=tuple(signers) if signers is not None else (fee_payer,),
        programs=tuple(programs),
        block_time=block_time,
        compute_units_used=compute_units_used,
        priority_fee=priority_fee,
        memo=memo,
    )


def make_transfer(
    signature: str,
    sender: str = TARGET,
    receiver: str = OTHER,
    amount: float = 1.0,
    *,
    asset: Optional[str] = None,
    block_time: Optional[int] = None,
) -> Transfer:
    return Transfer(
        sender=sender,
        receiver=receiver,
        amount=amount,
        signature=signature,
        asset=asset,
        block_time=block_time,
    )


def make_instruction(
    signature: str,
    program_id: str = SYSTEM_PROGRAM,
    *,
    category: InstructionCategory = InstructionCategory.PROGRAM_INTERACTION,
    payload: Any = None,
    accounts: Iterable[str] = (),
    block_time: Optional[int] = None,
) -> NormalizedInstruction:
    return NormalizedInstruction(
        program_id=program_id,
        category=category,
        signature=signature,
        block_time=block_time,
        payload=payload,
        accounts=tuple(accounts),
    )


def make_context(
    *,
    target: str = TARGET,
    kind: TargetKind = TargetKind.WALLET,
    transactions: Iterable[TransactionMetadata] = (),
    transfers: Iterable[Transfer] = (),
    instructions: Iterable[NormalizedInstruction] = (),
    labels: Iterable[Label] = (),
    transaction_count: Optional[int] = None,
    **extra: Any,
) -> ScanContext:
    """Build a context the way the normalizer would, deriving the obvious aggregates."""

    transactions = tuple(transactions)
    transfers = tuple(transfers)
    times = [tx.block_time for tx in transactions if tx.block_time is not None]
    extra.setdefault("time_range", TimeRange(min(times), max(times)) if times else TimeRange())
    counterparties = {
        other for other in (transfer.counterparty_of(target) for transfer in transfers) if other and other != target
    }
    return ScanContext(
        target=target,
        target_kind=kind,
        transactions=transactions,
        transfers=transfers,
        instructions=tuple(instructions),
        labels={label.address: label for label in labels},
        counterparties=frozenset(counterparties),
        transaction_count=len(transactions) if transaction_count is None else transaction_count,
        fee_payers=frozenset(tx.fee_payer for tx in transactions),
        signers=frozenset(signer for tx in transactions for signer in tx.signers),
        programs=frozenset(program for tx in transactions for program in tx.programs),
        **extra,
    )


def make_label(address: str = EXCHANGE, name: str = "Example Exchange", type: LabelType = LabelType.EXCHANGE) -> Label:
    return Label(address=address, name=name, type=type)


def raw_transaction_payload(
    *,
    account_keys: list,
    pre_balances: list[int],
    post_balances: list[int],
    instructions: list[dict] | None = None,
    signatures: list[str] | None = None,
    fee: int = 5000,
    num_required_signatures: int = 1,
    pre_token_balances: list[dict] | None = None,
    post_token_balances: list[dict] | None = None,
    compute_units: Optional[int] = None,
) -> dict:
    """Return a ``jsonParsed`` transaction payload as served by an RPC node."""

    meta: dict[str, Any] = {
        "fee": fee,
        "preBalances": pre_balances,
        "postBalances": post_balances,
        "preTokenBalances": pre_token_balances or [],
        "postTokenBalances": post_token_balances or [],
    }
    if compute_units is not None:
        meta["computeUnitsConsumed"] = compute_units
    return {
        "meta": meta,
        "transaction": {
            "signatures": signatures or ["sig-placeholder"],
            "message": {
                "accountKeys": account_keys,
                "header": {"numRequiredSignatures": num_required_signatures},
                "instructions": instructions if instructions is not None else [],
            },
        },
    }


