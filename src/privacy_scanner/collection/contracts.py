"""Contracts between ledger data access and the normalizer.

Raw records keep the Solana JSON-RPC ``jsonParsed`` shape untouched; the
normalizer is the only component that interprets them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Union

from privacy_scanner.normalization.schema import TargetKind


@dataclass
class RawTransaction:
    """One fetched transaction.

    Attributes:
        signature: Transaction signature.
        transaction: ``getTransaction`` payload (``meta`` + ``transaction``), or
            ``None`` when the fetch failed.
        block_time: Block time reported by the signature listing.
    """

    signature: str
    transaction: Optional[Dict[str, Any]] = None
    block_time: Optional[int] = None

    @property
    def resolved_block_time(self) -> Optional[int]:
        if isinstance(self.block_time, int):
            return self.block_time
        if isinstance(self.transaction, dict) and isinstance(self.transaction.get("blockTime"), int):
            return self.transaction["blockTime"]
        return None


@dataclass
class RawWalletData:
    """Recent transactions and token accounts of a wallet."""

    address: str
    transactions: List[RawTransaction] = field(default_factory=list)
    token_accounts: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class RawTransactionData:
    """A single transaction looked up by signature."""

    signature: str
    transaction: Optional[Dict[str, Any]] = None
    block_time: Optional[int] = None

    def as_raw_transaction(self) -> RawTransaction:
        return RawTransaction(signature=self.signature, transaction=self.transaction, block_time=self.block_time)


@dataclass
class RawProgramData:
    """Accounts owned by a program plus transactions that invoked it."""

    program_id: str
    accounts: List[Dict[str, Any]] = field(default_factory=list)
    related_transactions: List[RawTransaction] = field(default_factory=list)


RawBatch = Union[RawWalletData, RawTransactionData, RawProgramData]


class LedgerSource(Protocol):
    """Capability for fetching raw ledger activity for a scan target.

    Implementations should return partial or empty batches rather than raise.
    """

    def collect(self, target: str, kind: TargetKind, *, max_history: int) -> RawBatch:  # pragma: no cover - Protocol
        ...


def empty_batch(target: str, kind: TargetKind) -> RawBatch:
    """Return a batch with no activity for ``target``."""

    if kind is TargetKind.TRANSACTION:
        return RawTransactionData(signature=target)
    if kind is TargetKind.PROGRAM:
        return RawProgramData(program_id=target)
    return RawWalletData(address=target)


__all__ = [
    "LedgerSource",
    "RawBatch",
    "RawProgramData",
    "RawTransaction",
    "RawTransactionData",
    "RawWalletData",
    "empty_batch",
]
