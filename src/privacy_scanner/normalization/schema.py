"""Canonical schema for normalized ledger activity.

Defines the immutable records the normalizer produces from raw ledger data and
the :class:`ScanContext` every heuristic reads. A context is built once per scan
and never mutated afterwards; collections are tuples, frozensets, or read-only
mappings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from privacy_scanner.labels.models import Label


class TargetKind(str, Enum):
    """Kind of identifier being scanned."""

    WALLET = "wallet"
    TRANSACTION = "transaction"
    PROGRAM = "program"


class InstructionCategory(str, Enum):
    """Coarse classification of an instruction by its program."""

    TRANSFER = "transfer"
    TOKEN_OPERATION = "token_operation"
    STAKE = "stake"
    VOTE = "vote"
    SWAP = "swap"
    PROGRAM_INTERACTION = "program_interaction"


@dataclass(frozen=True)
class Transfer:
    """Movement of SOL or an SPL token between two parties.

    Attributes:
        sender: Address whose balance decreased.
        receiver: Address whose balance increased.
        amount: Amount moved in SOL or token UI units.
        asset: Token mint, or ``None`` for native SOL.
        signature: Signature of the originating transaction.
        block_time: Unix timestamp in seconds, when known.
    """

    sender: str
    receiver: str
    amount: float
    signature: str
    asset: Optional[str] = None
    block_time: Optional[int] = None

    def counterparty_of(self, address: str) -> Optional[str]:
        """Return the other party of the transfer relative to ``address``."""

        if self.sender == address:
            return self.receiver
        if self.receiver == address:
            return self.sender
        return None


@dataclass(frozen=True)
class NormalizedInstruction:
    """Single top-level instruction, categorized by its program."""

    program_id: str
    category: InstructionCategory
    signature: str
    block_time: Optional[int] = None
    payload: Any = None
    accounts: tuple[str, ...] = ()

    @property
    def instruction_type(self) -> Optional[str]:
        """Parsed instruction type (for example ``transfer``), when decoded."""

        if isinstance(self.payload, Mapping):
            value = self.payload.get("type")
            return value if isinstance(value, str) else None
        return None

    @property
    def info(self) -> Mapping[str, Any]:
        """Parsed instruction ``info`` block, or an empty mapping."""

        if isinstance(self.payload, Mapping):
            value = self.payload.get("info")
            if isinstance(value, Mapping):
                return value
        return MappingProxyType({})


@dataclass(frozen=True)
class TransactionMetadata:
    """Per-transaction facts used by linkability heuristics."""

    signature: str
    fee_payer: str
    signers: tuple[str, ...]
    programs: tuple[str, ...] = ()
    block_time: Optional[int] = None
    compute_units_used: Optional[int] = None
    priority_fee: Optional[int] = None
    memo: Optional[str] = None


@dataclass(frozen=True)
class TokenAccountEvent:
    """Creation or closure of an SPL token account.

    For ``close`` events ``owner`` is the destination that received the rent
    refund.
    """

    kind: str
    token_account: str
    owner: str
    signature: str
    mint: Optional[str] = None
    block_time: Optional[int] = None
    rent_refund: Optional[float] = None


@dataclass(frozen=True)
class PDAInteraction:
    """Program-derived address touched by a program invocation."""

    pda: str
    program_id: str
    signature: str


@dataclass(frozen=True)
class TokenBalance:
    """Token amount currently held by the target."""

    mint: str
    address: str
    balance: float


@dataclass(frozen=True)
class TimeRange:
    """Earliest and latest block times seen in a scan."""

    earliest: Optional[int] = None
    latest: Optional[int] = None

    @property
    def is_complete(self) -> bool:
        return self.earliest is not None and self.latest is not None

    @property
    def span_seconds(self) -> int:
        if not self.is_complete:
            return 0
        return int(self.latest) - int(self.earliest)


@dataclass(frozen=True)
class ScanContext:
    """Immutable, normalized view of everything known about one scan target."""

    target: str
    target_kind: TargetKind
    transfers: tuple[Transfer, ...] = ()
    instructions: tuple[NormalizedInstruction, ...] = ()
    counterparties: frozenset[str] = frozenset()
    labels: Mapping[str, Label] = field(default_factory=lambda: MappingProxyType({}))
    token_balances: tuple[TokenBalance, ...] = ()
    time_range: TimeRange = field(default_factory=TimeRange)
    transaction_count: int = 0
    transactions: tuple[TransactionMetadata, ...] = ()
    token_account_events: tuple[TokenAccountEvent, ...] = ()
    pda_interactions: tuple[PDAInteraction, ...] = ()
    fee_payers: frozenset[str] = frozenset()
    signers: frozenset[str] = frozenset()
    programs: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if not isinstance(self.labels, MappingProxyType):
            object.__setattr__(self, "labels", MappingProxyType(dict(self.labels)))

    def instructions_for(self, signature: str) -> tuple[NormalizedInstruction, ...]:
        """Return the instructions belonging to ``signature`` in ledger order."""

        return tuple(inst for inst in self.instructions if inst.signature == signature)


__all__ = [
    "InstructionCategory",
    "NormalizedInstruction",
    "PDAInteraction",
    "ScanContext",
    "TargetKind",
    "TimeRange",
    "TokenAccountEvent",
    "TokenBalance",
    "TransactionMetadata",
    "Transfer",
]
