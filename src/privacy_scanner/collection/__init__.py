"""Raw ledger data contracts and sources."""

from privacy_scanner.collection.contracts import (
    LedgerSource,
    RawBatch,
    RawProgramData,
    RawTransaction,
    RawTransactionData,
    RawWalletData,
    empty_batch,
)
from privacy_scanner.collection.file_source import FileLedgerSource

__all__ = [
    "FileLedgerSource",
    "LedgerSource",
    "RawBatch",
    "RawProgramData",
    "RawTransaction",
    "RawTransactionData",
    "RawWalletData",
    "empty_batch",
]
