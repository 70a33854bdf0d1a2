"""Ledger source backed by pre-collected JSON dumps."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List, Mapping

from privacy_scanner.collection.contracts import (
    RawBatch,
    RawProgramData,
    RawTransaction,
    RawTransactionData,
    RawWalletData,
    empty_batch,
)
from privacy_scanner.normalization.schema import TargetKind

LOGGER = logging.getLogger(__name__)


def _raw_transactions(items: Any, *, limit: int) -> List[RawTransaction]:
    if not isinstance(items, list):
        return []
    parsed: List[RawTransaction] = []
    for item in items[:limit]:
        if not isinstance(item, Mapping):
            continue
        signature = item.get("signature")
        if not isinstance(signature, str):
            continue
        transaction = item.get("transaction")
        block_time = item.get("blockTime")
        parsed.append(
            RawTransaction(
                signature=signature,
                transaction=transaction if isinstance(transaction, dict) else None,
                block_time=block_time if isinstance(block_time, int) else None,
            )
        )
    return parsed


def _mappings(items: Any) -> List[dict]:
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


class FileLedgerSource:
    """Read raw batches from ``<directory>/<target>.json``.

    Wallet dumps use ``{"transactions": [...], "tokenAccounts": [...]}``,
    transaction dumps ``{"transaction": {...}, "blockTime": ...}`` and program
    dumps ``{"accounts": [...], "relatedTransactions": [...]}``. Each
    transaction entry carries ``signature``, ``blockTime`` and the
    ``getTransaction`` payload under ``transaction``.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def path_for(self, target: str) -> Path:
        return self.directory / f"{target}.json"

    def collect(self, target: str, kind: TargetKind, *, max_history: int) -> RawBatch:
        path = self.path_for(target)
        if not path.exists():
            LOGGER.warning("No raw dump for %s %s at %s", kind.value, target, path)
            return empty_batch(target, kind)
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            LOGGER.warning("Unreadable raw dump %s", path, exc_info=True)
            return empty_batch(target, kind)
        if not isinstance(payload, Mapping):
            LOGGER.warning("Raw dump %s is not a JSON object", path)
            return empty_batch(target, kind)

        if kind is TargetKind.TRANSACTION:
            transaction = payload.get("transaction")
            block_time = payload.get("blockTime")
            return RawTransactionData(
                signature=target,
                transaction=transaction if isinstance(transaction, dict) else None,
                block_time=block_time if isinstance(block_time, int) else None,
            )
        if kind is TargetKind.PROGRAM:
            return RawProgramData(
                program_id=target,
                accounts=_mappings(payload.get("accounts")),
                related_transactions=_raw_transactions(payload.get("relatedTransactions"), limit=max_history),
            )
        return RawWalletData(
            address=target,
            transactions=_raw_transactions(payload.get("transactions"), limit=max_history),
            token_accounts=_mappings(payload.get("tokenAccounts")),
        )

    def available_targets(self) -> Iterable[str]:
        """Yield the targets that have a dump on disk, sorted by name."""

        if not self.directory.exists():
            return []
        return sorted(path.stem for path in self.directory.glob("*.json"))


__all__ = ["FileLedgerSource"]
