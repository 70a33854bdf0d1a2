"""Tests for the file-backed ledger source."""

from __future__ import annotations

import json

from privacy_scanner.collection import FileLedgerSource, RawProgramData, RawTransactionData, RawWalletData
from privacy_scanner.normalization.schema import TargetKind


def _write(path, payload) -> None:
    path.write_text(json.dumps(payload), encoding="utf-8")


def test_wallet_dump_respects_max_history(tmp_path):
    _write(
        tmp_path / "wallet-a.json",
        {
            "transactions": [
                {"signature": f"sig-{i}", "blockTime": 1_700_000_000 + i, "transaction": {"meta": {}}}
                for i in range(5)
            ]
            + [{"blockTime": 1}, "garbage"],
            "tokenAccounts": [{"pubkey": "acct-1"}, 7],
        },
    )

    batch = FileLedgerSource(tmp_path).collect("wallet-a", TargetKind.WALLET, max_history=3)

    assert isinstance(batch, RawWalletData)
    assert [tx.signature for tx in batch.transactions] == ["sig-0", "sig-1", "sig-2"]
    assert batch.transactions[0].resolved_block_time == 1_700_000_000
    assert batch.token_accounts == [{"pubkey": "acct-1"}]


def test_transaction_and_program_dumps(tmp_path):
    _write(tmp_path / "sig-x.json", {"transaction": {"meta": {}}, "blockTime": 42})
    _write(tmp_path / "prog.json", {"accounts": [{"pubkey": "a"}], "relatedTransactions": [{"signature": "s"}]})
    source = FileLedgerSource(tmp_path)

    transaction = source.collect("sig-x", TargetKind.TRANSACTION, max_history=10)
    program = source.collect("prog", TargetKind.PROGRAM, max_history=10)

    assert isinstance(transaction, RawTransactionData)
    assert transaction.block_time == 42
    assert isinstance(program, RawProgramData)
    assert [tx.signature for tx in program.related_transactions] == ["s"]


def test_missing_or_corrupt_dump_yields_empty_batch(tmp_path, caplog):
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
    source = FileLedgerSource(tmp_path)

    missing = source.collect("absent", TargetKind.WALLET, max_history=10)
    broken = source.collect("broken", TargetKind.WALLET, max_history=10)

    assert missing == RawWalletData(address="absent")
    assert broken == RawWalletData(address="broken")
    assert "Unreadable raw dump" in caplog.text


def test_available_targets_sorted(tmp_path):
    _write(tmp_path / "b.json", {})
    _write(tmp_path / "a.json", {})

    assert FileLedgerSource(tmp_path).available_targets() == ["a", "b"]
    assert list(FileLedgerSource(tmp_path / "missing").available_targets()) == []
