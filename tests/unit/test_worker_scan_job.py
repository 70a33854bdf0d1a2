"""Unit tests for the batch scan job."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from privacy_scanner.normalization.schema import TargetKind
from privacy_scanner.reports.generator import ReportGenerator
from privacy_scanner.worker.jobs import scan as scan_job

from builders import make_context


def _settings(output_dir) -> SimpleNamespace:
    return SimpleNamespace(
        env="local",
        collection=SimpleNamespace(fixtures_dir=output_dir / "raw"),
        report=SimpleNamespace(output_dir=output_dir / "reports"),
    )


def _report(target: str):
    return ReportGenerator().generate(make_context(target=target))


@pytest.fixture(autouse=True)
def _clear_job_env(monkeypatch):
    for name in ("PSCAN_SCAN__TARGETS", "PSCAN_SCAN__KIND", "PSCAN_SCAN__DRY_RUN"):
        monkeypatch.delenv(name, raising=False)


def test_env_list_strips_blanks(monkeypatch):
    monkeypatch.setenv("PSCAN_SCAN__TARGETS", " a, ,b ,c")

    assert scan_job._env_list("PSCAN_SCAN__TARGETS") == ["a", "b", "c"]


def test_resolve_kind(monkeypatch):
    assert scan_job._resolve_kind() is TargetKind.WALLET

    monkeypatch.setenv("PSCAN_SCAN__KIND", "Program")
    assert scan_job._resolve_kind() is TargetKind.PROGRAM

    monkeypatch.setenv("PSCAN_SCAN__KIND", "account")
    with pytest.raises(ValueError):
        scan_job._resolve_kind()


def test_main_without_targets_is_noop(monkeypatch, tmp_path):
    monkeypatch.setattr(scan_job, "get_settings", lambda: _settings(tmp_path))
    builder = MagicMock()
    monkeypatch.setattr(scan_job, "build_scanner", builder)

    assert scan_job.main() == 0
    builder.assert_not_called()


def test_main_dry_run_skips_scanner(monkeypatch, tmp_path):
    monkeypatch.setenv("PSCAN_SCAN__TARGETS", "wallet-a")
    monkeypatch.setenv("PSCAN_SCAN__DRY_RUN", "true")
    monkeypatch.setattr(scan_job, "get_settings", lambda: _settings(tmp_path))
    builder = MagicMock()
    monkeypatch.setattr(scan_job, "build_scanner", builder)

    assert scan_job.main() == 0
    builder.assert_not_called()


def test_main_rejects_invalid_kind(monkeypatch, tmp_path):
    monkeypatch.setenv("PSCAN_SCAN__TARGETS", "wallet-a")
    monkeypatch.setenv("PSCAN_SCAN__KIND", "account")
    monkeypatch.setattr(scan_job, "get_settings", lambda: _settings(tmp_path))

    assert scan_job.main() == 1


def test_main_writes_reports(monkeypatch, tmp_path):
    monkeypatch.setenv("PSCAN_SCAN__TARGETS", "wallet-a,wallet-b")
    settings = _settings(tmp_path)
    monkeypatch.setattr(scan_job, "get_settings", lambda: settings)
    scanner = MagicMock()
    scanner.scan_many.return_value = [_report("wallet-a"), _report("wallet-b")]
    monkeypatch.setattr(scan_job, "build_scanner", lambda settings: scanner)

    assert scan_job.main() == 0

    scanner.scan_many.assert_called_once_with(["wallet-a", "wallet-b"], TargetKind.WALLET)
    written = json.loads((tmp_path / "reports" / "wallet-a.json").read_text())
    assert written["target"] == "wallet-a"
    assert written["overallRisk"] == "LOW"
    assert (tmp_path / "reports" / "wallet-b.json").exists()


def test_main_reports_scanner_failure(monkeypatch, tmp_path):
    monkeypatch.setenv("PSCAN_SCAN__TARGETS", "wallet-a")
    monkeypatch.setattr(scan_job, "get_settings", lambda: _settings(tmp_path))

    def _explode(settings):
        raise RuntimeError("boom")

    monkeypatch.setattr(scan_job, "build_scanner", _explode)

    assert scan_job.main() == 1


def test_main_settings_failure(monkeypatch):
    def _explode():
        raise ValueError("bad config")

    monkeypatch.setattr(scan_job, "get_settings", _explode)

    assert scan_job.main() == 1
