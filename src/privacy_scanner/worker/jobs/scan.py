"""Batch job entrypoint that scans a list of targets and writes JSON reports."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from privacy_scanner.normalization.schema import TargetKind
from privacy_scanner.reports.models import PrivacyReport
from privacy_scanner.services.factories import build_scanner
from privacy_scanner.settings import Settings, get_settings

LOGGER = logging.getLogger("privacy_scanner.worker.jobs.scan")
_BOOL_TRUE = {"1", "true", "yes", "on"}


def _configure_logging() -> None:
    level_name = os.getenv("PSCAN_RUNTIME__LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _BOOL_TRUE


def _env_list(name: str) -> list[str]:
    raw = os.getenv(name)
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _resolve_kind() -> TargetKind:
    raw = os.getenv("PSCAN_SCAN__KIND", TargetKind.WALLET.value).strip().lower()
    try:
        return TargetKind(raw)
    except ValueError as exc:
        raise ValueError(f"PSCAN_SCAN__KIND must be one of wallet, transaction, program (got {raw!r})") from exc


def _write_report(report: PrivacyReport, output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"{report.target}.json"
    path.write_text(report.to_json(), encoding="utf-8")
    return path


def _log_report_summary(report: PrivacyReport) -> None:
    LOGGER.info(
        "Scanned %s %s: risk=%s signals=%s transactions=%s",
        report.target_type,
        report.target,
        report.overall_risk.value,
        report.summary.total_signals,
        report.summary.transactions_analyzed,
    )


def _run(settings: Settings, targets: list[str], kind: TargetKind) -> int:
    scanner = build_scanner(settings)
    reports = scanner.scan_many(targets, kind)

    failures = 0
    output_dir = Path(settings.report.output_dir)
    for report in reports:
        _log_report_summary(report)
        try:
            path = _write_report(report, output_dir)
        except OSError:
            LOGGER.exception("Failed to write report for %s", report.target)
            failures += 1
            continue
        LOGGER.info("Report written to %s", path)
    return 1 if failures else 0


def main() -> int:
    """Entry point executed by the batch job container."""

    _configure_logging()

    try:
        settings = get_settings()
    except Exception:
        LOGGER.exception("Unable to load settings for scan job")
        return 1

    try:
        kind = _resolve_kind()
    except ValueError as exc:
        LOGGER.error("Invalid scan job configuration: %s", exc)
        return 1

    targets = _env_list("PSCAN_SCAN__TARGETS")
    dry_run = _env_bool("PSCAN_SCAN__DRY_RUN", False)
    LOGGER.info(
        "Starting scan job: kind=%s targets=%s source=%s output=%s dry_run=%s",
        kind.value,
        len(targets),
        settings.collection.fixtures_dir,
        settings.report.output_dir,
        dry_run,
    )

    if not targets:
        LOGGER.warning("PSCAN_SCAN__TARGETS is empty; nothing to scan.")
        return 0

    if dry_run:
        LOGGER.info("Dry run enabled; skipping execution.")
        return 0

    try:
        return _run(settings, targets, kind)
    except Exception:
        LOGGER.exception("Scan job failed")
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
