"""Factory helpers that assemble scanner services from configuration."""

from __future__ import annotations

import logging
from pathlib import Path

from privacy_scanner.collection import FileLedgerSource, LedgerSource
from privacy_scanner.labels import StaticLabelResolver
from privacy_scanner.reports.generator import ReportGenerator
from privacy_scanner.services.scanner import PrivacyScanner
from privacy_scanner.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)


def build_label_resolver(settings: Settings | None = None) -> StaticLabelResolver:
    """Return a resolver loaded from ``settings.labels.path``.

    An unset path yields an empty resolver.

    Raises:
        FileNotFoundError: If the configured label file does not exist.
        ValueError: If the label file cannot be parsed.
    """

    settings = settings or get_settings()
    path = settings.labels.path
    if path is None:
        LOGGER.info("No label file configured; known-entity detection disabled")
        return StaticLabelResolver()
    return StaticLabelResolver.from_file(Path(path))


def build_ledger_source(settings: Settings | None = None) -> FileLedgerSource:
    """Return a file-backed ledger source reading ``settings.collection.fixtures_dir``."""

    settings = settings or get_settings()
    return FileLedgerSource(settings.collection.fixtures_dir)


def build_scanner(
    settings: Settings | None = None,
    *,
    ledger_source: LedgerSource | None = None,
) -> PrivacyScanner:
    """Instantiate a :class:`PrivacyScanner` wired from configuration."""

    settings = settings or get_settings()
    return PrivacyScanner(
        ledger_source or build_ledger_source(settings),
        label_resolver=build_label_resolver(settings),
        generator=ReportGenerator(schema_version=settings.report.schema_version),
        settings=settings,
    )


__all__ = ["build_label_resolver", "build_ledger_source", "build_scanner"]
