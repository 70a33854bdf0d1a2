"""Shared fixtures for privacy scanner unit tests."""

from __future__ import annotations

from typing import Callable

import pytest

from privacy_scanner.normalization.schema import ScanContext, TransactionMetadata, Transfer
from privacy_scanner.observability import reset_observability_cache
from privacy_scanner.settings import reload_settings

from builders import make_context, make_transfer, make_tx


@pytest.fixture
def tx_factory() -> Callable[..., TransactionMetadata]:
    return make_tx


@pytest.fixture
def transfer_factory() -> Callable[..., Transfer]:
    return make_transfer


@pytest.fixture
def context_factory() -> Callable[..., ScanContext]:
    return make_context


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    """Pin the environment so tests never pick up developer configuration or StatsD."""

    for name in ("PSCAN_ENV", "PSCAN_SETTINGS_FILE", "PSCAN_OBSERVABILITY__STATSD_HOST", "PSCAN_LABELS__PATH"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("PSCAN_ENV", "local")
    reset_observability_cache()
    reload_settings(env="local")
    yield
    reset_observability_cache()
    reload_settings(env="local")
