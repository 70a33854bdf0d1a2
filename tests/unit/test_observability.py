"""Tests for structured events and StatsD formatting."""

from __future__ import annotations

import json
import logging
import socket
from unittest.mock import MagicMock

from privacy_scanner.normalization.schema import TargetKind
from privacy_scanner.observability import Observability, _statsd_payload, get_observability
from privacy_scanner.settings import reload_settings


def test_statsd_payload_includes_prefix_and_sorted_tags():
    payload = _statsd_payload("pscan", "scan.signals", 3.0, "c", {"risk": "HIGH", "kind": "wallet"})

    assert payload == b"pscan.scan.signals:3|c|#kind:wallet,risk:HIGH"


def test_statsd_payload_without_prefix_or_tags():
    assert _statsd_payload("", "scan.duration", 12.5, "ms", None) == b"scan.duration:12.5|ms"


def test_emit_event_structured_json(monkeypatch):
    monkeypatch.setenv("PSCAN_OBSERVABILITY__STRUCTURED_LOGGING", "true")
    settings = reload_settings(env="dev")
    logger = MagicMock(spec=logging.Logger)
    observability = Observability(settings=settings, component="scanner", logger=logger)

    observability.emit_event("scan.completed", target="wallet-a", kind=TargetKind.WALLET, signals=2)

    message = logger.info.call_args.args[0]
    payload = json.loads(message)
    assert payload["event"] == "scan.completed"
    assert payload["component"] == "scanner"
    assert payload["kind"] == "wallet"
    assert payload["signals"] == 2


def test_local_env_uses_plain_logs_and_no_metrics(caplog):
    observability = get_observability(component="scanner", settings=reload_settings(env="local"))

    with caplog.at_level(logging.INFO, logger="privacy_scanner.observability"):
        observability.emit_event("scan.completed", target="wallet-a")
        observability.increment("scan.signals")
        with observability.timer("scan.duration"):
            pass

    assert "scan.completed |" in caplog.text


def test_metrics_forwarded_to_backend():
    backend = MagicMock()
    observability = Observability(settings=reload_settings(env="local"), metrics_backend=backend)

    observability.increment("scan.signals", value=4, tags={"kind": TargetKind.PROGRAM})
    with observability.timer("scan.duration", tags={"kind": "wallet"}):
        pass

    backend.increment.assert_called_once_with("scan.signals", value=4, tags={"kind": "program"})
    assert backend.record_timing.call_args.args[0] == "scan.duration"
    assert backend.record_timing.call_args.kwargs["tags"] == {"kind": "wallet"}


def test_statsd_backend_sends_datagrams(monkeypatch):
    receiver = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    receiver.bind(("127.0.0.1", 0))
    receiver.settimeout(2.0)
    try:
        monkeypatch.setenv("PSCAN_OBSERVABILITY__STATSD_HOST", "127.0.0.1")
        monkeypatch.setenv("PSCAN_OBSERVABILITY__STATSD_PORT", str(receiver.getsockname()[1]))
        observability = get_observability(component="scanner", settings=reload_settings(env="dev"))

        observability.increment("scan.signals", value=2, tags={"kind": "wallet"})

        datagram, _ = receiver.recvfrom(1024)
    finally:
        receiver.close()

    assert datagram == b"pscan.scan.signals:2|c|#kind:wallet"
