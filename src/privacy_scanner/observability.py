"""Structured scan events and StatsD metrics for the privacy scanner."""

from __future__ import annotations

import json
import logging
import socket
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator, Mapping, Protocol

from privacy_scanner.settings import Settings, get_settings

_LOGGER = logging.getLogger("privacy_scanner.observability")
_METRICS_BACKEND_LOCK = threading.Lock()
_SHARED_METRICS: "MetricsBackend | None" = None


class Observability:
    """Emit structured scan events and StatsD-compatible metrics."""

    def __init__(
        self,
        *,
        settings: Settings,
        component: str | None = None,
        metrics_backend: "MetricsBackend | None" = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings
        self.component = component or "scanner"
        self._logger = logger or _LOGGER
        self._structured_logging = bool(settings.observability.structured_logging)
        self._metrics = metrics_backend

    def emit_event(self, event: str, **fields: Any) -> None:
        """Emit a structured log if enabled, otherwise a plain-text summary."""

        payload = {
            "event": event,
            "component": self.component,
            "service": self.settings.observability.service_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **_sanitize_dict(fields),
        }
        if self._structured_logging:
            self._logger.info(json.dumps(payload, default=_serialize))
        else:
            self._logger.info("%s | %s", event, payload)

    def increment(self, metric: str, *, value: float = 1.0, tags: Mapping[str, str] | None = None) -> None:
        """Increment a counter-style metric."""

        if not self._metrics:
            return
        self._metrics.increment(metric, value=value, tags=_normalize_tags(tags))

    def record_timing(self, metric: str, value_ms: float, *, tags: Mapping[str, str] | None = None) -> None:
        """Record a timing metric in milliseconds."""

        if not self._metrics:
            return
        self._metrics.record_timing(metric, value_ms=value_ms, tags=_normalize_tags(tags))

    @contextmanager
    def timer(self, metric: str, *, tags: Mapping[str, str] | None = None) -> Iterator[None]:
        """Record the wall-clock duration of the wrapped block as a timing metric."""

        started = time.perf_counter()
        try:
            yield
        finally:
            self.record_timing(metric, (time.perf_counter() - started) * 1000.0, tags=tags)


def get_observability(*, component: str | None = None, settings: Settings | None = None) -> Observability:
    """Return an :class:`Observability` instance for the requested component."""

    resolved = settings or get_settings()
    backend = _build_shared_metrics_backend(resolved)
    return Observability(settings=resolved, component=component, metrics_backend=backend, logger=_LOGGER)


def reset_observability_cache() -> None:
    """Reset cached metrics backends (used in tests)."""

    global _SHARED_METRICS
    with _METRICS_BACKEND_LOCK:
        _SHARED_METRICS = None


# ---------------------------------------------------------------------------
# Metrics backends
# ---------------------------------------------------------------------------


class MetricsBackend(Protocol):
    """Sink for counters and timings."""

    def increment(self, metric: str, *, value: float, tags: Mapping[str, str] | None) -> None:
        ...

    def record_timing(self, metric: str, *, value_ms: float, tags: Mapping[str, str] | None) -> None:
        ...


class _StatsdBackend:
    """StatsD client sending DogStatsD-tagged datagrams over UDP."""

    def __init__(self, host: str, port: int, prefix: str) -> None:
        self.prefix = prefix
        self.address = (host, port)
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

    def increment(self, metric: str, *, value: float, tags: Mapping[str, str] | None) -> None:
        self._send(_statsd_payload(self.prefix, metric, value, "c", tags))

    def record_timing(self, metric: str, *, value_ms: float, tags: Mapping[str, str] | None) -> None:
        self._send(_statsd_payload(self.prefix, metric, value_ms, "ms", tags))

    def _send(self, payload: bytes) -> None:
        try:
            self._socket.sendto(payload, self.address)
        except OSError:  # pragma: no cover - network errors never interrupt a scan
            _LOGGER.debug("StatsD send to %s:%s failed", *self.address, exc_info=True)


def _build_shared_metrics_backend(settings: Settings) -> MetricsBackend | None:
    global _SHARED_METRICS
    with _METRICS_BACKEND_LOCK:
        if _SHARED_METRICS is None and settings.observability.statsd_host:
            _SHARED_METRICS = _StatsdBackend(
                host=settings.observability.statsd_host,
                port=settings.observability.statsd_port,
                prefix=settings.observability.statsd_prefix,
            )
        return _SHARED_METRICS


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------


def _statsd_payload(
    prefix: str, metric: str, value: float, metric_type: str, tags: Mapping[str, str] | None
) -> bytes:
    scoped = f"{prefix}.{metric}" if prefix else metric
    payload = f"{scoped}:{_format_number(value)}|{metric_type}"
    if tags:
        tag_block = ",".join(f"{key}:{val}" for key, val in sorted(tags.items()))
        if tag_block:
            payload = f"{payload}|#{tag_block}"
    return payload.encode("utf-8")


def _serialize(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple)):
        return [_serialize(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _serialize(val) for key, val in value.items()}
    return str(value)


def _normalize_tags(tags: Mapping[str, str] | None) -> Mapping[str, str] | None:
    if not tags:
        return None
    normalized: dict[str, str] = {}
    for key, value in tags.items():
        if value is None:
            continue
        normalized[str(key)] = str(value.value if isinstance(value, Enum) else value)
    return normalized or None


def _format_number(value: float) -> str:
    formatted = f"{value:.6f}"
    formatted = formatted.rstrip("0").rstrip(".")
    return formatted or "0"


def _sanitize_dict(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    sanitized: dict[str, Any] = {}
    for key, value in payload.items():
        if isinstance(value, Mapping):
            sanitized[str(key)] = _sanitize_dict(value)
        else:
            sanitized[str(key)] = value
    return sanitized


__all__ = ["MetricsBackend", "Observability", "get_observability", "reset_observability_cache"]
