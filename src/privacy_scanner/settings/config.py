"""Configuration loader for the privacy scanner using Pydantic settings."""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

ENV_VAR_NAME = "PSCAN_ENV"
DEFAULT_ENV = "local"
PROJECT_ROOT = Path(__file__).resolve().parents[3]
CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_CONFIG_FILE = CONFIG_DIR / "settings.default.toml"
LOCAL_CONFIG_FILE = CONFIG_DIR / "settings.local.toml"
SETTINGS_FILE_ENV_VAR = "PSCAN_SETTINGS_FILE"


def _resolve_env(explicit_env: str | None = None) -> str:
    """Return the active environment name.

    Args:
        explicit_env: Environment value supplied directly by the caller.

    Returns:
        A stripped environment name, falling back to ``DEFAULT_ENV``.
    """

    env = explicit_env or os.getenv(ENV_VAR_NAME) or DEFAULT_ENV
    return env.strip()


def _env_file_candidates(env: str) -> list[Path]:
    """List candidate ``.env`` files used during settings resolution.

    Args:
        env: Active environment name (for example, ``local`` or ``prod``).

    Returns:
        Ordered list of paths that should be considered when loading
        environment variables from disk.
    """

    return [
        PROJECT_ROOT / ".env",
        PROJECT_ROOT / f".env.{env}",
        PROJECT_ROOT / ".env.local",
    ]


def _resolve_config_path(raw_path: str | None) -> Path | None:
    """Return an absolute config path from user input."""

    if not raw_path:
        return None
    candidate = Path(raw_path).expanduser()
    if not candidate.is_absolute():
        candidate = (PROJECT_ROOT / candidate).resolve()
    return candidate


def _config_file_priority(include_missing: bool = False) -> tuple[Path, ...]:
    """Return config files in descending precedence order."""

    ordered: list[Path] = []
    env_override = _resolve_config_path(os.getenv(SETTINGS_FILE_ENV_VAR))
    if env_override:
        ordered.append(env_override)
    ordered.append(LOCAL_CONFIG_FILE)
    ordered.append(DEFAULT_CONFIG_FILE)
    if include_missing:
        return tuple(ordered)
    return tuple(path for path in ordered if path.exists())


class TomlConfigSettingsSource(PydanticBaseSettingsSource):
    """Pydantic settings source that loads values from a TOML file."""

    def __init__(self, settings_cls: type[BaseSettings], path: Path) -> None:
        super().__init__(settings_cls)
        self.path = path
        self._data: dict[str, Any] | None = None

    def _load(self) -> dict[str, Any]:
        if self._data is not None:
            return self._data
        if not self.path.exists():
            self._data = {}
            return self._data
        try:
            with self.path.open("rb") as handle:
                self._data = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:  # pragma: no cover - invalid files surface immediately
            raise ValueError(f"Invalid TOML syntax in {self.path}") from exc
        return self._data

    def __call__(self) -> dict[str, Any]:  # pragma: no cover - trivial wrapper
        return self._load()

    def get_field_value(self, field_name: str, field):  # pragma: no cover - passthrough helper
        data = self._load()
        return data.get(field_name), field_name in data


class RuntimeSettings(BaseSettings):
    """Process-level runtime controls."""

    model_config = SettingsConfigDict(env_prefix="PSCAN_RUNTIME__", extra="ignore")

    log_level: str = "INFO"


class ObservabilitySettings(BaseSettings):
    """Structured logging and metrics configuration."""

    model_config = SettingsConfigDict(env_prefix="PSCAN_OBSERVABILITY__", extra="ignore")

    structured_logging: bool = True
    statsd_host: str | None = None
    statsd_port: int = 8125
    statsd_prefix: str = "pscan"
    service_name: str = "privacy-scanner"


class CollectionSettings(BaseSettings):
    """Ledger collection limits and the location of pre-collected raw dumps."""

    model_config = SettingsConfigDict(env_prefix="PSCAN_COLLECTION__", extra="ignore")

    max_history: int = Field(default=100, ge=1)
    fixtures_dir: Path = PROJECT_ROOT / "data" / "raw"


class LabelSettings(BaseSettings):
    """Known-entity label store configuration."""

    model_config = SettingsConfigDict(env_prefix="PSCAN_LABELS__", extra="ignore")

    path: Path | None = None


class ReportSettings(BaseSettings):
    """Report schema and output location."""

    model_config = SettingsConfigDict(env_prefix="PSCAN_REPORT__", extra="ignore")

    schema_version: str = "1.0.0"
    output_dir: Path = PROJECT_ROOT / "data" / "reports"


class ScanSettings(BaseSettings):
    """Batch scan controls."""

    model_config = SettingsConfigDict(env_prefix="PSCAN_SCAN__", extra="ignore")

    max_workers: int = Field(default=4, ge=1)


class Settings(BaseSettings):
    """Top-level configuration model with nested sections for each subsystem."""

    env: str = Field(default_factory=lambda: _resolve_env())
    project_root: Path = Field(default=PROJECT_ROOT)
    runtime: RuntimeSettings = Field(default_factory=RuntimeSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    collection: CollectionSettings = Field(default_factory=CollectionSettings)
    labels: LabelSettings = Field(default_factory=LabelSettings)
    report: ReportSettings = Field(default_factory=ReportSettings)
    scan: ScanSettings = Field(default_factory=ScanSettings)
    env_files: tuple[Path, ...] = Field(default_factory=tuple, exclude=True)
    config_files: tuple[Path, ...] = Field(default_factory=tuple, exclude=True)

    model_config = SettingsConfigDict(
        env_prefix="PSCAN_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Extend settings sources with TOML-based config files."""

        config_sources = [TomlConfigSettingsSource(settings_cls, path) for path in _config_file_priority()]
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            *config_sources,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Normalize relative paths once the model is initialised."""

        if not self.collection.fixtures_dir.is_absolute():
            collection_update = {"fixtures_dir": (self.project_root / self.collection.fixtures_dir).resolve()}
            object.__setattr__(self, "collection", self.collection.model_copy(update=collection_update))

        if self.labels.path and not self.labels.path.is_absolute():
            labels_update = {"path": (self.project_root / self.labels.path).resolve()}
            object.__setattr__(self, "labels", self.labels.model_copy(update=labels_update))

        if not self.report.output_dir.is_absolute():
            report_update = {"output_dir": (self.project_root / self.report.output_dir).resolve()}
            object.__setattr__(self, "report", self.report.model_copy(update=report_update))

        return self

    @model_validator(mode="after")
    def _apply_environment_overrides(self) -> "Settings":
        """Force environment-specific defaults after basic resolution."""

        if self.env.lower() == "local":
            observability_update = {"structured_logging": False, "statsd_host": None}
            object.__setattr__(self, "observability", self.observability.model_copy(update=observability_update))

        return self

    @property
    def log_level(self) -> str:
        """str: Effective logging level for the running process."""

        return self.runtime.log_level

    @property
    def max_history(self) -> int:
        """int: Upper bound on transactions requested per scan."""

        return self.collection.max_history

    @property
    def is_local(self) -> bool:
        """bool: True when the active environment is ``local``."""

        return self.env.lower() == "local"


def _load_settings(env: str | None = None) -> Settings:
    """Load settings with optional environment override.

    Args:
        env: Environment name supplied programmatically.

    Returns:
        Fully parsed :class:`Settings` instance with env files applied.
    """

    resolved_env = _resolve_env(env)
    candidate_files = [path for path in _env_file_candidates(resolved_env) if path.exists()]
    config_files = _config_file_priority()
    return Settings(
        _env_file=[str(path) for path in candidate_files],
        _env_file_encoding="utf-8",
        env=resolved_env,
        env_files=tuple(candidate_files),
        config_files=config_files,
    )


@lru_cache(maxsize=1)
def get_settings(env: str | None = None) -> Settings:
    """Return cached settings for the requested environment."""

    return _load_settings(env)


def reload_settings(env: str | None = None) -> Settings:
    """Clear the cached settings and reload from disk."""

    get_settings.cache_clear()
    return get_settings(env)


__all__ = [
    "Settings",
    "get_settings",
    "reload_settings",
    "PROJECT_ROOT",
    "ENV_VAR_NAME",
]
