"""Known-entity label lookup."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol

from pydantic import ValidationError

from privacy_scanner.labels.models import Label

LOGGER = logging.getLogger(__name__)


class LabelResolver(Protocol):
    """Capability for resolving addresses to known-entity labels."""

    def lookup(self, address: str) -> Label | None:
        """Return the label for ``address`` or ``None`` when unknown."""

    def lookup_many(self, addresses: Iterable[str]) -> dict[str, Label]:
        """Return labels for every known address in ``addresses``."""


class StaticLabelResolver:
    """In-memory label table, optionally loaded from a JSON file.

    The file format is ``{"labels": [{"address": ..., "name": ..., "type": ...}]}``;
    a bare list of label objects is accepted as well.
    """

    def __init__(self, labels: Iterable[Label] = ()) -> None:
        self._labels: dict[str, Label] = {}
        for label in labels:
            self._labels[label.address] = label

    def __len__(self) -> int:
        return len(self._labels)

    def lookup(self, address: str) -> Label | None:
        return self._labels.get(address)

    def lookup_many(self, addresses: Iterable[str]) -> dict[str, Label]:
        resolved: dict[str, Label] = {}
        for address in addresses:
            label = self._labels.get(address)
            if label is not None:
                resolved[address] = label
        return resolved

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "StaticLabelResolver":
        """Build a resolver from raw label records, skipping invalid entries."""

        labels: list[Label] = []
        for index, record in enumerate(records):
            try:
                labels.append(Label.model_validate(record))
            except ValidationError as exc:
                LOGGER.warning("Skipping invalid label entry %s: %s", index, exc.errors(include_url=False))
        return cls(labels)

    @classmethod
    def from_file(cls, path: Path) -> "StaticLabelResolver":
        """Load labels from ``path``.

        Raises:
            FileNotFoundError: If ``path`` does not exist.
            ValueError: If the file is not valid JSON or has an unexpected shape.
        """

        try:
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid label file {path}") from exc
        records = payload.get("labels") if isinstance(payload, dict) else payload
        if not isinstance(records, list):
            raise ValueError(f"Label file {path} must contain a list of labels")
        resolver = cls.from_records(item for item in records if isinstance(item, Mapping))
        LOGGER.info("Loaded %d labels from %s", len(resolver), path)
        return resolver


__all__ = ["LabelResolver", "StaticLabelResolver"]
