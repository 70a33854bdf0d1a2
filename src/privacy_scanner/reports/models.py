"""Pydantic models for privacy signals and reports.

``PrivacyReport.to_dict`` renders the public JSON contract: camelCase keys,
absent optional fields omitted, and evidence payloads flattened into ``type``
plus ``data``.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_serializer
from pydantic.alias_generators import to_camel

from privacy_scanner.labels.models import Label


class Severity(str, Enum):
    """Signal severity, also used for the overall risk level."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        """Sort rank; lower ranks sort first."""

        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.HIGH: 0, Severity.MEDIUM: 1, Severity.LOW: 2}


class _ContractModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class TransactionEvidence(_ContractModel):
    """Example transactions backing a finding."""

    type: Literal["transaction"] = "transaction"
    signatures: List[str] = Field(default_factory=list)


class AddressEvidence(_ContractModel):
    """An address and how often it was involved."""

    type: Literal["address"] = "address"
    address: str
    interaction_count: int = 0


class AmountEvidence(_ContractModel):
    """A repeated or notable amount."""

    type: Literal["amount"] = "amount"
    amount: Optional[float] = None
    token: Optional[str] = None
    count: Optional[int] = None
    counterparty: Optional[str] = None
    round_numbers: List[float] = Field(default_factory=list)


class TimingEvidence(_ContractModel):
    """Activity volume over a time window."""

    type: Literal["timing"] = "timing"
    transaction_count: int
    span_hours: float
    rate_per_hour: Optional[float] = None


class PatternEvidence(_ContractModel):
    """A behavioural pattern and how often it occurred."""

    type: Literal["pattern"] = "pattern"
    occurrences: Optional[int] = None
    matching_pairs: Optional[int] = None


class LabelEvidence(_ContractModel):
    """Interaction with a labeled known entity."""

    type: Literal["label"] = "label"
    address: str
    name: str
    label_type: str
    interaction_count: int = 0
    example_transactions: List[str] = Field(default_factory=list)


EvidencePayload = Annotated[
    Union[TransactionEvidence, AddressEvidence, AmountEvidence, TimingEvidence, PatternEvidence, LabelEvidence],
    Field(discriminator="type"),
]


class Evidence(_ContractModel):
    """One observation supporting a signal."""

    description: str
    severity: Optional[Severity] = None
    reference: Optional[str] = None
    data: Optional[EvidencePayload] = None

    @property
    def type(self) -> Optional[str]:
        return self.data.type if self.data is not None else None

    @model_serializer(mode="wrap")
    def _flatten_payload(self, handler) -> Dict[str, Any]:
        serialized = handler(self)
        payload = serialized.pop("data", None)
        if isinstance(payload, dict):
            serialized["type"] = payload.pop("type", self.type)
            serialized["data"] = payload
        return serialized


class PrivacySignal(_ContractModel):
    """A detected privacy risk."""

    id: str
    name: str
    severity: Severity
    category: Optional[str] = None
    reason: str
    impact: str
    evidence: List[Evidence] = Field(default_factory=list)
    mitigation: str
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class ReportSummary(_ContractModel):
    """Signal counts by severity."""

    total_signals: int = 0
    high_risk_signals: int = 0
    medium_risk_signals: int = 0
    low_risk_signals: int = 0
    transactions_analyzed: int = 0


class PrivacyReport(_ContractModel):
    """Final scan output."""

    version: str
    timestamp: int
    target_type: str
    target: str
    overall_risk: Severity
    signals: List[PrivacySignal] = Field(default_factory=list)
    summary: ReportSummary = Field(default_factory=ReportSummary)
    mitigations: List[str] = Field(default_factory=list)
    known_entities: List[Label] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON-ready report."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self, *, indent: int | None = 2) -> str:
        """Return the report serialized as JSON text."""

        return self.model_dump_json(by_alias=True, exclude_none=True, indent=indent)


__all__ = [
    "AddressEvidence",
    "AmountEvidence",
    "Evidence",
    "EvidencePayload",
    "LabelEvidence",
    "PatternEvidence",
    "PrivacyReport",
    "PrivacySignal",
    "ReportSummary",
    "Severity",
    "TimingEvidence",
    "TransactionEvidence",
]
