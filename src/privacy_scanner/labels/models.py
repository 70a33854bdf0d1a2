"""Pydantic models describing known on-chain entities."""

from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class LabelType(str, Enum):
    """Categories of known entities."""

    EXCHANGE = "exchange"
    BRIDGE = "bridge"
    PROTOCOL = "protocol"
    PROGRAM = "program"
    TOKEN = "token"
    MEV = "mev"
    MIXER = "mixer"
    MARKETPLACE = "marketplace"
    FEE_PAYER = "fee-payer"
    VALIDATOR = "validator"
    PRIVACY = "privacy"
    GAMING = "gaming"
    ORACLE = "oracle"
    WALLET = "wallet"
    OTHER = "other"


class Label(BaseModel):
    """Known-entity label attached to an address."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    address: str = Field(min_length=1)
    name: str = Field(min_length=1)
    type: LabelType = LabelType.OTHER
    description: str | None = None
    related_addresses: List[str] | None = None

    @field_validator("address", "name", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    @property
    def is_exchange(self) -> bool:
        return self.type is LabelType.EXCHANGE


__all__ = ["Label", "LabelType"]
