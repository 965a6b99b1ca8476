from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.config import ConfigDict

UNKNOWN = "Unknown"
DEVICE_CPAP = "CPAP"
DEVICE_OXYGEN = "Oxygen Tank"
DEVICE_WHEELCHAIR = "Wheelchair"
KNOWN_DEVICES = (DEVICE_CPAP, DEVICE_OXYGEN, DEVICE_WHEELCHAIR)

CPAP_FIELDS = ("mask_type", "add_ons", "qualifier")
OXYGEN_FIELDS = ("liters", "usage")

LITERS_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*L", re.IGNORECASE)
_BARE_NUMBER = re.compile(r"\d+(?:\.\d+)?")


def canonical_device(value: Any) -> str:
    """Map a device label onto the fixed vocabulary, case-insensitively.

    Labels outside the vocabulary (model path) are kept as trimmed free text.
    """
    if value is None:
        return UNKNOWN
    v = str(value).strip()
    if not v:
        return UNKNOWN
    for opt in KNOWN_DEVICES + (UNKNOWN,):
        if v.lower() == opt.lower():
            return opt
    return v


def usage_from_text(text: str) -> Optional[str]:
    """Collapse mentions of sleep/exertion into one of the three usage labels."""
    lower = text.lower()
    has_sleep = "sleep" in lower
    has_exertion = "exertion" in lower
    if has_sleep and has_exertion:
        return "sleep and exertion"
    if has_sleep:
        return "sleep"
    if has_exertion:
        return "exertion"
    return None


def format_liters(value: str) -> str:
    match = LITERS_PATTERN.search(value)
    if match:
        return f"{match.group(1)} L"
    if _BARE_NUMBER.fullmatch(value):
        return f"{value} L"
    return value


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    v = str(value).strip()
    return v or None


class NormalizedOrder(BaseModel):
    """Structured DME order produced by either extraction strategy.

    Validation enforces the record invariants for every producer: device and
    ordering provider never blank, device-specific fields only alongside
    their device. Instances are frozen.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    device: str = UNKNOWN
    ordering_provider: str = UNKNOWN
    mask_type: Optional[str] = None
    add_ons: FrozenSet[str] = Field(default_factory=frozenset)
    qualifier: Optional[str] = None
    liters: Optional[str] = None
    usage: Optional[str] = None
    diagnosis: Optional[str] = None
    patient_name: Optional[str] = None
    dob: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _enforce_device_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        device = canonical_device(data.get("device"))
        data["device"] = device
        if device != DEVICE_CPAP:
            for name in CPAP_FIELDS:
                data.pop(name, None)
        if device != DEVICE_OXYGEN:
            for name in OXYGEN_FIELDS:
                data.pop(name, None)
        return data

    @field_validator("ordering_provider", mode="before")
    @classmethod
    def _provider_floor(cls, value: Any) -> str:
        v = (_clean(value) or "").rstrip(". ")
        return v or UNKNOWN

    @field_validator("mask_type", "qualifier", "diagnosis", "patient_name", "dob", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Optional[str]:
        return _clean(value)

    @field_validator("liters", mode="before")
    @classmethod
    def _normalize_liters(cls, value: Any) -> Optional[str]:
        v = _clean(value)
        return format_liters(v) if v else None

    @field_validator("usage", mode="before")
    @classmethod
    def _normalize_usage(cls, value: Any) -> Optional[str]:
        v = _clean(value)
        if not v:
            return None
        return usage_from_text(v) or v

    @field_validator("add_ons", mode="before")
    @classmethod
    def _normalize_add_ons(cls, value: Any) -> FrozenSet[str]:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            value = value.split(",")
        return frozenset(item.strip() for item in value if item and str(item).strip())

    def to_payload(self) -> Dict[str, Any]:
        """Plain JSON-ready dict; absent optional fields and empty add-ons are omitted."""
        payload = self.model_dump(mode="python", exclude_none=True)
        add_ons = payload.pop("add_ons", frozenset())
        if add_ons:
            payload["add_ons"] = sorted(add_ons)
        return payload


class NoteOutcome(BaseModel):
    """Result of pushing one note through the pipeline."""

    note: str
    success: bool
    device: Optional[str] = None
    error: Optional[str] = None
    failure_kind: Optional[str] = None


class RunSummary(BaseModel):
    strategy: str
    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    outcomes: List[NoteOutcome] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded
