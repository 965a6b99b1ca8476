"""
Rule-based DME order extraction.

Deterministic keyword and regex rules over physician-note text. Each rule is
a standalone function so it can be exercised on its own; ``extract_order``
composes them into a ``NormalizedOrder``.
"""

import logging
import re
from typing import Dict, Optional

from ..errors import InvalidInput
from ..models import (
    DEVICE_CPAP,
    DEVICE_OXYGEN,
    DEVICE_WHEELCHAIR,
    LITERS_PATTERN,
    UNKNOWN,
    NormalizedOrder,
    usage_from_text,
)

logger = logging.getLogger(__name__)

# Checked in order; first hit wins.
DEVICE_KEYWORDS = (
    ("cpap", DEVICE_CPAP),
    ("oxygen", DEVICE_OXYGEN),
    ("wheelchair", DEVICE_WHEELCHAIR),
)

PROVIDER_MARKER = "dr."
PROVIDER_PREFIXES = ("ordered by ", "ordering physician:")

AHI_PATTERN = re.compile(r"AHI[:\s>]+(\d+)", re.IGNORECASE)
AHI_LEGACY_LITERAL = "AHI > 20"

PATIENT_NAME_PATTERN = re.compile(r"Patient\s+Name:[ \t]*(.*?)[ \t]*(?:\r?\n|$)", re.IGNORECASE)
DOB_PATTERN = re.compile(r"DOB:[ \t]*(.*?)[ \t]*(?:\r?\n|$)", re.IGNORECASE)
DIAGNOSIS_PATTERN = re.compile(r"Diagnosis:[ \t]*(.*?)[ \t]*(?:\r?\n|$)", re.IGNORECASE)


def ensure_note_text(note_text: Optional[str]) -> str:
    if note_text is None or not note_text.strip():
        raise InvalidInput("Note content cannot be empty")
    return note_text


def classify_device(note_text: str) -> str:
    lower = note_text.lower()
    for keyword, device in DEVICE_KEYWORDS:
        if keyword in lower:
            return device
    logger.warning("No recognized device type found in note")
    return UNKNOWN


def extract_ordering_provider(note_text: str) -> str:
    """Take the provider from the first "Dr." up to the end of that line."""
    index = note_text.lower().find(PROVIDER_MARKER)
    if index < 0:
        logger.warning("No ordering provider found in note")
        return UNKNOWN

    remaining = note_text[index:]
    for prefix in PROVIDER_PREFIXES:
        if remaining.lower().startswith(prefix):
            remaining = remaining[len(prefix):]
    remaining = remaining.strip()

    line_end = re.search(r"[\r\n]", remaining)
    if line_end:
        remaining = remaining[:line_end.start()]

    provider = remaining.strip().strip(". ")
    return provider or UNKNOWN


def extract_mask_type(note_text: str) -> Optional[str]:
    return "full face" if "full face" in note_text.lower() else None


def extract_add_ons(note_text: str) -> frozenset:
    return frozenset({"humidifier"}) if "humidifier" in note_text.lower() else frozenset()


def extract_ahi_qualifier(note_text: str) -> Optional[str]:
    """Qualifier such as "AHI > 20"; absent when AHI is mentioned without a number."""
    if "ahi" not in note_text.lower():
        return None
    match = AHI_PATTERN.search(note_text)
    if match:
        return f"AHI > {match.group(1)}"
    # Exact-literal fallback kept for compatibility with older notes.
    if AHI_LEGACY_LITERAL in note_text:
        return AHI_LEGACY_LITERAL
    return None


def extract_liters(note_text: str) -> Optional[str]:
    match = LITERS_PATTERN.search(note_text)
    if match:
        return f"{match.group(1)} L"
    return None


def extract_usage(note_text: str) -> Optional[str]:
    return usage_from_text(note_text)


def _line_value(pattern: re.Pattern, note_text: str) -> Optional[str]:
    match = pattern.search(note_text)
    if not match:
        return None
    return match.group(1).strip() or None


def extract_patient_name(note_text: str) -> Optional[str]:
    return _line_value(PATIENT_NAME_PATTERN, note_text)


def extract_dob(note_text: str) -> Optional[str]:
    return _line_value(DOB_PATTERN, note_text)


def extract_diagnosis(note_text: str) -> Optional[str]:
    return _line_value(DIAGNOSIS_PATTERN, note_text)


def extract_order(note_text: str) -> NormalizedOrder:
    """
    Extract a DME order from physician-note text.

    Args:
        note_text: Already-unwrapped note text

    Returns:
        A fresh NormalizedOrder; fields the rules cannot find are left at
        their defaults

    Raises:
        InvalidInput: If the note is empty or whitespace-only
    """
    ensure_note_text(note_text)

    device = classify_device(note_text)
    fields: Dict[str, object] = {
        "device": device,
        "ordering_provider": extract_ordering_provider(note_text),
        "patient_name": extract_patient_name(note_text),
        "dob": extract_dob(note_text),
        "diagnosis": extract_diagnosis(note_text),
    }

    if device == DEVICE_CPAP:
        fields["mask_type"] = extract_mask_type(note_text)
        fields["add_ons"] = extract_add_ons(note_text)
        fields["qualifier"] = extract_ahi_qualifier(note_text)
    elif device == DEVICE_OXYGEN:
        fields["liters"] = extract_liters(note_text)
        fields["usage"] = extract_usage(note_text)

    order = NormalizedOrder(**fields)
    logger.debug("Extraction complete: %s", order.to_payload())
    return order


class RuleBasedExtractor:
    """Order extractor backed by the deterministic rules in this module."""

    name = "rules"

    async def extract(self, note_text: str) -> NormalizedOrder:
        return extract_order(note_text)
