"""
Structured-output contract shared by the prompt builder and the response validator.

Both the JSON schema sent to the model and the field guidelines rendered
into the system prompt are generated from ``ORDER_FIELDS``; bump
``SCHEMA_VERSION`` whenever that table changes.
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import UpstreamError
from .utils import field_key, load_json_object

SCHEMA_VERSION = "2"
SCHEMA_NAME = "dme_order"

# (name, schema description, prompt guideline)
BASE_FIELDS: Tuple[Tuple[str, str, str], ...] = (
    (
        "device",
        "The type of medical equipment",
        'The type of medical equipment from the Prescription field '
        '(e.g., "CPAP", "Oxygen Tank", "Wheelchair", "Blood glucose monitoring kit", "Diabetic shoes")',
    ),
    (
        "liters",
        "For oxygen, the flow rate (e.g., '2 L'), or empty string if not applicable",
        'The flow rate if specified (e.g., "2 L"), or empty string if not applicable',
    ),
    (
        "usage",
        "When/how the equipment is used (e.g., 'sleep and exertion', '3 times daily'), "
        "or empty string if not specified",
        'When/how the equipment is used (e.g., "sleep and exertion", "3 times daily"), '
        "or empty string if not specified",
    ),
    ("diagnosis", "The patient's diagnosis", 'The patient\'s diagnosis (e.g., "COPD", "Type 2 Diabetes Mellitus")'),
    ("ordering_provider", "The doctor's name", 'The doctor\'s name (e.g., "Dr. Smith", "Dr. House")'),
    ("patient_name", "The patient's full name", "The patient's full name"),
    ("dob", "The patient's date of birth", "The patient's date of birth in the format found in the note"),
)

CPAP_SCHEMA_FIELDS: Tuple[Tuple[str, str, str], ...] = (
    (
        "mask_type",
        "For CPAP, the mask type (e.g., 'full face'), or empty string if not applicable",
        'For CPAP orders, the mask type (e.g., "full face"), or empty string if not applicable',
    ),
    (
        "add_ons",
        "For CPAP, comma-separated accessories (e.g., 'humidifier'), or empty string",
        'For CPAP orders, comma-separated accessories (e.g., "humidifier"), or empty string if none',
    ),
    (
        "qualifier",
        "For CPAP, the qualifying AHI threshold (e.g., 'AHI > 20'), or empty string",
        'For CPAP orders, the qualifying AHI threshold (e.g., "AHI > 20"), or empty string if not stated',
    ),
)


def order_fields(include_cpap_fields: bool = True) -> Tuple[Tuple[str, str, str], ...]:
    return BASE_FIELDS + (CPAP_SCHEMA_FIELDS if include_cpap_fields else ())


def build_order_schema(include_cpap_fields: bool = True) -> Dict[str, Any]:
    """JSON schema for strict structured output: every field a required string."""
    fields = order_fields(include_cpap_fields)
    return {
        "type": "object",
        "properties": {
            name: {"type": "string", "description": description}
            for name, description, _ in fields
        },
        "required": [name for name, _, _ in fields],
        "additionalProperties": False,
    }


def prompt_guidelines(include_cpap_fields: bool = True) -> List[Dict[str, str]]:
    return [{"name": name, "guideline": guideline} for name, _, guideline in order_fields(include_cpap_fields)]


class _StrictStr(BaseModel):
    model_config = ConfigDict(strict=True)
    value: str


def parse_order_response(content: str, schema: Dict[str, Any]) -> Dict[str, str]:
    """
    Validate a model response against the order schema.

    Field names are matched case-insensitively (``orderingProvider`` and
    ``ordering_provider`` are the same field). Returns a dict keyed by the
    schema's canonical field names.

    Raises:
        UpstreamError: On empty content, malformed JSON, a missing required
            field, a non-string value, an unexpected field or two keys
            naming the same field
    """
    if content is None or not content.strip():
        raise UpstreamError("Model returned empty response", reason="empty_response")

    try:
        raw = load_json_object(content)
    except ValueError as e:
        raise UpstreamError(f"Failed to parse model response: {e}", reason="parse") from e

    canonical = {field_key(name): name for name in schema["properties"]}
    parsed: Dict[str, str] = {}
    for key, value in raw.items():
        name = canonical.get(field_key(key))
        if name is None:
            if schema.get("additionalProperties") is False:
                raise UpstreamError(f"Unexpected field in model response: {key}", reason="schema")
            continue
        if name in parsed:
            raise UpstreamError(f"Duplicate field in model response: {key}", reason="schema")
        try:
            parsed[name] = _StrictStr(value=value).value
        except ValidationError as e:
            raise UpstreamError(f"Field '{name}' must be a string", reason="schema") from e

    missing = [name for name in schema.get("required", []) if name not in parsed]
    if missing:
        raise UpstreamError(f"Model response missing required fields: {', '.join(missing)}", reason="schema")
    return parsed
