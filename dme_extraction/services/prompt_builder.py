from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from jinja2 import Environment, BaseLoader

from ..order_schema import SCHEMA_VERSION, prompt_guidelines

DEFAULT_SYSTEM_TEMPLATE = """\
You are a medical document extraction specialist. Extract DME (Durable Medical Equipment) information from physician notes.
Use the following information as extraction guidelines (schema v{{ schema_version }}):
{% for field in fields %}
- {{ field.name }}: {{ field.guideline }}
{% endfor %}
Return every field. Use an empty string for anything the note does not state."""

DEFAULT_USER_TEMPLATE = "Extract DME information from this physician note:\n\n{{ note_text }}"


class PromptBuilder:
    """Renders system and user prompts for order extraction using Jinja2 templates."""

    def __init__(
        self,
        *,
        include_cpap_fields: bool = True,
        system_template: Optional[str] = None,
        user_template: Optional[str] = None,
    ) -> None:
        self.env = Environment(loader=BaseLoader(), autoescape=False, trim_blocks=True, lstrip_blocks=True)
        self.variables: Dict[str, Any] = {
            "schema_version": SCHEMA_VERSION,
            "fields": prompt_guidelines(include_cpap_fields),
        }
        self._compiled_system = self.env.from_string(system_template or DEFAULT_SYSTEM_TEMPLATE)
        self._compiled_user = self.env.from_string(user_template or DEFAULT_USER_TEMPLATE)

    def build(self, note_text: str) -> Tuple[str, str]:
        ctx = {**self.variables, "note_text": note_text}
        system = self._compiled_system.render(**ctx)
        user = self._compiled_user.render(**ctx)
        return system.strip(), user.strip()
