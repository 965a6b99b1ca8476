from __future__ import annotations

import json
import os
import re
from typing import Any, Dict, Mapping


def deep_merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> Dict[str, Any]:
    """Deep-merge two dict-like mappings. Values in overlay win.

    - Dict vs dict: merge recursively
    - List vs list: overlay replaces base entirely
    - Other types: overlay replaces base
    """
    result: Dict[str, Any] = dict(base)
    for k, v in overlay.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = deep_merge(result[k], v)
        else:
            result[k] = v
    return result


_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ${VAR} in strings using environment variables.

    If an environment variable is missing, leave the pattern unchanged
    to allow upstream validation to catch it.
    """
    if isinstance(value, str):
        def repl(match: re.Match[str]) -> str:
            name = match.group(1)
            return os.environ.get(name, match.group(0))

        return _ENV_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [substitute_env_vars(v) for v in value]
    if isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}
    return value


def strip_markdown_fences(text: str) -> str:
    """Remove common markdown code block fences from a string."""
    text = re.sub(r"^\s*```[a-zA-Z0-9]*\s*\n|\n\s*```\s*$", "", text, flags=re.MULTILINE)
    return text.strip()


def load_json_object(text: str) -> Dict[str, Any]:
    """Parse an LLM response that must be a single JSON object.

    Unlike a best-effort scrape, this raises ``ValueError`` when the text is
    not JSON or the top-level value is not an object.
    """
    cleaned = strip_markdown_fences(text)
    obj = json.loads(cleaned)
    if not isinstance(obj, dict):
        raise ValueError(f"Expected a JSON object, got {type(obj).__name__}")
    return obj


def field_key(name: str) -> str:
    """Fold a field name so `orderingProvider`, `ordering_provider` and `ORDERING_PROVIDER` compare equal."""
    return re.sub(r"[_\-\s]", "", name).lower()
