from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from ..errors import ConfigError
from ..utils import deep_merge, substitute_env_vars
from .schema import ConfigSchema


class ConfigLoader:
    """Loads, merges, and validates configuration overlays.

    Supports recursive `include:` directives and environment variable
    substitution for ${VAR} patterns. A `.env` file in the working
    directory is loaded first so its values are available for substitution.
    """

    def __init__(self, overlay_path: Path | str):
        self.overlay_path = Path(overlay_path)
        if not self.overlay_path.exists():
            raise FileNotFoundError(f"Config overlay not found: {self.overlay_path}")

    def _load_yaml(self, path: Path) -> Dict[str, Any]:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"YAML root must be a mapping: {path}")
        return data

    def _collect_includes(self, root_path: Path, data: Dict[str, Any]) -> Tuple[List[Path], Dict[str, Any]]:
        includes: List[Path] = []
        include_val = data.get("include")
        if include_val is None:
            return includes, data
        if isinstance(include_val, str):
            includes = [root_path.parent / include_val]
        elif isinstance(include_val, list):
            includes = [root_path.parent / str(p) for p in include_val]
        else:
            raise ConfigError("`include` must be a string or list of strings")
        data = {k: v for k, v in data.items() if k != "include"}
        return includes, data

    def _load_with_includes(self, path: Path) -> Dict[str, Any]:
        cur = self._load_yaml(path)
        includes, cur_wo_inc = self._collect_includes(path, cur)
        merged: Dict[str, Any] = {}
        for inc in includes:
            inc_data = self._load_with_includes(inc)
            merged = deep_merge(merged, inc_data)
        merged = deep_merge(merged, cur_wo_inc)
        return merged

    def load(self) -> ConfigSchema:
        load_dotenv()
        raw = self._load_with_includes(self.overlay_path)
        raw = substitute_env_vars(raw)
        try:
            return ConfigSchema.model_validate(raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration in {self.overlay_path}:\n{e}") from e


def load_config(path: Optional[Path | str]) -> ConfigSchema:
    """Load a config overlay, or the built-in defaults when no path is given."""
    if path is None:
        load_dotenv()
        return ConfigSchema()
    return ConfigLoader(path).load()


def require_run_settings(cfg: ConfigSchema) -> None:
    """Fail fast when a batch run lacks its notes folder or API endpoint."""
    if not cfg.notes.folder:
        raise ConfigError("notes.folder is not configured")
    if not cfg.api.url:
        raise ConfigError("api.url is not configured")
