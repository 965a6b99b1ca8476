"""
Extraction contract and strategy selection.

Both strategies satisfy ``OrderExtractor``; ``build_extractor`` picks one
from configuration so call sites never branch on the strategy.
"""

import logging
from typing import Optional, Protocol, runtime_checkable

from ..config.schema import ConfigSchema
from ..errors import ConfigError
from ..models import NormalizedOrder
from ..providers import LLMProvider, OllamaProvider, OpenAIProvider
from ..providers.openai_provider import resolve_api_key
from .model_extractor import ModelBasedExtractor
from .rule_extractor import RuleBasedExtractor

logger = logging.getLogger(__name__)


@runtime_checkable
class OrderExtractor(Protocol):
    name: str

    async def extract(self, note_text: str) -> NormalizedOrder:
        ...


def resolve_strategy(cfg: ConfigSchema, override: Optional[str] = None) -> str:
    """Turn `auto` into a concrete strategy name."""
    strategy = (override or cfg.extraction.strategy).lower()
    if strategy not in ("rules", "model", "auto"):
        raise ConfigError(f"Unknown extraction strategy: {strategy}")
    if strategy != "auto":
        return strategy
    if cfg.llm.default_provider == "openai" and resolve_api_key(cfg.llm.openai.model_dump()):
        return "model"
    return "rules"


def build_provider(cfg: ConfigSchema) -> LLMProvider:
    provider_name = cfg.llm.default_provider
    if provider_name == "openai":
        try:
            return OpenAIProvider(cfg.llm.openai.model_dump())
        except ValueError as e:
            raise ConfigError(str(e)) from e
    if provider_name == "ollama":
        return OllamaProvider(cfg.llm.ollama.model_dump())
    raise ConfigError(f"Unknown provider: {provider_name}")


def build_extractor(
    cfg: ConfigSchema,
    *,
    strategy: Optional[str] = None,
    provider: Optional[LLMProvider] = None,
) -> OrderExtractor:
    """
    Build the extractor selected by configuration.

    Args:
        cfg: Loaded configuration
        strategy: Optional override of extraction.strategy
        provider: Optional pre-built provider for the model strategy

    Returns:
        An OrderExtractor
    """
    resolved = resolve_strategy(cfg, strategy)
    if resolved == "rules":
        logger.info("Using rule-based DME extraction")
        return RuleBasedExtractor()

    provider = provider or build_provider(cfg)
    logger.info("Using model-based DME extraction (%s)", cfg.llm.default_provider)
    return ModelBasedExtractor(
        provider,
        include_cpap_fields=cfg.model.include_cpap_fields,
        system_template=cfg.model.system_prompt,
    )
