"""
Model-based DME order extraction.

Sends the note to a text-completion provider with a strict JSON schema and
validates the answer before normalizing it into a ``NormalizedOrder``.
Unlike the rule path, nothing here degrades silently: any problem with the
provider or its output is raised as ``UpstreamError``.
"""

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..errors import UpstreamError
from ..models import NormalizedOrder
from ..order_schema import SCHEMA_NAME, build_order_schema, parse_order_response
from ..providers import LLMProvider, ProviderError, ProviderTimeout
from ..services.prompt_builder import PromptBuilder
from .rule_extractor import ensure_note_text

logger = logging.getLogger(__name__)


class ModelBasedExtractor:
    """
    Order extractor that delegates to an LLM provider.

    The provider instance is reused across calls; it is safe for sequential
    use but callers must not share one extractor between threads.
    """

    name = "model"

    def __init__(
        self,
        provider: LLMProvider,
        *,
        include_cpap_fields: bool = True,
        system_template: Optional[str] = None,
    ):
        self.provider = provider
        self.schema: Dict[str, Any] = {"title": SCHEMA_NAME, **build_order_schema(include_cpap_fields)}
        self.prompt_builder = PromptBuilder(
            include_cpap_fields=include_cpap_fields,
            system_template=system_template,
        )

    async def extract(self, note_text: str) -> NormalizedOrder:
        """
        Extract a DME order via the configured provider.

        Raises:
            InvalidInput: If the note is empty or whitespace-only
            UpstreamError: If the provider fails, times out, or returns
                content that does not satisfy the order schema
        """
        ensure_note_text(note_text)
        system_prompt, user_prompt = self.prompt_builder.build(note_text)
        logger.debug("Preparing model request with %d characters of note content", len(note_text))

        try:
            response = await self.provider.generate(
                user_prompt,
                system_prompt=system_prompt,
                response_schema=self.schema,
            )
        except ProviderTimeout as e:
            raise UpstreamError(str(e), reason="timeout") from e
        except ProviderError as e:
            raise UpstreamError(str(e), reason=e.reason) from e

        logger.info(
            "Model request completed in %.0fms (%s/%s, tokens in=%s out=%s)",
            response.processing_time * 1000,
            response.provider,
            response.model,
            response.input_tokens,
            response.output_tokens,
        )

        fields = parse_order_response(response.content, self.schema)
        try:
            order = NormalizedOrder(**fields)
        except ValidationError as e:
            raise UpstreamError(f"Model response failed order validation: {e}", reason="schema") from e
        logger.info(
            "Extracted DME: device=%s, provider=%s",
            order.device,
            order.ordering_provider,
        )
        return order
