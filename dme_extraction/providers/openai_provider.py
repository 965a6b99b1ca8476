"""
OpenAI LLM provider implementation.
"""

import os
import time
from typing import Dict, Any, Optional, Tuple

import openai
from openai import AsyncOpenAI

from .base import (
    MALFORMED_RESPONSE_ERRORS,
    LLMProvider,
    LLMResponse,
    ProviderError,
    ProviderTimeout,
)

PLACEHOLDER_API_KEY = "your-openai-api-key-here"


def resolve_api_key(config: Dict[str, Any]) -> Optional[str]:
    """API key from config or OPENAI_API_KEY, ignoring placeholders and unresolved ${VAR}s."""
    api_key = config.get("api_key")
    if not api_key or api_key.startswith("${"):
        api_key = os.getenv("OPENAI_API_KEY")
    if not api_key or api_key.strip() in ("", PLACEHOLDER_API_KEY):
        return None
    return api_key.strip()


class OpenAIProvider(LLMProvider):
    """OpenAI provider using structured outputs for schema-constrained extraction."""

    def __init__(self, config: Dict[str, Any], client: Optional[AsyncOpenAI] = None):
        """Initialize OpenAI provider."""
        super().__init__(config)

        self.model_name = config.get("model") or "gpt-4o-mini"
        self.max_tokens = config.get("max_tokens", 2000)
        self.temperature = config.get("temperature", 0.0)
        self.timeout = config.get("timeout", 60)

        if client is not None:
            self.client = client
            return

        api_key = resolve_api_key(config)
        if not api_key:
            raise ValueError(
                "OpenAI API key not found. Please set the OPENAI_API_KEY environment variable "
                "or add 'api_key' to the llm.openai configuration section. "
                "Example: export OPENAI_API_KEY='sk-...'"
            )

        # Retries stay off: failures surface to the caller as-is.
        self.client = AsyncOpenAI(api_key=api_key, timeout=self.timeout, max_retries=0)

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> LLMResponse:
        """Generate response from OpenAI model."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        api_params: Dict[str, Any] = {
            "model": self.model_name,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if response_schema is not None:
            api_params["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": response_schema.get("title", "dme_order"),
                    "schema": {k: v for k, v in response_schema.items() if k != "title"},
                    "strict": True,
                },
            }

        start_time = time.time()
        try:
            response = await self.client.chat.completions.create(**api_params)
            choices = response.choices
            message = choices[0].message if choices else None
            usage = response.usage
        except openai.APITimeoutError as e:
            raise ProviderTimeout(f"OpenAI request timed out after {self.timeout} seconds") from e
        except openai.APIConnectionError as e:
            raise ProviderError(f"OpenAI network connection failed: {e}") from e
        except openai.APIStatusError as e:
            raise ProviderError(f"OpenAI request failed with status {e.status_code}: {e.message}") from e
        except openai.OpenAIError as e:
            raise ProviderError(f"OpenAI generation failed: {e}") from e
        except MALFORMED_RESPONSE_ERRORS as e:
            raise ProviderError(f"OpenAI returned a malformed response: {e}", reason="malformed") from e

        processing_time = time.time() - start_time

        if message is None:
            raise ProviderError("OpenAI response contained no choices", reason="malformed")
        if getattr(message, "refusal", None):
            raise ProviderError(f"OpenAI refused the request: {message.refusal}")

        return LLMResponse(
            content=message.content or "",
            provider="openai",
            model=self.model_name,
            processing_time=processing_time,
            input_tokens=usage.prompt_tokens if usage else None,
            output_tokens=usage.completion_tokens if usage else None,
        )

    async def validate_connection(self) -> Tuple[bool, str]:
        """Validate connection to OpenAI API."""
        try:
            await self.client.models.list()
            return True, f"Connected to OpenAI API with model {self.model_name}"
        except openai.AuthenticationError as e:
            return False, (
                f"OpenAI authentication failed: {str(e)}. "
                "Check your API key is valid and active"
            )
        except openai.APIConnectionError as e:
            return False, (
                f"OpenAI network connection failed: {str(e)}. "
                "Check your internet connection or try again later"
            )
        except openai.OpenAIError as e:
            return False, f"OpenAI API validation error: {str(e)}"
