"""
Ollama LLM provider implementation.
"""

import asyncio
import time
from typing import Dict, Any, Optional, Tuple

import httpx
import ollama

from .base import (
    MALFORMED_RESPONSE_ERRORS,
    LLMProvider,
    LLMResponse,
    ProviderError,
    ProviderTimeout,
)


class OllamaProvider(LLMProvider):
    """Ollama provider for local LLM inference."""

    def __init__(self, config: Dict[str, Any], client: Optional[ollama.AsyncClient] = None):
        """Initialize Ollama provider."""
        super().__init__(config)
        self.base_url = config.get("base_url", "http://localhost:11434")
        self.model = config.get("model", "llama3.1")
        self.timeout = config.get("timeout", 120)
        self.temperature = config.get("temperature", 0.0)
        self.client = client or ollama.AsyncClient(host=self.base_url, timeout=self.timeout)

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> LLMResponse:
        """Generate response from Ollama model."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        start_time = time.time()
        try:
            # wait_for cancels the request itself, closing the socket on timeout
            response = await asyncio.wait_for(
                self.client.chat(
                    model=self.model,
                    messages=messages,
                    format=response_schema,
                    options={"temperature": self.temperature, "seed": 42},
                ),
                timeout=self.timeout,
            )
            content = response["message"]["content"]
            input_tokens = response.get("prompt_eval_count")
            output_tokens = response.get("eval_count")
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise ProviderTimeout(
                f"Ollama generation timed out after {self.timeout} seconds. "
                "Check if Ollama is running and responsive."
            ) from e
        except ollama.ResponseError as e:
            raise ProviderError(f"Ollama request failed with status {e.status_code}: {e.error}") from e
        except (ConnectionError, httpx.HTTPError) as e:
            raise ProviderError(f"Cannot connect to Ollama at {self.base_url}: {e}") from e
        except MALFORMED_RESPONSE_ERRORS as e:
            raise ProviderError(f"Ollama returned a malformed response: {e}", reason="malformed") from e

        processing_time = time.time() - start_time

        return LLMResponse(
            content=content or "",
            provider="ollama",
            model=self.model,
            processing_time=processing_time,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

    async def validate_connection(self) -> Tuple[bool, str]:
        """Validate connection to Ollama."""
        try:
            response = await asyncio.wait_for(self.client.list(), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return False, f"Ollama did not answer within {self.timeout} seconds"
        except (ConnectionError, httpx.HTTPError, ollama.ResponseError) as e:
            return False, f"Cannot connect to Ollama: {str(e)}"
        except MALFORMED_RESPONSE_ERRORS as e:
            return False, f"Unexpected response from Ollama: {str(e)}"

        model_names = []
        for model in getattr(response, "models", None) or []:
            name = getattr(model, "model", None) or getattr(model, "name", None)
            if name:
                model_names.append(name)

        if any(self.model in name for name in model_names):
            return True, f"Connected to Ollama with model {self.model}"
        elif model_names:
            return (
                False,
                f"Model {self.model} not found. Available: {', '.join(model_names[:3])}",
            )
        return False, "No models found in Ollama"
