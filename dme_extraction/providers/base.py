"""
Abstract base class for text-completion providers.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, Tuple
from dataclasses import dataclass

# Exceptions a client library raises while decoding a 200 body it did not expect.
MALFORMED_RESPONSE_ERRORS = (ValueError, AttributeError, LookupError, TypeError)


@dataclass
class LLMResponse:
    """Standard response from LLM providers."""
    content: str
    provider: str
    model: str
    processing_time: float
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None


class ProviderTimeout(Exception):
    """The provider did not answer within its configured timeout."""


class ProviderError(Exception):
    """The provider was unreachable or answered with a failure.

    ``reason`` is ``"connection"`` for transport and status failures and
    ``"malformed"`` when a success response could not be decoded.
    """

    def __init__(self, message: str, reason: str = "connection"):
        super().__init__(message)
        self.reason = reason


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    def __init__(self, config: Dict[str, Any]):
        """Initialize provider with configuration."""
        self.config = config
        self.name = self.__class__.__name__

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> LLMResponse:
        """Generate a response, constrained to ``response_schema`` when given.

        Raises:
            ProviderTimeout: When the call exceeds the provider timeout
            ProviderError: For connection failures, non-success responses
                and success responses that cannot be decoded
        """
        pass

    @abstractmethod
    async def validate_connection(self) -> Tuple[bool, str]:
        """Check that the provider is reachable and serves the configured model."""
        pass
