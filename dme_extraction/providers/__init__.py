"""
Text-completion provider implementations.
"""

from .base import LLMProvider, LLMResponse, ProviderError, ProviderTimeout
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider

__all__ = ['LLMProvider', 'LLMResponse', 'ProviderError', 'ProviderTimeout', 'OllamaProvider', 'OpenAIProvider']
