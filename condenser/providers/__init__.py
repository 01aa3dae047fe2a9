"""LLM provider abstraction module."""

from condenser.providers.base import LLMProvider, LLMResponse
from condenser.providers.litellm_provider import LiteLLMProvider

__all__ = ["LLMProvider", "LLMResponse", "LiteLLMProvider"]
