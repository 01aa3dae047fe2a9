"""Summarization backend built on LiteLLM."""

import os
from typing import Any

import litellm
from litellm import acompletion
from loguru import logger

from condenser.providers.base import LLMProvider, LLMResponse

# Provider prefix -> environment variable LiteLLM reads the key from
_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


class LiteLLMProvider(LLMProvider):
    """Calls any LiteLLM-routable model, Gemini Flash-Lite by default."""

    def __init__(
        self,
        api_key: str | None = None,
        default_model: str = "gemini/gemini-2.5-flash-lite",
    ):
        super().__init__(api_key)
        self.default_model = default_model

        env_var = _KEY_ENV.get(self._provider_of(default_model))
        if api_key and env_var:
            os.environ.setdefault(env_var, api_key)

        litellm.suppress_debug_info = True

    @staticmethod
    def _provider_of(model: str) -> str:
        if "/" in model:
            return model.split("/", 1)[0]
        if model.startswith("gpt"):
            return "openai"
        if "gemini" in model.lower():
            return "gemini"
        return "anthropic"

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        model = model or self.default_model
        if "gemini" in model.lower() and not model.startswith("gemini/"):
            model = f"gemini/{model}"

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens if max_tokens is not None else self.default_max_tokens,
            "temperature": temperature if temperature is not None else self.default_temperature,
        }
        try:
            response = await acompletion(**kwargs)
        except Exception as e:
            logger.warning(f"LiteLLM call to {model} failed: {e}")
            return LLMResponse(content=f"Error calling LLM: {e}", finish_reason="error")

        choice = response.choices[0]
        usage = {}
        if getattr(response, "usage", None):
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
            }
        return LLMResponse(
            content=choice.message.content,
            finish_reason=choice.finish_reason or "stop",
            usage=usage,
        )

    def get_default_model(self) -> str:
        return self.default_model
