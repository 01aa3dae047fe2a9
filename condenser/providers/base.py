"""Provider interface used for summarization calls."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LLMResponse:
    """Text answer of a provider call.

    Provider failures are reported in-band with ``finish_reason="error"`` and
    the error text as ``content``.
    """
    content: str | None
    finish_reason: str = "stop"
    usage: dict[str, int] = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return self.finish_reason == "error"

    @property
    def truncated(self) -> bool:
        return self.finish_reason == "length"


class LLMProvider(ABC):
    """A chat-completion backend for the summarizer.

    Summaries should be stable, so the default temperature is low and the
    output budget is sized for the structured eight-section summary.
    """

    def __init__(self, api_key: str | None = None):
        self.api_key = api_key
        self.default_temperature: float = 0.3
        self.default_max_tokens: int = 8192

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Run one completion over plain ``{"role", "content"}`` messages.

        Must not raise for provider-side failures; return an error response
        instead.
        """

    @abstractmethod
    def get_default_model(self) -> str:
        ...
