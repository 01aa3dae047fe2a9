"""Summarization collaborator used by the compactor."""

import asyncio
from typing import Protocol

from loguru import logger

from condenser.errors import SummarizationError
from condenser.prompts.compaction import (
    COMPACTION_PROMPT,
    COMPACTION_REQUEST,
    COMPACTION_SYSTEM_PROMPT,
)
from condenser.providers.base import LLMProvider


class Summarizer(Protocol):
    async def summarize(
        self,
        transcript: str,
        model_id: str,
        cancel_event: asyncio.Event | None = None,
    ) -> str:
        ...


class LLMSummarizer:
    """Summarizes a transcript with a single chat completion."""

    def __init__(self, provider: LLMProvider, temperature: float = 0.3):
        self.provider = provider
        self.temperature = temperature

    async def summarize(
        self,
        transcript: str,
        model_id: str,
        cancel_event: asyncio.Event | None = None,
    ) -> str:
        if not transcript or not transcript.strip():
            raise SummarizationError("Conversation history is required for compaction")

        logger.info(f"Summarizing {len(transcript)} chars of history with {model_id}")
        response = await self.provider.chat(
            messages=[
                {"role": "system", "content": COMPACTION_SYSTEM_PROMPT},
                {"role": "user", "content": COMPACTION_REQUEST.format(
                    prompt=COMPACTION_PROMPT, transcript=transcript,
                )},
            ],
            model=model_id,
            temperature=self.temperature,
        )

        if response.is_error:
            raise SummarizationError(response.content or "provider error")
        summary = (response.content or "").strip()
        if not summary:
            raise SummarizationError("Empty summary from LLM")
        if response.truncated:
            logger.warning(f"Summary from {model_id} hit the output limit and may be incomplete")

        logger.info(f"Summary length: {len(summary)} chars (from {len(transcript)})")
        return summary
