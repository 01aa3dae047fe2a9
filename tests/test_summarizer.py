"""Tests for the LLM-backed summarizer and provider."""

import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from condenser.errors import SummarizationError
from condenser.prompts.compaction import COMPACTION_SYSTEM_PROMPT
from condenser.providers.base import LLMResponse
from condenser.providers.litellm_provider import LiteLLMProvider
from condenser.summarizer import LLMSummarizer


def make_provider(response):
    provider = MagicMock()
    provider.chat = AsyncMock(return_value=response)
    return provider


class TestLLMSummarizer:
    @pytest.mark.asyncio
    async def test_returns_stripped_summary(self):
        provider = make_provider(LLMResponse(content="  1. Current Work: x  \n"))
        s = LLMSummarizer(provider)
        assert await s.summarize("USER: hi", "gemini/gemini-2.5-flash-lite") == "1. Current Work: x"

    @pytest.mark.asyncio
    async def test_prompt_contains_transcript(self):
        provider = make_provider(LLMResponse(content="ok"))
        await LLMSummarizer(provider, temperature=0.1).summarize("USER: fix it", "openai/gpt-5-mini")

        kwargs = provider.chat.await_args.kwargs
        assert kwargs["model"] == "openai/gpt-5-mini"
        assert kwargs["temperature"] == 0.1
        system_msg, user_msg = kwargs["messages"]
        assert system_msg == {"role": "system", "content": COMPACTION_SYSTEM_PROMPT}
        assert "USER: fix it" in user_msg["content"]
        assert "Pending Tasks" in user_msg["content"]

    @pytest.mark.asyncio
    async def test_empty_transcript_raises(self):
        provider = make_provider(LLMResponse(content="ok"))
        with pytest.raises(SummarizationError):
            await LLMSummarizer(provider).summarize("   ", "m")
        provider.chat.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_provider_error_raises(self):
        provider = make_provider(LLMResponse(content="Error calling LLM: 429", finish_reason="error"))
        with pytest.raises(SummarizationError, match="429"):
            await LLMSummarizer(provider).summarize("USER: hi", "m")

    @pytest.mark.asyncio
    async def test_empty_summary_raises(self):
        provider = make_provider(LLMResponse(content=""))
        with pytest.raises(SummarizationError):
            await LLMSummarizer(provider).summarize("USER: hi", "m")


class TestLiteLLMProvider:
    @pytest.mark.asyncio
    async def test_exception_becomes_error_response(self):
        provider = LiteLLMProvider()
        with patch(
            "condenser.providers.litellm_provider.acompletion",
            AsyncMock(side_effect=RuntimeError("network down")),
        ):
            response = await provider.chat([{"role": "user", "content": "hi"}])
        assert response.is_error
        assert "network down" in response.content

    @pytest.mark.asyncio
    async def test_gemini_prefix_added(self):
        provider = LiteLLMProvider()
        completion = AsyncMock(side_effect=RuntimeError("stop"))
        with patch("condenser.providers.litellm_provider.acompletion", completion):
            await provider.chat([{"role": "user", "content": "hi"}], model="gemini-2.5-pro")
        assert completion.await_args.kwargs["model"] == "gemini/gemini-2.5-pro"

    @pytest.mark.asyncio
    async def test_response_parsed(self):
        response = MagicMock()
        response.choices[0].message.content = "1. Current Work: x"
        response.choices[0].finish_reason = "length"
        response.usage.prompt_tokens = 900
        response.usage.completion_tokens = 100

        provider = LiteLLMProvider()
        with patch("condenser.providers.litellm_provider.acompletion", AsyncMock(return_value=response)):
            result = await provider.chat([{"role": "user", "content": "hi"}])

        assert result.content == "1. Current Work: x"
        assert result.truncated
        assert result.usage == {"prompt_tokens": 900, "completion_tokens": 100}

    def test_api_key_exported_for_provider(self):
        with patch.dict(os.environ):
            os.environ.pop("OPENAI_API_KEY", None)
            LiteLLMProvider(api_key="sk-test", default_model="openai/gpt-5-mini")
            assert os.environ["OPENAI_API_KEY"] == "sk-test"

    def test_default_model(self):
        assert LiteLLMProvider().get_default_model() == "gemini/gemini-2.5-flash-lite"
