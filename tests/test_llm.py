"""Tests for the LiteLLM provider."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from urchin.llm.base import LLMConfig, LLMError, LLMProvider, LLMTimeoutError, TaskType
from urchin.llm.litellm_adapter import LiteLLMProvider


def completion_response(content: str | None = "Hello!") -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    response.model = "gpt-4o-mini"
    response.usage.prompt_tokens = 12
    response.usage.completion_tokens = 3
    return response


@pytest.fixture
def provider(settings) -> LiteLLMProvider:
    return LiteLLMProvider(settings)


def test_satisfies_protocol(provider):
    assert isinstance(provider, LLMProvider)


@pytest.mark.asyncio
async def test_completion_prepends_system_prompt(provider):
    mock = AsyncMock(return_value=completion_response())
    with patch("urchin.llm.litellm_adapter.acompletion", mock):
        response = await provider.complete(
            [{"role": "user", "content": "hi"}],
            LLMConfig(system_prompt="Be helpful", max_tokens=100, temperature=0.1),
            task=TaskType.CHAT,
        )

    assert response.content == "Hello!"
    assert response.input_tokens == 12
    assert response.output_tokens == 3

    params = mock.call_args.kwargs
    assert params["model"] == "gpt-4o-mini"
    assert params["messages"] == [
        {"role": "system", "content": "Be helpful"},
        {"role": "user", "content": "hi"},
    ]
    assert params["max_tokens"] == 100
    assert "api_key" not in params


@pytest.mark.asyncio
async def test_credentials_and_model_override(settings):
    settings.llm_api_key = "sk-test"
    settings.llm_api_base = "http://localhost:8000/v1"
    mock = AsyncMock(return_value=completion_response())
    with patch("urchin.llm.litellm_adapter.acompletion", mock):
        await LiteLLMProvider(settings).complete([], LLMConfig(model="ollama/llama3"))

    params = mock.call_args.kwargs
    assert params["model"] == "ollama/llama3"
    assert params["api_key"] == "sk-test"
    assert params["api_base"] == "http://localhost:8000/v1"


@pytest.mark.asyncio
async def test_empty_content(provider):
    with patch("urchin.llm.litellm_adapter.acompletion", AsyncMock(return_value=completion_response(None))):
        response = await provider.complete([{"role": "user", "content": "hi"}], LLMConfig())
    assert response.content == ""


@pytest.mark.asyncio
async def test_timeout(provider):
    async def slow(**kwargs):
        await asyncio.sleep(1)

    with patch("urchin.llm.litellm_adapter.acompletion", slow):
        with pytest.raises(LLMTimeoutError):
            await provider.complete([{"role": "user", "content": "hi"}], LLMConfig(timeout=0.01))


@pytest.mark.asyncio
async def test_provider_error_wrapped(provider):
    with patch("urchin.llm.litellm_adapter.acompletion", AsyncMock(side_effect=RuntimeError("401 unauthorized"))):
        with pytest.raises(LLMError) as exc_info:
            await provider.complete([{"role": "user", "content": "hi"}], LLMConfig())
    assert not isinstance(exc_info.value, LLMTimeoutError)
    assert "401" in str(exc_info.value)
