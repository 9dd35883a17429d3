"""Shared fixtures."""

from unittest.mock import AsyncMock, Mock

import pytest

from urchin.core.config import Settings
from urchin.llm.base import LLMResponse
from urchin.memory.accessor import MemoryAccessor
from urchin.memory.base import InMemoryStorage


def reply(content: str) -> LLMResponse:
    """Build a canned model response."""
    return LLMResponse(content=content, model="test-model")


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment, with embeddings disabled."""
    return Settings(
        _env_file=None,
        llm_api_key="",
        llm_api_base="",
        embedding_api_key="",
    )


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def memory(storage: InMemoryStorage) -> MemoryAccessor:
    return MemoryAccessor(storage)


@pytest.fixture
def mock_llm():
    """Create mock LLM provider."""
    llm = Mock()
    llm.complete = AsyncMock()
    return llm
