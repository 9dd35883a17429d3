"""
LLM provider interface.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from urchin.core.typing import MessageDict


class TaskType(Enum):
    """Why the model is being called (logging and model selection hints)."""

    CHAT = "chat"
    SUMMARIZATION = "summarization"
    FACT_EXTRACTION = "fact_extraction"
    CONDENSATION = "condensation"
    SKILL_EVALUATION = "skill_evaluation"
    PLANNING = "planning"
    SYNTHESIS = "synthesis"


class LLMError(Exception):
    """Model call failed (transport, auth, provider error)."""


class LLMTimeoutError(LLMError):
    """Model call exceeded its wall-clock limit."""


@dataclass
class LLMResponse:
    """Response from LLM provider."""

    content: str
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    metadata: dict | None = None


@dataclass
class LLMConfig:
    """Configuration for LLM call."""

    model: str | None = None
    max_tokens: int = 8192
    temperature: float = 0.7
    system_prompt: str | None = None
    timeout: float | None = None


@runtime_checkable
class LLMProvider(Protocol):
    """Model-call contract.

    Returns raw text that may contain think/tool tags; parsing them is
    the caller's job. Must raise ``LLMTimeoutError`` on expiry.
    """

    async def complete(
        self,
        messages: list[MessageDict],
        config: LLMConfig,
        task: TaskType | None = None,
    ) -> LLMResponse:
        """Generate completion from messages."""
        ...
