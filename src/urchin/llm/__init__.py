"""
LLM module - language model provider abstraction.

The core only depends on the model-call contract in ``base``:
messages plus a system directive in, raw text out. The LiteLLM
provider is the default implementation.
"""

from urchin.llm.base import LLMConfig, LLMError, LLMProvider, LLMResponse, LLMTimeoutError, TaskType

__all__ = ["LLMConfig", "LLMError", "LLMProvider", "LLMResponse", "LLMTimeoutError", "TaskType"]
