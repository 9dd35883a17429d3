"""LiteLLM adapter - unified interface for all LLM providers."""

import asyncio

import litellm
from litellm import acompletion

from urchin.core.config import Settings
from urchin.core.logging import get_logger
from urchin.core.typing import MessageDict
from urchin.llm.base import LLMConfig, LLMError, LLMResponse, LLMTimeoutError, TaskType

logger = get_logger("llm.litellm_adapter")

# Disable LiteLLM's verbose logging
litellm.suppress_debug_info = True


class LiteLLMProvider:
    """Model provider backed by ``litellm.acompletion``."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def _build_params(self, messages: list[MessageDict], config: LLMConfig) -> dict:
        llm_messages = list(messages)
        if config.system_prompt:
            llm_messages = [{"role": "system", "content": config.system_prompt}, *llm_messages]

        params = {
            "model": config.model or self.settings.llm_model,
            "messages": llm_messages,
            "max_tokens": config.max_tokens,
            "temperature": config.temperature,
        }
        if self.settings.llm_api_key:
            params["api_key"] = self.settings.llm_api_key
        if self.settings.llm_api_base:
            params["api_base"] = self.settings.llm_api_base
        return params

    async def complete(
        self,
        messages: list[MessageDict],
        config: LLMConfig,
        task: TaskType | None = None,
    ) -> LLMResponse:
        """Call LiteLLM completion with a hard wall-clock limit.

        Args:
            messages: OpenAI-format messages (system directive excluded)
            config: LLM configuration; ``system_prompt`` is prepended
            task: Task type, used for logging

        Returns:
            LLMResponse with raw text content

        Raises:
            LLMTimeoutError: Call did not finish within the timeout
            LLMError: Any other provider failure
        """
        params = self._build_params(messages, config)
        timeout = config.timeout or self.settings.llm_timeout

        logger.debug(
            f"LiteLLM request: model={params['model']}, messages={len(messages)}, "
            f"task={task.value if task else 'none'}"
        )

        try:
            response = await asyncio.wait_for(acompletion(**params), timeout=timeout)
        except (asyncio.TimeoutError, litellm.Timeout) as e:
            raise LLMTimeoutError(f"LLM request timed out after {timeout:.0f}s") from e
        except Exception as e:
            logger.error(f"LiteLLM error for {params['model']}: {e}")
            raise LLMError(str(e)) from e

        message = response.choices[0].message
        content = message.content or ""

        usage = getattr(response, "usage", None)
        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0

        logger.debug(
            f"LiteLLM response: model={response.model}, "
            f"tokens={input_tokens}+{output_tokens}, chars={len(content)}"
        )

        return LLMResponse(
            content=content,
            model=response.model or params["model"],
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
