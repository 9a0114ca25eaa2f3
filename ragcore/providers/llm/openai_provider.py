"""OpenAI-compatible completion provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider` for
text-only chat completions.  Used by the context builder to summarize
oversized chunks before they are handed to a chat collaborator.
"""

from __future__ import annotations

import openai
import structlog

from ragcore.config.settings import Settings
from ragcore.interfaces.llm_provider import ILLMProvider
from ragcore.utils.errors import (
    ProviderError,
    ProviderTimeoutError,
    ProviderTransientError,
    RateLimitError,
)

logger = structlog.get_logger(logger_name=__name__)


class OpenAILLMProvider(ILLMProvider):
    """LLM provider backed by an OpenAI-compatible chat completions API.

    Defaults to ``gpt-3.5-turbo``; override with ``openai_llm_model``.
    """

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {
            "api_key": self._api_key,
            "timeout": openai.Timeout(25.0, connect=5.0),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = settings.openai_llm_model or "gpt-3.5-turbo"
        self._provider_label = "openai-compatible" if settings.openai_base_url else "openai"

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> str:
        """Generate a text completion via the chat completions endpoint."""
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.RateLimitError as exc:
            raise RateLimitError(
                message=f"{self._provider_label} rate limited: {exc}",
                provider_name=self._provider_label,
            ) from exc
        except openai.APITimeoutError as exc:
            raise ProviderTimeoutError(
                message=f"{self._provider_label} request timed out",
                provider_name=self._provider_label,
            ) from exc
        except openai.APIConnectionError as exc:
            raise ProviderTransientError(
                message=f"{self._provider_label} unreachable: {exc}",
                provider_name=self._provider_label,
            ) from exc
        except openai.APIError as exc:
            raise ProviderError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self._provider_label,
            ) from exc

        content = response.choices[0].message.content
        if content is None:
            raise ProviderError(
                message=f"{self._provider_label} returned empty response",
                provider_name=self._provider_label,
            )

        logger.info(
            "openai_completion",
            model=self._model,
            prompt_tokens=response.usage.prompt_tokens if response.usage else None,
            completion_tokens=response.usage.completion_tokens if response.usage else None,
        )
        return content

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        return bool(self._api_key)
