"""Completion provider implementations (used for context summarization)."""

from ragcore.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider"]
