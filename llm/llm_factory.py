"""LLM provider factory."""

from __future__ import annotations

from typing import Any

from llm.base_llm import BaseLLM
from llm.providers.gemini_provider import GeminiProvider
from llm.providers.groq_provider import GroqProvider
from llm.providers.mock_provider import MockProvider
from llm.providers.openai_provider import OpenAIProvider


def build_provider(name: str, provider_cfg: dict[str, Any]) -> BaseLLM:
    """Build one named provider; unknown types fall back to the mock provider."""
    provider_type = provider_cfg.get("type", name)
    temperature = provider_cfg.get("temperature")
    if provider_type == "openai":
        return OpenAIProvider(model=provider_cfg.get("model", "gpt-4o-mini"), temperature=temperature)
    if provider_type == "gemini":
        return GeminiProvider(model=provider_cfg.get("model", "gemini-2.5-flash"))
    if provider_type == "groq":
        return GroqProvider(
            model=provider_cfg.get("model", "llama-3.3-70b-versatile"), temperature=temperature
        )
    return MockProvider(
        question_confidence=int(provider_cfg.get("question_confidence", 40)),
        greeting_confidence=int(provider_cfg.get("greeting_confidence", 90)),
    )


def build_llm(config: dict[str, Any], provider: str | None = None) -> BaseLLM:
    """Build an LLM provider from configuration, defaulting safely to mock."""
    models_cfg = config.get("models", {}).get("llm", {})
    active = provider or models_cfg.get("active_provider", "mock")
    providers = models_cfg.get("providers", {})
    return build_provider(active, providers.get(active, {}))
