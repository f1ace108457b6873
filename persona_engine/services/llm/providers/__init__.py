"""
LLM Provider implementations.

Every provider implements the pipeline's LLM Gateway contract
(`ILLMGateway.invoke`), so stages never depend on a specific backend.

Usage:
    from persona_engine.services.llm.providers import get_provider

    provider = get_provider("openai", {"api_key": "..."})
    response = await provider.invoke(system_prompt, user_prompt, LLMCallOptions(json_mode=True))
"""

from typing import Any, Dict, Optional, Type

from .base import BaseLLMProvider, LLMProviderConfig
from .gemini import GeminiProvider
from .openai import OpenAIProvider

PROVIDERS: Dict[str, Type[BaseLLMProvider]] = {
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}


def get_provider(provider_name: str, config: Optional[Dict[str, Any]] = None) -> BaseLLMProvider:
    """
    Build a gateway for a registered provider name (case-insensitive).

    Raises:
        ValueError: If provider_name is not registered
    """
    provider_cls = PROVIDERS.get(provider_name.strip().lower())
    if provider_cls is None:
        raise ValueError(
            f"Unknown LLM provider: {provider_name}. Available: {', '.join(sorted(PROVIDERS))}"
        )
    return provider_cls(config or {})


__all__ = [
    "PROVIDERS",
    "BaseLLMProvider",
    "LLMProviderConfig",
    "GeminiProvider",
    "OpenAIProvider",
    "get_provider",
]
