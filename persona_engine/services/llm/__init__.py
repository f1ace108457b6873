"""
LLM gateway package.

Exposes the provider implementations of the LLM Gateway contract and a
factory that builds the configured provider from centralized settings.
"""

import logging
from typing import Optional

from persona_engine.infrastructure.config.settings import settings
from persona_engine.infrastructure.data.config import ConfigurationError

from .exceptions import (
    LLMServiceError,
    LLMTransportError,
    LLMMalformedOutputError,
    LLMConfigurationError,
)
from .providers import BaseLLMProvider, GeminiProvider, OpenAIProvider, get_provider

logger = logging.getLogger(__name__)


def create_gateway(provider: Optional[str] = None) -> BaseLLMProvider:
    """
    Build the LLM gateway configured in settings.

    Args:
        provider: Provider name override; defaults to LLM_PROVIDER

    Raises:
        LLMConfigurationError: if the provider is unknown or its settings are invalid
    """
    provider_name = (provider or settings.default_llm_provider).lower()
    try:
        # Typed view rejects unsupported providers and non-positive limits
        settings.get_llm_settings(provider_name)
        config = settings.get_llm_config(provider_name)
        gateway = get_provider(provider_name, config)
    except (ValueError, ConfigurationError) as e:
        raise LLMConfigurationError(str(e)) from e

    if not settings.validate_llm_config(provider_name):
        logger.warning(f"LLM provider {provider_name} has no API key; calls will fail")
    return gateway


__all__ = [
    "create_gateway",
    "BaseLLMProvider",
    "GeminiProvider",
    "OpenAIProvider",
    "get_provider",
    "LLMServiceError",
    "LLMTransportError",
    "LLMMalformedOutputError",
    "LLMConfigurationError",
]
