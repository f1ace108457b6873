"""
Base LLM Provider abstraction.

This module defines the abstract base class for all LLM providers,
ensuring a consistent gateway interface across different LLM backends.
"""

import logging
from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from persona_engine.domain.interfaces.llm_gateway import (
    ILLMGateway,
    LLMCallOptions,
    LLMResponse,
)
from persona_engine.infrastructure.constants.llm_constants import JSON_MODE_INSTRUCTION
from persona_engine.services.llm.exceptions import LLMTransportError

logger = logging.getLogger(__name__)


@dataclass
class LLMProviderConfig:
    """Configuration for LLM providers."""

    api_key: str = ""
    model: str = ""
    temperature: float = 0.7
    max_tokens: int = 8192
    top_p: float = 0.95
    top_k: int = 40
    timeout: float = 120.0
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "LLMProviderConfig":
        """Create config from dictionary, ignoring unknown keys."""
        known_keys = {
            "api_key", "model", "temperature", "max_tokens",
            "top_p", "top_k", "timeout",
        }
        known_params = {k: v for k, v in config.items() if k in known_keys and v is not None}
        extra_params = {k: v for k, v in config.items() if k not in known_keys}
        return cls(**known_params, extra=extra_params)


class BaseLLMProvider(ILLMGateway):
    """
    Abstract base class for LLM providers.

    Subclasses only implement `_complete`; option resolution, the JSON-mode
    instruction and transport error wrapping live here so that every backend
    behaves the same way for the pipeline.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize the provider with configuration.

        Args:
            config: Configuration dictionary for the provider
        """
        self.config = LLMProviderConfig.from_dict(config)
        self._client = None
        logger.info(f"Initialized {self.__class__.__name__} with model: {self.config.model}")

    @property
    def model_name(self) -> str:
        """Return the model name."""
        return self.config.model

    async def invoke(
        self,
        system_prompt: str,
        user_prompt: str,
        options: Optional[LLMCallOptions] = None,
    ) -> LLMResponse:
        """
        Run one completion against the provider.

        Args:
            system_prompt: Instructions for the model
            user_prompt: The payload to work on
            options: Temperature, model override and JSON mode

        Returns:
            LLMResponse with the text content and token usage when available

        Raises:
            LLMTransportError: if the provider call fails for any reason
        """
        options = options or LLMCallOptions()
        if options.json_mode:
            system_prompt = f"{system_prompt.rstrip()}\n\n{JSON_MODE_INSTRUCTION}"

        model = options.model or self.config.model
        temperature = (
            options.temperature if options.temperature is not None else self.config.temperature
        )
        max_tokens = options.max_tokens or self.config.max_tokens

        try:
            return await self._complete(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                model=model,
                temperature=temperature,
                max_tokens=max_tokens,
                json_mode=options.json_mode,
            )
        except LLMTransportError:
            raise
        except Exception as e:
            logger.error(
                f"[{self.__class__.__name__}] Completion failed for model {model}: "
                f"{type(e).__name__}"
            )
            raise LLMTransportError(f"{self.__class__.__name__} call failed: {e}") from e

    @abstractmethod
    async def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        temperature: float,
        max_tokens: int,
        json_mode: bool,
    ) -> LLMResponse:
        """Provider-specific completion call."""
        pass

    def get_model_info(self) -> Dict[str, Any]:
        """
        Get information about the model.

        Returns:
            Dictionary with model information
        """
        return {
            "provider": self.__class__.__name__,
            "model": self.config.model,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }

    @abstractmethod
    def _get_client(self) -> Any:
        """
        Get or create the underlying client.

        Returns:
            The provider-specific client instance
        """
        pass
