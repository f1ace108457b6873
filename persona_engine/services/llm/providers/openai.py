"""
OpenAI LLM Provider implementation.

Chat completions with a system and a user message; JSON mode maps to
`response_format={"type": "json_object"}`.
"""

import logging
import os
from typing import Any, Dict

from .base import BaseLLMProvider
from persona_engine.domain.interfaces.llm_gateway import LLMResponse, TokenUsage
from persona_engine.infrastructure.constants.llm_constants import (
    OPENAI_MODEL_NAME,
    OPENAI_TEMPERATURE,
    OPENAI_MAX_TOKENS,
    OPENAI_DEFAULT_TIMEOUT,
    ENV_OPENAI_API_KEY,
)

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLMProvider):
    """
    OpenAI LLM provider implementation.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize the OpenAI provider.

        Args:
            config: Configuration dictionary
        """
        config = dict(config)
        # Set defaults before calling parent
        config.setdefault("model", OPENAI_MODEL_NAME)
        config.setdefault("temperature", OPENAI_TEMPERATURE)
        config.setdefault("max_tokens", OPENAI_MAX_TOKENS)
        config.setdefault("timeout", OPENAI_DEFAULT_TIMEOUT)

        # Get API key from config or environment
        if not config.get("api_key"):
            config["api_key"] = os.getenv(ENV_OPENAI_API_KEY, "")

        super().__init__(config)

    def _get_client(self) -> Any:
        """Get or create the OpenAI client."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI

                self._client = AsyncOpenAI(
                    api_key=self.config.api_key,
                    timeout=self.config.timeout,
                    max_retries=0,
                )
                logger.info("Initialized OpenAI client")
            except Exception as e:
                logger.error(f"Failed to initialize OpenAI client: {e}")
                raise
        return self._client

    async def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        temperature: float,
        max_tokens: int,
        json_mode: bool,
    ) -> LLMResponse:
        """Generate a completion using OpenAI."""
        client = self._get_client()

        request: Dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        response = await client.chat.completions.create(**request)

        usage = None
        if getattr(response, "usage", None) is not None:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens or 0,
                completion_tokens=response.usage.completion_tokens or 0,
                total_tokens=response.usage.total_tokens or 0,
            )

        return LLMResponse(
            content=response.choices[0].message.content or "",
            usage=usage,
            model=getattr(response, "model", None) or model,
        )
