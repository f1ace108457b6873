"""
Gemini LLM Provider implementation.

Uses the google-genai async client. The system prompt goes into
`system_instruction`; JSON mode maps to `response_mime_type="application/json"`.
"""

import logging
import os
from typing import Any, Dict

from .base import BaseLLMProvider
from persona_engine.domain.interfaces.llm_gateway import LLMResponse, TokenUsage
from persona_engine.infrastructure.constants.llm_constants import (
    GEMINI_MODEL_NAME,
    GEMINI_TEMPERATURE,
    GEMINI_MAX_TOKENS,
    GEMINI_TOP_P,
    GEMINI_TOP_K,
    GEMINI_DEFAULT_TIMEOUT,
    ENV_GEMINI_API_KEY,
)

logger = logging.getLogger(__name__)


class GeminiProvider(BaseLLMProvider):
    """
    Gemini LLM provider implementation.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize the Gemini provider.

        Args:
            config: Configuration dictionary
        """
        config = dict(config)
        # Set defaults before calling parent
        config.setdefault("model", GEMINI_MODEL_NAME)
        config.setdefault("temperature", GEMINI_TEMPERATURE)
        config.setdefault("max_tokens", GEMINI_MAX_TOKENS)
        config.setdefault("top_p", GEMINI_TOP_P)
        config.setdefault("top_k", GEMINI_TOP_K)
        config.setdefault("timeout", GEMINI_DEFAULT_TIMEOUT)

        # Get API key from config or environment
        if not config.get("api_key"):
            config["api_key"] = os.getenv(ENV_GEMINI_API_KEY) or os.getenv("GOOGLE_API_KEY", "")

        super().__init__(config)

    def _get_client(self) -> Any:
        """Get or create the Gemini client."""
        if self._client is None:
            try:
                import google.genai as genai

                self._client = genai.Client(api_key=self.config.api_key)
                logger.info("Initialized Gemini client")
            except Exception as e:
                logger.error(f"Failed to initialize Gemini client: {e}")
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
        """Generate a completion using Gemini."""
        from google.genai.types import GenerateContentConfig

        client = self._get_client()

        config_kwargs: Dict[str, Any] = {
            "system_instruction": system_prompt,
            "temperature": temperature,
            "max_output_tokens": max_tokens,
            "top_p": self.config.top_p,
            "top_k": self.config.top_k,
        }
        if json_mode:
            config_kwargs["response_mime_type"] = "application/json"

        response = await client.aio.models.generate_content(
            model=model,
            contents=user_prompt,
            config=GenerateContentConfig(**config_kwargs),
        )

        usage = None
        metadata = getattr(response, "usage_metadata", None)
        if metadata is not None:
            usage = TokenUsage(
                prompt_tokens=metadata.prompt_token_count or 0,
                completion_tokens=metadata.candidates_token_count or 0,
                total_tokens=metadata.total_token_count or 0,
            )

        return LLMResponse(content=response.text or "", usage=usage, model=model)
