"""
LLM Gateway interface.

The pipeline depends only on this contract: invoke a language model with a
system prompt and a user prompt, optionally constrained to JSON, and get back
text plus token-usage metadata. Implementations must be safe to share between
concurrently running pipelines.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class LLMCallOptions:
    temperature: Optional[float] = None
    json_mode: bool = False
    model: Optional[str] = None
    max_tokens: Optional[int] = None


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class LLMResponse:
    content: str
    usage: Optional[TokenUsage] = None
    model: Optional[str] = None


class ILLMGateway(ABC):
    """Interface for LLM gateways used by the pipeline stages."""

    @abstractmethod
    async def invoke(
        self,
        system_prompt: str,
        user_prompt: str,
        options: Optional[LLMCallOptions] = None,
    ) -> LLMResponse:
        """
        Run one completion.

        Raises:
            LLMTransportError: the call failed at the network/provider layer
        """
        raise NotImplementedError
