"""
Common machinery for the five pipeline stages.

A stage reads the run state, makes exactly one gateway call in JSON mode,
validates the reply into its output model and returns a partial state update
together with a routing hint. Every failure inside a stage surfaces as a
StageExecutionError naming the stage.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from persona_engine.domain.interfaces.llm_gateway import ILLMGateway, LLMCallOptions
from persona_engine.domain.models.pipeline_state import (
    PipelineRunState,
    StageNode,
    StageResult,
)
from persona_engine.infrastructure.data.config import PipelineConfig
from persona_engine.services.llm.exceptions import LLMMalformedOutputError
from persona_engine.services.processing.profile_pipeline.exceptions import (
    StageExecutionError,
)
from persona_engine.utils.json import parse_llm_json_response

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def to_prompt_json(payload: Any) -> str:
    """Serialise a model, or a list of models, for embedding in a prompt."""
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(by_alias=True, mode="json")
    elif isinstance(payload, (list, tuple)):
        payload = [
            item.model_dump(by_alias=True, mode="json") if isinstance(item, BaseModel) else item
            for item in payload
        ]
    return json.dumps(payload, indent=2, ensure_ascii=False)


class BaseStage(ABC):
    """Base class for a pipeline stage."""

    node: StageNode
    # Key into PipelineConfig.stage_temperatures
    stage_key: str

    def __init__(self, gateway: ILLMGateway, config: Optional[PipelineConfig] = None):
        self.gateway = gateway
        self.config = config or PipelineConfig()

    @property
    def name(self) -> str:
        return self.node.stage_name

    async def execute(self, state: PipelineRunState) -> StageResult:
        """
        Run the stage against the current state.

        Args:
            state: The run state as seen before this stage

        Returns:
            StageResult with the partial update and the routing hint

        Raises:
            StageExecutionError: on any gateway, parsing or validation failure
        """
        try:
            return await self._run(state)
        except StageExecutionError:
            raise
        except Exception as e:
            logger.error(f"[{self.name}] Stage failed: {type(e).__name__}")
            raise StageExecutionError(self.name, e) from e

    @abstractmethod
    async def _run(self, state: PipelineRunState) -> StageResult:
        pass

    async def _complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        response_model: Type[ModelT],
    ) -> ModelT:
        """Single JSON-mode gateway call, parsed and validated into `response_model`."""
        options = LLMCallOptions(
            temperature=self.config.temperature_for(self.stage_key),
            json_mode=True,
            model=self.config.model,
        )
        response = await self.gateway.invoke(system_prompt, user_prompt, options)

        if response.usage is not None:
            logger.debug(
                f"[{self.name}] Token usage: prompt={response.usage.prompt_tokens}, "
                f"completion={response.usage.completion_tokens}"
            )

        payload = parse_llm_json_response(response.content, context_msg=self.name)
        try:
            return response_model.model_validate(payload)
        except ValidationError as e:
            # Only field locations are reported; values may echo model output
            locations = sorted(
                {".".join(str(part) for part in err["loc"]) or "<root>" for err in e.errors()}
            )
            raise LLMMalformedOutputError(
                f"[{self.name}] Response does not match {response_model.__name__}: "
                f"invalid fields {', '.join(locations)}"
            ) from e
