"""
Shadow Analyst stage: repressed traits and the archetype triple.
"""

import logging

from persona_engine.domain.models.persona_profile import ShadowOutput
from persona_engine.domain.models.pipeline_state import (
    PipelineRunState,
    Route,
    StageNode,
    StageResult,
)
from persona_engine.services.processing.profile_pipeline.prompts import (
    SHADOW_ANALYST_SYSTEM_PROMPT,
)
from persona_engine.services.processing.profile_pipeline.stages.base import (
    BaseStage,
    to_prompt_json,
)

logger = logging.getLogger(__name__)


class ShadowAnalystStage(BaseStage):
    node = StageNode.SHADOW_ANALYST
    stage_key = "shadow_analyst"

    async def _run(self, state: PipelineRunState) -> StageResult:
        if state.psychologist_output is None:
            raise ValueError("ShadowAnalyst requires the Psychologist output")

        user_prompt = (
            "Identified drivers:\n"
            f"{to_prompt_json(state.psychologist_output)}\n\n"
            "Validated MIUs:\n"
            f"{to_prompt_json(state.approved_mius)}"
        )
        output = await self._complete_json(
            SHADOW_ANALYST_SYSTEM_PROMPT, user_prompt, ShadowOutput
        )

        logger.info(f"[{self.name}] Primary archetype: {output.archetypes.primary}")
        return StageResult(
            update={"shadow_output": output},
            route=Route.advance(StageNode.SYNTHESIZER),
        )
