"""
Psychologist stage: core drivers and a Big Five mapping from the approved MIUs.
"""

import logging

from persona_engine.domain.models.persona_profile import PsychologistOutput
from persona_engine.domain.models.pipeline_state import (
    PipelineRunState,
    Route,
    StageNode,
    StageResult,
)
from persona_engine.services.processing.profile_pipeline.prompts import (
    PSYCHOLOGIST_SYSTEM_PROMPT,
)
from persona_engine.services.processing.profile_pipeline.stages.base import (
    BaseStage,
    to_prompt_json,
)

logger = logging.getLogger(__name__)


class PsychologistStage(BaseStage):
    node = StageNode.PSYCHOLOGIST
    stage_key = "psychologist"

    async def _run(self, state: PipelineRunState) -> StageResult:
        approved = state.approved_mius
        if not approved:
            logger.warning(f"[{self.name}] No approved MIUs for subject {state.subject_id}")

        user_prompt = f"Analyse these validated MIUs:\n\n{to_prompt_json(approved)}"
        output = await self._complete_json(
            PSYCHOLOGIST_SYSTEM_PROMPT, user_prompt, PsychologistOutput
        )

        logger.info(
            f"[{self.name}] Identified {len(output.drivers.core_motivations)} motivations "
            f"and {len(output.drivers.core_fears)} fears"
        )
        return StageResult(
            update={"psychologist_output": output},
            route=Route.advance(StageNode.SHADOW_ANALYST),
        )
