"""
Synthesizer stage: merges every analysis into the FinalProfile.
"""

import logging

from persona_engine.domain.models.persona_profile import FinalProfile
from persona_engine.domain.models.pipeline_state import (
    PipelineRunState,
    Route,
    StageNode,
    StageResult,
)
from persona_engine.services.processing.profile_pipeline.prompts import (
    SYNTHESIZER_SYSTEM_PROMPT,
)
from persona_engine.services.processing.profile_pipeline.stages.base import (
    BaseStage,
    to_prompt_json,
)

logger = logging.getLogger(__name__)


class SynthesizerStage(BaseStage):
    node = StageNode.SYNTHESIZER
    stage_key = "synthesizer"

    async def _run(self, state: PipelineRunState) -> StageResult:
        if state.psychologist_output is None or state.shadow_output is None:
            raise ValueError("Synthesizer requires the Psychologist and ShadowAnalyst outputs")

        user_prompt = self.build_user_prompt(state)
        profile = await self._complete_json(SYNTHESIZER_SYSTEM_PROMPT, user_prompt, FinalProfile)
        # The degraded marker is owned by the run, never by the model
        profile = profile.model_copy(update={"degraded": state.degraded})

        if state.degraded:
            logger.warning(
                f"[{self.name}] Profile for subject {state.subject_id} built from "
                f"MIUs below the quality threshold"
            )
        logger.info(f"[{self.name}] Final profile synthesised for subject {state.subject_id}")
        return StageResult(
            update={"final_profile": profile},
            route=Route.advance(StageNode.DONE),
        )

    def build_user_prompt(self, state: PipelineRunState) -> str:
        cosmic = state.inputs.cosmic_data
        sections = [
            "COSMIC DATA:\n" + (to_prompt_json(cosmic) if cosmic else "Not provided."),
            f"VALIDATED MIUS:\n{to_prompt_json(state.approved_mius)}",
            f"PSYCHOLOGICAL DRIVERS:\n{to_prompt_json(state.psychologist_output)}",
            f"SHADOW ANALYSIS:\n{to_prompt_json(state.shadow_output)}",
        ]
        return "Synthesise the final profile from:\n\n" + "\n\n".join(sections)
