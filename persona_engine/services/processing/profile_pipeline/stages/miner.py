"""
Miner stage: extracts Micro-Interpretive Units from the raw inputs.
"""

import logging
from typing import Any, Iterable, List, Set

from pydantic import Field, ValidationError

from persona_engine.domain.models.persona_profile import (
    CamelModel,
    MIU,
    MinerOutput,
    MiuSource,
)
from persona_engine.domain.models.pipeline_state import (
    PipelineRunState,
    Route,
    StageNode,
    StageResult,
)
from persona_engine.services.llm.exceptions import LLMMalformedOutputError
from persona_engine.services.processing.profile_pipeline.prompts import miner_system_prompt
from persona_engine.services.processing.profile_pipeline.stages.base import (
    BaseStage,
    to_prompt_json,
)

logger = logging.getLogger(__name__)


class _MinerReply(CamelModel):
    # MIUs are validated one by one so a single bad entry does not sink the batch
    mius: List[Any] = Field(default_factory=list)


def _next_free_id(taken: Set[str], start: int) -> str:
    n = start
    while f"miu_{n:03d}" in taken:
        n += 1
    return f"miu_{n:03d}"


class MinerStage(BaseStage):
    node = StageNode.MINER
    stage_key = "miner"

    async def _run(self, state: PipelineRunState) -> StageResult:
        sources = state.inputs.available_sources()
        if not sources:
            logger.warning(f"[{self.name}] Subject {state.subject_id} has no input data")

        user_prompt = self.build_user_prompt(state)
        reply = await self._complete_json(
            miner_system_prompt(self.config.min_miu_target), user_prompt, _MinerReply
        )
        output = self.normalize(reply.mius, sources)

        if output.total_extracted < self.config.min_miu_target:
            logger.info(
                f"[{self.name}] Extracted {output.total_extracted} MIUs, "
                f"below the target of {self.config.min_miu_target}"
            )
        else:
            logger.info(f"[{self.name}] Extracted {output.total_extracted} MIUs")

        return StageResult(
            update={"miner_output": output},
            route=Route.advance(StageNode.JUDGE),
        )

    def build_user_prompt(self, state: PipelineRunState) -> str:
        inputs = state.inputs
        sections = []
        if inputs.cosmic_data:
            sections.append(f"COSMIC DATA (natal chart):\n{to_prompt_json(inputs.cosmic_data)}")
        if inputs.psychometric_data:
            sections.append(
                f"PSYCHOMETRIC DATA (questionnaire):\n{to_prompt_json(inputs.psychometric_data)}"
            )
        narrative = inputs.narrative_data
        if narrative.is_present():
            lines = ["NARRATIVE DATA (personal story):"]
            if narrative.decisive_moment:
                lines.append(f"Decisive moment: {narrative.decisive_moment}")
            if narrative.frustration:
                lines.append(f"Frustration: {narrative.frustration}")
            if narrative.dream:
                lines.append(f"Dream: {narrative.dream}")
            sections.append("\n".join(lines))

        if not sections:
            sections.append("No input data is available for this person.")

        prompt = "Extract MIUs from the following data:\n\n" + "\n\n".join(sections)

        feedback = self._retry_feedback(state)
        if feedback:
            prompt += "\n\n" + feedback
        return prompt

    def _retry_feedback(self, state: PipelineRunState) -> str:
        if not self.config.miner_feedback_on_retry or state.retry_count == 0:
            return ""
        if state.judge_output is None or not state.judge_output.rejected_mius:
            return ""
        lines = ["The previous extraction was rejected for these reasons; avoid repeating them:"]
        for rejected in state.judge_output.rejected_mius:
            lines.append(f"- {rejected.id}: {rejected.reason}")
        return "\n".join(lines)

    def normalize(self, raw_mius: Iterable[Any], sources: List[MiuSource]) -> MinerOutput:
        """
        Turn the raw reply into a MinerOutput that honours the MIU invariants.

        Entries that fail validation are dropped. When the subject has at
        least one input, entries citing a source with no input are dropped
        too; with no inputs at all every valid entry is kept so the run can
        still finish. Missing or duplicate ids are replaced with fresh
        `miu_NNN` ids.

        Raises:
            LLMMalformedOutputError: if nothing usable remains
        """
        allowed = set(sources)
        parsed: List[MIU] = []
        invalid = 0
        unsupported = 0
        for raw in raw_mius:
            try:
                miu = MIU.model_validate(raw)
            except ValidationError:
                invalid += 1
                continue
            if allowed and miu.source not in allowed:
                unsupported += 1
                continue
            parsed.append(miu)

        if not allowed and parsed:
            logger.warning(
                f"[{self.name}] Keeping {len(parsed)} MIUs extracted without any input data"
            )

        if invalid or unsupported:
            logger.warning(
                f"[{self.name}] Dropped {invalid} invalid MIUs and "
                f"{unsupported} MIUs citing missing sources"
            )

        if not parsed:
            raise LLMMalformedOutputError(f"[{self.name}] Response contained no usable MIUs")

        taken = {miu.id for miu in parsed if miu.id}
        seen: Set[str] = set()
        mius: List[MIU] = []
        for index, miu in enumerate(parsed, start=1):
            if not miu.id or miu.id in seen:
                new_id = _next_free_id(taken, index)
                taken.add(new_id)
                miu = miu.model_copy(update={"id": new_id})
            seen.add(miu.id)
            mius.append(miu)

        return MinerOutput(mius=mius, total_extracted=len(mius))
