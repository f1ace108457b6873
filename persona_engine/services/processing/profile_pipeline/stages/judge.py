"""
Judge stage: quality gate over the latest Miner output.

The Judge only decides which MIU ids pass. Approved MIUs are always taken
from the Miner's own output, so the Judge can never introduce or alter an
MIU, and the validation rate is recomputed from the ids it approved.
"""

import logging
from typing import Any, List, Optional, Set

from pydantic import Field

from persona_engine.domain.models.persona_profile import (
    CamelModel,
    JudgeOutput,
    MinerOutput,
    RejectedMiu,
)
from persona_engine.domain.models.pipeline_state import (
    PipelineRunState,
    Route,
    StageNode,
    StageResult,
)
from persona_engine.services.processing.profile_pipeline.prompts import judge_system_prompt
from persona_engine.services.processing.profile_pipeline.stages.base import (
    BaseStage,
    to_prompt_json,
)

logger = logging.getLogger(__name__)

NO_VERDICT_REASON = "No verdict returned by the judge"


class _JudgeVerdict(CamelModel):
    # Approved entries may come back as full MIU objects or as bare ids
    approved_mius: List[Any] = Field(default_factory=list)
    rejected_mius: List[RejectedMiu] = Field(default_factory=list)
    requires_reprocessing: bool = False
    validation_rate: Optional[float] = None

    def approved_ids(self) -> List[str]:
        ids = []
        for entry in self.approved_mius:
            if isinstance(entry, dict):
                entry = entry.get("id")
            if entry is not None and str(entry).strip():
                ids.append(str(entry).strip())
        return ids


class JudgeStage(BaseStage):
    node = StageNode.JUDGE
    stage_key = "judge"

    async def _run(self, state: PipelineRunState) -> StageResult:
        miner_output = state.miner_output
        if miner_output is None or not miner_output.mius:
            raise ValueError("Judge requires a non-empty Miner output")

        user_prompt = f"Validate these MIUs:\n\n{to_prompt_json(miner_output)}"
        verdict = await self._complete_json(
            judge_system_prompt(self.config.quality_threshold), user_prompt, _JudgeVerdict
        )
        output = self.reconcile(verdict, miner_output)

        logger.info(
            f"[{self.name}] Approved {len(output.approved_mius)}/{len(miner_output.mius)} MIUs "
            f"(rate={output.validation_rate:.2f}, retry={state.retry_count})"
        )

        if output.requires_reprocessing:
            route = Route.retry(StageNode.MINER, fallback=StageNode.PSYCHOLOGIST)
        else:
            route = Route.advance(StageNode.PSYCHOLOGIST)
        return StageResult(update={"judge_output": output}, route=route)

    def reconcile(self, verdict: _JudgeVerdict, miner_output: MinerOutput) -> JudgeOutput:
        """
        Build a JudgeOutput consistent with the Miner output it judged.

        Unknown or repeated approved ids are ignored. MIUs that received no
        verdict at all are recorded as rejected.
        """
        by_id = {miu.id: miu for miu in miner_output.mius}

        approved_ids: Set[str] = set()
        approved = []
        ignored = 0
        for miu_id in verdict.approved_ids():
            if miu_id not in by_id or miu_id in approved_ids:
                ignored += 1
                continue
            approved_ids.add(miu_id)
            approved.append(by_id[miu_id])
        if ignored:
            logger.warning(f"[{self.name}] Ignored {ignored} unknown or repeated approved ids")

        rejected = []
        rejected_ids: Set[str] = set()
        for item in verdict.rejected_mius:
            if item.id in by_id and item.id not in approved_ids and item.id not in rejected_ids:
                rejected_ids.add(item.id)
                rejected.append(item)
        for miu in miner_output.mius:
            if miu.id not in approved_ids and miu.id not in rejected_ids:
                rejected.append(RejectedMiu(id=miu.id, reason=NO_VERDICT_REASON))

        rate = len(approved) / len(miner_output.mius)
        if verdict.validation_rate is not None and abs(verdict.validation_rate - rate) > 0.01:
            logger.debug(
                f"[{self.name}] Reported rate {verdict.validation_rate:.2f} "
                f"differs from computed rate {rate:.2f}"
            )

        requires_reprocessing = verdict.requires_reprocessing or rate < self.config.quality_threshold

        return JudgeOutput(
            approved_mius=approved,
            rejected_mius=rejected,
            requires_reprocessing=requires_reprocessing,
            validation_rate=rate,
        )
