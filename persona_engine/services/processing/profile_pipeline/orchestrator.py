"""
Profile pipeline orchestrator.

Drives one run through the stage graph:

    Miner -> Judge -> (retry Miner | Psychologist) -> ShadowAnalyst -> Synthesizer -> Done

Stages only hint where to go next; the orchestrator validates every hint
against EDGES, owns the retry counter and applies the quality gate policy
once the retry budget is spent. Stages run strictly one at a time.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, FrozenSet, Mapping, Optional, Tuple

from persona_engine.domain.interfaces.llm_gateway import ILLMGateway
from persona_engine.domain.models.pipeline_state import (
    PipelineRunState,
    Route,
    StageNode,
    merge_state,
)
from persona_engine.infrastructure.data.config import PipelineConfig, QualityGatePolicy
from persona_engine.services.processing.profile_pipeline.exceptions import (
    PipelineCancelledError,
    PipelineError,
    PipelineGraphError,
    PipelineTimeoutError,
    QualityGateError,
)
from persona_engine.services.processing.profile_pipeline.stages import BaseStage, build_stages

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, float, str], Awaitable[None]]

EDGES: Mapping[StageNode, FrozenSet[StageNode]] = {
    StageNode.MINER: frozenset({StageNode.JUDGE}),
    StageNode.JUDGE: frozenset({StageNode.MINER, StageNode.PSYCHOLOGIST}),
    StageNode.PSYCHOLOGIST: frozenset({StageNode.SHADOW_ANALYST}),
    StageNode.SHADOW_ANALYST: frozenset({StageNode.SYNTHESIZER}),
    StageNode.SYNTHESIZER: frozenset({StageNode.DONE}),
}

# Progress reported when a stage starts
STAGE_PROGRESS: Dict[StageNode, float] = {
    StageNode.MINER: 0.1,
    StageNode.JUDGE: 0.3,
    StageNode.PSYCHOLOGIST: 0.5,
    StageNode.SHADOW_ANALYST: 0.7,
    StageNode.SYNTHESIZER: 0.9,
}


class CancellationToken:
    """Cooperative cancellation checked by the orchestrator between stages."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: Optional[str] = None):
        if self.cancelled:
            raise PipelineCancelledError("Pipeline run was cancelled", stage=stage)


def max_stage_invocations(max_quality_retries: int) -> int:
    """Upper bound on stage invocations for one run: 2*(R+1) + 3."""
    return 2 * (max_quality_retries + 1) + 3


class PipelineOrchestrator:
    """
    Runs the five stages of the profile graph against one run state.

    Either pass a gateway (the stages are built from it) or an explicit
    mapping of stages, which is how tests substitute individual nodes.
    """

    def __init__(
        self,
        gateway: Optional[ILLMGateway] = None,
        config: Optional[PipelineConfig] = None,
        stages: Optional[Mapping[StageNode, BaseStage]] = None,
    ):
        self.config = config or PipelineConfig()
        if stages is None:
            if gateway is None:
                raise ValueError("PipelineOrchestrator needs a gateway or explicit stages")
            stages = build_stages(gateway, self.config)
        self.stages: Dict[StageNode, BaseStage] = dict(stages)

        missing = [node.stage_name for node in EDGES if node not in self.stages]
        if missing:
            raise PipelineGraphError(f"No stage registered for: {', '.join(missing)}")

    @property
    def max_steps(self) -> int:
        return max_stage_invocations(self.config.max_quality_retries)

    async def run(
        self,
        state: PipelineRunState,
        cancel_token: Optional[CancellationToken] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> PipelineRunState:
        """
        Run the graph from the Miner to completion.

        Args:
            state: Initial run state (see new_run_state)
            cancel_token: Optional token checked before every stage
            progress_callback: Optional async callable(stage, progress, message)

        Returns:
            The terminal state; `final_profile` is set

        Raises:
            StageExecutionError: a stage failed; the run is aborted
            QualityGateError: retries exhausted under the "fail" policy
            PipelineTimeoutError: a stage or the run exceeded its budget
            PipelineCancelledError: the token was cancelled
        """
        run_timeout = self.config.run_timeout
        started = time.monotonic()
        logger.info(
            f"[Pipeline] Starting run for subject {state.subject_id} "
            f"(policy={self.config.quality_gate_policy.value}, "
            f"max_retries={self.config.max_quality_retries})"
        )

        walk = self._walk(state, cancel_token, progress_callback)
        if run_timeout is None:
            final_state = await walk
        else:
            try:
                final_state = await asyncio.wait_for(walk, timeout=run_timeout)
            except asyncio.TimeoutError:
                logger.error(
                    f"[Pipeline] Run for subject {state.subject_id} exceeded {run_timeout}s"
                )
                raise PipelineTimeoutError("run", run_timeout) from None

        logger.info(
            f"[Pipeline] Completed run for subject {state.subject_id} in "
            f"{time.monotonic() - started:.2f}s: nodes={[n.value for n in final_state.node_history]}, "
            f"retries={final_state.retry_count}, degraded={final_state.degraded}"
        )
        return final_state

    async def _walk(
        self,
        state: PipelineRunState,
        cancel_token: Optional[CancellationToken],
        progress_callback: Optional[ProgressCallback],
    ) -> PipelineRunState:
        # A run never resumes mid-graph
        node = StageNode.MINER
        steps = 0

        while node != StageNode.DONE:
            if steps >= self.max_steps:
                raise PipelineGraphError(
                    f"Run exceeded {self.max_steps} stage invocations", stage=node.stage_name
                )
            if cancel_token is not None:
                cancel_token.raise_if_cancelled(stage=node.stage_name)

            stage = self.stages[node]
            state = merge_state(
                state,
                {"current_node": node, "node_history": state.node_history + (node,)},
            )
            await self._report(progress_callback, node, state)

            try:
                result = await self._execute(stage, state)
                state = merge_state(state, result.update)
                next_node, control = self._resolve_route(node, result.route, state)
            except PipelineError as e:
                e.state = merge_state(state, {"error": str(e)})
                raise

            state = merge_state(state, {"current_node": next_node, **control})
            node = next_node
            steps += 1

        return state

    async def _execute(self, stage: BaseStage, state: PipelineRunState):
        stage_timeout = self.config.stage_timeout
        started = time.monotonic()
        logger.info(f"[Pipeline] Running {stage.name} (retry={state.retry_count})")

        if stage_timeout is None:
            result = await stage.execute(state)
        else:
            try:
                result = await asyncio.wait_for(stage.execute(state), timeout=stage_timeout)
            except asyncio.TimeoutError:
                logger.error(f"[Pipeline] {stage.name} exceeded {stage_timeout}s")
                raise PipelineTimeoutError("stage", stage_timeout, stage=stage.name) from None

        logger.debug(f"[Pipeline] {stage.name} finished in {time.monotonic() - started:.2f}s")
        return result

    def _resolve_route(
        self, node: StageNode, route: Route, state: PipelineRunState
    ) -> Tuple[StageNode, Dict[str, object]]:
        """Validate a routing hint and turn it into the next node plus control updates."""
        allowed = EDGES[node]
        targets = [route.target] + ([route.fallback] if route.fallback is not None else [])
        for target in targets:
            if target not in allowed:
                raise PipelineGraphError(
                    f"Illegal transition {node.stage_name} -> {target.stage_name}",
                    stage=node.stage_name,
                )

        if not route.is_retry:
            return route.target, {}

        if route.fallback is None:
            raise PipelineGraphError(
                f"Retry route from {node.stage_name} has no fallback", stage=node.stage_name
            )

        if state.retry_count < self.config.max_quality_retries:
            logger.info(
                f"[Pipeline] Quality gate not met, retrying {route.target.stage_name} "
                f"({state.retry_count + 1}/{self.config.max_quality_retries})"
            )
            return route.target, {"retry_count": state.retry_count + 1}

        return self._apply_quality_gate(route, state)

    def _apply_quality_gate(
        self, route: Route, state: PipelineRunState
    ) -> Tuple[StageNode, Dict[str, object]]:
        policy = self.config.quality_gate_policy
        rate = state.judge_output.validation_rate if state.judge_output else 0.0

        if policy == QualityGatePolicy.FAIL:
            logger.error(
                f"[Pipeline] Quality gate failed after {state.retry_count} retries (rate={rate:.2f})"
            )
            raise QualityGateError(state.retry_count, rate)

        logger.warning(
            f"[Pipeline] Retries exhausted (rate={rate:.2f}); continuing with "
            f"{route.fallback.stage_name} under policy {policy.value}"
        )
        if policy == QualityGatePolicy.FLAG:
            return route.fallback, {"degraded": True}
        return route.fallback, {}

    async def _report(
        self,
        progress_callback: Optional[ProgressCallback],
        node: StageNode,
        state: PipelineRunState,
    ):
        if progress_callback is None:
            return
        message = f"Running {node.stage_name}"
        if state.retry_count:
            message += f" (retry {state.retry_count})"
        try:
            await progress_callback(node.stage_name, STAGE_PROGRESS.get(node, 0.0), message)
        except Exception as e:
            # Progress reporting must never abort a run
            logger.warning(f"[Pipeline] Progress callback failed for {node.stage_name}: {e}")
