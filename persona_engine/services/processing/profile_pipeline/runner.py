"""
Runs the profile pipeline for one subject and persists the outcome.

This is the entry point a job worker calls. It loads the subject's inputs,
opens a processing job, drives the orchestrator and records either the
Final Profile or the failure.
"""

import logging
from typing import Any, Dict, Optional

from persona_engine.domain.interfaces.llm_gateway import ILLMGateway
from persona_engine.domain.models.persona_profile import FinalProfile
from persona_engine.domain.models.pipeline_state import (
    PipelineRunState,
    StageNode,
    new_run_state,
)
from persona_engine.domain.repositories.profile_repository import IProfileRepository, JobStatus
from persona_engine.infrastructure.config.settings import settings
from persona_engine.infrastructure.data.config import PipelineConfig
from persona_engine.services.llm import create_gateway
from persona_engine.services.processing.profile_pipeline.exceptions import (
    PipelineError,
    SubjectNotFoundError,
)
from persona_engine.services.processing.profile_pipeline.orchestrator import (
    CancellationToken,
    PipelineOrchestrator,
    ProgressCallback,
)

logger = logging.getLogger(__name__)

JOB_STATUS_BY_STAGE: Dict[str, JobStatus] = {
    StageNode.MINER.stage_name: JobStatus.MINING,
    StageNode.JUDGE.stage_name: JobStatus.JUDGING,
    StageNode.PSYCHOLOGIST.stage_name: JobStatus.ANALYZING,
    StageNode.SHADOW_ANALYST.stage_name: JobStatus.SHADOW_ANALYSIS,
    StageNode.SYNTHESIZER.stage_name: JobStatus.SYNTHESIZING,
}

MAX_ERROR_MESSAGE_LENGTH = 500


def _stage_outputs(state: PipelineRunState) -> Dict[str, Any]:
    outputs = {
        "miner_output": state.miner_output,
        "judge_output": state.judge_output,
        "psycho_output": state.psychologist_output,
        "shadow_output": state.shadow_output,
    }
    return {key: value.to_wire() for key, value in outputs.items() if value is not None}


def _error_log(error: Exception) -> Dict[str, Any]:
    """Failure summary persisted on the job; never carries prompt or response text."""
    return {
        "stage": getattr(error, "stage", None),
        "kind": getattr(error, "kind", "unknown"),
        "type": type(error).__name__,
        "message": str(error)[:MAX_ERROR_MESSAGE_LENGTH],
    }


class ProfilePipelineRunner:
    """
    Loads a subject, runs the pipeline and hands the result to the repository.

    One runner can serve many concurrent runs: each call builds its own state
    and the orchestrator keeps nothing between runs.
    """

    def __init__(
        self,
        repository: IProfileRepository,
        gateway: Optional[ILLMGateway] = None,
        config: Optional[PipelineConfig] = None,
        orchestrator: Optional[PipelineOrchestrator] = None,
    ):
        self.repository = repository
        if orchestrator is None:
            if config is None:
                config = settings.get_pipeline_config()
            if gateway is None:
                gateway = create_gateway()
            orchestrator = PipelineOrchestrator(gateway, config)
        self.orchestrator = orchestrator

    async def run_pipeline(
        self,
        subject_id: str,
        job_id: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> FinalProfile:
        """
        Run the whole pipeline for a subject.

        Args:
            subject_id: Profile identifier
            job_id: Processing job identifier; defaults to the subject id
            cancel_token: Optional cancellation token for this run

        Returns:
            The Final Profile that was persisted

        Raises:
            SubjectNotFoundError: if the subject has no stored inputs
            PipelineError: any pipeline failure, after it has been recorded
        """
        record = await self.repository.get_subject(subject_id)
        if record is None:
            logger.error(f"[Runner] Profile not found: {subject_id}")
            raise SubjectNotFoundError(subject_id)

        job_id = await self.repository.start_job(subject_id, job_id)
        state = new_run_state(subject_id, record.inputs, user_id=record.user_id)
        sources = [source.value for source in record.inputs.available_sources()]
        logger.info(f"[Runner] Processing profile {subject_id} (job {job_id}, sources={sources})")

        try:
            final_state = await self.orchestrator.run(
                state,
                cancel_token=cancel_token,
                progress_callback=self._progress_reporter(job_id),
            )
            profile = final_state.final_profile
            if profile is None:
                raise PipelineError(
                    "Pipeline finished without a final profile",
                    stage=StageNode.SYNTHESIZER.stage_name,
                )
            await self.repository.save_profile(
                subject_id, job_id, profile, stage_outputs=_stage_outputs(final_state)
            )
        except Exception as e:
            logger.error(
                f"[Runner] Profile processing failed for {subject_id}: "
                f"stage={getattr(e, 'stage', None)}, kind={getattr(e, 'kind', 'unknown')}"
            )
            await self._record_failure(subject_id, job_id, e)
            raise

        logger.info(
            f"[Runner] Profile processing completed for {subject_id} "
            f"(retries={final_state.retry_count}, degraded={profile.degraded})"
        )
        return profile

    async def _record_failure(self, subject_id: str, job_id: str, error: Exception):
        """Persist the error status; a failing write must not mask the original error."""
        try:
            await self.repository.mark_failed(subject_id, job_id, _error_log(error))
        except Exception as e:
            logger.error(
                f"[Runner] Could not record failure for {subject_id} (job {job_id}): "
                f"{type(e).__name__}: {e}"
            )

    def _progress_reporter(self, job_id: str) -> ProgressCallback:
        async def report(stage: str, progress: float, message: str):
            status = JOB_STATUS_BY_STAGE.get(stage)
            if status is None:
                return
            logger.debug(f"[Runner] Job {job_id}: {message} ({progress:.0%})")
            await self.repository.update_job_progress(job_id, status, current_node=stage)

        return report


async def run_pipeline(
    subject_id: str, runner: Optional[ProfilePipelineRunner] = None
) -> FinalProfile:
    """
    Module-level entry point for job workers.

    Builds a runner over the configured database and LLM provider when none
    is given.
    """
    if runner is not None:
        return await runner.run_pipeline(subject_id)

    from persona_engine.infrastructure.persistence.database import get_session_factory
    from persona_engine.infrastructure.persistence.profile_repository import (
        SqlAlchemyProfileRepository,
    )

    session = get_session_factory()()
    try:
        runner = ProfilePipelineRunner(SqlAlchemyProfileRepository(session))
        return await runner.run_pipeline(subject_id)
    finally:
        session.close()
