"""
Profile repository implementation.

This module implements IProfileRepository on top of the `profiles` and
`processing_jobs` tables using a SQLAlchemy session.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from persona_engine.domain.models.persona_profile import (
    FinalProfile,
    NarrativeData,
    SubjectInputBundle,
)
from persona_engine.domain.repositories.profile_repository import (
    IProfileRepository,
    JobStatus,
    ProcessingStatus,
    SubjectRecord,
)
from persona_engine.infrastructure.persistence.database import utc_now
from persona_engine.infrastructure.persistence.models import ProcessingJob, Profile
from persona_engine.services.processing.profile_pipeline.psychometrics import (
    prepare_psychometric_data,
)

logger = logging.getLogger(__name__)


class SqlAlchemyProfileRepository(IProfileRepository):
    """
    Implementation of the profile repository interface.

    The stage outputs passed to `save_profile` are stored on the job record
    under the column of the same name.
    """

    STAGE_OUTPUT_COLUMNS = ("miner_output", "judge_output", "psycho_output", "shadow_output")

    def __init__(self, session: Session):
        """
        Initialize the repository.

        Args:
            session: SQLAlchemy session
        """
        self.session = session

    def _get_profile(self, subject_id: str) -> Optional[Profile]:
        return self.session.query(Profile).filter(Profile.id == subject_id).first()

    def _get_job(self, job_id: str) -> Optional[ProcessingJob]:
        return self.session.query(ProcessingJob).filter(ProcessingJob.id == job_id).first()

    def _commit(self, action: str):
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error while trying to {action}: {str(e)}")
            raise

    async def get_subject(self, subject_id: str) -> Optional[SubjectRecord]:
        profile = self._get_profile(subject_id)
        if profile is None:
            return None

        inputs = SubjectInputBundle(
            cosmic_data=profile.astro_map_raw or None,
            psychometric_data=prepare_psychometric_data(profile.psychometric_answers) or None,
            narrative_data=NarrativeData(
                decisive_moment=profile.narrative_decisive_moment,
                frustration=profile.narrative_frustration,
                dream=profile.narrative_dream,
            ),
        )
        return SubjectRecord(subject_id=profile.id, user_id=profile.user_id, inputs=inputs)

    async def start_job(self, subject_id: str, job_id: Optional[str] = None) -> str:
        job_id = job_id or subject_id
        profile = self._get_profile(subject_id)
        if profile is None:
            raise ValueError(f"Profile not found: {subject_id}")

        now = utc_now()
        job = self._get_job(job_id)
        if job is None:
            job = ProcessingJob(id=job_id, profile_id=subject_id, attempts=0)
            self.session.add(job)
        job.status = JobStatus.MINING.value
        job.current_node = None
        job.error_log = None
        job.started_at = now
        job.completed_at = None
        job.attempts = (job.attempts or 0) + 1

        profile.processing_status = ProcessingStatus.PROCESSING.value
        profile.processing_job_id = job_id

        self._commit(f"start job {job_id}")
        logger.info(f"Started processing job {job_id} (attempt {job.attempts})")
        return job_id

    async def update_job_progress(
        self, job_id: str, status: JobStatus, current_node: Optional[str] = None
    ) -> None:
        job = self._get_job(job_id)
        if job is None:
            logger.warning(f"Processing job not found: {job_id}")
            return
        job.status = JobStatus(status).value
        if current_node is not None:
            job.current_node = current_node
        self._commit(f"update job {job_id}")

    async def save_profile(
        self,
        subject_id: str,
        job_id: str,
        profile: FinalProfile,
        stage_outputs: Optional[Dict[str, Any]] = None,
    ) -> None:
        record = self._get_profile(subject_id)
        if record is None:
            raise ValueError(f"Profile not found: {subject_id}")

        profile_json = profile.to_wire()
        record.higher_self_profile = profile_json
        record.processing_status = ProcessingStatus.READY.value

        job = self._get_job(job_id)
        if job is not None:
            for column in self.STAGE_OUTPUT_COLUMNS:
                if stage_outputs and column in stage_outputs:
                    setattr(job, column, stage_outputs[column])
            job.synthesizer_output = profile_json
            job.status = JobStatus.COMPLETED.value
            job.completed_at = utc_now()

        self._commit(f"save profile {subject_id}")
        logger.info(f"Saved final profile for {subject_id} (degraded={profile.degraded})")

    async def mark_failed(self, subject_id: str, job_id: str, error: Dict[str, Any]) -> None:
        record = self._get_profile(subject_id)
        if record is not None:
            record.processing_status = ProcessingStatus.ERROR.value

        job = self._get_job(job_id)
        if job is not None:
            job.status = JobStatus.FAILED.value
            job.error_log = error

        self._commit(f"mark job {job_id} as failed")
        logger.info(f"Marked processing job {job_id} as failed")
