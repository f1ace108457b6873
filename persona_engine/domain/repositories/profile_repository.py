"""
Profile repository interface.

The pipeline reads the subject's raw inputs through this contract and hands
its terminal artifact (or failure) back through it. Storage details stay
behind the implementation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from persona_engine.domain.models.persona_profile import FinalProfile, SubjectInputBundle


class ProcessingStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    READY = "READY"
    ERROR = "ERROR"


class JobStatus(str, Enum):
    PENDING = "PENDING"
    MINING = "MINING"
    JUDGING = "JUDGING"
    ANALYZING = "ANALYZING"
    SHADOW_ANALYSIS = "SHADOW_ANALYSIS"
    SYNTHESIZING = "SYNTHESIZING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class SubjectRecord:
    """The stored inputs of one subject."""

    subject_id: str
    user_id: Optional[str]
    inputs: SubjectInputBundle


class IProfileRepository(ABC):
    """Interface for profile persistence used by the pipeline runner."""

    @abstractmethod
    async def get_subject(self, subject_id: str) -> Optional[SubjectRecord]:
        """
        Load the raw inputs of a subject.

        Args:
            subject_id: Profile identifier

        Returns:
            SubjectRecord if the profile exists, None otherwise
        """
        pass

    @abstractmethod
    async def start_job(self, subject_id: str, job_id: Optional[str] = None) -> str:
        """
        Open (or reopen) the processing job of a run.

        Marks the profile as processing and increments the job attempts.

        Returns:
            The job identifier
        """
        pass

    @abstractmethod
    async def update_job_progress(
        self, job_id: str, status: JobStatus, current_node: Optional[str] = None
    ) -> None:
        """Record the stage a running job has reached."""
        pass

    @abstractmethod
    async def save_profile(
        self,
        subject_id: str,
        job_id: str,
        profile: FinalProfile,
        stage_outputs: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Persist the Final Profile and mark the profile ready and the job completed."""
        pass

    @abstractmethod
    async def mark_failed(self, subject_id: str, job_id: str, error: Dict[str, Any]) -> None:
        """Mark the profile as errored and the job as failed with an error log."""
        pass
