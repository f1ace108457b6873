"""
Run state and routing types for the profile synthesis pipeline.

The run state is immutable: stages return partial updates and the
orchestrator folds them in with `merge_state`, which always produces a new
object. Routing is expressed with `Route` values instead of string labels.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from persona_engine.domain.models.persona_profile import (
    FinalProfile,
    JudgeOutput,
    MinerOutput,
    PsychologistOutput,
    ShadowOutput,
    SubjectInputBundle,
)


class StageNode(str, Enum):
    MINER = "miner"
    JUDGE = "judge"
    PSYCHOLOGIST = "psychologist"
    SHADOW_ANALYST = "shadowAnalyst"
    SYNTHESIZER = "synthesizer"
    DONE = "complete"

    @property
    def stage_name(self) -> str:
        """Human-readable stage name used in errors and logs."""
        return _STAGE_NAMES[self]


_STAGE_NAMES: Dict[StageNode, str] = {
    StageNode.MINER: "Miner",
    StageNode.JUDGE: "Judge",
    StageNode.PSYCHOLOGIST: "Psychologist",
    StageNode.SHADOW_ANALYST: "ShadowAnalyst",
    StageNode.SYNTHESIZER: "Synthesizer",
    StageNode.DONE: "Done",
}


class RouteKind(str, Enum):
    ADVANCE = "advance"
    RETRY = "retry"


@dataclass(frozen=True)
class Route:
    """Where a stage wants the run to go next.

    `Route.advance(node)` is unconditional. `Route.retry(node, fallback=...)`
    asks the orchestrator to go back to `node` if the retry budget allows it,
    otherwise to continue with `fallback`.
    """

    kind: RouteKind
    target: StageNode
    fallback: Optional[StageNode] = None

    @classmethod
    def advance(cls, target: StageNode) -> "Route":
        return cls(kind=RouteKind.ADVANCE, target=target)

    @classmethod
    def retry(cls, target: StageNode, fallback: StageNode) -> "Route":
        return cls(kind=RouteKind.RETRY, target=target, fallback=fallback)

    @property
    def is_retry(self) -> bool:
        return self.kind == RouteKind.RETRY


@dataclass(frozen=True)
class StageResult:
    """Partial state update plus routing hint returned by every stage."""

    update: Mapping[str, Any]
    route: Route


class PipelineRunState(BaseModel):
    """The single state object threaded through every stage of one run."""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    user_id: Optional[str] = None
    inputs: SubjectInputBundle = Field(default_factory=SubjectInputBundle)

    miner_output: Optional[MinerOutput] = None
    judge_output: Optional[JudgeOutput] = None
    psychologist_output: Optional[PsychologistOutput] = None
    shadow_output: Optional[ShadowOutput] = None
    final_profile: Optional[FinalProfile] = None

    current_node: StageNode = StageNode.MINER
    retry_count: int = Field(default=0, ge=0)
    error: Optional[str] = None
    degraded: bool = False
    node_history: Tuple[StageNode, ...] = ()

    @property
    def approved_mius(self):
        return list(self.judge_output.approved_mius) if self.judge_output else []


# Fields a stage update may never touch once the run has started
READ_ONLY_FIELDS = frozenset({"subject_id", "user_id", "inputs"})


def new_run_state(
    subject_id: str,
    inputs: SubjectInputBundle,
    user_id: Optional[str] = None,
) -> PipelineRunState:
    """Initial state for a fresh run; every run starts at the Miner."""
    return PipelineRunState(
        subject_id=subject_id,
        user_id=user_id,
        inputs=inputs,
        current_node=StageNode.MINER,
        retry_count=0,
    )


def merge_state(state: PipelineRunState, update: Mapping[str, Any]) -> PipelineRunState:
    """Shallow-merge a partial update into a new state.

    Later writes for the same key replace earlier ones, so merging the same
    update twice yields the same state as merging it once.
    """
    if not update:
        return state

    unknown = set(update) - set(PipelineRunState.model_fields)
    if unknown:
        raise ValueError(f"Unknown run state fields: {', '.join(sorted(unknown))}")

    read_only = set(update) & READ_ONLY_FIELDS
    if read_only:
        raise ValueError(f"Run state fields are read-only: {', '.join(sorted(read_only))}")

    merged = dict(state)
    merged.update(update)
    return PipelineRunState(**merged)
