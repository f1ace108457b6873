"""
Profile synthesis pipeline.

Five language-model stages turn a subject's raw inputs into a Final Profile:
- Miner extracts Micro-Interpretive Units (MIUs)
- Judge gates their quality and may send the run back to the Miner
- Psychologist and ShadowAnalyst build the intermediate analyses
- Synthesizer merges everything into the Final Profile

The orchestrator owns routing, the retry cap and the quality gate policy;
the runner adds loading and persistence around one run.
"""
from .exceptions import (
    PipelineError,
    StageExecutionError,
    PipelineTimeoutError,
    PipelineCancelledError,
    QualityGateError,
    PipelineGraphError,
    SubjectNotFoundError,
)
from .orchestrator import (
    EDGES,
    CancellationToken,
    PipelineOrchestrator,
    max_stage_invocations,
)
from .psychometrics import calculate_big_five
from .runner import ProfilePipelineRunner, run_pipeline
from .stages import (
    BaseStage,
    MinerStage,
    JudgeStage,
    PsychologistStage,
    ShadowAnalystStage,
    SynthesizerStage,
    build_stages,
)

__all__ = [
    "PipelineError",
    "StageExecutionError",
    "PipelineTimeoutError",
    "PipelineCancelledError",
    "QualityGateError",
    "PipelineGraphError",
    "SubjectNotFoundError",
    "EDGES",
    "CancellationToken",
    "PipelineOrchestrator",
    "max_stage_invocations",
    "calculate_big_five",
    "ProfilePipelineRunner",
    "run_pipeline",
    "BaseStage",
    "MinerStage",
    "JudgeStage",
    "PsychologistStage",
    "ShadowAnalystStage",
    "SynthesizerStage",
    "build_stages",
]
