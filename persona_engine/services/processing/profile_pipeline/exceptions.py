"""
Exceptions raised by the profile synthesis pipeline.

Hard failures (transport, malformed output, timeouts, cancellation) abort the
whole run. A low-quality Judge verdict is data, not an exception, unless the
quality gate policy is "fail".
"""

import asyncio
from typing import Optional

from persona_engine.services.llm.exceptions import (
    LLMMalformedOutputError,
    LLMTransportError,
)


class PipelineError(Exception):
    """Base exception for the profile pipeline."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage
        # Run state at the moment of failure, attached by the orchestrator
        self.state = None

    @property
    def kind(self) -> str:
        return "pipeline"


class StageExecutionError(PipelineError):
    """A stage could not produce its output; carries the stage name and cause."""

    def __init__(self, stage: str, cause: BaseException):
        super().__init__(f"Stage {stage} failed: {type(cause).__name__}: {cause}", stage=stage)
        self.cause = cause

    @property
    def kind(self) -> str:
        if isinstance(self.cause, LLMTransportError):
            return "transport"
        if isinstance(self.cause, LLMMalformedOutputError):
            return "malformed_output"
        if isinstance(self.cause, (PipelineTimeoutError, asyncio.TimeoutError)):
            return "timeout"
        return "unknown"


class PipelineTimeoutError(PipelineError):
    """A stage or the whole run exceeded its wall-clock budget."""

    def __init__(self, scope: str, seconds: float, stage: Optional[str] = None):
        where = f" in stage {stage}" if stage else ""
        super().__init__(f"Pipeline {scope} timeout after {seconds:.1f}s{where}", stage=stage)
        self.scope = scope
        self.seconds = seconds

    @property
    def kind(self) -> str:
        return "timeout"


class PipelineCancelledError(PipelineError):
    """The run was cancelled through its cancellation token."""

    @property
    def kind(self) -> str:
        return "cancelled"


class QualityGateError(PipelineError):
    """The Judge still rejects the extraction after every allowed retry."""

    def __init__(self, retry_count: int, validation_rate: float):
        super().__init__(
            f"Quality gate not satisfied after {retry_count} retries "
            f"(validation rate {validation_rate:.2f})",
            stage="Judge",
        )
        self.retry_count = retry_count
        self.validation_rate = validation_rate

    @property
    def kind(self) -> str:
        return "quality_gate"


class PipelineGraphError(PipelineError):
    """A stage routed along an edge the pipeline graph does not have."""

    @property
    def kind(self) -> str:
        return "graph"


class SubjectNotFoundError(PipelineError):
    """No input record exists for the requested subject."""

    def __init__(self, subject_id: str):
        super().__init__(f"Profile not found: {subject_id}")
        self.subject_id = subject_id

    @property
    def kind(self) -> str:
        return "not_found"
