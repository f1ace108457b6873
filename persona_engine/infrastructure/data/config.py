from dataclasses import dataclass, field
from typing import Dict, Optional
from enum import Enum
import logging

from persona_engine.infrastructure.constants.llm_constants import (
    DEFAULT_LLM_PROVIDER,
    MINER_TEMPERATURE,
    JUDGE_TEMPERATURE,
    PSYCHOLOGIST_TEMPERATURE,
    SHADOW_ANALYST_TEMPERATURE,
    SYNTHESIZER_TEMPERATURE,
)
from persona_engine.infrastructure.constants.pipeline_constants import (
    QUALITY_THRESHOLD,
    MAX_QUALITY_RETRIES,
    MIN_MIU_TARGET,
    STAGE_TIMEOUT_SECONDS,
    RUN_TIMEOUT_SECONDS,
    QUALITY_GATE_PROCEED,
    QUALITY_GATE_FLAG,
    QUALITY_GATE_FAIL,
    DEFAULT_QUALITY_GATE_POLICY,
)

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai", "gemini")


class ConfigurationError(Exception):
    """Base class for configuration related errors"""
    pass


class ModelValidationError(ConfigurationError):
    """Raised when model configuration is invalid"""
    pass


class PipelineConfigError(ConfigurationError):
    """Raised when pipeline configuration is invalid"""
    pass


class QualityGatePolicy(str, Enum):
    """What to do when the Judge still wants a re-mine but the retry budget is spent."""

    PROCEED = QUALITY_GATE_PROCEED  # advance silently
    FLAG = QUALITY_GATE_FLAG  # advance and mark the profile degraded
    FAIL = QUALITY_GATE_FAIL  # abort the run

    @classmethod
    def parse(cls, value: Optional[str]) -> "QualityGatePolicy":
        if value is None or not str(value).strip():
            return cls(DEFAULT_QUALITY_GATE_POLICY)
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise PipelineConfigError(
                f"Invalid quality gate policy: {value}. "
                f"Expected one of: {', '.join(p.value for p in cls)}"
            )


def _default_stage_temperatures() -> Dict[str, float]:
    return {
        "miner": MINER_TEMPERATURE,
        "judge": JUDGE_TEMPERATURE,
        "psychologist": PSYCHOLOGIST_TEMPERATURE,
        "shadow_analyst": SHADOW_ANALYST_TEMPERATURE,
        "synthesizer": SYNTHESIZER_TEMPERATURE,
    }


@dataclass
class LLMConfig:
    provider: str = DEFAULT_LLM_PROVIDER
    model: Optional[str] = None
    api_key: Optional[str] = None
    max_tokens: Optional[int] = None
    timeout: float = 120.0

    def __post_init__(self):
        self.validate()

    def validate(self, strict: bool = False):
        """Validate LLM configuration"""
        if self.provider not in SUPPORTED_PROVIDERS:
            raise ModelValidationError(
                f"Unsupported LLM provider: {self.provider}. "
                f"Supported providers are: {', '.join(SUPPORTED_PROVIDERS)}"
            )

        if strict and not self.api_key:
            raise ModelValidationError(f"API key is required for provider {self.provider}")

        if self.max_tokens is not None and self.max_tokens <= 0:
            raise ModelValidationError("max_tokens must be positive")

        if self.timeout <= 0:
            raise ModelValidationError("timeout must be positive")


@dataclass
class PipelineConfig:
    quality_threshold: float = QUALITY_THRESHOLD
    max_quality_retries: int = MAX_QUALITY_RETRIES
    quality_gate_policy: QualityGatePolicy = QualityGatePolicy(DEFAULT_QUALITY_GATE_POLICY)
    miner_feedback_on_retry: bool = False
    min_miu_target: int = MIN_MIU_TARGET
    stage_timeout: Optional[float] = STAGE_TIMEOUT_SECONDS
    run_timeout: Optional[float] = RUN_TIMEOUT_SECONDS
    stage_temperatures: Dict[str, float] = field(default_factory=_default_stage_temperatures)
    model: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.quality_gate_policy, str) and not isinstance(
            self.quality_gate_policy, QualityGatePolicy
        ):
            self.quality_gate_policy = QualityGatePolicy.parse(self.quality_gate_policy)
        self.validate()

    def validate(self):
        """Validate pipeline configuration"""
        if not (0.0 <= self.quality_threshold <= 1.0):
            raise PipelineConfigError("quality_threshold must be between 0.0 and 1.0")

        if self.max_quality_retries < 0:
            raise PipelineConfigError("max_quality_retries must be non-negative")

        if self.min_miu_target <= 0:
            raise PipelineConfigError("min_miu_target must be positive")

        for name, value in (("stage_timeout", self.stage_timeout), ("run_timeout", self.run_timeout)):
            if value is not None and value <= 0:
                raise PipelineConfigError(f"{name} must be positive")

        for stage, temperature in self.stage_temperatures.items():
            if not (0.0 <= temperature <= 2.0):
                raise PipelineConfigError(
                    f"Temperature for stage {stage} must be between 0.0 and 2.0"
                )

    def temperature_for(self, stage_key: str) -> Optional[float]:
        return self.stage_temperatures.get(stage_key)
