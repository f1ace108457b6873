"""
Pipeline stages, one module per node of the profile graph.
"""
from typing import Dict, Optional

from persona_engine.domain.interfaces.llm_gateway import ILLMGateway
from persona_engine.domain.models.pipeline_state import StageNode
from persona_engine.infrastructure.data.config import PipelineConfig

from .base import BaseStage
from .miner import MinerStage
from .judge import JudgeStage
from .psychologist import PsychologistStage
from .shadow_analyst import ShadowAnalystStage
from .synthesizer import SynthesizerStage


def build_stages(
    gateway: ILLMGateway, config: Optional[PipelineConfig] = None
) -> Dict[StageNode, BaseStage]:
    """Instantiate every stage against one shared gateway."""
    config = config or PipelineConfig()
    stages = (
        MinerStage(gateway, config),
        JudgeStage(gateway, config),
        PsychologistStage(gateway, config),
        ShadowAnalystStage(gateway, config),
        SynthesizerStage(gateway, config),
    )
    return {stage.node: stage for stage in stages}


__all__ = [
    "BaseStage",
    "MinerStage",
    "JudgeStage",
    "PsychologistStage",
    "ShadowAnalystStage",
    "SynthesizerStage",
    "build_stages",
]
