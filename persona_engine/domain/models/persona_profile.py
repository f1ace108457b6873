"""
Persona profile models for the profile synthesis pipeline.

These models describe every artifact that flows through the pipeline:
- SubjectInputBundle: the three raw inputs about a person (read-only)
- MIU / MinerOutput: atomic interpreted facts extracted from the inputs
- JudgeOutput: the quality-gated partition of the latest Miner output
- PsychologistOutput / ShadowOutput: intermediate analyses
- FinalProfile: the terminal artifact consumed by the conversational agent

Field names are snake_case in Python and camelCase on the wire, which is the
shape the language model is asked to produce and the shape we persist.
"""

import json
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from persona_engine.infrastructure.constants.pipeline_constants import MAX_CORE_DRIVERS

BIG_FIVE_TRAITS = (
    "openness",
    "conscientiousness",
    "extraversion",
    "agreeableness",
    "neuroticism",
)


def _clamp_unit(value: Any) -> float:
    """Coerce to float and clamp into [0.0, 1.0]."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"expected a number between 0 and 1, got {value!r}")
    if number != number:  # NaN
        raise ValueError("NaN is not a valid score")
    return min(1.0, max(0.0, number))


class CamelModel(BaseModel):
    """Base model: snake_case attributes, camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class MiuSource(str, Enum):
    COSMIC = "COSMIC"
    PSYCHOMETRIC = "PSYCHOMETRIC"
    NARRATIVE = "NARRATIVE"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class NarrativeData(CamelModel):
    decisive_moment: Optional[str] = None
    frustration: Optional[str] = None
    dream: Optional[str] = None

    @field_validator("decisive_moment", "frustration", "dream", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def is_present(self) -> bool:
        return any((self.decisive_moment, self.frustration, self.dream))


class SubjectInputBundle(CamelModel):
    """The immutable raw inputs supplied once at pipeline start."""

    cosmic_data: Optional[Dict[str, Any]] = None
    psychometric_data: Optional[Dict[str, Any]] = None
    narrative_data: NarrativeData = Field(default_factory=NarrativeData)

    def available_sources(self) -> List[MiuSource]:
        sources = []
        if self.cosmic_data:
            sources.append(MiuSource.COSMIC)
        if self.psychometric_data:
            sources.append(MiuSource.PSYCHOMETRIC)
        if self.narrative_data.is_present():
            sources.append(MiuSource.NARRATIVE)
        return sources


# ---------------------------------------------------------------------------
# Miner / Judge
# ---------------------------------------------------------------------------


class MIU(CamelModel):
    """Micro-Interpretive Unit: one interpreted fact derived from one raw datum."""

    id: str = ""
    source: MiuSource
    raw_data: str = Field(..., description="Verbatim snippet of the input it came from")
    interpretation: str = Field(..., description="1-2 sentence derived claim")
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v):
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("source", mode="before")
    @classmethod
    def _normalize_source(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v):
        if v is None:
            return 0.5
        return _clamp_unit(v)

    @field_validator("raw_data", mode="before")
    @classmethod
    def _stringify_raw_data(cls, v):
        # The model sometimes echoes structured chart data instead of a string
        if isinstance(v, (dict, list)):
            return json.dumps(v, ensure_ascii=False)
        return v


class MinerOutput(CamelModel):
    mius: List[MIU] = Field(default_factory=list)
    total_extracted: int = 0


class RejectedMiu(CamelModel):
    id: str
    reason: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v):
        return str(v).strip()


class JudgeOutput(CamelModel):
    approved_mius: List[MIU] = Field(default_factory=list)
    rejected_mius: List[RejectedMiu] = Field(default_factory=list)
    requires_reprocessing: bool = False
    validation_rate: float = Field(default=0.0, ge=0.0, le=1.0)

    @field_validator("validation_rate", mode="before")
    @classmethod
    def _clamp_rate(cls, v):
        if v is None:
            return 0.0
        return _clamp_unit(v)


# ---------------------------------------------------------------------------
# Psychologist / Shadow
# ---------------------------------------------------------------------------


class PsychologicalDrivers(CamelModel):
    core_motivations: List[str] = Field(default_factory=list)
    core_fears: List[str] = Field(default_factory=list)
    communication_style: str = ""
    decision_making_pattern: str = ""
    relationship_pattern: str = ""

    @field_validator("core_motivations", "core_fears", mode="before")
    @classmethod
    def _limit_drivers(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        return [str(item) for item in v if str(item).strip()][:MAX_CORE_DRIVERS]


class BigFiveMapping(CamelModel):
    openness: float = Field(..., ge=0.0, le=1.0)
    conscientiousness: float = Field(..., ge=0.0, le=1.0)
    extraversion: float = Field(..., ge=0.0, le=1.0)
    agreeableness: float = Field(..., ge=0.0, le=1.0)
    neuroticism: float = Field(..., ge=0.0, le=1.0)

    @field_validator(*BIG_FIVE_TRAITS, mode="before")
    @classmethod
    def _clamp_trait(cls, v):
        return _clamp_unit(v)


class PsychologistOutput(CamelModel):
    drivers: PsychologicalDrivers
    big_five_mapping: BigFiveMapping


class ShadowSelf(CamelModel):
    repressed_talents: List[str] = Field(default_factory=list)
    hidden_fears: List[str] = Field(default_factory=list)
    projections: List[str] = Field(default_factory=list)
    integration_path: str = ""


class ArchetypeTriple(CamelModel):
    primary: str
    secondary: str = ""
    # Complement of `primary`; asked of the model, not verified here
    shadow: str = ""


class ShadowOutput(CamelModel):
    shadow_self: ShadowSelf
    archetypes: ArchetypeTriple


# ---------------------------------------------------------------------------
# Final profile
# ---------------------------------------------------------------------------


class CosmicBlueprint(CamelModel):
    sun_sign: str = ""
    moon_sign: str = ""
    ascendant: str = ""
    dominant_planets: List[str] = Field(default_factory=list)
    key_aspects: List[str] = Field(default_factory=list)


class ConsciousArchetypes(CamelModel):
    primary: str = ""
    secondary: str = ""


class ShadowArchetypes(CamelModel):
    primary: str = ""
    repressed: str = ""


class ArchetypeMatrix(CamelModel):
    conscious: ConsciousArchetypes = Field(default_factory=ConsciousArchetypes)
    shadow: ShadowArchetypes = Field(default_factory=ShadowArchetypes)


class ShadowIntegration(CamelModel):
    repressed_talents: List[str] = Field(default_factory=list)
    integration_path: str = ""


class PersonaGuidelines(CamelModel):
    """Voice configuration for the downstream conversational agent."""

    tone_of_voice: str
    communication_rules: List[str] = Field(default_factory=list)
    example_phrases: List[str] = Field(default_factory=list)


class FinalProfile(CamelModel):
    essence_summary: str
    personality_vector: List[float]
    cosmic_blueprint: CosmicBlueprint = Field(default_factory=CosmicBlueprint)
    archetype_matrix: ArchetypeMatrix = Field(default_factory=ArchetypeMatrix)
    psychological_drivers: PsychologicalDrivers = Field(default_factory=PsychologicalDrivers)
    shadow_integration: ShadowIntegration = Field(default_factory=ShadowIntegration)
    persona_guidelines: PersonaGuidelines = Field(..., alias="aiPersonaGuidelines")
    # Set when the run advanced past an unsatisfied quality gate
    degraded: bool = False

    @field_validator("personality_vector", mode="before")
    @classmethod
    def _validate_vector(cls, v):
        if isinstance(v, dict):
            v = [v.get(trait) for trait in BIG_FIVE_TRAITS]
        if not isinstance(v, (list, tuple)) or len(v) != len(BIG_FIVE_TRAITS):
            raise ValueError("personalityVector must contain exactly five values [O, C, E, A, N]")
        return [_clamp_unit(item) for item in v]
