"""
Tests for settings, pipeline configuration and the profile models' validation.
"""

from unittest.mock import patch

import pytest
from pydantic import ValidationError

from persona_engine.domain.models.persona_profile import (
    MIU,
    FinalProfile,
    NarrativeData,
    SubjectInputBundle,
)
from persona_engine.infrastructure.config.settings import Settings
from persona_engine.infrastructure.data.config import (
    ConfigurationError,
    LLMConfig,
    PipelineConfig,
    PipelineConfigError,
    QualityGatePolicy,
)
from persona_engine.tests.fakes import synthesizer_reply


def test_pipeline_config_defaults():
    config = PipelineConfig()
    assert config.quality_threshold == 0.7
    assert config.max_quality_retries == 2
    assert config.quality_gate_policy == QualityGatePolicy.FLAG
    assert config.miner_feedback_on_retry is False
    assert config.temperature_for("judge") == 0.3
    assert config.temperature_for("unknown") is None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_quality_retries": -1},
        {"quality_threshold": 1.5},
        {"stage_timeout": 0},
        {"run_timeout": -5},
        {"quality_gate_policy": "ignore"},
        {"stage_temperatures": {"miner": 3.0}},
    ],
)
def test_pipeline_config_rejects_invalid_values(kwargs):
    with pytest.raises(PipelineConfigError):
        PipelineConfig(**kwargs)


def test_quality_gate_policy_parse():
    assert QualityGatePolicy.parse(" FAIL ") == QualityGatePolicy.FAIL
    assert QualityGatePolicy.parse(None) == QualityGatePolicy.FLAG
    assert QualityGatePolicy.parse("") == QualityGatePolicy.FLAG


def test_settings_read_pipeline_environment():
    env = {
        "PIPELINE_MAX_QUALITY_RETRIES": "1",
        "PIPELINE_QUALITY_THRESHOLD": "0.5",
        "PIPELINE_QUALITY_GATE_POLICY": "fail",
        "PIPELINE_MINER_FEEDBACK": "true",
        "PIPELINE_STAGE_TIMEOUT": "30",
        "PIPELINE_RUN_TIMEOUT": "off",
    }
    with patch.dict("os.environ", env):
        config = Settings().get_pipeline_config()

    assert config.max_quality_retries == 1
    assert config.quality_threshold == 0.5
    assert config.quality_gate_policy == QualityGatePolicy.FAIL
    assert config.miner_feedback_on_retry is True
    assert config.stage_timeout == 30.0
    assert config.run_timeout is None


def test_settings_llm_provider_selection():
    env = {"LLM_PROVIDER": "Gemini", "GEMINI_API_KEY": "g-key", "GEMINI_MODEL": "models/x"}
    with patch.dict("os.environ", env):
        settings = Settings()

    assert settings.default_llm_provider == "gemini"
    llm_config = settings.get_llm_settings()
    assert llm_config.provider == "gemini"
    assert llm_config.model == "models/x"
    assert settings.validate_llm_config() is True

    with pytest.raises(ConfigurationError, match="Unknown LLM provider"):
        settings.get_llm_config("anthropic")


def test_llm_config_strict_validation_requires_key():
    config = LLMConfig(provider="openai", model="gpt-4o", api_key=None)
    with pytest.raises(ConfigurationError):
        config.validate(strict=True)


def test_miu_coerces_model_output():
    miu = MIU.model_validate(
        {"id": 7, "source": "narrative", "rawData": {"moon": "Pisces"}, "interpretation": "x"}
    )
    assert miu.id == "7"
    assert miu.source.value == "NARRATIVE"
    assert miu.raw_data == '{"moon": "Pisces"}'
    assert miu.confidence == 0.5


def test_bundle_sources_ignore_blank_narrative():
    bundle = SubjectInputBundle(
        cosmic_data={},
        narrative_data=NarrativeData(decisive_moment="  ", dream=None),
    )
    assert bundle.available_sources() == []


def test_final_profile_wire_shape():
    profile = FinalProfile.model_validate(synthesizer_reply())
    wire = profile.to_wire()
    assert "aiPersonaGuidelines" in wire
    assert wire["personalityVector"] == [0.8, 0.6, 0.7, 0.5, 0.3]
    assert wire["degraded"] is False


def test_final_profile_accepts_trait_mapping():
    reply = synthesizer_reply()
    reply["personalityVector"] = {
        "openness": 0.1,
        "conscientiousness": 0.2,
        "extraversion": 0.3,
        "agreeableness": 0.4,
        "neuroticism": 0.5,
    }
    assert FinalProfile.model_validate(reply).personality_vector == [0.1, 0.2, 0.3, 0.4, 0.5]

    reply["personalityVector"] = [0.1, "high", 0.3, 0.4, 0.5]
    with pytest.raises(ValidationError):
        FinalProfile.model_validate(reply)
