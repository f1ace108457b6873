"""
Tests for the individual pipeline stages.
"""

import pytest

from persona_engine.domain.models.persona_profile import (
    JudgeOutput,
    MinerOutput,
    MiuSource,
    PsychologistOutput,
    RejectedMiu,
    ShadowOutput,
    SubjectInputBundle,
)
from persona_engine.domain.models.pipeline_state import StageNode, merge_state, new_run_state
from persona_engine.infrastructure.data.config import PipelineConfig
from persona_engine.services.llm.exceptions import LLMTransportError
from persona_engine.services.processing.profile_pipeline.exceptions import StageExecutionError
from persona_engine.services.processing.profile_pipeline.stages import (
    JudgeStage,
    MinerStage,
    PsychologistStage,
    ShadowAnalystStage,
    SynthesizerStage,
)
from persona_engine.tests.fakes import (
    approve_all,
    full_bundle,
    judge_reply,
    miner_reply,
    narrative_only_bundle,
    psychologist_reply,
    shadow_reply,
    synthesizer_reply,
)


def _with_miner_output(state, count=4):
    return merge_state(state, {"miner_output": MinerOutput.model_validate(miner_reply(count))})


def _ready_for_synthesis(state, degraded=False):
    miner_output = MinerOutput.model_validate(miner_reply(4))
    return merge_state(
        state,
        {
            "miner_output": miner_output,
            "judge_output": JudgeOutput(
                approved_mius=miner_output.mius,
                validation_rate=1.0,
            ),
            "psychologist_output": PsychologistOutput.model_validate(psychologist_reply()),
            "shadow_output": ShadowOutput.model_validate(shadow_reply()),
            "degraded": degraded,
        },
    )


# ---------------------------------------------------------------------------
# Miner
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_miner_makes_one_json_call_with_its_temperature(gateway, run_state):
    gateway.push(miner_reply(4))
    result = await MinerStage(gateway).execute(run_state)

    assert len(gateway.calls) == 1
    options = gateway.calls[0].options
    assert options.json_mode is True
    assert options.temperature == pytest.approx(0.7)
    assert result.route.target == StageNode.JUDGE
    assert not result.route.is_retry
    assert result.update["miner_output"].total_extracted == 4


@pytest.mark.asyncio
async def test_miner_prompt_contains_only_present_sections(gateway):
    state = new_run_state("profile-1", narrative_only_bundle())
    gateway.push(miner_reply(2, sources=("NARRATIVE",)))

    await MinerStage(gateway).execute(state)

    prompt = gateway.calls[0].user_prompt
    assert "NARRATIVE DATA" in prompt
    assert "Moving abroad alone" in prompt
    assert "COSMIC DATA" not in prompt
    assert "PSYCHOMETRIC DATA" not in prompt
    assert "Frustration:" not in prompt


@pytest.mark.asyncio
async def test_miner_drops_mius_citing_missing_sources(gateway):
    state = new_run_state("profile-1", narrative_only_bundle())
    gateway.push(miner_reply(6))

    result = await MinerStage(gateway).execute(state)

    output = result.update["miner_output"]
    assert {miu.source for miu in output.mius} == {MiuSource.NARRATIVE}
    assert output.total_extracted == len(output.mius) == 2


@pytest.mark.asyncio
async def test_miner_keeps_mius_when_subject_has_no_inputs(gateway):
    state = new_run_state("profile-1", SubjectInputBundle())
    gateway.push(miner_reply(2, sources=("NARRATIVE",)))

    result = await MinerStage(gateway).execute(state)

    assert "No input data is available" in gateway.calls[0].user_prompt
    output = result.update["miner_output"]
    assert output.total_extracted == 2
    assert {miu.source for miu in output.mius} == {MiuSource.NARRATIVE}


@pytest.mark.asyncio
async def test_miner_clamps_confidence(gateway, run_state):
    reply = miner_reply(3)
    reply["mius"][0]["confidence"] = 1.7
    reply["mius"][1]["confidence"] = -0.2
    reply["mius"][2]["confidence"] = "0.65"
    gateway.push(reply)

    result = await MinerStage(gateway).execute(run_state)

    confidences = [miu.confidence for miu in result.update["miner_output"].mius]
    assert confidences == [1.0, 0.0, pytest.approx(0.65)]
    assert all(0.0 <= c <= 1.0 for c in confidences)


@pytest.mark.asyncio
async def test_miner_reassigns_missing_and_duplicate_ids(gateway, run_state):
    reply = miner_reply(4)
    reply["mius"][1]["id"] = "miu_001"
    del reply["mius"][2]["id"]
    reply["totalExtracted"] = 99
    gateway.push(reply)

    result = await MinerStage(gateway).execute(run_state)

    output = result.update["miner_output"]
    ids = [miu.id for miu in output.mius]
    assert len(set(ids)) == 4
    assert ids[0] == "miu_001"
    assert ids[3] == "miu_004"
    assert output.total_extracted == 4


@pytest.mark.asyncio
async def test_miner_skips_invalid_entries(gateway, run_state):
    reply = miner_reply(3)
    reply["mius"].append({"id": "miu_x", "source": "DREAMS", "rawData": "?", "interpretation": "?"})
    reply["mius"].append("not an object")
    gateway.push(reply)

    result = await MinerStage(gateway).execute(run_state)

    assert result.update["miner_output"].total_extracted == 3


@pytest.mark.asyncio
async def test_miner_without_usable_mius_is_malformed(gateway, run_state):
    gateway.push({"mius": [], "totalExtracted": 0})

    with pytest.raises(StageExecutionError) as exc_info:
        await MinerStage(gateway).execute(run_state)

    assert exc_info.value.stage == "Miner"
    assert exc_info.value.kind == "malformed_output"


@pytest.mark.asyncio
async def test_miner_feedback_is_added_on_retry_when_enabled(gateway, run_state):
    state = merge_state(
        _with_miner_output(run_state),
        {
            "retry_count": 1,
            "judge_output": JudgeOutput(
                rejected_mius=[RejectedMiu(id="miu_002", reason="Contradicts the chart")],
                requires_reprocessing=True,
            ),
        },
    )
    gateway.push(miner_reply(4), miner_reply(4))

    await MinerStage(gateway, PipelineConfig(miner_feedback_on_retry=True)).execute(state)
    await MinerStage(gateway, PipelineConfig()).execute(state)

    with_feedback, without_feedback = (call.user_prompt for call in gateway.calls)
    assert "miu_002: Contradicts the chart" in with_feedback
    assert "Contradicts the chart" not in without_feedback


# ---------------------------------------------------------------------------
# Judge
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_judge_approves_subset_of_miner_output(gateway, run_state):
    state = _with_miner_output(run_state, 4)
    reply = judge_reply(["miu_001", "miu_002", "miu_003", "miu_999"], ["miu_004"])
    reply["approvedMius"][0]["interpretation"] = "Rewritten by the judge"
    gateway.push(reply)

    result = await JudgeStage(gateway).execute(state)

    output = result.update["judge_output"]
    miner_ids = {miu.id for miu in state.miner_output.mius}
    assert {miu.id for miu in output.approved_mius} <= miner_ids
    assert [miu.id for miu in output.approved_mius] == ["miu_001", "miu_002", "miu_003"]
    assert output.approved_mius[0] == state.miner_output.mius[0]


@pytest.mark.asyncio
async def test_judge_recomputes_validation_rate(gateway, run_state):
    state = _with_miner_output(run_state, 4)
    reply = judge_reply(["miu_001", "miu_002", "miu_003"], ["miu_004"])
    reply["validationRate"] = 0.2
    gateway.push(reply)

    result = await JudgeStage(gateway).execute(state)

    output = result.update["judge_output"]
    assert output.validation_rate == pytest.approx(
        len(output.approved_mius) / len(state.miner_output.mius)
    )
    assert output.validation_rate == pytest.approx(0.75)
    assert output.requires_reprocessing is False
    assert result.route.target == StageNode.PSYCHOLOGIST
    assert not result.route.is_retry


@pytest.mark.asyncio
async def test_judge_prompt_uses_configured_threshold(gateway, run_state):
    state = _with_miner_output(run_state, 4)
    gateway.push(judge_reply(["miu_001", "miu_002"], ["miu_003", "miu_004"]))

    result = await JudgeStage(gateway, PipelineConfig(quality_threshold=0.5)).execute(state)

    system_prompt = gateway.calls[0].system_prompt
    assert "fewer than 50% of the MIUs" in system_prompt
    assert "70%" not in system_prompt
    assert result.update["judge_output"].requires_reprocessing is False


@pytest.mark.asyncio
async def test_judge_requests_retry_below_threshold(gateway, run_state):
    state = _with_miner_output(run_state, 4)
    gateway.push(judge_reply(["miu_001", "miu_002"], ["miu_003", "miu_004"]))

    result = await JudgeStage(gateway).execute(state)

    assert result.update["judge_output"].requires_reprocessing is True
    assert result.route.is_retry
    assert result.route.target == StageNode.MINER
    assert result.route.fallback == StageNode.PSYCHOLOGIST


@pytest.mark.asyncio
async def test_judge_honours_model_reprocessing_verdict(gateway, run_state):
    state = _with_miner_output(run_state, 4)
    reply = approve_all(4)
    reply["requiresReprocessing"] = True
    gateway.push(reply)

    result = await JudgeStage(gateway).execute(state)

    assert result.update["judge_output"].validation_rate == pytest.approx(1.0)
    assert result.route.is_retry


@pytest.mark.asyncio
async def test_judge_accepts_bare_ids_and_records_missing_verdicts(gateway, run_state):
    state = _with_miner_output(run_state, 4)
    gateway.push({"approvedMius": ["miu_001", "miu_002", "miu_003"], "rejectedMius": []})

    result = await JudgeStage(gateway).execute(state)

    output = result.update["judge_output"]
    assert len(output.approved_mius) == 3
    assert [r.id for r in output.rejected_mius] == ["miu_004"]
    assert output.rejected_mius[0].reason


@pytest.mark.asyncio
async def test_judge_without_miner_output_fails(gateway, run_state):
    with pytest.raises(StageExecutionError) as exc_info:
        await JudgeStage(gateway).execute(run_state)
    assert exc_info.value.stage == "Judge"
    assert gateway.calls == []


# ---------------------------------------------------------------------------
# Psychologist / ShadowAnalyst
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_psychologist_limits_drivers_and_clamps_big_five(gateway, run_state):
    state = _ready_for_synthesis(run_state)
    reply = psychologist_reply()
    reply["drivers"]["coreFears"] = ["a", "b", "c", "d", "e"]
    reply["bigFiveMapping"]["neuroticism"] = 1.4
    gateway.push(reply)

    result = await PsychologistStage(gateway).execute(state)

    output = result.update["psychologist_output"]
    assert output.drivers.core_fears == ["a", "b", "c"]
    assert output.big_five_mapping.neuroticism == 1.0
    assert result.route.target == StageNode.SHADOW_ANALYST
    assert "miu_001" in gateway.calls[0].user_prompt


@pytest.mark.asyncio
async def test_shadow_analyst_routes_to_synthesizer(gateway, run_state):
    state = _ready_for_synthesis(run_state)
    gateway.push(shadow_reply())

    result = await ShadowAnalystStage(gateway).execute(state)

    assert result.update["shadow_output"].archetypes.shadow == "Orphan"
    assert result.route.target == StageNode.SYNTHESIZER
    assert gateway.calls[0].options.temperature == pytest.approx(0.8)


@pytest.mark.asyncio
async def test_shadow_analyst_transport_error_is_tagged(gateway, run_state):
    state = _ready_for_synthesis(run_state)
    gateway.push(LLMTransportError("connection reset"))

    with pytest.raises(StageExecutionError) as exc_info:
        await ShadowAnalystStage(gateway).execute(state)

    assert exc_info.value.stage == "ShadowAnalyst"
    assert exc_info.value.kind == "transport"
    assert isinstance(exc_info.value.cause, LLMTransportError)


# ---------------------------------------------------------------------------
# Synthesizer
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_synthesizer_builds_final_profile(gateway, run_state):
    state = _ready_for_synthesis(run_state)
    gateway.push(synthesizer_reply(vector=(0.8, 0.6, 1.3, 0.5, -0.1)))

    result = await SynthesizerStage(gateway).execute(state)

    profile = result.update["final_profile"]
    assert profile.personality_vector == [0.8, 0.6, 1.0, 0.5, 0.0]
    assert profile.persona_guidelines.tone_of_voice == "Confident and kind"
    assert profile.degraded is False
    assert result.route.target == StageNode.DONE
    assert "Leo" in gateway.calls[0].user_prompt


@pytest.mark.asyncio
async def test_synthesizer_copies_degraded_flag_from_state(gateway, run_state):
    gateway.push(synthesizer_reply())
    result = await SynthesizerStage(gateway).execute(_ready_for_synthesis(run_state, degraded=True))
    assert result.update["final_profile"].degraded is True

    reply = synthesizer_reply()
    reply["degraded"] = True
    gateway.push(reply)
    result = await SynthesizerStage(gateway).execute(_ready_for_synthesis(run_state))
    assert result.update["final_profile"].degraded is False


@pytest.mark.asyncio
async def test_synthesizer_rejects_wrong_vector_length(gateway, run_state):
    gateway.push(synthesizer_reply(vector=(0.5, 0.5, 0.5)))

    with pytest.raises(StageExecutionError) as exc_info:
        await SynthesizerStage(gateway).execute(_ready_for_synthesis(run_state))

    assert exc_info.value.kind == "malformed_output"
    assert "personalityVector" in str(exc_info.value)


@pytest.mark.asyncio
async def test_stage_accepts_fenced_json(gateway, run_state):
    import json

    gateway.push("Here you go:\n```json\n" + json.dumps(shadow_reply()) + "\n```")
    result = await ShadowAnalystStage(gateway).execute(_ready_for_synthesis(run_state))
    assert result.update["shadow_output"].archetypes.primary == "Ruler"


@pytest.mark.asyncio
async def test_stage_rejects_non_json(gateway, run_state):
    gateway.push("I cannot help with that.")

    with pytest.raises(StageExecutionError) as exc_info:
        await PsychologistStage(gateway).execute(_ready_for_synthesis(run_state))

    assert exc_info.value.kind == "malformed_output"
    assert "I cannot help" not in str(exc_info.value)


def test_full_bundle_sources():
    assert full_bundle().available_sources() == [
        MiuSource.COSMIC,
        MiuSource.PSYCHOMETRIC,
        MiuSource.NARRATIVE,
    ]
