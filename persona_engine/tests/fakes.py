"""
Test doubles and canned model replies for the pipeline tests.
"""

import asyncio
import json
from collections import deque
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from persona_engine.domain.interfaces.llm_gateway import (
    ILLMGateway,
    LLMCallOptions,
    LLMResponse,
    TokenUsage,
)
from persona_engine.domain.models.persona_profile import NarrativeData, SubjectInputBundle

# Opening words of each stage's system prompt
_STAGE_MARKERS = (
    ("You extract Micro-Interpretive Units", "Miner"),
    ("You validate Micro-Interpretive Units", "Judge"),
    ("You identify the core psychological drivers", "Psychologist"),
    ("You analyse the shadow", "ShadowAnalyst"),
    ("You synthesise every previous analysis", "Synthesizer"),
)


def stage_of(system_prompt: str) -> str:
    for marker, stage in _STAGE_MARKERS:
        if system_prompt.startswith(marker):
            return stage
    return "Unknown"


@dataclass
class GatewayCall:
    system_prompt: str
    user_prompt: str
    options: Optional[LLMCallOptions]

    @property
    def stage(self) -> str:
        return stage_of(self.system_prompt)


class ScriptedGateway(ILLMGateway):
    """
    Replays queued replies in order.

    A reply may be a dict (sent as JSON), a raw string, or an exception
    instance, which is raised instead of answering.
    """

    def __init__(self, replies: Iterable[Any] = (), delay: float = 0.0):
        self.replies = deque(replies)
        self.calls: List[GatewayCall] = []
        self.delay = delay

    def push(self, *replies: Any):
        self.replies.extend(replies)

    @property
    def stages_called(self) -> List[str]:
        return [call.stage for call in self.calls]

    async def invoke(
        self,
        system_prompt: str,
        user_prompt: str,
        options: Optional[LLMCallOptions] = None,
    ) -> LLMResponse:
        self.calls.append(GatewayCall(system_prompt, user_prompt, options))
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.replies:
            raise RuntimeError("ScriptedGateway has no reply left")

        reply = self.replies.popleft()
        if isinstance(reply, BaseException):
            raise reply
        content = reply if isinstance(reply, str) else json.dumps(reply)
        return LLMResponse(
            content=content,
            usage=TokenUsage(prompt_tokens=100, completion_tokens=50, total_tokens=150),
            model="scripted",
        )


class StageRoutingGateway(ILLMGateway):
    """Answers each stage with a fixed reply; safe to share between runs."""

    def __init__(self, replies_by_stage: Dict[str, Any], delay: float = 0.0):
        self.replies_by_stage = replies_by_stage
        self.delay = delay
        self.calls: List[GatewayCall] = []

    async def invoke(
        self,
        system_prompt: str,
        user_prompt: str,
        options: Optional[LLMCallOptions] = None,
    ) -> LLMResponse:
        self.calls.append(GatewayCall(system_prompt, user_prompt, options))
        await asyncio.sleep(self.delay)
        reply = self.replies_by_stage[stage_of(system_prompt)]
        return LLMResponse(content=json.dumps(reply), model="routed")


# ---------------------------------------------------------------------------
# Canned replies
# ---------------------------------------------------------------------------

ALL_SOURCES = ("COSMIC", "PSYCHOMETRIC", "NARRATIVE")


def miner_reply(count: int = 4, sources: Sequence[str] = ALL_SOURCES, confidence: Any = 0.8):
    return {
        "mius": [
            {
                "id": f"miu_{i:03d}",
                "source": sources[(i - 1) % len(sources)],
                "rawData": f"datum {i}",
                "interpretation": f"Interpretation of datum {i}.",
                "confidence": confidence,
            }
            for i in range(1, count + 1)
        ],
        "totalExtracted": count,
    }


def judge_reply(
    approved: Sequence[str],
    rejected: Sequence[str] = (),
    requires_reprocessing: bool = False,
):
    return {
        "approvedMius": [{"id": miu_id} for miu_id in approved],
        "rejectedMius": [{"id": miu_id, "reason": "Weak derivation"} for miu_id in rejected],
        "requiresReprocessing": requires_reprocessing,
    }


def approve_all(count: int = 4):
    return judge_reply([f"miu_{i:03d}" for i in range(1, count + 1)])


def reject_most(count: int = 4):
    """One approval out of `count`: below any sensible threshold."""
    ids = [f"miu_{i:03d}" for i in range(1, count + 1)]
    return judge_reply(ids[:1], ids[1:], requires_reprocessing=True)


def psychologist_reply():
    return {
        "drivers": {
            "coreMotivations": ["Recognition", "Autonomy", "Mastery"],
            "coreFears": ["Irrelevance"],
            "communicationStyle": "Direct and warm",
            "decisionMakingPattern": "Intuitive first, then verified",
            "relationshipPattern": "Loyal but guarded",
        },
        "bigFiveMapping": {
            "openness": 0.8,
            "conscientiousness": 0.6,
            "extraversion": 0.7,
            "agreeableness": 0.5,
            "neuroticism": 0.3,
        },
    }


def shadow_reply():
    return {
        "shadowSelf": {
            "repressedTalents": ["Vulnerability as strength"],
            "hiddenFears": ["Being ordinary"],
            "projections": ["Impatience with indecisive people"],
            "integrationPath": "Practise asking for help.",
        },
        "archetypes": {"primary": "Ruler", "secondary": "Creator", "shadow": "Orphan"},
    }


def synthesizer_reply(vector: Sequence[float] = (0.8, 0.6, 0.7, 0.5, 0.3)):
    return {
        "essenceSummary": "A driven creator learning to share the stage.",
        "personalityVector": list(vector),
        "cosmicBlueprint": {
            "sunSign": "Leo",
            "moonSign": "Pisces",
            "ascendant": "Virgo",
            "dominantPlanets": ["Sun"],
            "keyAspects": ["Sun trine Moon"],
        },
        "archetypeMatrix": {
            "conscious": {"primary": "Ruler", "secondary": "Creator"},
            "shadow": {"primary": "Orphan", "repressed": "Vulnerability"},
        },
        "psychologicalDrivers": psychologist_reply()["drivers"],
        "shadowIntegration": {
            "repressedTalents": ["Vulnerability as strength"],
            "integrationPath": "Practise asking for help.",
        },
        "aiPersonaGuidelines": {
            "toneOfVoice": "Confident and kind",
            "communicationRules": ["Be concise", "Acknowledge effort"],
            "examplePhrases": ["You already know this.", "Let's look closer.", "Trust it."],
        },
    }


def happy_path(count: int = 4):
    return [
        miner_reply(count),
        approve_all(count),
        psychologist_reply(),
        shadow_reply(),
        synthesizer_reply(),
    ]


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


def full_bundle() -> SubjectInputBundle:
    return SubjectInputBundle(
        cosmic_data={
            "sun": {"sign": "Leo", "house": 10},
            "moon": {"sign": "Pisces", "house": 5},
            "ascendant": "Virgo",
        },
        psychometric_data={
            "answers": [4, 3, 5, 2, 3, 5, 4, 4, 3, 2],
            "bigFive": {
                "openness": 0.875,
                "conscientiousness": 0.625,
                "extraversion": 0.875,
                "agreeableness": 0.375,
                "neuroticism": 0.375,
            },
        },
        narrative_data=NarrativeData(
            decisive_moment="Leaving a stable job to start a studio.",
            frustration="Feeling unseen in group settings.",
            dream="Building a school for young artists.",
        ),
    )


def narrative_only_bundle() -> SubjectInputBundle:
    return SubjectInputBundle(
        narrative_data=NarrativeData(
            decisive_moment="Moving abroad alone at nineteen.",
            dream="Writing a novel.",
        )
    )
