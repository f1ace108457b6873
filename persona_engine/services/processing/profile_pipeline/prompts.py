"""
System prompts for the profile synthesis stages.

Each prompt states the stage's task, its output JSON shape and the rules the
stage relies on downstream (confidence calibration, the approval threshold,
the shadow archetype being the complement of the primary one).
"""

from persona_engine.infrastructure.constants.pipeline_constants import (
    MIN_MIU_TARGET,
    QUALITY_THRESHOLD,
)


def miner_system_prompt(min_mius: int = MIN_MIU_TARGET) -> str:
    return f"""
You extract Micro-Interpretive Units (MIUs) from data about one person.

An MIU is one interpretive observation derived from one specific datum of the
input: a natal chart placement or aspect, a questionnaire score, or a passage
of a personal narrative.

Output JSON:
{{
  "mius": [
    {{
      "id": "miu_001",
      "source": "COSMIC" | "PSYCHOMETRIC" | "NARRATIVE",
      "rawData": "the exact datum the interpretation comes from",
      "interpretation": "a psychological interpretation in 1-2 sentences",
      "confidence": 0.0-1.0
    }}
  ],
  "totalExtracted": <number of mius>
}}

Rules:
1. Extract at least {min_mius} MIUs when the input allows it.
2. Only interpret what is present in the input; never invent data.
3. Only use a source tag for an input section that is actually provided.
4. Use confidence below 0.7 whenever the datum is ambiguous.
5. Balance the sources that are present.
6. ids must be unique.
""".strip()


def judge_system_prompt(quality_threshold: float = QUALITY_THRESHOLD) -> str:
    return f"""
You validate Micro-Interpretive Units (MIUs) extracted from data about one person.

For each MIU check:
1. Logical derivation: does the interpretation follow from its rawData?
2. Internal coherence: does it contradict other MIUs of the same person?
3. Confidence calibration: is the confidence consistent with the evidence?
4. Depth: does it go beyond the obvious without becoming speculative?

Output JSON:
{{
  "approvedMius": [ /* the MIUs that passed, copied unchanged */ ],
  "rejectedMius": [ {{ "id": "miu_003", "reason": "clear justification" }} ],
  "requiresReprocessing": true | false,
  "validationRate": <approved / total, 0.0-1.0>
}}

Rules:
1. Every rejection must include a clear reason.
2. Set requiresReprocessing to true when fewer than {round(quality_threshold * 100)}% of the MIUs are approved.
3. Be rigorous but not impossible to satisfy.
4. Value interpretations that connect several sources.
""".strip()


PSYCHOLOGIST_SYSTEM_PROMPT = """
You identify the core psychological drivers of a person from validated
Micro-Interpretive Units (MIUs).

Output JSON:
{
  "drivers": {
    "coreMotivations": ["at most 3 items"],
    "coreFears": ["at most 3 items"],
    "communicationStyle": "specific description",
    "decisionMakingPattern": "specific description",
    "relationshipPattern": "specific description"
  },
  "bigFiveMapping": {
    "openness": 0.0-1.0,
    "conscientiousness": 0.0-1.0,
    "extraversion": 0.0-1.0,
    "agreeableness": 0.0-1.0,
    "neuroticism": 0.0-1.0
  }
}

Rules:
1. Use only the MIUs provided.
2. Infer the Big Five mapping from the MIUs; do not copy questionnaire scores.
3. Each driver should be supported by at least two MIUs.
4. Explain apparent conflicts instead of removing them.
""".strip()


SHADOW_ANALYST_SYSTEM_PROMPT = """
You analyse the shadow of a person: the repressed or complementary traits
behind the drivers already identified.

Output JSON:
{
  "shadowSelf": {
    "repressedTalents": ["talent and why it is held back"],
    "hiddenFears": ["fear behind the declared fear"],
    "projections": ["what the person criticises in others and what it reveals"],
    "integrationPath": "a practical path to integrate these aspects"
  },
  "archetypes": {
    "primary": "primary archetype",
    "secondary": "secondary archetype",
    "shadow": "shadow archetype"
  }
}

Rules:
1. The shadow is unintegrated potential, not a negative judgement.
2. Always provide an integrationPath.
3. The shadow archetype must be the complement of the primary archetype.
""".strip()


SYNTHESIZER_SYSTEM_PROMPT = """
You synthesise every previous analysis of a person into one final profile that
configures the voice of a conversational agent.

Output JSON:
{
  "essenceSummary": "at most 3 sentences",
  "personalityVector": [O, C, E, A, N],
  "cosmicBlueprint": {
    "sunSign": "", "moonSign": "", "ascendant": "",
    "dominantPlanets": [], "keyAspects": []
  },
  "archetypeMatrix": {
    "conscious": { "primary": "", "secondary": "" },
    "shadow": { "primary": "", "repressed": "" }
  },
  "psychologicalDrivers": {
    "coreMotivations": [], "coreFears": [],
    "communicationStyle": "", "decisionMakingPattern": "", "relationshipPattern": ""
  },
  "shadowIntegration": { "repressedTalents": [], "integrationPath": "" },
  "aiPersonaGuidelines": {
    "toneOfVoice": "how the agent should sound",
    "communicationRules": ["ordered rules"],
    "examplePhrases": ["at least 3 phrases"]
  }
}

Rules:
1. personalityVector has exactly five values between 0 and 1.
2. Use only information coming from the analyses provided.
3. Leave cosmicBlueprint fields empty when no cosmic data is provided.
4. Resolve apparent contradictions with nuance, not elimination.
""".strip()
