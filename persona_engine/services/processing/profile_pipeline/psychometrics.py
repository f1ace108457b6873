"""
Big Five scoring for the ten-item onboarding questionnaire.

Items pair up per trait: (1, 6) openness, (2, 7) conscientiousness,
(3, 8) extraversion, (4, 9) agreeableness, (5, 10) neuroticism. The mean of
each pair is mapped from the 1-5 Likert range onto [0, 1].
"""

import logging
from typing import Any, Dict, Optional, Sequence

from persona_engine.domain.models.persona_profile import BIG_FIVE_TRAITS

logger = logging.getLogger(__name__)

QUESTION_COUNT = 10
LIKERT_MIN = 1
LIKERT_MAX = 5


def _normalize(score: float) -> float:
    return (score - LIKERT_MIN) / (LIKERT_MAX - LIKERT_MIN)


def calculate_big_five(answers: Sequence[float]) -> Dict[str, float]:
    """
    Score the questionnaire.

    Args:
        answers: At least ten Likert answers in questionnaire order

    Returns:
        Dictionary mapping each trait name to a score in [0, 1]

    Raises:
        ValueError: if fewer than ten answers are given or one is outside 1-5
    """
    if len(answers) < QUESTION_COUNT:
        raise ValueError(f"Expected {QUESTION_COUNT} answers, got {len(answers)}")

    values = []
    for position, answer in enumerate(answers[:QUESTION_COUNT], start=1):
        if isinstance(answer, bool):
            raise ValueError(f"Answer {position} is not a number")
        try:
            value = float(answer)
        except (TypeError, ValueError):
            raise ValueError(f"Answer {position} is not a number: {answer!r}")
        if not (LIKERT_MIN <= value <= LIKERT_MAX):
            raise ValueError(f"Answer {position} must be between {LIKERT_MIN} and {LIKERT_MAX}")
        values.append(value)

    half = len(BIG_FIVE_TRAITS)
    return {
        trait: _normalize((values[i] + values[i + half]) / 2)
        for i, trait in enumerate(BIG_FIVE_TRAITS)
    }


def prepare_psychometric_data(record: Any) -> Optional[Dict[str, Any]]:
    """
    Add `bigFive` scores to a stored questionnaire record that only has answers.

    A bare list is read as the answers themselves. Any other non-mapping
    value cannot be interpreted and is discarded with a warning.
    """
    if not record:
        return None if isinstance(record, (list, tuple)) else record
    if isinstance(record, (list, tuple)):
        record = {"answers": list(record)}
    elif not isinstance(record, dict):
        logger.warning(
            f"[Psychometrics] Ignoring stored record of type {type(record).__name__}"
        )
        return None
    if record.get("bigFive") or not record.get("answers"):
        return record
    try:
        big_five = calculate_big_five(record["answers"])
    except ValueError as e:
        logger.warning(f"[Psychometrics] Stored answers could not be scored: {e}")
        return record
    return {**record, "bigFive": big_five}
