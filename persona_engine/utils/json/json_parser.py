"""
Utility functions for parsing JSON from LLM responses.

Even in JSON mode, models occasionally wrap the object in a markdown fence or
add a sentence around it. These helpers recover the object when possible and
raise LLMMalformedOutputError otherwise.
"""

import json
import re
import logging
from typing import Any, Dict, Union

from persona_engine.services.llm.exceptions import LLMMalformedOutputError

# Configure logging
logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


def parse_llm_json_response(
    response_text: Union[str, Dict[str, Any]],
    context_msg: str = "",
) -> Dict[str, Any]:
    """
    Parse a JSON object from LLM response text, handling various formats.

    Strategies, in order:
    1. Already a dict
    2. Direct JSON parsing of the string
    3. Extracting JSON from a markdown code block
    4. Taking the text between the first '{' and the last '}' and
       removing trailing commas

    Args:
        response_text: The raw response from the LLM
        context_msg: Context for log messages (usually the stage name)

    Returns:
        The parsed JSON object

    Raises:
        LLMMalformedOutputError: if no JSON object can be recovered
    """
    if isinstance(response_text, dict):
        logger.debug(f"[{context_msg}] Response is already a dict")
        return response_text

    if not isinstance(response_text, str):
        raise LLMMalformedOutputError(
            f"[{context_msg}] Unexpected response type: {type(response_text).__name__}"
        )

    if not response_text.strip():
        raise LLMMalformedOutputError(f"[{context_msg}] Empty response")

    candidates = [response_text.strip()]

    fenced = _FENCED_JSON.search(response_text)
    if fenced:
        candidates.append(fenced.group(1).strip())

    start_index = response_text.find("{")
    end_index = response_text.rfind("}")
    if start_index != -1 and end_index > start_index:
        braced = response_text[start_index : end_index + 1]
        candidates.append(braced)
        candidates.append(_TRAILING_COMMA.sub(r"\1", braced))

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
        logger.debug(f"[{context_msg}] Parsed JSON is a {type(parsed).__name__}, expected an object")

    # Do not log the response body: it may contain personal data
    logger.error(f"[{context_msg}] No valid JSON object found in response ({len(response_text)} chars)")
    raise LLMMalformedOutputError(f"[{context_msg}] Response is not a valid JSON object")
