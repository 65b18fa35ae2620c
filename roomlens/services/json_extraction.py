"""
Resilient JSON extraction from language-model replies.

Models are asked for strict JSON but routinely wrap it in Markdown fences,
add commentary around it or leave trailing commas. This module cleans those
defects, parses strictly, and allows exactly one generic repair pass before
giving up. It never guesses a structure: unrecoverable text raises
UnparsableResponse with the candidate payload attached.
"""
import json
import logging
import re
from typing import Any, Dict

from json_repair import repair_json

from roomlens.core.exceptions import UnparsableResponse

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"```[ \t]*[A-Za-z0-9_+-]*")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


def clean_model_text(text: str) -> str:
    """Strip code fences, trailing whitespace and trailing commas"""
    without_fences = _CODE_FENCE.sub("", text)
    trimmed = "\n".join(line.rstrip() for line in without_fences.strip().split("\n"))
    return _TRAILING_COMMA.sub(r"\1", trimmed)


def candidate_payload(cleaned: str) -> str:
    """Slice from the first '{' to the last '}'; leading/trailing commentary is dropped"""
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end < start:
        return cleaned
    return cleaned[start : end + 1]


def extract_json_object(text: str, context: str = "model response") -> Dict[str, Any]:
    """
    Parse the single JSON object contained in raw model text.

    Args:
        text: Raw text returned by the model
        context: Short label used in log lines and error messages

    Returns:
        The parsed JSON object

    Raises:
        UnparsableResponse: when neither strict parsing nor one repair pass yields an object
    """
    payload = candidate_payload(clean_model_text(text or ""))

    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as parse_error:
        logger.warning(f"Strict JSON parse failed for {context}: {parse_error}; attempting repair")
        parsed = _parse_repaired(payload)
        if not isinstance(parsed, dict):
            logger.error(
                f"Failed to parse {context} JSON",
                extra={"payload": payload[:2000], "parse_error": str(parse_error)},
            )
            raise UnparsableResponse(
                f"Could not parse {context}: {parse_error}",
                payload=payload,
                details={"parse_error": str(parse_error)},
            ) from parse_error
        logger.info(f"Recovered {context} JSON after repair")

    if not isinstance(parsed, dict):
        logger.error(f"{context} JSON is a {type(parsed).__name__}, expected an object", extra={"payload": payload[:2000]})
        raise UnparsableResponse(f"Expected a JSON object in {context}", payload=payload)

    return parsed


def _parse_repaired(payload: str) -> Any:
    """One generic repair pass; None when the repaired text still does not parse"""
    try:
        return json.loads(repair_json(payload))
    except (json.JSONDecodeError, ValueError, TypeError) as e:
        logger.debug(f"JSON repair pass failed: {e}")
        return None
