"""Response parsing for Gemini output: fence stripping and typed decoding."""

import json
import logging
import re
from typing import Any, Dict, Type, TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# ```json ... ``` with optional language tag; only fences at the very start and end count
_LEADING_FENCE = re.compile(r"\A\s*```[A-Za-z0-9_+-]*[ \t]*\r?\n?")
_TRAILING_FENCE = re.compile(r"\r?\n?[ \t]*```\s*\Z")


class MalformedResponse(ValueError):
    """Model text could not be decoded into the expected record."""


def strip_code_fences(text: str) -> str:
    """
    Remove markdown code-fence markup wrapping a model answer.

    Stripping is idempotent: the result never starts or ends with a fence
    that a second pass would remove.
    """
    stripped = text.strip()
    while True:
        previous = stripped
        stripped = _LEADING_FENCE.sub("", stripped, count=1)
        stripped = _TRAILING_FENCE.sub("", stripped, count=1).strip()
        if stripped == previous:
            return stripped


def parse_json_object(text: str) -> Dict[str, Any]:
    """
    Decode model text into a JSON object.

    Args:
        text: Raw text response, optionally wrapped in code fences

    Returns:
        The decoded object

    Raises:
        MalformedResponse: the text is not JSON, or is JSON but not an object
    """
    candidate = strip_code_fences(text or "")
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.debug(f"Unparseable model text: {text!r}")
        raise MalformedResponse(f"not valid JSON: {e.msg} at position {e.pos}") from e
    except (ValueError, RecursionError) as e:
        # oversized integer literals and pathological nesting
        logger.debug(f"Undecodable model text ({type(e).__name__}): {candidate[:200]!r}")
        raise MalformedResponse(f"not decodable JSON: {type(e).__name__}") from e

    if not isinstance(data, dict):
        logger.debug(f"Model text decoded to {type(data).__name__}: {text!r}")
        raise MalformedResponse(f"expected a JSON object, got {type(data).__name__}")

    return data


def decode_model(text: str, model: Type[ModelT]) -> ModelT:
    """Decode model text straight into a pydantic record."""
    data = parse_json_object(text)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.debug(f"Model text failed {model.__name__} validation: {e}")
        raise MalformedResponse(f"does not match {model.__name__}: {e.error_count()} error(s)") from e
