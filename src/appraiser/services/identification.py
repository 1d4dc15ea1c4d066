"""Identification stage: front and back photos in, card identity and condition out."""

import logging
import math
from typing import Any, Dict, List, Optional

from ..models.schemas import IdentifiedCardIdentity, RawImage
from .error_handler import IdentificationIncompleteError, IdentificationMalformedError
from .gemini_service import GeminiService
from .response_parser import MalformedResponse, parse_json_object

logger = logging.getLogger(__name__)

IDENTIFICATION_PROMPT = """You are a sports card expert, specializing in both identification and professional grading. Based on the provided front and back images of this sports card, perform two tasks:

1.  **Identification**: Identify the Year, Manufacturer/Set, Player Name, and Card Number. Also, identify if this is a specific parallel or variation. If it is a parallel, describe it (e.g., 'Refractor', 'Prizm Silver', 'Gold /10').

2.  **Condition Assessment**: Analyze the card's condition based on centering, corners, edges, and surface. Provide a suggested raw grade on a scale of 1 to 10 (e.g., 8.5, 9, 10). Also, provide a list of specific observations about the card's condition.

Respond with ONLY a JSON object with the keys: "year", "set", "player", "cardNumber", "parallelDescription", "suggestedGrade" (as a number), and "conditionNotes" (as an array of strings). If a field cannot be identified, return null for its value. The grade and notes should be based on a critical assessment of the images."""

TEXT_FIELDS = ("player", "year", "set", "cardNumber", "parallelDescription")


def _text_or_none(value: Any) -> Optional[str]:
    """Keep missing and empty apart: only absent or null become None."""
    if value is None:
        return None
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(value, str):
        return value.strip()
    return str(value)


def _grade_or_none(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        grade = float(value)
    except (TypeError, ValueError, OverflowError):
        logger.info(f"Ignoring non-numeric suggested grade: {value!r}")
        return None
    if math.isnan(grade) or math.isinf(grade):
        return None
    if not 1 <= grade <= 10:
        logger.warning(f"⚠️ Suggested grade {grade} is outside the 1-10 scale")
    return grade


def _notes_or_none(value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(note) for note in value if note is not None]
    return [str(value)]


def identity_from_response(data: Dict[str, Any]) -> IdentifiedCardIdentity:
    """Map a decoded model answer onto the identity record."""
    fields = {name: _text_or_none(data.get(name)) for name in TEXT_FIELDS}
    return IdentifiedCardIdentity.model_validate(
        {
            **fields,
            "suggestedGrade": _grade_or_none(data.get("suggestedGrade")),
            "conditionNotes": _notes_or_none(data.get("conditionNotes")),
        }
    )


class IdentificationStage:
    """Single-attempt identification of a card from two photos."""

    def __init__(self, gemini_service: GeminiService):
        self.gemini_service = gemini_service

    async def identify(self, front: RawImage, back: RawImage) -> IdentifiedCardIdentity:
        """
        Identify a card and assess its condition.

        Args:
            front: Front of the card, from a file or the camera
            back: Back of the card

        Returns:
            Identity with player, year and set all present

        Raises:
            IdentificationMalformedError: the answer was not a JSON object
            IdentificationIncompleteError: player, year or set is missing
        """
        logger.info(f"🔍 Identifying card from {front.origin_filename} and {back.origin_filename}")

        response_text = await self.gemini_service.generate(IDENTIFICATION_PROMPT, attachments=[front, back])

        try:
            data = parse_json_object(response_text)
        except MalformedResponse as e:
            logger.error(f"❌ Failed to parse identification response: {e}")
            raise IdentificationMalformedError(details={"reason": str(e)}) from e

        identity = identity_from_response(data)
        if not identity.is_usable:
            missing = [
                name
                for name, value in (("player", identity.player), ("year", identity.year), ("set", identity.set_name))
                if not value
            ]
            logger.info(f"Identification missing essential fields: {missing}")
            raise IdentificationIncompleteError(details={"missing_fields": missing})

        logger.info(
            f"✅ Identified {identity.year} {identity.set_name} {identity.player}"
            f"{f' #{identity.card_number}' if identity.card_number else ''}"
        )
        return identity
