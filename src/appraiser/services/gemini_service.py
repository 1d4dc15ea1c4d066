"""Service for interacting with the Google Gemini API."""

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

import google.generativeai as genai
from google.api_core.exceptions import GoogleAPIError

from ..config import get_config
from ..models.schemas import RawImage
from .error_handler import InferenceServiceError, InferenceTimeoutError

logger = logging.getLogger(__name__)
config = get_config()


def image_part(image: RawImage) -> Dict[str, Any]:
    """Inline attachment for a generate_content request."""
    return {"mime_type": image.media_type, "data": image.binary_payload}


class GeminiService:
    """Opaque inference boundary: prompt, optional attachments and schema in, text out."""

    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None):
        """Initialize Gemini service with API key."""
        self._model = None
        self._api_key = api_key.strip() if api_key else api_key
        self.model_name = model_name or config.gemini_model
        self.timeout_seconds = config.gemini_timeout_seconds

    @property
    def model(self):
        """Lazy load the Gemini model."""
        if self._model is None:
            if self._api_key:
                genai.configure(api_key=self._api_key)
                logger.info(f"Configured Gemini with API key (length: {len(self._api_key)})")
            else:
                logger.warning(
                    "No Gemini API key provided. Set GOOGLE_API_KEY environment variable."
                )
            self._model = genai.GenerativeModel(self.model_name)
        return self._model

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def generate(
        self,
        prompt: str,
        attachments: Optional[List[RawImage]] = None,
        response_schema: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """
        Send one request to the model and return its text.

        Args:
            prompt: Instruction text
            attachments: Images sent inline after the prompt, in order
            response_schema: When given, the model is constrained to JSON of this shape

        Returns:
            The concatenated text of the first candidate

        Raises:
            InferenceServiceError: API failure, safety block or empty response
            InferenceTimeoutError: No answer within the configured timeout
        """
        contents: List[Any] = [prompt]
        contents.extend(image_part(image) for image in attachments or [])

        generation_config = self._get_generation_config(response_schema)

        logger.info(
            f"🤖 Calling Gemini ({self.model_name}) with {len(contents) - 1} attachment(s)"
            f"{' and response schema' if response_schema else ''}"
        )

        try:
            response = await asyncio.wait_for(
                self.model.generate_content_async(contents, generation_config=generation_config),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"❌ Gemini did not answer within {self.timeout_seconds}s")
            raise InferenceTimeoutError() from e
        except GoogleAPIError as e:
            logger.error(f"❌ Gemini API error: {str(e)}")
            raise InferenceServiceError(details={"original_error": str(e)}) from e

        return self._extract_text(response)

    def _extract_text(self, response) -> str:
        if not response.candidates:
            logger.warning("⚠️ Gemini returned no candidates")
            raise InferenceServiceError(details={"reason": "no_candidates"})

        candidate = response.candidates[0]
        finish_reason = candidate.finish_reason.name if candidate.finish_reason else "UNKNOWN"

        if finish_reason == "SAFETY":
            logger.warning("⚠️ Gemini response blocked by safety filters")
            raise InferenceServiceError(details={"reason": "blocked", "finish_reason": finish_reason})

        parts = candidate.content.parts if candidate.content else []
        response_text = "".join(part.text for part in parts if hasattr(part, "text"))
        if not response_text:
            logger.warning(f"⚠️ Gemini returned no valid content. Finish reason: {finish_reason}")
            raise InferenceServiceError(details={"reason": "empty", "finish_reason": finish_reason})

        if finish_reason == "MAX_TOKENS":
            logger.warning(f"⚠️ Gemini response truncated ({len(response_text)} chars)")

        logger.info(f"✅ Gemini response received ({len(response_text)} characters)")
        return response_text

    def _get_generation_config(self, response_schema: Optional[Mapping[str, Any]]) -> genai.types.GenerationConfig:
        """Schema-constrained calls also declare a JSON response type."""
        if response_schema is None:
            return genai.types.GenerationConfig(temperature=config.gemini_temperature)

        return genai.types.GenerationConfig(
            temperature=config.gemini_temperature,
            response_mime_type="application/json",
            response_schema=response_schema,
        )
