"""Appraisal endpoints: manual lookup, photo lookup and the current outcome."""

import logging
import uuid
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Header, Response

from ..config import get_config
from ..models.schemas import AppraiseImagesRequest, ErrorResponse, ManualCardIdentity, PipelineOutcome
from ..services.appraisal_pipeline import AppraisalPipeline, PipelineSessions
from ..services.error_handler import (
    AppraisalError,
    ErrorDetails,
    ErrorType,
    handle_unexpected_error,
    raise_appraisal_error,
)
from ..services.gemini_service import GeminiService
from ..services.identification import IdentificationStage
from ..services.image_processor import ImageProcessor
from ..services.pricing import PricingStage

logger = logging.getLogger(__name__)
config = get_config()

router = APIRouter(prefix="/api/v1/appraise", tags=["appraise"])


SESSION_HEADER = "X-Appraisal-Session"
SESSION_COOKIE = "appraisal_session"


@lru_cache()
def get_pipeline_sessions() -> PipelineSessions:
    """Process-wide session registry; the stages and Gemini client are shared."""
    gemini_service = GeminiService(api_key=config.google_api_key)
    identification_stage = IdentificationStage(gemini_service)
    pricing_stage = PricingStage(gemini_service)
    return PipelineSessions(lambda: AppraisalPipeline(identification_stage, pricing_stage))


def get_session_id(
    response: Response,
    session_header: Optional[str] = Header(None, alias=SESSION_HEADER),
    session_cookie: Optional[str] = Cookie(None, alias=SESSION_COOKIE),
) -> str:
    """
    Identify the caller session.

    An explicit header wins over the cookie. Callers with neither get a new
    session, and the cookie is (re)issued on every response.
    """
    session_id = session_header or session_cookie or uuid.uuid4().hex
    response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")
    return session_id


def get_pipeline(
    session_id: str = Depends(get_session_id),
    sessions: PipelineSessions = Depends(get_pipeline_sessions),
) -> AppraisalPipeline:
    return sessions.get(session_id)


def get_image_processor() -> ImageProcessor:
    return ImageProcessor()


@router.get("/outcome", response_model=PipelineOutcome)
async def current_outcome(pipeline: AppraisalPipeline = Depends(get_pipeline)):
    """Current state of this session's latest run."""
    return pipeline.outcome


@router.post("/manual", response_model=PipelineOutcome, responses={400: {"model": ErrorResponse}})
async def appraise_manual(
    identity: ManualCardIdentity,
    pipeline: AppraisalPipeline = Depends(get_pipeline),
):
    """
    Price a card from typed-in details.

    Player, year and set are required; an incomplete identity is rejected
    before any model call. A failed lookup is still a 200 with a failed outcome.
    """
    if not identity.is_complete:
        raise_appraisal_error(
            ErrorDetails(
                error_type=ErrorType.INVALID_INPUT,
                message="Player, year and set are required",
                suggestions=["Fill in player, year and set before searching"],
            )
        )

    try:
        return await pipeline.run_manual(identity)
    except AppraisalError as e:
        raise_appraisal_error(e.error_details)
    except Exception as e:
        handle_unexpected_error(e, context="manual_appraisal")


@router.post("/images", response_model=PipelineOutcome, responses={400: {"model": ErrorResponse}, 415: {"model": ErrorResponse}})
async def appraise_images(
    request: AppraiseImagesRequest,
    pipeline: AppraisalPipeline = Depends(get_pipeline),
    image_processor: ImageProcessor = Depends(get_image_processor),
):
    """
    Identify a card from front and back photos, then price it.

    Each side is a data URI or bare base64 with an explicit media type.
    Accepted formats: PNG, JPEG, WEBP.
    """
    try:
        front = image_processor.from_data_uri(request.front.image, request.front.filename or "front", request.front.media_type)
        back = image_processor.from_data_uri(request.back.image, request.back.filename or "back", request.back.media_type)
    except AppraisalError as e:
        raise_appraisal_error(e.error_details)

    try:
        return await pipeline.run_from_images(front, back)
    except Exception as e:
        handle_unexpected_error(e, context="image_appraisal")
