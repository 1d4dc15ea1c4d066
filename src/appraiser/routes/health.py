"""Health check endpoints for Pocket Appraisal."""

import logging

from fastapi import APIRouter

from ..config import get_config
from ..models.schemas import HealthResponse
from ..services.gemini_service import GeminiService
from ..services.image_processor import ACCEPTED_MEDIA_TYPES

logger = logging.getLogger(__name__)
config = get_config()

router = APIRouter(prefix="/api/v1", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Check the health status of the services the pipeline depends on.

    Only configuration is checked; no model call is made.
    """
    services_status = {}

    gemini_service = GeminiService(api_key=config.google_api_key)
    services_status["gemini"] = gemini_service.is_configured
    services_status["gemini_model"] = gemini_service.model_name
    services_status["accepted_media_types"] = sorted(ACCEPTED_MEDIA_TYPES)

    return HealthResponse(
        status="healthy" if services_status["gemini"] else "degraded",
        version="1.0.0",
        services=services_status,
    )


@router.get("/ready")
async def readiness_check():
    """
    Simple readiness check for container orchestration.

    Returns 200 if the service is ready to accept requests.
    """
    return {"ready": True}
