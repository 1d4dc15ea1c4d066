"""Centralized error handling for Pocket Appraisal."""

import json
import logging
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import HTTPException

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "An unknown error occurred."


class ErrorType(Enum):
    """Enumeration of error types with their characteristics."""

    # Client Errors (4xx)
    INVALID_INPUT = ("invalid_input", 400, "Invalid input data provided")
    INVALID_IMAGE = ("invalid_image", 400, "Invalid or corrupted image data")
    UNSUPPORTED_FORMAT = ("unsupported_format", 415, "Unsupported image format. Use PNG, JPEG or WEBP.")
    CAPTURE_STATE = ("capture_state", 409, "Camera capture is not in a state that allows this action")
    IDENTIFICATION_INCOMPLETE = (
        "identification_incomplete",
        422,
        "Could not identify the card's essential details. Please use clearer images.",
    )

    # Server Errors (5xx)
    IDENTIFICATION_MALFORMED = (
        "identification_malformed",
        502,
        "Could not identify the card from the provided images. The AI response was not valid JSON.",
    )
    PRICING_MALFORMED = (
        "pricing_malformed",
        502,
        "Could not retrieve pricing data. The AI response was not valid JSON.",
    )
    AI_SERVICE_ERROR = ("ai_service_error", 502, "AI service temporarily unavailable")
    DEVICE_UNAVAILABLE = ("device_unavailable", 503, "Camera is unavailable. Check permissions or upload a photo instead.")
    TIMEOUT_ERROR = ("timeout_error", 504, "The AI service did not respond in time. Please try again.")
    UNKNOWN_FAILURE = ("unknown_failure", 500, UNKNOWN_ERROR_MESSAGE)

    def __init__(self, error_code: str, status_code: int, default_message: str):
        self.error_code = error_code
        self.status_code = status_code
        self.default_message = default_message


class ErrorDetails:
    """Structured error details for consistent API responses."""

    def __init__(
        self,
        error_type: ErrorType,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[list] = None,
    ):
        self.error_type = error_type
        self.message = message or error_type.default_message
        self.details = details or {}
        self.suggestions = suggestions or []

    def to_dict(self) -> Dict[str, Any]:
        """Convert error details to dictionary for JSON response."""
        response = {
            "message": self.message,
            "error_type": self.error_type.error_code,
        }

        if self.details:
            response["details"] = self.details

        if self.suggestions:
            response["suggestions"] = self.suggestions

        return response


class AppraisalError(Exception):
    """Base exception for appraisal errors with structured details."""

    error_type = ErrorType.UNKNOWN_FAILURE

    def __init__(self, message: Optional[str] = None, **kwargs):
        self.error_details = ErrorDetails(error_type=self.error_type, message=message, **kwargs)
        super().__init__(self.error_details.message)

    @property
    def message(self) -> str:
        return self.error_details.message


class InvalidInputError(AppraisalError):
    error_type = ErrorType.INVALID_INPUT


class InvalidImageError(AppraisalError):
    error_type = ErrorType.INVALID_IMAGE


class UnsupportedImageError(AppraisalError):
    error_type = ErrorType.UNSUPPORTED_FORMAT


class DeviceUnavailableError(AppraisalError):
    """Camera permission denied, no device, or the device never started."""
    error_type = ErrorType.DEVICE_UNAVAILABLE


class CaptureStateError(AppraisalError):
    error_type = ErrorType.CAPTURE_STATE


class IdentificationMalformedError(AppraisalError):
    error_type = ErrorType.IDENTIFICATION_MALFORMED


class IdentificationIncompleteError(AppraisalError):
    error_type = ErrorType.IDENTIFICATION_INCOMPLETE


class PricingMalformedError(AppraisalError):
    error_type = ErrorType.PRICING_MALFORMED


class InferenceServiceError(AppraisalError):
    """The model call itself failed (API error, blocked or empty response)."""
    error_type = ErrorType.AI_SERVICE_ERROR


class InferenceTimeoutError(AppraisalError):
    error_type = ErrorType.TIMEOUT_ERROR


def user_message_for(error: BaseException) -> str:
    """The single user-facing message for any failure of a pipeline run."""
    if isinstance(error, AppraisalError):
        return error.message
    return UNKNOWN_ERROR_MESSAGE


def raise_appraisal_error(error_details: ErrorDetails) -> None:
    """Raise an HTTPException with structured error details."""

    log_message = f"{error_details.error_type.error_code}: {error_details.message}"

    if error_details.error_type.status_code >= 500:
        logger.error(log_message)
    else:
        logger.info(f"Client error: {log_message}")

    raise HTTPException(
        status_code=error_details.error_type.status_code,
        detail=json.dumps(error_details.to_dict()),
    )


def handle_unexpected_error(error: Exception, context: str = "processing") -> None:
    """Handle unexpected errors by converting them to structured errors."""

    logger.exception(f"Unexpected error during {context}: {str(error)}")

    error_details = ErrorDetails(
        error_type=ErrorType.UNKNOWN_FAILURE,
        message=f"An unexpected error occurred during {context}",
        details={"context": context},
        suggestions=["Please try again"],
    )

    raise_appraisal_error(error_details)
