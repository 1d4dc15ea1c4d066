"""Unit tests for the error taxonomy and its conversions."""

import json

import pytest
from fastapi import HTTPException

from src.appraiser.services.error_handler import (
    AppraisalError,
    DeviceUnavailableError,
    ErrorDetails,
    ErrorType,
    IdentificationIncompleteError,
    IdentificationMalformedError,
    PricingMalformedError,
    UNKNOWN_ERROR_MESSAGE,
    handle_unexpected_error,
    raise_appraisal_error,
    user_message_for,
)


class TestErrorHandler:
    """Test cases for error handler functions."""

    def test_error_type_enum(self):
        assert ErrorType.INVALID_INPUT.status_code == 400
        assert ErrorType.UNSUPPORTED_FORMAT.status_code == 415
        assert ErrorType.DEVICE_UNAVAILABLE.error_code == "device_unavailable"
        assert ErrorType.TIMEOUT_ERROR.status_code == 504

    @pytest.mark.parametrize(
        "error,message",
        [
            (IdentificationMalformedError(), "Could not identify the card from the provided images. The AI response was not valid JSON."),
            (IdentificationIncompleteError(), "Could not identify the card's essential details. Please use clearer images."),
            (PricingMalformedError(), "Could not retrieve pricing data. The AI response was not valid JSON."),
            (ValueError("boom"), UNKNOWN_ERROR_MESSAGE),
            (RuntimeError(), UNKNOWN_ERROR_MESSAGE),
        ],
    )
    def test_user_message_for(self, error, message):
        assert user_message_for(error) == message

    def test_custom_message_overrides_default(self):
        error = DeviceUnavailableError("Camera did not start in time")
        assert error.message == "Camera did not start in time"
        assert str(error) == "Camera did not start in time"
        assert error.error_details.error_type is ErrorType.DEVICE_UNAVAILABLE

    def test_subclasses_share_base(self):
        assert isinstance(PricingMalformedError(), AppraisalError)

    def test_error_details_to_dict(self):
        details = ErrorDetails(ErrorType.INVALID_IMAGE, details={"filename": "x.png"}, suggestions=["Retake"])

        assert details.to_dict() == {
            "message": "Invalid or corrupted image data",
            "error_type": "invalid_image",
            "details": {"filename": "x.png"},
            "suggestions": ["Retake"],
        }

    def test_raise_appraisal_error(self):
        with pytest.raises(HTTPException) as exc_info:
            raise_appraisal_error(ErrorDetails(ErrorType.UNSUPPORTED_FORMAT))

        assert exc_info.value.status_code == 415
        assert json.loads(exc_info.value.detail)["error_type"] == "unsupported_format"

    def test_handle_unexpected_error(self):
        with pytest.raises(HTTPException) as exc_info:
            handle_unexpected_error(KeyError("x"), context="testing")

        assert exc_info.value.status_code == 500
        assert "testing" in json.loads(exc_info.value.detail)["message"]

