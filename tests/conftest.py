"""Shared fixtures for Pocket Appraisal tests."""

import base64
import io
import json
from typing import Any, Dict
from unittest.mock import AsyncMock, Mock

import numpy as np
import pytest
from PIL import Image

from src.appraiser.models.schemas import ManualCardIdentity, RawImage


def _encode(image: Image.Image, fmt: str) -> bytes:
    img_buffer = io.BytesIO()
    image.save(img_buffer, format=fmt)
    return img_buffer.getvalue()


def data_uri(payload: bytes, media_type: str) -> str:
    return f"data:{media_type};base64,{base64.b64encode(payload).decode('ascii')}"


@pytest.fixture
def sample_jpeg_bytes():
    """Create a sample card photo as JPEG."""
    return _encode(Image.new("RGB", (400, 560), color=(0, 0, 255)), "JPEG")


@pytest.fixture
def sample_png_bytes():
    """Create a sample card photo as PNG."""
    return _encode(Image.new("RGB", (400, 560), color=(255, 255, 255)), "PNG")


@pytest.fixture
def sample_frame():
    """A BGR camera frame as OpenCV delivers it."""
    frame = np.zeros((480, 640, 3), dtype=np.uint8)
    frame[100:380, 200:440] = (40, 180, 220)
    return frame


@pytest.fixture
def front_image(sample_jpeg_bytes):
    return RawImage(
        binary_payload=sample_jpeg_bytes,
        encoded_preview=data_uri(sample_jpeg_bytes, "image/jpeg"),
        media_type="image/jpeg",
        origin_filename="front.jpg",
    )


@pytest.fixture
def back_image(sample_png_bytes):
    return RawImage(
        binary_payload=sample_png_bytes,
        encoded_preview=data_uri(sample_png_bytes, "image/png"),
        media_type="image/png",
        origin_filename="back.png",
    )


@pytest.fixture
def manual_identity():
    return ManualCardIdentity(player="Mike Trout", year="2011", set_name="Topps Update", card_number="US175")


@pytest.fixture
def identification_payload() -> Dict[str, Any]:
    """Typical identification answer."""
    return {
        "year": "2018",
        "set": "Panini Prizm",
        "player": "Luka Doncic",
        "cardNumber": "280",
        "parallelDescription": "Silver Prizm",
        "suggestedGrade": 8.5,
        "conditionNotes": ["Slightly off-center left to right", "Sharp corners"],
    }


def price_entry(name: str, raw: str = "$10 - $15", graded: str = "$50 - $75") -> Dict[str, Any]:
    return {
        "name": name,
        "rawPrice": raw,
        "gradedPrice": graded,
        "rawSource": {"name": "eBay Sold", "url": "https://www.ebay.com/sch/i.html?LH_Sold=1"},
        "gradedSource": {"name": "130point", "url": None},
        "dateRange": "Last 30 days",
    }


@pytest.fixture
def pricing_payload() -> Dict[str, Any]:
    """Typical pricing answer with two parallels."""
    return {
        "baseCard": price_entry("Base", "$40 - $60", "$300 - $400"),
        "parallels": [
            price_entry("Silver Prizm", "$300 - $450", "$2,500 - $3,000"),
            price_entry("Red White & Blue", "$90 - $120", "N/A"),
        ],
    }


@pytest.fixture
def identification_text(identification_payload):
    return "```json\n" + json.dumps(identification_payload) + "\n```"


@pytest.fixture
def pricing_text(pricing_payload):
    return json.dumps(pricing_payload)


@pytest.fixture
def mock_gemini_service():
    """GeminiService double; set ``generate.return_value`` or ``side_effect`` per test."""
    service = Mock()
    service.generate = AsyncMock()
    return service
