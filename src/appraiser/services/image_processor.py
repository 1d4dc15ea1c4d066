"""
Image normalization for card appraisal.
Builds the single in-memory image representation used by identification,
whether the picture came from a file or from the camera.
"""

import base64
import binascii
import logging
import re
from io import BytesIO
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from ..models.schemas import RawImage
from .error_handler import InvalidImageError, UnsupportedImageError

logger = logging.getLogger(__name__)

ACCEPTED_MEDIA_TYPES = frozenset({"image/png", "image/jpeg", "image/webp"})

# Shown next to the upload control; not enforced anywhere
ADVISORY_MAX_UPLOAD_MB = 10

_MEDIA_TYPE_ALIASES = {"image/jpg": "image/jpeg", "image/pjpeg": "image/jpeg"}

_DATA_URI = re.compile(r"^data:(?P<media_type>[\w/+.-]+)?(?:;[\w=.-]+)*;base64,(?P<data>.*)$", re.DOTALL)


def normalize_media_type(media_type: Optional[str]) -> str:
    media_type = (media_type or "").strip().lower()
    return _MEDIA_TYPE_ALIASES.get(media_type, media_type)


def encode_data_uri(payload: bytes, media_type: str) -> str:
    """Base64 data URI used as the image preview."""
    return f"data:{media_type};base64,{base64.b64encode(payload).decode('ascii')}"


def decode_data_uri(value: str) -> Tuple[Optional[str], bytes]:
    """
    Split a data URI (or bare base64 string) into media type and bytes.

    Returns:
        Tuple of (media_type or None for bare base64, payload)
    """
    match = _DATA_URI.match(value.strip())
    media_type, encoded = (match.group("media_type"), match.group("data")) if match else (None, value)
    try:
        return media_type, base64.b64decode(encoded.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageError(f"Invalid base64 image data: {str(e)}") from e


class ImageProcessor:
    """
    Builds RawImage records.

    Features:
    - Fixed PNG/JPEG/WEBP allow-list on the declared media type
    - Decodability check with Pillow
    - No size limit; large files pass through untouched
    """

    def __init__(self, accepted_media_types: frozenset = ACCEPTED_MEDIA_TYPES):
        self.accepted_media_types = accepted_media_types

    def from_user_file(self, data: bytes, declared_media_type: str, filename: str) -> RawImage:
        """
        Wrap an uploaded file.

        Args:
            data: File bytes, passed on unmodified
            declared_media_type: Media type reported by the picker or client
            filename: Original filename

        Raises:
            UnsupportedImageError: media type outside the allow-list
            InvalidImageError: bytes are empty or do not decode as an image
        """
        media_type = normalize_media_type(declared_media_type)
        if media_type not in self.accepted_media_types:
            raise UnsupportedImageError(
                details={"media_type": declared_media_type, "accepted": sorted(self.accepted_media_types)}
            )

        dimensions = self._verify(data, filename)
        logger.info(f"Accepted image {filename or 'unnamed'} ({len(data)} bytes, {media_type}, {dimensions})")

        return RawImage(
            binary_payload=data,
            encoded_preview=encode_data_uri(data, media_type),
            media_type=media_type,
            origin_filename=filename,
        )

    def from_data_uri(self, value: str, filename: Optional[str] = None, media_type: Optional[str] = None) -> RawImage:
        """Wrap an image sent as a data URI or bare base64 string."""
        uri_media_type, data = decode_data_uri(value)
        declared = media_type or uri_media_type
        if not declared:
            raise UnsupportedImageError("Media type is required for bare base64 image data")
        return self.from_user_file(data, declared, filename or "upload")

    def from_encoded_frame(self, data: bytes, media_type: str, filename: str) -> RawImage:
        """Wrap a frame already encoded by the camera adapter."""
        return RawImage(
            binary_payload=data,
            encoded_preview=encode_data_uri(data, media_type),
            media_type=media_type,
            origin_filename=filename,
        )

    def _verify(self, data: bytes, filename: str) -> str:
        if not data:
            raise InvalidImageError("Image file is empty")
        try:
            with Image.open(BytesIO(data)) as image:
                dimensions = f"{image.width}x{image.height}"
                image.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            logger.warning(f"Rejected undecodable image {filename or 'unnamed'}: {e}")
            raise InvalidImageError(details={"filename": filename}) from e
        return dimensions
