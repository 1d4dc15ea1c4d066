"""
Camera capture for card photos.

A CameraSession owns one live video stream for one capture slot (front or
back) and walks it through closed -> starting -> streaming -> captured. The
stream is stopped on every way out of the session: accept, cancel, close,
errors and leaving the ``async with`` block.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

import cv2
import numpy as np

from ..config import get_config
from ..models.schemas import RawImage
from .error_handler import CaptureStateError, DeviceUnavailableError, InvalidImageError
from .image_processor import ImageProcessor

logger = logging.getLogger(__name__)
config = get_config()

FACING_MODES = ("environment", "user")
CAPTURE_SLOTS = ("front", "back")


class CaptureState(str, Enum):
    CLOSED = "closed"
    STARTING = "starting"
    STREAMING = "streaming"
    CAPTURED = "captured"


class VideoStream(ABC):
    """A live stream from a camera device."""

    @abstractmethod
    def read_frame(self) -> np.ndarray:
        """Return the current frame as a BGR array at native resolution."""
        ...

    @abstractmethod
    def stop(self) -> None:
        """Release every underlying hardware track. Safe to call twice."""
        ...


class VideoStreamProvider(ABC):
    @abstractmethod
    def request_video_stream(self, constraints: Dict[str, Any]) -> VideoStream:
        """Open a stream or raise DeviceUnavailableError."""
        ...


class CV2VideoStream(VideoStream):
    def __init__(self, capture: "cv2.VideoCapture", device_index: int):
        self._cap = capture
        self.device_index = device_index

    @property
    def active(self) -> bool:
        return self._cap is not None

    def read_frame(self) -> np.ndarray:
        if self._cap is None:
            raise DeviceUnavailableError("Camera stream has already been stopped")
        ret, frame = self._cap.read()
        if not ret or frame is None:
            raise DeviceUnavailableError("Camera stopped delivering frames")
        return frame

    def stop(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info(f"📷 Released camera device {self.device_index}")


class CV2StreamProvider(VideoStreamProvider):
    """OpenCV webcam access. Facing mode selects the configured device index."""

    def request_video_stream(self, constraints: Dict[str, Any]) -> VideoStream:
        index = config.camera_index_for(constraints.get("facing_mode", "environment"))
        cap = cv2.VideoCapture(index)
        if not cap.isOpened():
            cap.release()
            raise DeviceUnavailableError(details={"device_index": index})
        logger.info(f"📷 Opened camera device {index}")
        return CV2VideoStream(cap, index)


def capture_still_frame(
    stream: VideoStream,
    facing: str = "environment",
    image_processor: Optional[ImageProcessor] = None,
    jpeg_quality: Optional[int] = None,
) -> RawImage:
    """Encode the stream's current frame as a JPEG RawImage."""
    frame = stream.read_frame()
    quality = jpeg_quality or config.camera_jpeg_quality
    ok, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise InvalidImageError("Could not encode the captured frame")

    height, width = frame.shape[:2]
    filename = f"capture-{facing}-{datetime.now():%Y%m%d-%H%M%S}.jpg"
    logger.info(f"📸 Captured {width}x{height} frame as {filename}")

    processor = image_processor or ImageProcessor()
    return processor.from_encoded_frame(buffer.tobytes(), "image/jpeg", filename)


def _stop_late_stream(task: "asyncio.Future") -> None:
    """Stop a stream that arrived after its session gave up waiting."""
    if task.cancelled() or task.exception() is not None:
        return
    logger.warning("📷 Camera started after the session gave up; releasing it")
    task.result().stop()


class CameraSession:
    """One capture modal for one slot."""

    def __init__(
        self,
        slot: str,
        facing: str = "environment",
        provider: Optional[VideoStreamProvider] = None,
        image_processor: Optional[ImageProcessor] = None,
        open_timeout_seconds: Optional[float] = None,
    ):
        if slot not in CAPTURE_SLOTS:
            raise ValueError(f"Unknown capture slot: {slot}")
        if facing not in FACING_MODES:
            raise ValueError(f"Unknown facing mode: {facing}")
        self.slot = slot
        self.facing = facing
        self.provider = provider or CV2StreamProvider()
        self.image_processor = image_processor or ImageProcessor()
        self.open_timeout_seconds = open_timeout_seconds or config.camera_open_timeout_seconds
        self._state = CaptureState.CLOSED
        self._stream: Optional[VideoStream] = None
        self._preview: Optional[RawImage] = None

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def preview(self) -> Optional[RawImage]:
        return self._preview

    @property
    def is_streaming(self) -> bool:
        return self._stream is not None

    def _require(self, *states: CaptureState) -> None:
        if self._state not in states:
            raise CaptureStateError(
                f"Cannot do that while the {self.slot} camera is {self._state.value}",
                details={"slot": self.slot, "state": self._state.value},
            )

    async def open(self) -> "CameraSession":
        """Acquire the device stream. Failure leaves the session closed."""
        self._require(CaptureState.CLOSED)
        self._state = CaptureState.STARTING
        constraints = {"facing_mode": self.facing}

        task = asyncio.ensure_future(asyncio.to_thread(self.provider.request_video_stream, constraints))
        try:
            stream = await asyncio.wait_for(asyncio.shield(task), timeout=self.open_timeout_seconds)
        except asyncio.TimeoutError as e:
            task.add_done_callback(_stop_late_stream)
            self._state = CaptureState.CLOSED
            logger.warning(f"📷 {self.slot} camera did not start within {self.open_timeout_seconds}s")
            raise DeviceUnavailableError("Camera did not start in time") from e
        except asyncio.CancelledError:
            task.add_done_callback(_stop_late_stream)
            self._state = CaptureState.CLOSED
            raise
        except DeviceUnavailableError:
            self._state = CaptureState.CLOSED
            logger.warning(f"📷 {self.slot} camera unavailable")
            raise
        except Exception as e:
            self._state = CaptureState.CLOSED
            logger.warning(f"📷 {self.slot} camera failed to start: {e}")
            raise DeviceUnavailableError(details={"original_error": str(e)}) from e

        if self._state is not CaptureState.STARTING:
            # closed while the device was still starting
            stream.stop()
            raise CaptureStateError(f"The {self.slot} camera was closed while starting")

        self._stream = stream
        self._state = CaptureState.STREAMING
        return self

    async def capture(self) -> RawImage:
        """Freeze the current frame as a preview awaiting accept or retake."""
        self._require(CaptureState.STREAMING)
        stream = self._stream
        try:
            preview = await asyncio.to_thread(capture_still_frame, stream, self.facing, self.image_processor)
        except DeviceUnavailableError as e:
            if self._stream is not stream:
                raise CaptureStateError(f"The {self.slot} camera was closed during capture") from e
            raise
        if self._stream is not stream or self._state is not CaptureState.STREAMING:
            # closed while the frame was being read
            raise CaptureStateError(f"The {self.slot} camera was closed during capture")
        self._preview = preview
        self._state = CaptureState.CAPTURED
        return self._preview

    def retake(self) -> None:
        self._require(CaptureState.CAPTURED)
        self._preview = None
        self._state = CaptureState.STREAMING

    def accept(self) -> RawImage:
        """Keep the preview and close the session."""
        self._require(CaptureState.CAPTURED)
        image = self._preview
        self.close()
        return image

    def cancel(self) -> None:
        self.close()

    def close(self) -> None:
        """Stop the stream before reporting closed."""
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
        self._preview = None
        self._state = CaptureState.CLOSED

    async def __aenter__(self) -> "CameraSession":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


def capture_from_device(facing: str = "environment", slot: str = "front", **kwargs) -> CameraSession:
    """Session for ``async with``; the stream lives exactly as long as the block."""
    return CameraSession(slot, facing=facing, **kwargs)


class CaptureSlots:
    """At most one live session per slot."""

    def __init__(
        self,
        provider: Optional[VideoStreamProvider] = None,
        image_processor: Optional[ImageProcessor] = None,
    ):
        self.provider = provider
        self.image_processor = image_processor
        self._sessions: Dict[str, CameraSession] = {}

    def session(self, slot: str, facing: str = "environment") -> CameraSession:
        """New session for the slot, closing whatever was there."""
        previous = self._sessions.pop(slot, None)
        if previous is not None:
            previous.close()
        session = CameraSession(
            slot,
            facing=facing,
            provider=self.provider,
            image_processor=self.image_processor,
        )
        self._sessions[slot] = session
        return session

    def active(self, slot: str) -> Optional[CameraSession]:
        session = self._sessions.get(slot)
        if session is None or session.state is CaptureState.CLOSED:
            return None
        return session

    def close_all(self) -> None:
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()
