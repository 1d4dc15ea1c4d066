"""Card input form session: manual fields, photo slots and submission gating."""

import logging
from enum import Enum
from typing import Dict, Optional

from ..models.schemas import ManualCardIdentity, PipelineOutcome, RawImage
from .appraisal_pipeline import AppraisalPipeline
from .camera import CAPTURE_SLOTS

logger = logging.getLogger(__name__)


class InputMode(str, Enum):
    UPLOAD = "upload"
    MANUAL = "manual"


class CardInputForm:
    """Holds what the user entered until it is handed to the pipeline."""

    def __init__(self):
        self.mode = InputMode.UPLOAD
        self.manual_fields: Dict[str, str] = {"player": "", "year": "", "set": "", "cardNumber": ""}
        self._images: Dict[str, Optional[RawImage]] = {slot: None for slot in CAPTURE_SLOTS}

    @property
    def front(self) -> Optional[RawImage]:
        return self._images["front"]

    @property
    def back(self) -> Optional[RawImage]:
        return self._images["back"]

    def set_field(self, name: str, value: str) -> None:
        if name not in self.manual_fields:
            raise KeyError(name)
        self.manual_fields[name] = value

    def set_image(self, slot: str, image: RawImage) -> None:
        if slot not in self._images:
            raise KeyError(slot)
        self._images[slot] = image

    def manual_identity(self) -> ManualCardIdentity:
        return ManualCardIdentity.model_validate(self.manual_fields)

    def can_submit_manual(self, pipeline: AppraisalPipeline) -> bool:
        return not pipeline.is_loading and self.manual_identity().is_complete

    def can_submit_images(self, pipeline: AppraisalPipeline) -> bool:
        return not pipeline.is_loading and self.front is not None and self.back is not None

    async def submit_manual(self, pipeline: AppraisalPipeline) -> Optional[PipelineOutcome]:
        """Run a manual lookup, or do nothing when the form is incomplete."""
        if not self.can_submit_manual(pipeline):
            logger.info("Manual submission ignored: player, year and set are required")
            return None
        return await pipeline.run_manual(self.manual_identity())

    async def submit_images(self, pipeline: AppraisalPipeline) -> Optional[PipelineOutcome]:
        """Hand both photos to the pipeline; the form lets go of them."""
        if not self.can_submit_images(pipeline):
            logger.info("Image submission ignored: both photos are required")
            return None
        front, back = self.front, self.back
        self._images = {slot: None for slot in CAPTURE_SLOTS}
        return await pipeline.run_from_images(front, back)

    def reset(self) -> None:
        self.manual_fields = {name: "" for name in self.manual_fields}
        self._images = {slot: None for slot in CAPTURE_SLOTS}
