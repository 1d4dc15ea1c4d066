"""Two-stage appraisal pipeline: identification then pricing, latest run wins."""

import asyncio
import logging
from collections import OrderedDict
from typing import Awaitable, Callable, Optional

from ..config import get_config
from ..models.schemas import (
    IdentifiedCardIdentity,
    ManualCardIdentity,
    PipelineOutcome,
    RawImage,
)
from .error_handler import (
    AppraisalError,
    IdentificationIncompleteError,
    InferenceTimeoutError,
    InvalidInputError,
    user_message_for,
)
from .identification import IdentificationStage
from .pricing import PricingStage

logger = logging.getLogger(__name__)
config = get_config()

MANUAL_LOADING_MESSAGE = "Fetching prices and parallels..."
IMAGES_LOADING_MESSAGE = "Identifying card from images..."
MANUAL_PARALLEL_DESCRIPTION = "Base Card"


def pricing_loading_message(card: IdentifiedCardIdentity) -> str:
    return f"Card identified! Fetching prices for {card.year} {card.set_name} {card.player}..."


class AppraisalPipeline:
    """
    Owns the single current outcome.

    Every run takes a generation number when it starts. Outcome writes from a
    run whose generation is no longer the latest are dropped, so callers only
    ever see the most recently started run.
    """

    def __init__(
        self,
        identification_stage: IdentificationStage,
        pricing_stage: PricingStage,
        on_change: Optional[Callable[[PipelineOutcome], None]] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.identification_stage = identification_stage
        self.pricing_stage = pricing_stage
        self.on_change = on_change
        self.timeout_seconds = timeout_seconds or config.pipeline_timeout_seconds
        self._outcome = PipelineOutcome.idle()
        self._generation = 0

    @property
    def outcome(self) -> PipelineOutcome:
        return self._outcome

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_loading(self) -> bool:
        return self._outcome.is_loading

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _start_run(self) -> int:
        self._generation += 1
        return self._generation

    def _publish(self, generation: int, outcome: PipelineOutcome) -> bool:
        if not self.is_current(generation):
            logger.info(
                f"Discarding {outcome.state.value} result of run {generation} (latest run is {self._generation})"
            )
            return False
        self._outcome = outcome
        if self.on_change is not None:
            self.on_change(outcome)
        return True

    async def run_manual(self, identity: ManualCardIdentity) -> PipelineOutcome:
        """
        Price a card typed in by the user, skipping identification.

        Returns:
            This run's own settled outcome, whether or not a newer run
            has since replaced it as the current outcome
        """
        if not identity.is_complete:
            raise InvalidInputError("Player, year and set are required")

        generation = self._start_run()
        logger.info(f"▶️ Run {generation}: manual lookup for {identity.label}")
        self._publish(generation, PipelineOutcome.loading(MANUAL_LOADING_MESSAGE))
        outcome = await self._settle(generation, self._price_manual(identity))
        return outcome or self._outcome

    async def run_from_images(self, front: RawImage, back: RawImage) -> PipelineOutcome:
        """
        Identify a card from its photos, then price it.

        Pricing is never called when identification fails. A run superseded
        before pricing has no outcome of its own and returns the current one.
        """
        generation = self._start_run()
        logger.info(f"▶️ Run {generation}: image lookup")
        self._publish(generation, PipelineOutcome.loading(IMAGES_LOADING_MESSAGE))
        outcome = await self._settle(generation, self._identify_and_price(generation, front, back))
        return outcome or self._outcome

    async def _price_manual(self, identity: ManualCardIdentity) -> PipelineOutcome:
        pricing = await self.pricing_stage.fetch_pricing(identity)
        card = IdentifiedCardIdentity.from_manual(identity, MANUAL_PARALLEL_DESCRIPTION)
        return PipelineOutcome.success(card, pricing)

    async def _identify_and_price(self, generation: int, front: RawImage, back: RawImage) -> Optional[PipelineOutcome]:
        card = await self.identification_stage.identify(front, back)
        if not card.is_usable:
            raise IdentificationIncompleteError()

        if not self._publish(generation, PipelineOutcome.loading(pricing_loading_message(card))):
            # superseded while identifying; a stale run never reaches pricing
            return None

        pricing = await self.pricing_stage.fetch_pricing(card.to_manual_identity())
        return PipelineOutcome.success(card, pricing)

    async def _settle(self, generation: int, steps: Awaitable[Optional[PipelineOutcome]]) -> Optional[PipelineOutcome]:
        try:
            outcome = await asyncio.wait_for(steps, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(f"❌ Run {generation} exceeded {self.timeout_seconds}s")
            outcome = PipelineOutcome.failed(InferenceTimeoutError().message)
        except AppraisalError as e:
            logger.info(f"Run {generation} failed: {e.error_details.error_type.error_code}")
            outcome = PipelineOutcome.failed(user_message_for(e))
        except Exception as e:
            logger.exception(f"❌ Run {generation} failed unexpectedly: {e}")
            outcome = PipelineOutcome.failed(user_message_for(e))

        if outcome is not None:
            self._publish(generation, outcome)
        return outcome


class PipelineSessions:
    """
    One pipeline per caller session.

    Each session sees only its own runs and its own current outcome. The least
    recently used session is dropped once ``max_sessions`` is exceeded; a run
    still in flight on a dropped pipeline completes and returns to its caller.
    """

    def __init__(self, factory: Callable[[], AppraisalPipeline], max_sessions: Optional[int] = None):
        self.factory = factory
        self.max_sessions = max_sessions or config.max_sessions
        self._pipelines: "OrderedDict[str, AppraisalPipeline]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._pipelines)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._pipelines

    def get(self, session_id: str) -> AppraisalPipeline:
        """Pipeline for the session, created on first use."""
        pipeline = self._pipelines.get(session_id)
        if pipeline is None:
            pipeline = self.factory()
            self._pipelines[session_id] = pipeline
            logger.debug(f"New appraisal session ({len(self._pipelines)} active)")
            while len(self._pipelines) > self.max_sessions:
                self._pipelines.popitem(last=False)
        else:
            self._pipelines.move_to_end(session_id)
        return pipeline
