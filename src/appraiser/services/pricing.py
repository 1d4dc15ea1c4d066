"""Pricing stage: card identity in, base card and parallel prices out."""

import logging

from ..models.schemas import ManualCardIdentity, PricingResult
from .error_handler import PricingMalformedError
from .gemini_service import GeminiService
from .response_parser import MalformedResponse, decode_model

logger = logging.getLogger(__name__)

SOURCE_SCHEMA = {
    "type": "OBJECT",
    "description": "Source of the pricing data.",
    "properties": {
        "name": {"type": "STRING", "description": "Name of the source, e.g., 'eBay Sold'"},
        "url": {
            "type": "STRING",
            "description": "Direct URL to the source, or null if not available.",
            "nullable": True,
        },
    },
    "required": ["name"],
}

PRICE_ENTRY_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "name": {"type": "STRING", "description": "Description of the card or parallel, e.g., 'Base' or 'Silver Prizm'"},
        "rawPrice": {"type": "STRING", "description": "Price range for a raw/ungraded card, e.g., '$10 - $15' or 'N/A'"},
        "gradedPrice": {
            "type": "STRING",
            "description": "Price range for a top-graded card (PSA 10/BGS 9.5), e.g., '$50 - $75' or 'N/A'",
        },
        "rawSource": SOURCE_SCHEMA,
        "gradedSource": SOURCE_SCHEMA,
        "dateRange": {"type": "STRING", "description": "Date range for the sales data, e.g., 'Last 30 days'"},
    },
    "required": ["name", "rawPrice", "gradedPrice", "rawSource", "gradedSource", "dateRange"],
}

PRICING_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "baseCard": PRICE_ENTRY_SCHEMA,
        "parallels": {"type": "ARRAY", "items": PRICE_ENTRY_SCHEMA},
    },
    "required": ["baseCard", "parallels"],
}


def build_pricing_prompt(identity: ManualCardIdentity) -> str:
    return (
        f"You are a sports card pricing expert. For the card: {identity.year} {identity.set_name} "
        f"{identity.player} #{identity.card_number}, provide a list of its common parallels and recent sales prices.\n"
        "The prices should reflect the current market for both RAW (ungraded) and top-graded conditions "
        "(like PSA 10 or BGS 9.5).\n"
        "For each price (raw and graded), provide the source of the data (e.g., eBay, 130point.com) including "
        "its name and a direct URL to the sales data if available. Provide separate sources for raw and graded "
        "prices. Also include the date range for the sales (e.g., 'Last 30 days')."
    )


class PricingStage:
    """Schema-constrained price lookup, still decoded defensively."""

    def __init__(self, gemini_service: GeminiService):
        self.gemini_service = gemini_service

    async def fetch_pricing(self, identity: ManualCardIdentity) -> PricingResult:
        """
        Look up raw and graded prices for a card and its parallels.

        Raises:
            PricingMalformedError: the answer did not decode into a PricingResult
        """
        logger.info(f"💰 Fetching prices for {identity.label}")

        response_text = await self.gemini_service.generate(
            build_pricing_prompt(identity),
            response_schema=PRICING_SCHEMA,
        )

        try:
            pricing = decode_model(response_text, PricingResult)
        except MalformedResponse as e:
            logger.error(f"❌ Failed to parse pricing response: {e}")
            raise PricingMalformedError(details={"reason": str(e)}) from e

        logger.info(f"✅ Pricing received: base card plus {len(pricing.parallels)} parallel(s)")
        return pricing
