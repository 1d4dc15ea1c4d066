"""Pydantic schemas for Pocket Appraisal."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _coerce_text(value: Any) -> Any:
    """Models sometimes answer years and card numbers as JSON numbers."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    return value


class RawImage(BaseModel):
    """An image ready to be sent for identification, from a file or a camera frame."""
    model_config = ConfigDict(frozen=True)

    binary_payload: bytes = Field(..., repr=False, description="Encoded image bytes")
    encoded_preview: str = Field(..., repr=False, description="Base64 data URI of the payload")
    media_type: str = Field(..., description="Declared media type, e.g. image/jpeg")
    origin_filename: str = Field(..., description="Original filename or generated capture name")


class ManualCardIdentity(BaseModel):
    """Card identity as typed by the user."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    player: str = Field(..., description="Player name")
    year: str = Field(..., description="Release year")
    set_name: str = Field(..., alias="set", description="Set or manufacturer")
    card_number: str = Field(default="", alias="cardNumber", description="Card number, optional")

    @field_validator("year", "card_number", mode="before")
    @classmethod
    def _text_fields(cls, value: Any) -> Any:
        return _coerce_text(value)

    @property
    def is_complete(self) -> bool:
        """Player, year and set are required before a lookup may run."""
        return all(value.strip() for value in (self.player, self.year, self.set_name))

    @property
    def label(self) -> str:
        return f"{self.year} {self.set_name} {self.player}"


class IdentifiedCardIdentity(BaseModel):
    """Card identity reported by the model, with its condition assessment."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    player: Optional[str] = Field(None, description="Player name")
    year: Optional[str] = Field(None, description="Release year")
    set_name: Optional[str] = Field(None, alias="set", description="Set or manufacturer")
    card_number: Optional[str] = Field(None, alias="cardNumber", description="Card number")
    parallel_description: Optional[str] = Field(
        None, alias="parallelDescription", description="Parallel or variation, e.g. 'Prizm Silver'"
    )
    suggested_grade: Optional[float] = Field(
        None, alias="suggestedGrade", description="Suggested raw grade on a 1-10 scale"
    )
    condition_notes: Optional[List[str]] = Field(
        None, alias="conditionNotes", description="Itemized condition observations"
    )

    @field_validator("year", "card_number", mode="before")
    @classmethod
    def _text_fields(cls, value: Any) -> Any:
        return _coerce_text(value)

    @property
    def is_usable(self) -> bool:
        """A record without player, year and set cannot be priced."""
        return all(value and value.strip() for value in (self.player, self.year, self.set_name))

    def to_manual_identity(self) -> ManualCardIdentity:
        """Identity fields only; condition fields are for display."""
        return ManualCardIdentity(
            player=self.player or "",
            year=self.year or "",
            set_name=self.set_name or "",
            card_number=self.card_number or "",
        )

    @classmethod
    def from_manual(cls, identity: ManualCardIdentity, parallel_description: str = "Base Card") -> "IdentifiedCardIdentity":
        return cls(
            player=identity.player,
            year=identity.year,
            set_name=identity.set_name,
            card_number=identity.card_number,
            parallel_description=parallel_description,
        )


class PriceSource(BaseModel):
    """Where a price was taken from."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Name of the source, e.g. 'eBay Sold'")
    url: Optional[str] = Field(None, description="Direct URL to the sales data")


class PriceEntry(BaseModel):
    """Raw and graded price ranges for one card or parallel."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., description="Card or parallel label, e.g. 'Base' or 'Silver Prizm'")
    raw_price: str = Field(..., alias="rawPrice", description="Raw price range or 'N/A'")
    graded_price: str = Field(..., alias="gradedPrice", description="Top-graded price range or 'N/A'")
    raw_source: PriceSource = Field(..., alias="rawSource")
    graded_source: PriceSource = Field(..., alias="gradedSource")
    date_range: str = Field(..., alias="dateRange", description="Sales window, e.g. 'Last 30 days'")


class PricingResult(BaseModel):
    """Base card price plus known parallels."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    base_card: PriceEntry = Field(..., alias="baseCard")
    parallels: List[PriceEntry] = Field(default_factory=list)

    @field_validator("parallels", mode="before")
    @classmethod
    def _parallels_never_null(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def all_entries(self) -> List[PriceEntry]:
        return [self.base_card, *self.parallels]


class OutcomeState(str, Enum):
    """States of a pipeline run as seen by the caller."""
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    FAILED = "failed"


class PipelineOutcome(BaseModel):
    """The single current outcome. Build with the named constructors."""
    model_config = ConfigDict(frozen=True)

    state: OutcomeState = Field(..., description="Current state")
    progress_message: Optional[str] = Field(None, description="Progress text while loading")
    card: Optional[IdentifiedCardIdentity] = Field(None, description="Identified card on success")
    pricing: Optional[PricingResult] = Field(None, description="Pricing on success")
    error_message: Optional[str] = Field(None, description="User-facing error on failure")

    @model_validator(mode="after")
    def _check_payload(self) -> "PipelineOutcome":
        expected = {
            OutcomeState.IDLE: set(),
            OutcomeState.LOADING: {"progress_message"},
            OutcomeState.SUCCESS: {"card", "pricing"},
            OutcomeState.FAILED: {"error_message"},
        }[self.state]
        present = {
            name
            for name in ("progress_message", "card", "pricing", "error_message")
            if getattr(self, name) is not None
        }
        if present != expected:
            raise ValueError(f"{self.state.value} outcome requires exactly {sorted(expected)}, got {sorted(present)}")
        return self

    @classmethod
    def idle(cls) -> "PipelineOutcome":
        return cls(state=OutcomeState.IDLE)

    @classmethod
    def loading(cls, message: str) -> "PipelineOutcome":
        return cls(state=OutcomeState.LOADING, progress_message=message)

    @classmethod
    def success(cls, card: IdentifiedCardIdentity, pricing: PricingResult) -> "PipelineOutcome":
        return cls(state=OutcomeState.SUCCESS, card=card, pricing=pricing)

    @classmethod
    def failed(cls, message: str) -> "PipelineOutcome":
        return cls(state=OutcomeState.FAILED, error_message=message)

    @property
    def is_loading(self) -> bool:
        return self.state is OutcomeState.LOADING


class ImageUpload(BaseModel):
    """One side of the card as sent over HTTP."""
    image: str = Field(..., description="Base64 encoded image data or a data URI")
    media_type: Optional[str] = Field(None, description="Declared media type; read from the data URI when omitted")
    filename: Optional[str] = Field(None, description="Original filename")


class AppraiseImagesRequest(BaseModel):
    """Request model for image-based appraisal."""
    front: ImageUpload = Field(..., description="Front of the card")
    back: ImageUpload = Field(..., description="Back of the card")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    version: str = Field(..., description="API version")
    services: Dict[str, Any] = Field(..., description="Service availability")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Detailed error information")
