"""Flatten a successful outcome into what a results panel shows."""

from dataclasses import dataclass, field
from typing import List, Optional

from ..models.schemas import OutcomeState, PipelineOutcome, PriceEntry, PriceSource


@dataclass
class SourceCell:
    name: str
    url: Optional[str] = None

    @classmethod
    def from_source(cls, source: PriceSource) -> "SourceCell":
        return cls(name=source.name, url=source.url or None)


@dataclass
class PriceRow:
    name: str
    raw_price: str
    graded_price: str
    raw_source: SourceCell
    graded_source: SourceCell
    date_range: str

    @classmethod
    def from_entry(cls, entry: PriceEntry) -> "PriceRow":
        return cls(
            name=entry.name,
            raw_price=entry.raw_price,
            graded_price=entry.graded_price,
            raw_source=SourceCell.from_source(entry.raw_source),
            graded_source=SourceCell.from_source(entry.graded_source),
            date_range=entry.date_range,
        )


@dataclass
class ResultsView:
    headline: str
    subtitle: str
    card_number_label: Optional[str]
    parallel_badge: Optional[str]
    suggested_grade: Optional[float]
    condition_notes: List[str] = field(default_factory=list)
    rows: List[PriceRow] = field(default_factory=list)


def build_results_view(outcome: PipelineOutcome) -> Optional[ResultsView]:
    """None unless the outcome is a success."""
    if outcome.state is not OutcomeState.SUCCESS:
        return None

    card, pricing = outcome.card, outcome.pricing
    badge = card.parallel_description
    if badge == "Base Card":
        badge = None

    return ResultsView(
        headline=card.player or "",
        subtitle=f"{card.year} {card.set_name}",
        card_number_label=f"Card #{card.card_number}" if card.card_number else None,
        parallel_badge=badge or None,
        suggested_grade=card.suggested_grade,
        condition_notes=list(card.condition_notes or []),
        rows=[PriceRow.from_entry(entry) for entry in pricing.all_entries],
    )
