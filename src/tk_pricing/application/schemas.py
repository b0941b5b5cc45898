"""Pydantic response schemas for the tk_pricing API."""

from pydantic import BaseModel

from src.tk_pricing.domain.pricing import PriceQuote


class PricingFactorsItem(BaseModel):
    base_cost: int
    verified: bool
    current_bid_count: int
    verification_multiplier: float
    demand_multiplier: float


class QuoteResponse(BaseModel):
    listing_id: str
    cost: int
    factors: PricingFactorsItem

    @classmethod
    def from_quote(cls, listing_id: str, quote: PriceQuote) -> "QuoteResponse":
        return cls(
            listing_id=listing_id,
            cost=quote.cost,
            factors=PricingFactorsItem(**quote.factors.to_dict()),
        )
