"""PricingService: quote preview for a listing.

Read-only: loads the listing and its current bid count, then delegates to the
pure `quote_bid`. The admission controller calls the same method at commit
time, so a preview is never trusted as the committed price.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from src.tk_bidding.domain.repository import BidStoreProtocol
from src.tk_bidding.infrastructure.persistence import BidStore
from src.tk_common.errors import ListingNotFoundError
from src.tk_listing.domain.repository import ListingRepositoryProtocol
from src.tk_listing.infrastructure.persistence import ListingRepository
from src.tk_pricing.domain.pricing import PriceQuote, quote_bid


class PricingService:
    def __init__(
        self,
        listings: ListingRepositoryProtocol | None = None,
        store: BidStoreProtocol | None = None,
    ) -> None:
        self._listings: ListingRepositoryProtocol = listings or ListingRepository()
        self._store: BidStoreProtocol = store or BidStore()

    async def quote(self, db: AsyncSession, listing_id: str) -> PriceQuote:
        listing = await self._listings.get_listing(db, listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        bid_count = await self._store.count_bids(db, listing_id)
        return quote_bid(listing.kind, listing.verified, bid_count)
