"""Listings collaborator Protocol.

Listing CRUD lives in the marketplace's listings service; this module only
reads the attributes pricing depends on.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.tk_listing.domain.models import Listing


class ListingRepositoryProtocol(Protocol):
    async def get_listing(self, db: AsyncSession, listing_id: str) -> Listing | None: ...
