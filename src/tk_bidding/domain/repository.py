"""BidStore Protocol: persistence contract the admission saga relies on.

`create_if_absent` is the one primitive that must be atomic: the bid record
and its proposal are written together, or neither is, and a second writer for
the same (listing_id, agent_id) gets `created=False` instead of a duplicate.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.tk_bidding.domain.models import Proposal


class BidStoreProtocol(Protocol):
    async def count_bids(self, db: AsyncSession, listing_id: str) -> int: ...

    async def exists(self, db: AsyncSession, listing_id: str, agent_id: str) -> bool: ...

    async def create_if_absent(
        self, db: AsyncSession, proposal: Proposal
    ) -> tuple[bool, Proposal]: ...

    async def highest_committed(self, db: AsyncSession, listing_id: str) -> int: ...

    async def list_for_listing(
        self, db: AsyncSession, listing_id: str, limit: int
    ) -> list[Proposal]: ...

    async def list_for_agent(
        self, db: AsyncSession, agent_id: str, limit: int
    ) -> list[Proposal]: ...
