"""PriorityIndex: read-side views over the bid store.

Holds no state of its own; every answer is read from BidStore at call time.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from src.tk_bidding.domain.models import Proposal
from src.tk_bidding.domain.priority import rank_proposals
from src.tk_bidding.domain.repository import BidStoreProtocol
from src.tk_bidding.infrastructure.persistence import BidStore


class PriorityIndex:
    def __init__(self, store: BidStoreProtocol | None = None) -> None:
        self._store: BidStoreProtocol = store or BidStore()

    async def highest_committed(self, db: AsyncSession, listing_id: str) -> int:
        return await self._store.highest_committed(db, listing_id)

    async def ranked_proposals(
        self, db: AsyncSession, listing_id: str, limit: int
    ) -> list[Proposal]:
        proposals = await self._store.list_for_listing(db, listing_id, limit)
        return rank_proposals(proposals)

    async def agent_proposals(
        self, db: AsyncSession, agent_id: str, limit: int
    ) -> list[Proposal]:
        """The agent's own proposals, newest first."""
        return await self._store.list_for_agent(db, agent_id, limit)
