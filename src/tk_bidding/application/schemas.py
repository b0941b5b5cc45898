"""Pydantic request/response schemas for the tk_bidding API."""

from pydantic import BaseModel, Field

from src.tk_bidding.domain.models import Proposal

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class PlaceBidRequest(BaseModel):
    boost: int = Field(0, ge=0, description="Extra tokens committed to raise ranking")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ProposalItem(BaseModel):
    id: str
    listing_id: str
    agent_id: str
    base_cost: int
    boost: int
    tokens_spent: int
    status: str
    created_at: str  # ISO8601 string

    @classmethod
    def from_domain(cls, proposal: Proposal) -> "ProposalItem":
        return cls(
            id=proposal.id,
            listing_id=proposal.listing_id,
            agent_id=proposal.agent_id,
            base_cost=proposal.base_cost,
            boost=proposal.boost,
            tokens_spent=proposal.tokens_spent,
            status=proposal.status,
            created_at=proposal.created_at.isoformat(),
        )


class RankedProposalItem(ProposalItem):
    rank: int  # 1-based


class RankedProposalsResponse(BaseModel):
    listing_id: str
    highest_committed: int
    items: list[RankedProposalItem]


class PriorityResponse(BaseModel):
    listing_id: str
    highest_committed: int


class BidStatusResponse(BaseModel):
    listing_id: str
    already_bid: bool


class ProposalListResponse(BaseModel):
    items: list[ProposalItem]
