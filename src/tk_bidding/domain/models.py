"""Domain models for tk_bidding: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.tk_common.enums import ProposalStatus


@dataclass(frozen=True)
class BidRecord:
    """Existence marker: at most one per (listing_id, agent_id), never deleted."""

    listing_id: str
    agent_id: str
    proposal_id: str
    created_at: datetime


@dataclass
class Proposal:
    id: str
    listing_id: str
    agent_id: str
    base_cost: int        # quoted price at commit time
    boost: int            # extra tokens committed for ranking, >= 0
    tokens_spent: int     # base_cost + boost
    created_at: datetime
    status: str = ProposalStatus.PENDING.value

    def __post_init__(self) -> None:
        if self.boost < 0:
            raise ValueError(f"boost must be >= 0, got {self.boost}")
        if self.tokens_spent != self.base_cost + self.boost:
            raise ValueError(
                f"tokens_spent {self.tokens_spent} != base_cost {self.base_cost} + boost {self.boost}"
            )
