"""tk_bidding REST endpoints.

POST /listings/{listing_id}/bids       : place a bid (admission saga)
GET  /listings/{listing_id}/bid-status : has the caller already bid
GET  /listings/{listing_id}/priority   : highest committed tokens
GET  /listings/{listing_id}/proposals  : proposals in ranking order
GET  /proposals/mine                   : caller's proposals, newest first
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.tk_bidding.application.admission import AdmissionController
from src.tk_bidding.application.priority_index import PriorityIndex
from src.tk_bidding.application.schemas import (
    BidStatusResponse,
    PlaceBidRequest,
    PriorityResponse,
    ProposalItem,
    ProposalListResponse,
    RankedProposalItem,
    RankedProposalsResponse,
)
from src.tk_bidding.domain.priority import highest_committed
from src.tk_common.database import get_db_session
from src.tk_common.response import ApiResponse, success_response
from src.tk_gateway.auth.dependencies import get_current_agent_id

listings_router = APIRouter(prefix="/listings", tags=["bids"])
proposals_router = APIRouter(prefix="/proposals", tags=["bids"])

_admission = AdmissionController()
_priority = PriorityIndex()


@listings_router.post("/{listing_id}/bids")
async def place_bid(
    listing_id: str,
    body: PlaceBidRequest,
    request: Request,
    agent_id: Annotated[str, Depends(get_current_agent_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    proposal = await _admission.place_bid(db, agent_id, listing_id, body.boost)
    return success_response(
        ProposalItem.from_domain(proposal).model_dump(), request, message="Bid placed"
    )


@listings_router.get("/{listing_id}/bid-status")
async def get_bid_status(
    listing_id: str,
    request: Request,
    agent_id: Annotated[str, Depends(get_current_agent_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    already_bid = await _admission.has_bid(db, agent_id, listing_id)
    data = BidStatusResponse(listing_id=listing_id, already_bid=already_bid)
    return success_response(data.model_dump(), request)


@listings_router.get("/{listing_id}/priority")
async def get_priority(
    listing_id: str,
    request: Request,
    _agent_id: Annotated[str, Depends(get_current_agent_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    highest = await _priority.highest_committed(db, listing_id)
    data = PriorityResponse(listing_id=listing_id, highest_committed=highest)
    return success_response(data.model_dump(), request)


@listings_router.get("/{listing_id}/proposals")
async def list_ranked_proposals(
    listing_id: str,
    request: Request,
    _agent_id: Annotated[str, Depends(get_current_agent_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    ranked = await _priority.ranked_proposals(db, listing_id, limit)
    items = [
        RankedProposalItem(rank=position, **ProposalItem.from_domain(p).model_dump())
        for position, p in enumerate(ranked, start=1)
    ]
    data = RankedProposalsResponse(
        listing_id=listing_id,
        highest_committed=highest_committed(ranked),
        items=items,
    )
    return success_response(data.model_dump(), request)


@proposals_router.get("/mine")
async def list_my_proposals(
    request: Request,
    agent_id: Annotated[str, Depends(get_current_agent_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    proposals = await _priority.agent_proposals(db, agent_id, limit)
    data = ProposalListResponse(items=[ProposalItem.from_domain(p) for p in proposals])
    return success_response(data.model_dump(), request)
