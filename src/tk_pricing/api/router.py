"""tk_pricing REST endpoint.

GET /listings/{listing_id}/quote: price preview for one bid
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.tk_common.database import get_db_session
from src.tk_common.response import ApiResponse, success_response
from src.tk_gateway.auth.dependencies import get_current_agent_id
from src.tk_pricing.application.schemas import QuoteResponse
from src.tk_pricing.application.service import PricingService

router = APIRouter(prefix="/listings", tags=["pricing"])

_service = PricingService()


@router.get("/{listing_id}/quote")
async def get_quote(
    listing_id: str,
    request: Request,
    _agent_id: Annotated[str, Depends(get_current_agent_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    quote = await _service.quote(db, listing_id)
    return success_response(QuoteResponse.from_quote(listing_id, quote).model_dump(), request)
