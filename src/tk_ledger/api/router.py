"""tk_ledger REST API.

GET  /tokens/balance  : caller's balance (agent)
GET  /tokens/ledger   : caller's ledger history, cursor paginated (agent)
POST /tokens/credit   : credit purchased tokens (payment service only)
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.tk_common.database import get_db_session
from src.tk_common.enums import LedgerEntryType
from src.tk_common.response import ApiResponse, success_response
from src.tk_gateway.auth.dependencies import get_current_agent_id, require_payment_service
from src.tk_ledger.application.schemas import BalanceResponse, CreditRequest, CreditResponse
from src.tk_ledger.application.service import TokenLedgerService

router = APIRouter(prefix="/tokens", tags=["tokens"])

_service = TokenLedgerService()


@router.get("/balance")
async def get_balance(
    agent_id: Annotated[str, Depends(get_current_agent_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    account = await _service.get_account(db, agent_id)
    return success_response(BalanceResponse.from_account(account).model_dump(), request)


@router.get("/ledger")
async def list_ledger(
    agent_id: Annotated[str, Depends(get_current_agent_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    entry_type: LedgerEntryType | None = Query(None, description="Filter by entry type"),
) -> ApiResponse:
    data = await _service.list_ledger(
        db, agent_id, cursor, limit, entry_type.value if entry_type else None
    )
    return success_response(data.model_dump(), request)


@router.post("/credit")
async def credit(
    body: CreditRequest,
    _payment: Annotated[str, Depends(require_payment_service)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.credit(db, body.agent_id, body.amount, body.purchase_ref)
    data = CreditResponse(
        agent_id=body.agent_id,
        balance=result.account.balance,
        credited=0 if result.idempotent_hit else body.amount,
        ledger_entry_id=result.entry.id,
        idempotent_hit=result.idempotent_hit,
    )
    return success_response(data.model_dump(), request)
