"""AdmissionController: the saga that turns a bid request into a proposal.

The ledger and the bid store are separate, independently failing resources,
so a bid is a sequence of committed steps with a compensating refund rather
than one transaction:

  1. duplicate check               → AlreadyBid, nothing mutated
  2. fresh quote (listing + count) → ListingNotFound / ConcurrentConflict, nothing mutated
  3. debit quote.cost + boost      → InsufficientBalance / ConcurrentConflict, nothing mutated
       commit raised but the debit landed → refund, then PersistenceFailure
  4. create bid record + proposal
       lost the uniqueness race    → refund, then AlreadyBid
       any other failure           → refund, then PersistenceFailure
       the refund itself fails     → RefundFailed, logged CRITICAL on tk.reconciliation

Step 1 alone does not prevent duplicates under concurrency; the unique key
behind `create_if_absent` decides, and every loser is refunded.

Steps 3 and 4 run in their own task. Cancelling the caller (a timeout, a
client disconnect) is deferred until that task reaches one of the outcomes
above, so a debit is never left without its proposal or its refund.
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable
from datetime import UTC, datetime
from typing import TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from src.tk_bidding.domain.models import Proposal
from src.tk_bidding.domain.repository import BidStoreProtocol
from src.tk_bidding.infrastructure.persistence import BidStore
from src.tk_common.enums import ProposalStatus
from src.tk_common.errors import (
    AlreadyBidError,
    AppError,
    ConcurrentConflictError,
    InvalidBoostError,
    PersistenceFailureError,
    RefundFailedError,
)
from src.tk_ledger.application.service import TokenLedgerService
from src.tk_pricing.application.service import PricingService

logger = logging.getLogger(__name__)
reconciliation_logger = logging.getLogger("tk.reconciliation")

T = TypeVar("T")


async def _run_to_completion(aw: Awaitable[T]) -> T:
    """Await `aw` in its own task; a cancellation meanwhile is re-raised once it finishes."""
    task = asyncio.ensure_future(aw)
    cancelled: asyncio.CancelledError | None = None
    while not task.done():
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError as exc:
            cancelled = exc
    if cancelled is not None:
        if not task.cancelled():
            # Retrieve the outcome so the loop does not report it as unhandled
            task.exception()
        raise cancelled
    return task.result()


class AdmissionController:
    def __init__(
        self,
        ledger: TokenLedgerService | None = None,
        store: BidStoreProtocol | None = None,
        pricing: PricingService | None = None,
    ) -> None:
        self._store: BidStoreProtocol = store or BidStore()
        self._ledger = ledger or TokenLedgerService()
        self._pricing = pricing or PricingService(store=self._store)

    async def has_bid(self, db: AsyncSession, agent_id: str, listing_id: str) -> bool:
        return await self._store.exists(db, listing_id, agent_id)

    async def place_bid(
        self, db: AsyncSession, agent_id: str, listing_id: str, boost: int = 0
    ) -> Proposal:
        if boost < 0:
            raise InvalidBoostError(boost)

        try:
            if await self._store.exists(db, listing_id, agent_id):
                raise AlreadyBidError(listing_id)
            # Re-quoted here; an earlier preview may be stale
            quote = await self._pricing.quote(db, listing_id)
        except DBAPIError as exc:
            await db.rollback()
            raise ConcurrentConflictError() from exc

        proposal = Proposal(
            id=str(uuid.uuid4()),
            listing_id=listing_id,
            agent_id=agent_id,
            base_cost=quote.cost,
            boost=boost,
            tokens_spent=quote.cost + boost,
            created_at=datetime.now(UTC),
            status=ProposalStatus.PENDING.value,
        )
        return await _run_to_completion(self._charge_and_record(db, proposal))

    async def _charge_and_record(self, db: AsyncSession, proposal: Proposal) -> Proposal:
        agent_id, listing_id = proposal.agent_id, proposal.listing_id
        total_cost = proposal.tokens_spent

        try:
            await self._ledger.debit(db, agent_id, total_cost, proposal.id)
        except DBAPIError as exc:
            raise await self._failed_debit_outcome(db, proposal, exc) from exc

        try:
            created, stored = await self._store.create_if_absent(db, proposal)
            if created:
                await db.commit()
        except Exception as exc:
            await db.rollback()
            logger.warning(
                "Persist failed after debit: agent=%s listing=%s ref=%s",
                agent_id, listing_id, proposal.id, exc_info=True,
            )
            await self._compensate(db, agent_id, total_cost, proposal.id)
            raise PersistenceFailureError(listing_id) from exc

        if not created:
            logger.info(
                "Lost bid uniqueness race: agent=%s listing=%s existing=%s",
                agent_id, listing_id, stored.id,
            )
            await self._compensate(db, agent_id, total_cost, proposal.id)
            raise AlreadyBidError(listing_id)

        logger.info(
            "Bid admitted: agent=%s listing=%s proposal=%s cost=%d boost=%d",
            agent_id, listing_id, stored.id, proposal.base_cost, proposal.boost,
        )
        return stored

    async def _failed_debit_outcome(
        self, db: AsyncSession, proposal: Proposal, exc: DBAPIError
    ) -> AppError:
        """The error to raise for a debit that failed with a database error.

        The error may come from the commit after the server already applied
        the debit, so the ledger is checked for the proposal's debit entry.
        """
        agent_id, amount = proposal.agent_id, proposal.tokens_spent
        try:
            landed = await self._ledger.debit_landed(db, proposal.id)
        except DBAPIError:
            await db.rollback()
            reconciliation_logger.critical(
                "Debit outcome unknown, manual reconciliation required: "
                "agent=%s amount=%d ref=%s error=%r",
                agent_id, amount, proposal.id, exc,
            )
            raise RefundFailedError(agent_id, amount, proposal.id) from exc

        if not landed:
            await db.rollback()
            return ConcurrentConflictError()

        logger.warning(
            "Debit committed despite error: agent=%s listing=%s ref=%s",
            agent_id, proposal.listing_id, proposal.id, exc_info=exc,
        )
        await self._compensate(db, agent_id, amount, proposal.id)
        return PersistenceFailureError(proposal.listing_id)

    async def _compensate(
        self, db: AsyncSession, agent_id: str, amount: int, reference_id: str
    ) -> None:
        try:
            await self._ledger.refund(db, agent_id, amount, reference_id)
        except Exception as exc:
            reconciliation_logger.critical(
                "Refund failed, manual reconciliation required: "
                "agent=%s amount=%d ref=%s error=%r",
                agent_id, amount, reference_id, exc,
            )
            raise RefundFailedError(agent_id, amount, reference_id) from exc
