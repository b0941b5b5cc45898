"""TokenLedgerService: the only writer of token balances.

Credit, debit and refund each own their transaction: commit on success,
rollback and re-raise on any failure. Reads run without an explicit
transaction.
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.tk_common.errors import InvalidTokenAmountError, PurchaseRefConflictError
from src.tk_common.pagination import cursor_decode, cursor_encode
from src.tk_ledger.application.schemas import LedgerEntryItem, LedgerResponse
from src.tk_ledger.domain.models import CreditResult, TokenAccount
from src.tk_ledger.domain.repository import TokenLedgerRepositoryProtocol
from src.tk_ledger.infrastructure.persistence import TokenLedgerRepository

logger = logging.getLogger(__name__)


def _require_positive(amount: int) -> None:
    if amount <= 0:
        raise InvalidTokenAmountError(amount)


class TokenLedgerService:
    def __init__(self, repo: TokenLedgerRepositoryProtocol | None = None) -> None:
        self._repo: TokenLedgerRepositoryProtocol = repo or TokenLedgerRepository()

    async def get_account(self, db: AsyncSession, agent_id: str) -> TokenAccount:
        """Return the agent's account, or an empty one if nothing was ever credited."""
        account = await self._repo.get_account(db, agent_id)
        if account is None:
            return TokenAccount(agent_id=agent_id, balance=0, tokens_used=0, version=0)
        return account

    async def get_balance(self, db: AsyncSession, agent_id: str) -> int:
        account = await self.get_account(db, agent_id)
        return account.balance

    async def credit(
        self,
        db: AsyncSession,
        agent_id: str,
        amount: int,
        purchase_ref: str | None = None,
    ) -> CreditResult:
        """Add purchased tokens. Retrying with the same purchase_ref is a no-op."""
        _require_positive(amount)
        if purchase_ref is not None:
            hit = await self._idempotent_hit(db, agent_id, purchase_ref)
            if hit is not None:
                return hit

        try:
            account, entry = await self._repo.credit(db, agent_id, amount, purchase_ref)
            await db.commit()
        except IntegrityError:
            await db.rollback()
            # Lost a race against a concurrent credit with the same purchase_ref
            hit = await self._idempotent_hit(db, agent_id, purchase_ref) if purchase_ref else None
            if hit is None:
                raise
            return hit
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Credited %d tokens: agent=%s ref=%s balance=%d",
            amount, agent_id, purchase_ref, account.balance,
        )
        return CreditResult(account=account, entry=entry)

    async def debit(
        self, db: AsyncSession, agent_id: str, amount: int, reference_id: str
    ) -> TokenAccount:
        """Atomically subtract `amount` if the balance covers it at the instant of the update."""
        _require_positive(amount)
        try:
            account, _ = await self._repo.debit(
                db, agent_id, amount, reference_id, f"Bid {reference_id}"
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return account

    async def debit_landed(self, db: AsyncSession, reference_id: str) -> bool:
        """Whether a debit for `reference_id` is durably recorded.

        Resolves a debit whose commit raised: the server may have committed
        before the acknowledgement was lost.
        """
        return await self._repo.get_debit_entry(db, reference_id) is not None

    async def refund(
        self, db: AsyncSession, agent_id: str, amount: int, reference_id: str
    ) -> TokenAccount:
        """Compensating credit for a debit whose bid could not be recorded."""
        _require_positive(amount)
        try:
            account, _ = await self._repo.refund(
                db, agent_id, amount, reference_id, f"Refund for bid {reference_id}"
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Refunded %d tokens: agent=%s ref=%s balance=%d",
            amount, agent_id, reference_id, account.balance,
        )
        return account

    async def list_ledger(
        self,
        db: AsyncSession,
        agent_id: str,
        cursor: str | None,
        limit: int,
        entry_type: str | None,
    ) -> LedgerResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._repo.list_ledger_entries(
            db, agent_id, cursor_id, limit + 1, entry_type
        )
        has_more = len(entries) > limit
        page = entries[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return LedgerResponse(
            items=[LedgerEntryItem.from_domain(e) for e in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def _idempotent_hit(
        self, db: AsyncSession, agent_id: str, purchase_ref: str
    ) -> CreditResult | None:
        existing = await self._repo.get_purchase_entry(db, purchase_ref)
        if existing is None:
            return None
        if existing.agent_id != agent_id:
            raise PurchaseRefConflictError(purchase_ref)
        logger.info("Credit idempotency hit: agent=%s ref=%s", agent_id, purchase_ref)
        account = await self.get_account(db, agent_id)
        return CreditResult(account=account, entry=existing, idempotent_hit=True)
