"""Repository Protocol: dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.tk_ledger.domain.models import LedgerEntry, TokenAccount


class TokenLedgerRepositoryProtocol(Protocol):
    async def get_account(
        self, db: AsyncSession, agent_id: str
    ) -> TokenAccount | None: ...

    async def get_purchase_entry(
        self, db: AsyncSession, purchase_ref: str
    ) -> LedgerEntry | None: ...

    async def get_debit_entry(
        self, db: AsyncSession, reference_id: str
    ) -> LedgerEntry | None: ...

    async def credit(
        self,
        db: AsyncSession,
        agent_id: str,
        amount: int,
        purchase_ref: str | None,
    ) -> tuple[TokenAccount, LedgerEntry]: ...

    async def debit(
        self,
        db: AsyncSession,
        agent_id: str,
        amount: int,
        reference_id: str,
        description: str,
    ) -> tuple[TokenAccount, LedgerEntry]: ...

    async def refund(
        self,
        db: AsyncSession,
        agent_id: str,
        amount: int,
        reference_id: str,
        description: str,
    ) -> tuple[TokenAccount, LedgerEntry]: ...

    async def list_ledger_entries(
        self,
        db: AsyncSession,
        agent_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[LedgerEntry]: ...
