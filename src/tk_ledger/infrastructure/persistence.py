"""TokenLedgerRepository: concrete implementation of TokenLedgerRepositoryProtocol.

Every balance mutation is a single atomic PostgreSQL statement with RETURNING.
A debit returning 0 rows means the conditional `balance >= :amount` failed at
the instant of the update; there is no separate read before the write.

Transaction ownership: the CALLER (TokenLedgerService) commits or rolls back.
Each mutation writes its ledger entry inside the same transaction.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.tk_common.enums import LedgerEntryType, LedgerReferenceType
from src.tk_common.errors import InsufficientBalanceError, InternalError
from src.tk_ledger.domain.models import LedgerEntry, TokenAccount

# ---------------------------------------------------------------------------
# SQL: token_accounts mutations
# ---------------------------------------------------------------------------

_ACCOUNT_COLUMNS = "agent_id, balance, tokens_used, version, created_at, updated_at"

# Account is created implicitly on first credit.
_CREDIT_SQL = text(f"""
    INSERT INTO token_accounts (agent_id, balance, tokens_used, version)
    VALUES (:agent_id, :amount, 0, 0)
    ON CONFLICT (agent_id) DO UPDATE
        SET balance = token_accounts.balance + EXCLUDED.balance,
            version = token_accounts.version + 1,
            updated_at = NOW()
    RETURNING {_ACCOUNT_COLUMNS}
""")

_DEBIT_SQL = text(f"""
    UPDATE token_accounts
    SET balance = balance - :amount,
        tokens_used = tokens_used + :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE agent_id = :agent_id AND balance >= :amount
    RETURNING {_ACCOUNT_COLUMNS}
""")

_REFUND_SQL = text(f"""
    UPDATE token_accounts
    SET balance = balance + :amount,
        tokens_used = GREATEST(tokens_used - :amount, 0),
        version = version + 1,
        updated_at = NOW()
    WHERE agent_id = :agent_id
    RETURNING {_ACCOUNT_COLUMNS}
""")

_GET_ACCOUNT_SQL = text(f"""
    SELECT {_ACCOUNT_COLUMNS}
    FROM token_accounts
    WHERE agent_id = :agent_id
""")

# ---------------------------------------------------------------------------
# SQL: token_ledger_entries
# ---------------------------------------------------------------------------

_LEDGER_COLUMNS = (
    "id, agent_id, entry_type, amount, balance_after, "
    "reference_type, reference_id, description, created_at"
)

_INSERT_LEDGER_SQL = text(f"""
    INSERT INTO token_ledger_entries
        (agent_id, entry_type, amount, balance_after,
         reference_type, reference_id, description)
    VALUES
        (:agent_id, :entry_type, :amount, :balance_after,
         :reference_type, :reference_id, :description)
    RETURNING {_LEDGER_COLUMNS}
""")

_GET_PURCHASE_ENTRY_SQL = text(f"""
    SELECT {_LEDGER_COLUMNS}
    FROM token_ledger_entries
    WHERE entry_type = 'TOKEN_PURCHASE' AND reference_id = :purchase_ref
""")

_GET_DEBIT_ENTRY_SQL = text(f"""
    SELECT {_LEDGER_COLUMNS}
    FROM token_ledger_entries
    WHERE reference_type = 'PROPOSAL'
      AND reference_id = :reference_id
      AND entry_type = 'BID_DEBIT'
""")

_LIST_LEDGER_SQL = text(f"""
    SELECT {_LEDGER_COLUMNS}
    FROM token_ledger_entries
    WHERE agent_id = :agent_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < CAST(:cursor_id AS BIGINT))
      AND (CAST(:entry_type AS TEXT) IS NULL OR entry_type = CAST(:entry_type AS TEXT))
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_account(row: object) -> TokenAccount:
    return TokenAccount(
        agent_id=row.agent_id,  # type: ignore[attr-defined]
        balance=row.balance,  # type: ignore[attr-defined]
        tokens_used=row.tokens_used,  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_ledger(row: object) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,  # type: ignore[attr-defined]
        agent_id=row.agent_id,  # type: ignore[attr-defined]
        entry_type=row.entry_type,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        balance_after=row.balance_after,  # type: ignore[attr-defined]
        reference_type=row.reference_type,  # type: ignore[attr-defined]
        reference_id=row.reference_id,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class TokenLedgerRepository:
    """Concrete repository: all balance mutations atomic at the SQL level."""

    async def get_account(
        self, db: AsyncSession, agent_id: str
    ) -> TokenAccount | None:
        result = await db.execute(_GET_ACCOUNT_SQL, {"agent_id": agent_id})
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def get_purchase_entry(
        self, db: AsyncSession, purchase_ref: str
    ) -> LedgerEntry | None:
        result = await db.execute(_GET_PURCHASE_ENTRY_SQL, {"purchase_ref": purchase_ref})
        row = result.fetchone()
        return _row_to_ledger(row) if row else None

    async def get_debit_entry(
        self, db: AsyncSession, reference_id: str
    ) -> LedgerEntry | None:
        result = await db.execute(_GET_DEBIT_ENTRY_SQL, {"reference_id": reference_id})
        row = result.fetchone()
        return _row_to_ledger(row) if row else None

    async def credit(
        self,
        db: AsyncSession,
        agent_id: str,
        amount: int,
        purchase_ref: str | None,
    ) -> tuple[TokenAccount, LedgerEntry]:
        result = await db.execute(_CREDIT_SQL, {"agent_id": agent_id, "amount": amount})
        row = result.fetchone()
        if row is None:
            raise InternalError("Credit upsert returned no rows: this should never happen")
        account = _row_to_account(row)
        # uq_token_ledger_purchase_ref rejects a concurrent duplicate purchase_ref here
        entry = await self._write_entry(
            db,
            account,
            LedgerEntryType.TOKEN_PURCHASE,
            amount,
            LedgerReferenceType.PURCHASE if purchase_ref else None,
            purchase_ref,
            "Token purchase",
        )
        return account, entry

    async def debit(
        self,
        db: AsyncSession,
        agent_id: str,
        amount: int,
        reference_id: str,
        description: str,
    ) -> tuple[TokenAccount, LedgerEntry]:
        result = await db.execute(_DEBIT_SQL, {"agent_id": agent_id, "amount": amount})
        row = result.fetchone()
        if row is None:
            # Read only to report the balance that made the conditional update fail
            current = await self.get_account(db, agent_id)
            raise InsufficientBalanceError(amount, current.balance if current else 0)
        account = _row_to_account(row)
        entry = await self._write_entry(
            db,
            account,
            LedgerEntryType.BID_DEBIT,
            -amount,
            LedgerReferenceType.PROPOSAL,
            reference_id,
            description,
        )
        return account, entry

    async def refund(
        self,
        db: AsyncSession,
        agent_id: str,
        amount: int,
        reference_id: str,
        description: str,
    ) -> tuple[TokenAccount, LedgerEntry]:
        result = await db.execute(_REFUND_SQL, {"agent_id": agent_id, "amount": amount})
        row = result.fetchone()
        if row is None:
            raise InternalError(f"Token account missing for refund: {agent_id}")
        account = _row_to_account(row)
        entry = await self._write_entry(
            db,
            account,
            LedgerEntryType.BID_REFUND,
            amount,
            LedgerReferenceType.PROPOSAL,
            reference_id,
            description,
        )
        return account, entry

    async def list_ledger_entries(
        self,
        db: AsyncSession,
        agent_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[LedgerEntry]:
        result = await db.execute(
            _LIST_LEDGER_SQL,
            {
                "agent_id": agent_id,
                "cursor_id": cursor_id,
                "entry_type": entry_type,
                "limit": limit,
            },
        )
        return [_row_to_ledger(row) for row in result.fetchall()]

    async def _write_entry(
        self,
        db: AsyncSession,
        account: TokenAccount,
        entry_type: LedgerEntryType,
        amount: int,
        reference_type: LedgerReferenceType | None,
        reference_id: str | None,
        description: str,
    ) -> LedgerEntry:
        result = await db.execute(
            _INSERT_LEDGER_SQL,
            {
                "agent_id": account.agent_id,
                "entry_type": entry_type.value,
                "amount": amount,
                "balance_after": account.balance,
                "reference_type": reference_type.value if reference_type else None,
                "reference_id": reference_id,
                "description": description,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Ledger insert returned no rows: this should never happen")
        return _row_to_ledger(row)
