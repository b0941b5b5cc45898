"""Pydantic request/response schemas for the tk_ledger API."""

from pydantic import BaseModel, Field

from src.tk_ledger.domain.models import LedgerEntry, TokenAccount

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreditRequest(BaseModel):
    agent_id: str = Field(..., min_length=1, max_length=64)
    amount: int = Field(..., gt=0, description="Tokens to credit")
    purchase_ref: str = Field(
        ..., min_length=1, max_length=128, description="Stable payment reference, deduplicated"
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    agent_id: str
    balance: int
    tokens_used: int

    @classmethod
    def from_account(cls, account: TokenAccount) -> "BalanceResponse":
        return cls(
            agent_id=account.agent_id,
            balance=account.balance,
            tokens_used=account.tokens_used,
        )


class CreditResponse(BaseModel):
    agent_id: str
    balance: int
    credited: int
    ledger_entry_id: int
    idempotent_hit: bool


class LedgerEntryItem(BaseModel):
    id: int
    entry_type: str
    amount: int
    balance_after: int
    reference_type: str | None
    reference_id: str | None
    description: str | None
    created_at: str  # ISO8601 string

    @classmethod
    def from_domain(cls, entry: LedgerEntry) -> "LedgerEntryItem":
        return cls(
            id=entry.id,
            entry_type=entry.entry_type,
            amount=entry.amount,
            balance_after=entry.balance_after,
            reference_type=entry.reference_type,
            reference_id=entry.reference_id,
            description=entry.description,
            created_at=entry.created_at.isoformat() if entry.created_at else "",
        )


class LedgerResponse(BaseModel):
    items: list[LedgerEntryItem]
    next_cursor: str | None
    has_more: bool
