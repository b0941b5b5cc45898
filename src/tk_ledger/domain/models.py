"""Domain models for tk_ledger: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class TokenAccount:
    agent_id: str
    balance: int          # tokens available to spend
    tokens_used: int      # lifetime tokens spent on bids, net of refunds
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class LedgerEntry:
    id: int                          # BIGSERIAL
    agent_id: str
    entry_type: str                  # LedgerEntryType value
    amount: int                      # positive=credit negative=debit
    balance_after: int               # balance snapshot after op
    reference_type: str | None = None
    reference_id: str | None = None
    description: str | None = None
    created_at: datetime | None = None


@dataclass
class CreditResult:
    account: TokenAccount
    entry: LedgerEntry
    idempotent_hit: bool = False
