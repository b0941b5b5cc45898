"""In-memory doubles for the ledger, bid store and listings collaborators.

Each fake yields to the event loop (`asyncio.sleep(0)`) before touching state,
so concurrent tasks interleave at the same points where the real repositories
await the database. The ledger's check-and-subtract runs with no await in
between, which is the atomicity the SQL conditional UPDATE provides.
"""

import asyncio
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from src.tk_bidding.application.admission import AdmissionController
from src.tk_bidding.domain.models import Proposal
from src.tk_bidding.domain.priority import highest_committed, rank_proposals
from src.tk_common.enums import LedgerEntryType, LedgerReferenceType, ListingKind
from src.tk_common.errors import InsufficientBalanceError, InternalError
from src.tk_ledger.application.service import TokenLedgerService
from src.tk_ledger.domain.models import LedgerEntry, TokenAccount
from src.tk_listing.domain.models import Listing
from src.tk_pricing.application.service import PricingService


class InMemoryLedgerRepo:
    def __init__(self) -> None:
        self.accounts: dict[str, TokenAccount] = {}
        self.entries: list[LedgerEntry] = []
        self.fail_debit: Exception | None = None
        self.fail_refund: Exception | None = None

    def seed(self, agent_id: str, balance: int) -> None:
        self.accounts[agent_id] = TokenAccount(
            agent_id=agent_id, balance=balance, tokens_used=0, version=0
        )

    def balance(self, agent_id: str) -> int:
        account = self.accounts.get(agent_id)
        return account.balance if account else 0

    def _append(
        self,
        account: TokenAccount,
        entry_type: LedgerEntryType,
        amount: int,
        reference_type: str | None,
        reference_id: str | None,
        description: str,
    ) -> LedgerEntry:
        entry = LedgerEntry(
            id=len(self.entries) + 1,
            agent_id=account.agent_id,
            entry_type=entry_type.value,
            amount=amount,
            balance_after=account.balance,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
            created_at=datetime.now(UTC),
        )
        self.entries.append(entry)
        return entry

    async def get_account(self, db, agent_id):
        await asyncio.sleep(0)
        account = self.accounts.get(agent_id)
        return replace(account) if account else None

    async def get_purchase_entry(self, db, purchase_ref):
        await asyncio.sleep(0)
        for entry in self.entries:
            if entry.entry_type == LedgerEntryType.TOKEN_PURCHASE and entry.reference_id == purchase_ref:
                return entry
        return None

    async def get_debit_entry(self, db, reference_id):
        await asyncio.sleep(0)
        for entry in self.entries:
            if entry.entry_type == LedgerEntryType.BID_DEBIT and entry.reference_id == reference_id:
                return entry
        return None

    async def credit(self, db, agent_id, amount, purchase_ref):
        await asyncio.sleep(0)
        account = self.accounts.setdefault(
            agent_id, TokenAccount(agent_id=agent_id, balance=0, tokens_used=0, version=0)
        )
        account.balance += amount
        account.version += 1
        entry = self._append(
            account,
            LedgerEntryType.TOKEN_PURCHASE,
            amount,
            LedgerReferenceType.PURCHASE.value if purchase_ref else None,
            purchase_ref,
            "Token purchase",
        )
        return replace(account), entry

    async def debit(self, db, agent_id, amount, reference_id, description):
        await asyncio.sleep(0)
        if self.fail_debit is not None:
            raise self.fail_debit
        account = self.accounts.get(agent_id)
        available = account.balance if account else 0
        if account is None or available < amount:
            raise InsufficientBalanceError(amount, available)
        account.balance -= amount
        account.tokens_used += amount
        account.version += 1
        entry = self._append(
            account, LedgerEntryType.BID_DEBIT, -amount,
            LedgerReferenceType.PROPOSAL.value, reference_id, description,
        )
        return replace(account), entry

    async def refund(self, db, agent_id, amount, reference_id, description):
        await asyncio.sleep(0)
        if self.fail_refund is not None:
            raise self.fail_refund
        account = self.accounts.get(agent_id)
        if account is None:
            raise InternalError(f"Token account missing for refund: {agent_id}")
        account.balance += amount
        account.tokens_used = max(account.tokens_used - amount, 0)
        account.version += 1
        entry = self._append(
            account, LedgerEntryType.BID_REFUND, amount,
            LedgerReferenceType.PROPOSAL.value, reference_id, description,
        )
        return replace(account), entry

    async def list_ledger_entries(self, db, agent_id, cursor_id, limit, entry_type):
        await asyncio.sleep(0)
        rows = [
            e for e in reversed(self.entries)
            if e.agent_id == agent_id
            and (cursor_id is None or e.id < cursor_id)
            and (entry_type is None or e.entry_type == entry_type)
        ]
        return rows[:limit]


class InMemoryBidStore:
    def __init__(self) -> None:
        self.proposals: dict[tuple[str, str], Proposal] = {}
        self.fail_persist: Exception | None = None
        self.fail_reads: Exception | None = None
        self.persist_delay = 0.0

    def seed_bids(self, listing_id: str, tokens_spent: list[int]) -> list[Proposal]:
        """Add proposals from distinct agents with increasing created_at."""
        start = datetime(2026, 1, 1, tzinfo=UTC)
        seeded = []
        for i, spent in enumerate(tokens_spent):
            proposal = Proposal(
                id=f"{listing_id}-seed-{i}",
                listing_id=listing_id,
                agent_id=f"seed-agent-{i}",
                base_cost=1,
                boost=spent - 1,
                tokens_spent=spent,
                created_at=start + timedelta(minutes=i),
            )
            self.proposals[(listing_id, proposal.agent_id)] = proposal
            seeded.append(proposal)
        return seeded

    def for_listing(self, listing_id: str) -> list[Proposal]:
        return [p for (lid, _), p in self.proposals.items() if lid == listing_id]

    async def _read_point(self) -> None:
        await asyncio.sleep(0)
        if self.fail_reads is not None:
            raise self.fail_reads

    async def count_bids(self, db, listing_id):
        await self._read_point()
        return len(self.for_listing(listing_id))

    async def exists(self, db, listing_id, agent_id):
        await self._read_point()
        return (listing_id, agent_id) in self.proposals

    async def create_if_absent(self, db, proposal):
        await asyncio.sleep(self.persist_delay)
        if self.fail_persist is not None:
            raise self.fail_persist
        key = (proposal.listing_id, proposal.agent_id)
        if key in self.proposals:
            return False, self.proposals[key]
        self.proposals[key] = proposal
        return True, proposal

    async def highest_committed(self, db, listing_id):
        await self._read_point()
        return highest_committed(self.for_listing(listing_id))

    async def list_for_listing(self, db, listing_id, limit):
        await self._read_point()
        return rank_proposals(self.for_listing(listing_id))[:limit]

    async def list_for_agent(self, db, agent_id, limit):
        await self._read_point()
        mine = [p for (_, aid), p in self.proposals.items() if aid == agent_id]
        return sorted(mine, key=lambda p: p.created_at, reverse=True)[:limit]


class InMemoryListingRepo:
    def __init__(self) -> None:
        self.listings: dict[str, Listing] = {}

    def add(self, listing_id: str, kind: ListingKind, verified: bool = False) -> Listing:
        listing = Listing(id=listing_id, kind=kind, verified=verified)
        self.listings[listing_id] = listing
        return listing

    async def get_listing(self, db, listing_id):
        await asyncio.sleep(0)
        return self.listings.get(listing_id)


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def ledger_repo() -> InMemoryLedgerRepo:
    return InMemoryLedgerRepo()


@pytest.fixture
def bid_store() -> InMemoryBidStore:
    return InMemoryBidStore()


@pytest.fixture
def listing_repo() -> InMemoryListingRepo:
    return InMemoryListingRepo()


@pytest.fixture
def ledger(ledger_repo: InMemoryLedgerRepo) -> TokenLedgerService:
    return TokenLedgerService(repo=ledger_repo)


@pytest.fixture
def pricing(listing_repo: InMemoryListingRepo, bid_store: InMemoryBidStore) -> PricingService:
    return PricingService(listings=listing_repo, store=bid_store)


@pytest.fixture
def controller(
    ledger: TokenLedgerService, bid_store: InMemoryBidStore, pricing: PricingService
) -> AdmissionController:
    return AdmissionController(ledger=ledger, store=bid_store, pricing=pricing)
