"""BidStore: concrete implementation of BidStoreProtocol.

Uniqueness of (listing_id, agent_id) is enforced by the bid_records primary
key, not by the read in `exists`. `create_if_absent` inserts the marker with
ON CONFLICT DO NOTHING and inserts the proposal from the marker's RETURNING
rows in the same statement, so a losing writer inserts nothing.

Transaction ownership: the CALLER commits or rolls back.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.tk_bidding.domain.models import Proposal
from src.tk_common.errors import InternalError

_PROPOSAL_COLUMNS = (
    "id, listing_id, agent_id, base_cost, boost, tokens_spent, status, created_at"
)

_CREATE_IF_ABSENT_SQL = text(f"""
    WITH marker AS (
        INSERT INTO bid_records (listing_id, agent_id, proposal_id, created_at)
        VALUES (:listing_id, :agent_id, :id, :created_at)
        ON CONFLICT (listing_id, agent_id) DO NOTHING
        RETURNING proposal_id
    )
    INSERT INTO proposals
        (id, listing_id, agent_id, base_cost, boost, tokens_spent, status, created_at)
    SELECT marker.proposal_id, :listing_id, :agent_id, :base_cost, :boost,
           :tokens_spent, :status, :created_at
    FROM marker
    RETURNING {_PROPOSAL_COLUMNS}
""")

_GET_BY_PAIR_SQL = text(f"""
    SELECT {_PROPOSAL_COLUMNS}
    FROM proposals
    WHERE listing_id = :listing_id AND agent_id = :agent_id
""")

_EXISTS_SQL = text("""
    SELECT 1
    FROM bid_records
    WHERE listing_id = :listing_id AND agent_id = :agent_id
""")

_COUNT_SQL = text("""
    SELECT COUNT(*) AS bid_count
    FROM bid_records
    WHERE listing_id = :listing_id
""")

_HIGHEST_SQL = text("""
    SELECT COALESCE(MAX(tokens_spent), 0) AS highest
    FROM proposals
    WHERE listing_id = :listing_id
""")

_LIST_FOR_LISTING_SQL = text(f"""
    SELECT {_PROPOSAL_COLUMNS}
    FROM proposals
    WHERE listing_id = :listing_id
    ORDER BY tokens_spent DESC, created_at ASC, id ASC
    LIMIT :limit
""")

_LIST_FOR_AGENT_SQL = text(f"""
    SELECT {_PROPOSAL_COLUMNS}
    FROM proposals
    WHERE agent_id = :agent_id
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")


def _row_to_proposal(row: object) -> Proposal:
    return Proposal(
        id=row.id,  # type: ignore[attr-defined]
        listing_id=row.listing_id,  # type: ignore[attr-defined]
        agent_id=row.agent_id,  # type: ignore[attr-defined]
        base_cost=row.base_cost,  # type: ignore[attr-defined]
        boost=row.boost,  # type: ignore[attr-defined]
        tokens_spent=row.tokens_spent,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class BidStore:
    async def count_bids(self, db: AsyncSession, listing_id: str) -> int:
        result = await db.execute(_COUNT_SQL, {"listing_id": listing_id})
        return int(result.scalar_one())

    async def exists(self, db: AsyncSession, listing_id: str, agent_id: str) -> bool:
        result = await db.execute(
            _EXISTS_SQL, {"listing_id": listing_id, "agent_id": agent_id}
        )
        return result.fetchone() is not None

    async def create_if_absent(
        self, db: AsyncSession, proposal: Proposal
    ) -> tuple[bool, Proposal]:
        result = await db.execute(
            _CREATE_IF_ABSENT_SQL,
            {
                "id": proposal.id,
                "listing_id": proposal.listing_id,
                "agent_id": proposal.agent_id,
                "base_cost": proposal.base_cost,
                "boost": proposal.boost,
                "tokens_spent": proposal.tokens_spent,
                "status": proposal.status,
                "created_at": proposal.created_at,
            },
        )
        row = result.fetchone()
        if row is not None:
            return True, _row_to_proposal(row)

        existing = await db.execute(
            _GET_BY_PAIR_SQL,
            {"listing_id": proposal.listing_id, "agent_id": proposal.agent_id},
        )
        existing_row = existing.fetchone()
        if existing_row is None:
            raise InternalError(
                f"Bid record exists without proposal: {proposal.listing_id}/{proposal.agent_id}"
            )
        return False, _row_to_proposal(existing_row)

    async def highest_committed(self, db: AsyncSession, listing_id: str) -> int:
        result = await db.execute(_HIGHEST_SQL, {"listing_id": listing_id})
        return int(result.scalar_one())

    async def list_for_listing(
        self, db: AsyncSession, listing_id: str, limit: int
    ) -> list[Proposal]:
        result = await db.execute(
            _LIST_FOR_LISTING_SQL, {"listing_id": listing_id, "limit": limit}
        )
        return [_row_to_proposal(row) for row in result.fetchall()]

    async def list_for_agent(
        self, db: AsyncSession, agent_id: str, limit: int
    ) -> list[Proposal]:
        result = await db.execute(
            _LIST_FOR_AGENT_SQL, {"agent_id": agent_id, "limit": limit}
        )
        return [_row_to_proposal(row) for row in result.fetchall()]
