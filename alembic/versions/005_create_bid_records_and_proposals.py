"""005: create bid_records and proposals tables

Revision ID: 005
Revises: 004
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE bid_records (
            listing_id  VARCHAR(64) NOT NULL,
            agent_id    VARCHAR(64) NOT NULL,
            proposal_id VARCHAR(64) NOT NULL,
            created_at  TIMESTAMPTZ NOT NULL,
            CONSTRAINT pk_bid_records PRIMARY KEY (listing_id, agent_id),
            CONSTRAINT uq_bid_records_proposal_id UNIQUE (proposal_id)
        );
    """)
    op.execute("""
        CREATE TABLE proposals (
            id              VARCHAR(64) PRIMARY KEY,
            listing_id      VARCHAR(64) NOT NULL,
            agent_id        VARCHAR(64) NOT NULL,
            base_cost       INTEGER     NOT NULL,
            boost           INTEGER     NOT NULL DEFAULT 0,
            tokens_spent    INTEGER     NOT NULL,
            status          VARCHAR(20) NOT NULL DEFAULT 'PENDING',
            created_at      TIMESTAMPTZ NOT NULL,
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_proposals_listing_agent UNIQUE (listing_id, agent_id),
            CONSTRAINT ck_proposals_base_cost_gt_0 CHECK (base_cost > 0),
            CONSTRAINT ck_proposals_boost_gte_0 CHECK (boost >= 0),
            CONSTRAINT ck_proposals_tokens_spent CHECK (tokens_spent = base_cost + boost),
            CONSTRAINT ck_proposals_status CHECK (status IN ('PENDING', 'ACCEPTED', 'REJECTED'))
        );
    """)
    op.execute("""
        CREATE INDEX idx_proposals_ranking
        ON proposals (listing_id, tokens_spent DESC, created_at ASC, id ASC);
    """)
    op.execute("CREATE INDEX idx_proposals_agent ON proposals (agent_id, created_at DESC);")
    op.execute("""
        CREATE TRIGGER trg_proposals_updated_at
            BEFORE UPDATE ON proposals
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS proposals CASCADE;")
    op.execute("DROP TABLE IF EXISTS bid_records CASCADE;")
