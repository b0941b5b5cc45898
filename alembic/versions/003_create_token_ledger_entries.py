"""003: create token_ledger_entries table

Revision ID: 003
Revises: 002
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE token_ledger_entries (
            id              BIGSERIAL       PRIMARY KEY,
            agent_id        VARCHAR(64)     NOT NULL,
            entry_type      VARCHAR(30)     NOT NULL,
            amount          BIGINT          NOT NULL,
            balance_after   BIGINT          NOT NULL,
            reference_type  VARCHAR(30),
            reference_id    VARCHAR(128),
            description     VARCHAR(500),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_token_ledger_entry_type CHECK (
                entry_type IN ('TOKEN_PURCHASE', 'BID_DEBIT', 'BID_REFUND')
            ),
            CONSTRAINT ck_token_ledger_balance_gte_0 CHECK (balance_after >= 0)
        );
    """)
    op.execute(
        "CREATE INDEX idx_token_ledger_agent_id ON token_ledger_entries (agent_id, id DESC);"
    )
    op.execute("""
        CREATE INDEX idx_token_ledger_reference
        ON token_ledger_entries (reference_type, reference_id)
        WHERE reference_id IS NOT NULL;
    """)
    # One credit per payment reference; duplicate purchase callbacks hit this
    op.execute("""
        CREATE UNIQUE INDEX uq_token_ledger_purchase_ref
        ON token_ledger_entries (reference_id)
        WHERE entry_type = 'TOKEN_PURCHASE' AND reference_id IS NOT NULL;
    """)
    op.execute("COMMENT ON TABLE token_ledger_entries IS 'Token audit trail: Append-Only, never updated or deleted';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS token_ledger_entries CASCADE;")
