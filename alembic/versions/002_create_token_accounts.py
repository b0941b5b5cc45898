"""002: create token_accounts table

Revision ID: 002
Revises: 001
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE token_accounts (
            agent_id        VARCHAR(64) PRIMARY KEY,
            balance         BIGINT      NOT NULL DEFAULT 0,
            tokens_used     BIGINT      NOT NULL DEFAULT 0,
            version         BIGINT      NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_token_accounts_balance_gte_0     CHECK (balance >= 0),
            CONSTRAINT ck_token_accounts_tokens_used_gte_0 CHECK (tokens_used >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_token_accounts_updated_at
            BEFORE UPDATE ON token_accounts
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("COMMENT ON TABLE token_accounts IS 'Agent token balances: mutated only by conditional UPDATE';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS token_accounts CASCADE;")
