"""004: create listings read model

Revision ID: 004
Revises: 003
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Owned by the listings service; only the columns bid pricing reads
    op.execute("""
        CREATE TABLE IF NOT EXISTS listings (
            id          VARCHAR(64) PRIMARY KEY,
            kind        VARCHAR(10) NOT NULL,
            verified    BOOLEAN     NOT NULL DEFAULT FALSE,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_listings_kind CHECK (kind IN ('BUYER', 'SELLER'))
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS listings CASCADE;")
