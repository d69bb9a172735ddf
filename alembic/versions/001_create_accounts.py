"""001: create accounts table

Revision ID: 001
Revises:
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE accounts (
            id                  BIGSERIAL    PRIMARY KEY,
            account_id          VARCHAR(64)  NOT NULL,
            name                VARCHAR(255) NOT NULL,
            email               VARCHAR(255) NOT NULL,
            credential_hash     VARCHAR(255) NOT NULL,
            balance             BIGINT       NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_accounts_account_id  UNIQUE (account_id),
            CONSTRAINT uq_accounts_email       UNIQUE (email),
            CONSTRAINT ck_accounts_balance_gte_0 CHECK (balance >= 0)
        );
    """)
    op.execute("COMMENT ON TABLE accounts IS 'Account balances, all amounts in cents';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS accounts CASCADE;")
