"""002: create transfers table

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
        CREATE TABLE transfers (
            id              BIGSERIAL    PRIMARY KEY,
            transfer_id     VARCHAR(64)  NOT NULL,
            sender_id       VARCHAR(64)  NOT NULL REFERENCES accounts (account_id),
            recipient_id    VARCHAR(64)  NOT NULL REFERENCES accounts (account_id),
            amount          BIGINT       NOT NULL,
            status          VARCHAR(32)  NOT NULL,
            description     TEXT,
            created_at      TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_transfers_transfer_id   UNIQUE (transfer_id),
            CONSTRAINT ck_transfers_amount_gt_0   CHECK (amount > 0),
            CONSTRAINT ck_transfers_distinct_parties CHECK (sender_id <> recipient_id),
            CONSTRAINT ck_transfers_status CHECK (
                status IN ('PENDING', 'COMPLETED', 'FAILED')
            )
        );
    """)
    op.execute("CREATE INDEX idx_transfers_sender ON transfers (sender_id, id DESC);")
    op.execute("CREATE INDEX idx_transfers_recipient ON transfers (recipient_id, id DESC);")
    op.execute("COMMENT ON TABLE transfers IS 'Transfer ledger, append-only, amounts in cents';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS transfers CASCADE;")
