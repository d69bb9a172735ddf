"""TransferRepository: concrete implementation of TransferRepositoryProtocol.

Transfer rows are written once by the engine, inside the same transaction as
the balance updates. Listing is offset-paged newest first.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pl_common.database import translate_db_errors
from src.pl_common.errors import InternalError
from src.pl_transfer.domain.models import NewTransfer, Transfer

_TRANSFER_COLUMNS = (
    "transfer_id, sender_id, recipient_id, amount, status, description, created_at, updated_at"
)

_GET_TRANSFER_SQL = text(f"""
    SELECT {_TRANSFER_COLUMNS}
    FROM transfers
    WHERE transfer_id = :transfer_id
""")

_INSERT_TRANSFER_SQL = text(f"""
    INSERT INTO transfers
        (transfer_id, sender_id, recipient_id, amount, status, description)
    VALUES
        (:transfer_id, :sender_id, :recipient_id, :amount, :status, :description)
    RETURNING {_TRANSFER_COLUMNS}
""")

_LIST_FOR_ACCOUNT_SQL = text(f"""
    SELECT {_TRANSFER_COLUMNS}
    FROM transfers
    WHERE sender_id = :account_id OR recipient_id = :account_id
    ORDER BY id DESC
    LIMIT :limit OFFSET :offset
""")

_COUNT_FOR_ACCOUNT_SQL = text("""
    SELECT COUNT(*)
    FROM transfers
    WHERE sender_id = :account_id OR recipient_id = :account_id
""")


def _row_to_transfer(row: object) -> Transfer:
    return Transfer(
        transfer_id=row.transfer_id,  # type: ignore[attr-defined]
        sender_id=row.sender_id,  # type: ignore[attr-defined]
        recipient_id=row.recipient_id,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class TransferRepository:
    async def get_transfer_by_id(
        self, db: AsyncSession, transfer_id: str
    ) -> Transfer | None:
        async with translate_db_errors("find transfer"):
            result = await db.execute(_GET_TRANSFER_SQL, {"transfer_id": transfer_id})
            row = result.fetchone()
        return _row_to_transfer(row) if row else None

    async def insert_transfer(self, db: AsyncSession, transfer: NewTransfer) -> Transfer:
        async with translate_db_errors("insert transfer"):
            result = await db.execute(
                _INSERT_TRANSFER_SQL,
                {
                    "transfer_id": transfer.transfer_id,
                    "sender_id": transfer.sender_id,
                    "recipient_id": transfer.recipient_id,
                    "amount": transfer.amount,
                    "status": transfer.status,
                    "description": transfer.description,
                },
            )
            row = result.fetchone()
        if row is None:
            raise InternalError("Transfer insert returned no rows")
        return _row_to_transfer(row)

    async def list_transfers_for_account(
        self, db: AsyncSession, account_id: str, offset: int, limit: int
    ) -> list[Transfer]:
        async with translate_db_errors("list transfers"):
            result = await db.execute(
                _LIST_FOR_ACCOUNT_SQL,
                {"account_id": account_id, "offset": offset, "limit": limit},
            )
            rows = result.fetchall()
        return [_row_to_transfer(row) for row in rows]

    async def count_transfers_for_account(
        self, db: AsyncSession, account_id: str
    ) -> int:
        async with translate_db_errors("count transfers"):
            result = await db.execute(_COUNT_FOR_ACCOUNT_SQL, {"account_id": account_id})
            total = result.scalar_one()
        return int(total)
