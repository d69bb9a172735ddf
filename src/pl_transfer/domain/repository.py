"""Repository Protocol for the transfers table."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pl_transfer.domain.models import NewTransfer, Transfer


class TransferRepositoryProtocol(Protocol):
    async def get_transfer_by_id(
        self, db: AsyncSession, transfer_id: str
    ) -> Transfer | None: ...

    async def insert_transfer(self, db: AsyncSession, transfer: NewTransfer) -> Transfer: ...

    async def list_transfers_for_account(
        self, db: AsyncSession, account_id: str, offset: int, limit: int
    ) -> list[Transfer]: ...

    async def count_transfers_for_account(
        self, db: AsyncSession, account_id: str
    ) -> int: ...
