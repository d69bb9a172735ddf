"""Repository Protocol: dependency inversion for testability.

Unit tests inject an in-memory fake that conforms to this Protocol.
Infrastructure layer provides the real implementation.

Every method runs on the session handed in by the caller; none of them
commit. Lookups that match no row return None, never raise.
"""

from collections.abc import Sequence
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pl_account.domain.models import (
    Account,
    AccountUpdate,
    LedgerEntry,
    NewAccount,
    NewLedgerEntry,
)


class AccountRepositoryProtocol(Protocol):
    async def get_account_by_id(
        self, db: AsyncSession, account_id: str
    ) -> Account | None: ...

    async def get_account_by_email(
        self, db: AsyncSession, email: str
    ) -> Account | None: ...

    async def insert_account(self, db: AsyncSession, account: NewAccount) -> Account: ...

    async def update_account(
        self, db: AsyncSession, account_id: str, update: AccountUpdate
    ) -> Account | None: ...

    async def lock_accounts(
        self, db: AsyncSession, account_ids: Sequence[str]
    ) -> dict[str, Account]:
        """Row-lock the given accounts until the transaction ends.

        Locks are taken in account_id order so concurrent callers locking
        overlapping sets cannot deadlock. Missing ids are absent from the result.
        """
        ...

    async def debit(
        self, db: AsyncSession, account_id: str, amount: int
    ) -> Account | None:
        """Subtract ``amount`` only if balance >= amount; None otherwise."""
        ...

    async def credit(
        self, db: AsyncSession, account_id: str, amount: int
    ) -> Account | None: ...

    async def insert_ledger_entry(
        self, db: AsyncSession, entry: NewLedgerEntry
    ) -> LedgerEntry: ...

    async def list_ledger_entries(
        self,
        db: AsyncSession,
        account_id: str,
        cursor_id: int | None,
        limit: int,
    ) -> list[LedgerEntry]: ...
