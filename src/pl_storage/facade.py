"""Repository facade: the single entry point callers use for accounts and transfers.

Reads are read-through: try the per-type cache, on a miss query the store and
populate the cache. Writes always go to the store inside one transaction.

After every committed write the affected entries are repopulated with the
post-commit rows (the account for deposit/withdraw/update, sender, recipient
and the new transfer for a transfer). Nothing is populated when a write fails,
so a failed write can never leave its value behind in the cache.

Every population, reads included, only replaces a cached row with one whose
``updated_at`` is the same or later. A read that fetched a row before a
concurrent write committed therefore cannot overwrite the newer snapshot
that write put in the cache.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from src.pl_account.domain.models import (
    Account,
    AccountUpdate,
    LedgerEntry,
    NewAccount,
    NewLedgerEntry,
)
from src.pl_account.domain.repository import AccountRepositoryProtocol
from src.pl_common.cents import validate_amount
from src.pl_common.database import TransactionManager
from src.pl_common.enums import LedgerEntryType
from src.pl_common.errors import (
    AccountNotFoundError,
    AppError,
    EmailExistsError,
    InsufficientFundsError,
    InvalidCredentialsError,
    InvalidInputError,
    TransferNotFoundError,
)
from src.pl_common.id_generator import generate_account_id
from src.pl_storage.caching import ACCOUNTS, TRANSFERS, CacheKind, Caching
from src.pl_transfer.domain.engine import TransferEngine
from src.pl_transfer.domain.models import Transfer, TransferOutcome
from src.pl_transfer.domain.repository import TransferRepositoryProtocol

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def _not_older(cached: Account | Transfer, fresh: Account | Transfer) -> bool:
    return fresh.updated_at >= cached.updated_at


def _log_detached_transfer(task: "asyncio.Future[TransferOutcome]") -> None:
    """Report how a transfer ended after its caller was cancelled."""
    if task.cancelled():
        logger.warning("Detached transfer was cancelled")
        return
    exc = task.exception()
    if exc is None:
        logger.info(
            "Transfer %s completed after its caller went away",
            task.result().transfer.transfer_id,
        )
    elif isinstance(exc, AppError) and exc.http_status < 500:
        logger.info("Detached transfer rejected: %s", exc.message)
    else:
        logger.error("Detached transfer failed", exc_info=exc)


class Repository:
    def __init__(
        self,
        tx_manager: TransactionManager,
        accounts: AccountRepositoryProtocol,
        transfers: TransferRepositoryProtocol,
        caching: Caching,
        engine: TransferEngine,
        credential_verifier: Callable[[str, str], bool],
        account_id_factory: Callable[[], str] = generate_account_id,
    ) -> None:
        self._tx = tx_manager
        self._accounts = accounts
        self._transfers = transfers
        self._caching = caching
        self._engine = engine
        self._verify = credential_verifier
        self._account_id_factory = account_id_factory

    async def _populate(
        self, kind: CacheKind[str, Any], key: str, value: Account | Transfer
    ) -> None:
        await self._caching.cache_data(kind, key, value, replace_if=_not_older)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def create_account(self, name: str, email: str, credential_hash: str) -> Account:
        async with self._tx.begin() as db:
            # The unique constraint is the final guard; this gives the common case a clean error
            if await self._accounts.get_account_by_email(db, email) is not None:
                raise EmailExistsError()
            account = await self._accounts.insert_account(
                db,
                NewAccount(
                    account_id=self._account_id_factory(),
                    name=name,
                    email=email,
                    credential_hash=credential_hash,
                ),
            )
        await self._populate(ACCOUNTS, account.account_id, account)
        logger.info("Account %s created", account.account_id)
        return account

    async def authenticate(self, email: str, password: str) -> Account:
        async with self._tx.begin() as db:
            account = await self._accounts.get_account_by_email(db, email)
        if account is None:
            raise AccountNotFoundError(email)
        if not self._verify(password, account.credential_hash):
            raise InvalidCredentialsError()
        await self._populate(ACCOUNTS, account.account_id, account)
        return account

    async def get_account(self, account_id: str) -> Account:
        cached = await self._caching.lookup(ACCOUNTS, account_id)
        if cached is not None:
            return cached
        async with self._tx.begin() as db:
            account = await self._accounts.get_account_by_id(db, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        await self._populate(ACCOUNTS, account_id, account)
        return account

    async def update_account(self, account_id: str, update: AccountUpdate) -> Account:
        if update.is_empty():
            raise InvalidInputError("Nothing to update")
        if update.name is not None and not update.name.strip():
            raise InvalidInputError("Name cannot be empty")
        async with self._tx.begin() as db:
            account = await self._accounts.update_account(db, account_id, update)
        if account is None:
            raise AccountNotFoundError(account_id)
        await self._populate(ACCOUNTS, account_id, account)
        return account

    async def deposit(
        self, account_id: str, amount: int, description: str | None = None
    ) -> Account:
        validate_amount(amount)
        async with self._tx.begin() as db:
            account = await self._accounts.credit(db, account_id, amount)
            if account is None:
                raise AccountNotFoundError(account_id)
            await self._accounts.insert_ledger_entry(
                db,
                NewLedgerEntry(
                    account_id=account_id,
                    entry_type=LedgerEntryType.DEPOSIT.value,
                    amount=amount,
                    balance_after=account.balance,
                    description=description,
                ),
            )
        await self._populate(ACCOUNTS, account_id, account)
        return account

    async def withdraw(
        self, account_id: str, amount: int, description: str | None = None
    ) -> Account:
        validate_amount(amount)
        async with self._tx.begin() as db:
            account = await self._accounts.debit(db, account_id, amount)
            if account is None:
                current = await self._accounts.get_account_by_id(db, account_id)
                if current is None:
                    raise AccountNotFoundError(account_id)
                raise InsufficientFundsError(amount, current.balance)
            await self._accounts.insert_ledger_entry(
                db,
                NewLedgerEntry(
                    account_id=account_id,
                    entry_type=LedgerEntryType.WITHDRAW.value,
                    amount=-amount,
                    balance_after=account.balance,
                    description=description,
                ),
            )
        await self._populate(ACCOUNTS, account_id, account)
        return account

    async def list_ledger(
        self, account_id: str, cursor_id: int | None, limit: int
    ) -> list[LedgerEntry]:
        async with self._tx.begin() as db:
            return await self._accounts.list_ledger_entries(db, account_id, cursor_id, limit)

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    async def create_transfer(
        self,
        sender_id: str,
        recipient_id: str,
        amount: int,
        description: str | None = None,
    ) -> Transfer:
        # Shielded: a caller that goes away mid-request must not interrupt the
        # commit or the cache refresh that follows it.
        task = asyncio.ensure_future(
            self._transfer_and_refresh(sender_id, recipient_id, amount, description)
        )
        try:
            outcome = await asyncio.shield(task)
        except asyncio.CancelledError:
            # Nobody awaits the result any more; report it here instead
            task.add_done_callback(_log_detached_transfer)
            raise
        return outcome.transfer

    async def _transfer_and_refresh(
        self,
        sender_id: str,
        recipient_id: str,
        amount: int,
        description: str | None,
    ) -> TransferOutcome:
        outcome = await self._engine.execute(sender_id, recipient_id, amount, description)
        await self._populate(ACCOUNTS, sender_id, outcome.sender)
        await self._populate(ACCOUNTS, recipient_id, outcome.recipient)
        await self._populate(
            TRANSFERS, outcome.transfer.transfer_id, outcome.transfer
        )
        return outcome

    async def get_transfer(self, transfer_id: str) -> Transfer:
        cached = await self._caching.lookup(TRANSFERS, transfer_id)
        if cached is not None:
            return cached
        async with self._tx.begin() as db:
            transfer = await self._transfers.get_transfer_by_id(db, transfer_id)
        if transfer is None:
            raise TransferNotFoundError(transfer_id)
        await self._populate(TRANSFERS, transfer_id, transfer)
        return transfer

    async def list_transfers(
        self, account_id: str, page: int, page_size: int
    ) -> tuple[list[Transfer], int]:
        """Page through an account's transfers (sent or received), newest first.

        ``page`` is 1-based. Returns (transfers on this page, total count).
        """
        if page < 1:
            raise InvalidInputError("page must be >= 1")
        if not (1 <= page_size <= MAX_PAGE_SIZE):
            raise InvalidInputError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")
        async with self._tx.begin() as db:
            total = await self._transfers.count_transfers_for_account(db, account_id)
            transfers = await self._transfers.list_transfers_for_account(
                db, account_id, (page - 1) * page_size, page_size
            )
        return transfers, total
