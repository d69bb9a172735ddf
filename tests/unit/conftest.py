"""In-memory stand-ins for the store, used by engine and facade tests.

FakeStore behaves like one PostgreSQL database for the purposes of these
tests: writes made inside ``begin()`` are staged on the transaction and only
become visible to others on commit, any exception discards them, and row
locks (taken by lock_accounts/debit/credit) are held until the transaction
ends. Every repository call yields to the event loop so concurrent callers
really interleave.

Failure injection:
  store.fail_next(method_name, exc, times=1)   raise from a repository call
  store.fail_commits(exc, times=1)             raise instead of committing
  store.lose_commit_acks(times=1)              commit, then raise a transient error
"""

import asyncio
import itertools
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest

from src.pl_account.domain.models import (
    Account,
    AccountUpdate,
    LedgerEntry,
    NewAccount,
    NewLedgerEntry,
)
from sqlalchemy.exc import DataError

from src.pl_common.cents import MAX_AMOUNT_CENTS
from src.pl_common.database import translate_db_errors
from src.pl_common.errors import EmailExistsError, StoreError
from src.pl_storage.caching import ACCOUNTS, TRANSFERS, CacheConfig, Caching
from src.pl_storage.facade import Repository
from src.pl_transfer.domain.engine import TransferEngine
from src.pl_transfer.domain.models import NewTransfer, Transfer


class _PgError(Exception):
    def __init__(self, sqlstate: str) -> None:
        super().__init__(f"sqlstate {sqlstate}")
        self.sqlstate = sqlstate


def fake_hash(plain: str) -> str:
    return f"hashed:{plain}"


def fake_verify(plain: str, hashed: str) -> bool:
    return hashed == fake_hash(plain)


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTx:
    """One open transaction: staged writes plus the row locks it holds."""

    def __init__(self, store: "FakeStore") -> None:
        self.store = store
        self.accounts: dict[str, Account] = {}
        self.transfers: dict[str, Transfer] = {}
        self.ledger: list[LedgerEntry] = []
        self._held: list[str] = []

    async def lock(self, account_id: str) -> None:
        if account_id in self._held:
            return
        row_lock = self.store.row_locks.setdefault(account_id, asyncio.Lock())
        await row_lock.acquire()
        self._held.append(account_id)

    def release(self) -> None:
        for account_id in self._held:
            self.store.row_locks[account_id].release()
        self._held.clear()

    def read_account(self, account_id: str) -> Account | None:
        if account_id in self.accounts:
            return self.accounts[account_id]
        return self.store.accounts.get(account_id)

    def all_accounts(self) -> list[Account]:
        merged = dict(self.store.accounts)
        merged.update(self.accounts)
        return list(merged.values())

    def read_transfer(self, transfer_id: str) -> Transfer | None:
        if transfer_id in self.transfers:
            return self.transfers[transfer_id]
        return self.store.transfers.get(transfer_id)


class FakeStore:
    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self.transfers: dict[str, Transfer] = {}
        self.ledger: list[LedgerEntry] = []
        self.row_locks: dict[str, asyncio.Lock] = {}
        self.calls: dict[str, int] = {}
        self.commits = 0
        self.rollbacks = 0
        self._ids = itertools.count(1)
        self._stamps = itertools.count(1)
        self._epoch = datetime.now(UTC)
        self._failures: dict[str, list[BaseException]] = {}
        self._commit_failures: list[BaseException] = []
        self._lost_acks = 0

    # -- failure injection -------------------------------------------------

    def fail_next(self, method: str, exc: BaseException, times: int = 1) -> None:
        self._failures.setdefault(method, []).extend([exc] * times)

    def fail_commits(self, exc: BaseException, times: int = 1) -> None:
        self._commit_failures.extend([exc] * times)

    def lose_commit_acks(self, times: int = 1) -> None:
        self._lost_acks += times

    async def enter(self, method: str) -> None:
        self.calls[method] = self.calls.get(method, 0) + 1
        await asyncio.sleep(0)
        pending = self._failures.get(method)
        if pending:
            raise pending.pop(0)

    def next_id(self) -> int:
        return next(self._ids)

    def stamp(self) -> datetime:
        """A timestamp later than every earlier stamp, like clock_timestamp()."""
        return self._epoch + timedelta(microseconds=next(self._stamps))

    # -- TransactionManager ------------------------------------------------

    @asynccontextmanager
    async def begin(self) -> AsyncIterator[FakeTx]:
        tx = FakeTx(self)
        try:
            yield tx
            if self._commit_failures:
                raise self._commit_failures.pop(0)
            self.accounts.update(tx.accounts)
            self.transfers.update(tx.transfers)
            self.ledger.extend(tx.ledger)
            self.commits += 1
        except BaseException:
            if tx.accounts or tx.transfers or tx.ledger:
                self.rollbacks += 1
            raise
        finally:
            tx.release()
        if self._lost_acks:
            self._lost_acks -= 1
            raise StoreError("commit", transient=True)

    # -- helpers for assertions ---------------------------------------------

    def balance(self, account_id: str) -> int:
        return self.accounts[account_id].balance

    def total_balance(self) -> int:
        return sum(a.balance for a in self.accounts.values())

    def entries_for(self, account_id: str) -> list[LedgerEntry]:
        return [e for e in self.ledger if e.account_id == account_id]


class FakeAccountRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    async def get_account_by_id(self, db: FakeTx, account_id: str) -> Account | None:
        await self._store.enter("get_account_by_id")
        return db.read_account(account_id)

    async def get_account_by_email(self, db: FakeTx, email: str) -> Account | None:
        await self._store.enter("get_account_by_email")
        for account in db.all_accounts():
            if account.email == email:
                return account
        return None

    async def insert_account(self, db: FakeTx, account: NewAccount) -> Account:
        await self._store.enter("insert_account")
        if any(a.email == account.email for a in db.all_accounts()):
            raise EmailExistsError()
        now = self._store.stamp()
        row = Account(
            account_id=account.account_id,
            name=account.name,
            email=account.email,
            credential_hash=account.credential_hash,
            balance=0,
            created_at=now,
            updated_at=now,
        )
        db.accounts[row.account_id] = row
        return row

    async def update_account(
        self, db: FakeTx, account_id: str, update: AccountUpdate
    ) -> Account | None:
        await self._store.enter("update_account")
        current = db.read_account(account_id)
        if current is None:
            return None
        await db.lock(account_id)
        row = replace(
            current,
            name=update.name if update.name is not None else current.name,
            credential_hash=(
                update.credential_hash
                if update.credential_hash is not None
                else current.credential_hash
            ),
            updated_at=self._store.stamp(),
        )
        db.accounts[account_id] = row
        return row

    async def lock_accounts(
        self, db: FakeTx, account_ids: Sequence[str]
    ) -> dict[str, Account]:
        await self._store.enter("lock_accounts")
        locked: dict[str, Account] = {}
        for account_id in sorted(set(account_ids)):
            if db.read_account(account_id) is None:
                continue
            await db.lock(account_id)
            # Re-read after the lock: another transaction may have committed meanwhile
            account = db.read_account(account_id)
            if account is not None:
                locked[account_id] = account
        return locked

    async def debit(self, db: FakeTx, account_id: str, amount: int) -> Account | None:
        await self._store.enter("debit")
        if db.read_account(account_id) is None:
            return None
        await db.lock(account_id)
        current = db.read_account(account_id)
        if current is None or current.balance < amount:
            return None
        row = replace(current, balance=current.balance - amount, updated_at=self._store.stamp())
        db.accounts[account_id] = row
        return row

    async def credit(self, db: FakeTx, account_id: str, amount: int) -> Account | None:
        await self._store.enter("credit")
        if db.read_account(account_id) is None:
            return None
        await db.lock(account_id)
        current = db.read_account(account_id)
        if current is None:
            return None
        if current.balance + amount > MAX_AMOUNT_CENTS:
            async with translate_db_errors("credit account"):
                raise DataError("UPDATE accounts ...", {}, _PgError("22003"))
        row = replace(current, balance=current.balance + amount, updated_at=self._store.stamp())
        db.accounts[account_id] = row
        return row

    async def insert_ledger_entry(self, db: FakeTx, entry: NewLedgerEntry) -> LedgerEntry:
        await self._store.enter("insert_ledger_entry")
        row = LedgerEntry(
            id=self._store.next_id(),
            account_id=entry.account_id,
            entry_type=entry.entry_type,
            amount=entry.amount,
            balance_after=entry.balance_after,
            reference_id=entry.reference_id,
            description=entry.description,
            created_at=self._store.stamp(),
        )
        db.ledger.append(row)
        return row

    async def list_ledger_entries(
        self,
        db: FakeTx,
        account_id: str,
        cursor_id: int | None,
        limit: int,
    ) -> list[LedgerEntry]:
        await self._store.enter("list_ledger_entries")
        rows = [
            e
            for e in self._store.ledger + db.ledger
            if e.account_id == account_id and (cursor_id is None or e.id < cursor_id)
        ]
        rows.sort(key=lambda e: e.id, reverse=True)
        return rows[:limit]


class FakeTransferRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    async def get_transfer_by_id(self, db: FakeTx, transfer_id: str) -> Transfer | None:
        await self._store.enter("get_transfer_by_id")
        return db.read_transfer(transfer_id)

    async def insert_transfer(self, db: FakeTx, transfer: NewTransfer) -> Transfer:
        await self._store.enter("insert_transfer")
        if db.read_transfer(transfer.transfer_id) is not None:
            raise StoreError("insert transfer")
        now = self._store.stamp()
        row = Transfer(
            transfer_id=transfer.transfer_id,
            sender_id=transfer.sender_id,
            recipient_id=transfer.recipient_id,
            amount=transfer.amount,
            status=transfer.status,
            description=transfer.description,
            created_at=now,
            updated_at=now,
        )
        db.transfers[row.transfer_id] = row
        return row

    def _for_account(self, db: FakeTx, account_id: str) -> list[Transfer]:
        merged = dict(self._store.transfers)
        merged.update(db.transfers)
        # Insertion order stands in for the BIGSERIAL id
        rows = [
            t for t in merged.values() if account_id in (t.sender_id, t.recipient_id)
        ]
        rows.reverse()
        return rows

    async def list_transfers_for_account(
        self, db: FakeTx, account_id: str, offset: int, limit: int
    ) -> list[Transfer]:
        await self._store.enter("list_transfers_for_account")
        return self._for_account(db, account_id)[offset : offset + limit]

    async def count_transfers_for_account(self, db: FakeTx, account_id: str) -> int:
        await self._store.enter("count_transfers_for_account")
        return len(self._for_account(db, account_id))


def _sequential_ids(prefix: str):  # type: ignore[no-untyped-def]
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter)}"


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def account_repo(store: FakeStore) -> FakeAccountRepository:
    return FakeAccountRepository(store)


@pytest.fixture
def transfer_repo(store: FakeStore) -> FakeTransferRepository:
    return FakeTransferRepository(store)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def caching(clock: FakeClock) -> Caching:
    return Caching(
        {
            ACCOUNTS: CacheConfig(max_capacity=100, time_to_idle=60.0),
            TRANSFERS: CacheConfig(max_capacity=100, time_to_idle=60.0),
        },
        clock=clock,
    )


@pytest.fixture
def engine(
    store: FakeStore,
    account_repo: FakeAccountRepository,
    transfer_repo: FakeTransferRepository,
) -> TransferEngine:
    return TransferEngine(
        store,
        account_repo,
        transfer_repo,
        max_retries=3,
        retry_backoff_ms=0,
        id_factory=_sequential_ids("txn_"),
    )


@pytest.fixture
def repository(
    store: FakeStore,
    account_repo: FakeAccountRepository,
    transfer_repo: FakeTransferRepository,
    caching: Caching,
    engine: TransferEngine,
) -> Repository:
    return Repository(
        store,
        account_repo,
        transfer_repo,
        caching,
        engine,
        fake_verify,
        account_id_factory=_sequential_ids("acc_"),
    )


@pytest.fixture
def make_account(repository: Repository):  # type: ignore[no-untyped-def]
    """Create an account through the facade and optionally fund it."""

    async def _make(name: str, balance: int = 0) -> Account:
        account = await repository.create_account(
            name, f"{name.lower()}@example.com", fake_hash("Secret#123")
        )
        if balance:
            account = await repository.deposit(account.account_id, balance)
        return account

    return _make
