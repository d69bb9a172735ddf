"""AccountRepository: concrete implementation of AccountRepositoryProtocol.

Balance mutations are single conditional ``UPDATE ... RETURNING`` statements.
A result of 0 rows means the account is missing or, for debits, the balance
would go negative; the caller decides which error that is.

``updated_at`` is stamped with clock_timestamp(), not NOW(): writes to a row
serialize on its lock, so each write gets a later stamp than the one before
it. The facade cache relies on this to tell newer snapshots from older ones.

Transaction ownership: the CALLER opens and commits the transaction
(SessionTransactionManager.begin()). Nothing here commits.
"""

from collections.abc import Sequence

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.pl_account.domain.models import (
    Account,
    AccountUpdate,
    LedgerEntry,
    NewAccount,
    NewLedgerEntry,
)
from src.pl_common.database import translate_db_errors
from src.pl_common.errors import EmailExistsError, InternalError

_ACCOUNT_COLUMNS = "account_id, name, email, credential_hash, balance, created_at, updated_at"

# ---------------------------------------------------------------------------
# SQL: accounts
# ---------------------------------------------------------------------------

_GET_ACCOUNT_SQL = text(f"""
    SELECT {_ACCOUNT_COLUMNS}
    FROM accounts
    WHERE account_id = :account_id
""")

_GET_ACCOUNT_BY_EMAIL_SQL = text(f"""
    SELECT {_ACCOUNT_COLUMNS}
    FROM accounts
    WHERE email = :email
""")

_INSERT_ACCOUNT_SQL = text(f"""
    INSERT INTO accounts (account_id, name, email, credential_hash)
    VALUES (:account_id, :name, :email, :credential_hash)
    RETURNING {_ACCOUNT_COLUMNS}
""")

_UPDATE_ACCOUNT_SQL = text(f"""
    UPDATE accounts
    SET name = COALESCE(:name, name),
        credential_hash = COALESCE(:credential_hash, credential_hash),
        updated_at = clock_timestamp()
    WHERE account_id = :account_id
    RETURNING {_ACCOUNT_COLUMNS}
""")

_LOCK_ACCOUNTS_SQL = text(f"""
    SELECT {_ACCOUNT_COLUMNS}
    FROM accounts
    WHERE account_id = ANY(:account_ids)
    ORDER BY account_id
    FOR UPDATE
""")

_DEBIT_SQL = text(f"""
    UPDATE accounts
    SET balance = balance - :amount,
        updated_at = clock_timestamp()
    WHERE account_id = :account_id AND balance >= :amount
    RETURNING {_ACCOUNT_COLUMNS}
""")

_CREDIT_SQL = text(f"""
    UPDATE accounts
    SET balance = balance + :amount,
        updated_at = clock_timestamp()
    WHERE account_id = :account_id
    RETURNING {_ACCOUNT_COLUMNS}
""")

# ---------------------------------------------------------------------------
# SQL: ledger_entries (append-only journal)
# ---------------------------------------------------------------------------

_INSERT_LEDGER_SQL = text("""
    INSERT INTO ledger_entries
        (account_id, entry_type, amount, balance_after, reference_id, description)
    VALUES
        (:account_id, :entry_type, :amount, :balance_after, :reference_id, :description)
    RETURNING id, account_id, entry_type, amount, balance_after,
              reference_id, description, created_at
""")

_LIST_LEDGER_SQL = text("""
    SELECT id, account_id, entry_type, amount, balance_after,
           reference_id, description, created_at
    FROM ledger_entries
    WHERE account_id = :account_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < :cursor_id)
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_account(row: object) -> Account:
    return Account(
        account_id=row.account_id,  # type: ignore[attr-defined]
        name=row.name,  # type: ignore[attr-defined]
        email=row.email,  # type: ignore[attr-defined]
        credential_hash=row.credential_hash,  # type: ignore[attr-defined]
        balance=row.balance,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_ledger(row: object) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,  # type: ignore[attr-defined]
        account_id=row.account_id,  # type: ignore[attr-defined]
        entry_type=row.entry_type,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        balance_after=row.balance_after,  # type: ignore[attr-defined]
        reference_id=row.reference_id,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class AccountRepository:
    """Concrete repository: all balance changes atomic at the SQL level."""

    async def get_account_by_id(
        self, db: AsyncSession, account_id: str
    ) -> Account | None:
        async with translate_db_errors("find account"):
            result = await db.execute(_GET_ACCOUNT_SQL, {"account_id": account_id})
            row = result.fetchone()
        return _row_to_account(row) if row else None

    async def get_account_by_email(
        self, db: AsyncSession, email: str
    ) -> Account | None:
        async with translate_db_errors("find account by email"):
            result = await db.execute(_GET_ACCOUNT_BY_EMAIL_SQL, {"email": email})
            row = result.fetchone()
        return _row_to_account(row) if row else None

    async def insert_account(self, db: AsyncSession, account: NewAccount) -> Account:
        async with translate_db_errors("insert account"):
            try:
                result = await db.execute(
                    _INSERT_ACCOUNT_SQL,
                    {
                        "account_id": account.account_id,
                        "name": account.name,
                        "email": account.email,
                        "credential_hash": account.credential_hash,
                    },
                )
            except IntegrityError as exc:
                # uq_accounts_email is the only unique key a caller can collide on
                raise EmailExistsError() from exc
            row = result.fetchone()
        if row is None:
            raise InternalError("Account insert returned no rows")
        return _row_to_account(row)

    async def update_account(
        self, db: AsyncSession, account_id: str, update: AccountUpdate
    ) -> Account | None:
        async with translate_db_errors("update account"):
            result = await db.execute(
                _UPDATE_ACCOUNT_SQL,
                {
                    "account_id": account_id,
                    "name": update.name,
                    "credential_hash": update.credential_hash,
                },
            )
            row = result.fetchone()
        return _row_to_account(row) if row else None

    async def lock_accounts(
        self, db: AsyncSession, account_ids: Sequence[str]
    ) -> dict[str, Account]:
        async with translate_db_errors("lock accounts"):
            result = await db.execute(
                _LOCK_ACCOUNTS_SQL, {"account_ids": sorted(set(account_ids))}
            )
            rows = result.fetchall()
        accounts = [_row_to_account(row) for row in rows]
        return {account.account_id: account for account in accounts}

    async def debit(
        self, db: AsyncSession, account_id: str, amount: int
    ) -> Account | None:
        async with translate_db_errors("debit account"):
            result = await db.execute(
                _DEBIT_SQL, {"account_id": account_id, "amount": amount}
            )
            row = result.fetchone()
        return _row_to_account(row) if row else None

    async def credit(
        self, db: AsyncSession, account_id: str, amount: int
    ) -> Account | None:
        async with translate_db_errors("credit account"):
            result = await db.execute(
                _CREDIT_SQL, {"account_id": account_id, "amount": amount}
            )
            row = result.fetchone()
        return _row_to_account(row) if row else None

    async def insert_ledger_entry(
        self, db: AsyncSession, entry: NewLedgerEntry
    ) -> LedgerEntry:
        async with translate_db_errors("insert ledger entry"):
            result = await db.execute(
                _INSERT_LEDGER_SQL,
                {
                    "account_id": entry.account_id,
                    "entry_type": entry.entry_type,
                    "amount": entry.amount,
                    "balance_after": entry.balance_after,
                    "reference_id": entry.reference_id,
                    "description": entry.description,
                },
            )
            row = result.fetchone()
        if row is None:
            raise InternalError("Ledger insert returned no rows")
        return _row_to_ledger(row)

    async def list_ledger_entries(
        self,
        db: AsyncSession,
        account_id: str,
        cursor_id: int | None,
        limit: int,
    ) -> list[LedgerEntry]:
        async with translate_db_errors("list ledger entries"):
            result = await db.execute(
                _LIST_LEDGER_SQL,
                {"account_id": account_id, "cursor_id": cursor_id, "limit": limit},
            )
            rows = result.fetchall()
        return [_row_to_ledger(row) for row in rows]
