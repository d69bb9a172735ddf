"""AccountApplicationService: thin composition layer.

Combines Repository facade calls with schema transformations. Transactions
and caching live in the facade; nothing here touches a session.
"""

from src.pl_account.application.schemas import (
    AccountResponse,
    BalanceChangeResponse,
    LedgerEntryItem,
    LedgerResponse,
    cursor_decode,
    cursor_encode,
)
from src.pl_account.domain.models import AccountUpdate
from src.pl_common.cents import cents_to_display
from src.pl_gateway.auth.password import hash_password
from src.pl_storage.facade import Repository


class AccountApplicationService:
    async def get_account(self, repo: Repository, account_id: str) -> AccountResponse:
        account = await repo.get_account(account_id)
        return AccountResponse.from_domain(account)

    async def update_account(
        self,
        repo: Repository,
        account_id: str,
        name: str | None,
        password: str | None,
    ) -> AccountResponse:
        update = AccountUpdate(
            name=name,
            credential_hash=hash_password(password) if password is not None else None,
        )
        account = await repo.update_account(account_id, update)
        return AccountResponse.from_domain(account)

    async def deposit(
        self,
        repo: Repository,
        account_id: str,
        amount_cents: int,
        description: str | None = None,
    ) -> BalanceChangeResponse:
        account = await repo.deposit(account_id, amount_cents, description)
        return BalanceChangeResponse.from_result(account, amount_cents)

    async def withdraw(
        self,
        repo: Repository,
        account_id: str,
        amount_cents: int,
        description: str | None = None,
    ) -> BalanceChangeResponse:
        account = await repo.withdraw(account_id, amount_cents, description)
        return BalanceChangeResponse.from_result(account, amount_cents)

    async def list_ledger(
        self,
        repo: Repository,
        account_id: str,
        cursor: str | None,
        limit: int,
    ) -> LedgerResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await repo.list_ledger(account_id, cursor_id, limit + 1)
        has_more = len(entries) > limit
        page = entries[:limit]

        items = [
            LedgerEntryItem(
                id=e.id,
                entry_type=e.entry_type,
                amount_cents=e.amount,
                amount_display=cents_to_display(e.amount),
                balance_after_cents=e.balance_after,
                balance_after_display=cents_to_display(e.balance_after),
                reference_id=e.reference_id,
                description=e.description,
                created_at=e.created_at.isoformat() if e.created_at else "",
            )
            for e in page
        ]

        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return LedgerResponse(items=items, next_cursor=next_cursor, has_more=has_more)
