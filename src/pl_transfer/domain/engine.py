"""Transfer engine: moves funds between two accounts as one atomic unit.

All steps run inside a single store transaction:
  1. Row-lock sender and recipient (SELECT ... FOR UPDATE, account_id order)
  2. Both accounts must exist
  3. Re-read sender balance under the lock; reject if balance < amount
  4. Conditional debit of the sender, credit of the recipient
  5. Insert the transfer row (COMPLETED) and the TRANSFER_OUT/TRANSFER_IN journal pair
  6. Commit

Any exception before the commit rolls everything back, so either all of step
4-5 is visible afterwards or none of it is. Concurrent transfers sharing an
account serialize on the row locks of step 1; the engine keeps no state
between calls and takes no application-level lock.

Only transient store errors (pool timeout, dropped connection, serialization
failure, deadlock) are retried, a bounded number of times. The transfer id is
fixed before the first attempt and every attempt first looks it up, so an
attempt whose commit succeeded but whose acknowledgement was lost is never
applied a second time.
"""

import asyncio
import logging
from collections.abc import Callable

from src.pl_account.domain.models import NewLedgerEntry
from src.pl_account.domain.repository import AccountRepositoryProtocol
from src.pl_common.cents import validate_amount
from src.pl_common.database import TransactionManager
from src.pl_common.enums import LedgerEntryType, TransferStatus
from src.pl_common.errors import (
    AccountNotFoundError,
    InsufficientFundsError,
    SelfTransferError,
    StoreError,
    TransferFailedError,
)
from src.pl_common.id_generator import generate_transfer_id
from src.pl_transfer.domain.models import NewTransfer, TransferOutcome
from src.pl_transfer.domain.repository import TransferRepositoryProtocol

_module_logger = logging.getLogger(__name__)


class TransferEngine:
    """Stateless between calls: one instance is shared by all requests."""

    def __init__(
        self,
        tx_manager: TransactionManager,
        accounts: AccountRepositoryProtocol,
        transfers: TransferRepositoryProtocol,
        *,
        max_retries: int = 3,
        retry_backoff_ms: int = 50,
        id_factory: Callable[[], str] = generate_transfer_id,
        logger: logging.Logger | None = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._tx = tx_manager
        self._accounts = accounts
        self._transfers = transfers
        self._max_retries = max_retries
        self._retry_backoff_s = retry_backoff_ms / 1000
        self._id_factory = id_factory
        self._logger = logger or _module_logger

    async def execute(
        self,
        sender_id: str,
        recipient_id: str,
        amount: int,
        description: str | None = None,
    ) -> TransferOutcome:
        """Run the transfer, retrying transient store failures.

        Raises:
            InvalidInputError: amount is not a positive integer, or crediting it
                would push the recipient balance past its maximum.
            SelfTransferError: sender_id == recipient_id.
            AccountNotFoundError: sender or recipient does not exist.
            InsufficientFundsError: sender balance < amount.
            TransferFailedError: the store failed fatally or retries ran out.
        """
        validate_amount(amount)
        if sender_id == recipient_id:
            raise SelfTransferError()

        transfer_id = self._id_factory()
        attempt = 0
        while True:
            try:
                return await self._execute_once(
                    transfer_id, sender_id, recipient_id, amount, description
                )
            except StoreError as exc:
                if not exc.transient or attempt >= self._max_retries:
                    self._logger.warning(
                        "Transfer %s aborted after %d attempt(s): %s",
                        transfer_id,
                        attempt + 1,
                        exc.message,
                    )
                    raise TransferFailedError() from exc
                attempt += 1
                self._logger.warning(
                    "Transient store error on transfer %s, retry %d/%d: %s",
                    transfer_id,
                    attempt,
                    self._max_retries,
                    exc.message,
                )
                await asyncio.sleep(self._retry_backoff_s * attempt)

    async def _execute_once(
        self,
        transfer_id: str,
        sender_id: str,
        recipient_id: str,
        amount: int,
        description: str | None,
    ) -> TransferOutcome:
        async with self._tx.begin() as db:
            locked = await self._accounts.lock_accounts(db, [sender_id, recipient_id])

            existing = await self._transfers.get_transfer_by_id(db, transfer_id)
            if existing is not None:
                self._logger.info("Transfer %s already committed, not re-applied", transfer_id)
                return TransferOutcome(
                    transfer=existing,
                    sender=locked[sender_id],
                    recipient=locked[recipient_id],
                )

            sender = locked.get(sender_id)
            if sender is None:
                raise AccountNotFoundError(sender_id)
            if recipient_id not in locked:
                raise AccountNotFoundError(recipient_id)

            if sender.balance < amount:
                self._logger.info(
                    "Transfer %s rejected: %s has %d, needs %d",
                    transfer_id,
                    sender_id,
                    sender.balance,
                    amount,
                )
                raise InsufficientFundsError(amount, sender.balance)

            debited = await self._accounts.debit(db, sender_id, amount)
            if debited is None:
                # Unreachable while the row lock holds; the conditional UPDATE is the last guard
                raise InsufficientFundsError(amount, sender.balance)
            credited = await self._accounts.credit(db, recipient_id, amount)
            if credited is None:
                raise AccountNotFoundError(recipient_id)

            transfer = await self._transfers.insert_transfer(
                db,
                NewTransfer(
                    transfer_id=transfer_id,
                    sender_id=sender_id,
                    recipient_id=recipient_id,
                    amount=amount,
                    status=TransferStatus.COMPLETED.value,
                    description=description,
                ),
            )
            await self._accounts.insert_ledger_entry(
                db,
                NewLedgerEntry(
                    account_id=sender_id,
                    entry_type=LedgerEntryType.TRANSFER_OUT.value,
                    amount=-amount,
                    balance_after=debited.balance,
                    reference_id=transfer_id,
                    description=description,
                ),
            )
            await self._accounts.insert_ledger_entry(
                db,
                NewLedgerEntry(
                    account_id=recipient_id,
                    entry_type=LedgerEntryType.TRANSFER_IN.value,
                    amount=amount,
                    balance_after=credited.balance,
                    reference_id=transfer_id,
                    description=description,
                ),
            )

        self._logger.info(
            "Transfer %s committed: %s -> %s, %d cents",
            transfer_id,
            sender_id,
            recipient_id,
            amount,
        )
        return TransferOutcome(transfer=transfer, sender=debited, recipient=credited)
