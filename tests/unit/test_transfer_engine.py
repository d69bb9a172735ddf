"""Unit tests for TransferEngine over the in-memory transactional store."""

import asyncio

import pytest

from src.pl_common.enums import LedgerEntryType, TransferStatus
from src.pl_common.errors import (
    AccountNotFoundError,
    InsufficientFundsError,
    InvalidInputError,
    PoolUnavailableError,
    SelfTransferError,
    StoreError,
    TransferFailedError,
)
from src.pl_transfer.domain.engine import TransferEngine


@pytest.fixture
async def alice(make_account):  # type: ignore[no-untyped-def]
    return await make_account("Alice", 1000)


@pytest.fixture
async def bob(make_account):  # type: ignore[no-untyped-def]
    return await make_account("Bob")


class TestHappyPath:
    async def test_moves_funds_and_records_transfer(self, engine, store, alice, bob) -> None:
        outcome = await engine.execute(alice.account_id, bob.account_id, 300, "rent")

        assert outcome.transfer.status == TransferStatus.COMPLETED.value
        assert outcome.transfer.amount == 300
        assert outcome.transfer.description == "rent"
        assert outcome.sender.balance == 700
        assert outcome.recipient.balance == 300
        assert store.balance(alice.account_id) == 700
        assert store.balance(bob.account_id) == 300
        assert outcome.transfer.transfer_id in store.transfers

    async def test_writes_journal_pair(self, engine, store, alice, bob) -> None:
        outcome = await engine.execute(alice.account_id, bob.account_id, 300)
        tid = outcome.transfer.transfer_id

        out_leg = [e for e in store.entries_for(alice.account_id) if e.reference_id == tid]
        in_leg = [e for e in store.entries_for(bob.account_id) if e.reference_id == tid]
        assert len(out_leg) == 1 and len(in_leg) == 1
        assert out_leg[0].entry_type == LedgerEntryType.TRANSFER_OUT.value
        assert out_leg[0].amount == -300
        assert out_leg[0].balance_after == 700
        assert in_leg[0].entry_type == LedgerEntryType.TRANSFER_IN.value
        assert in_leg[0].amount == 300
        assert in_leg[0].balance_after == 300

    async def test_transfer_of_entire_balance(self, engine, store, alice, bob) -> None:
        await engine.execute(alice.account_id, bob.account_id, 1000)
        assert store.balance(alice.account_id) == 0
        assert store.balance(bob.account_id) == 1000

    async def test_second_transfer_exceeding_remaining_balance_fails(
        self, engine, store, alice, bob
    ) -> None:
        await engine.execute(alice.account_id, bob.account_id, 300)

        with pytest.raises(InsufficientFundsError) as exc_info:
            await engine.execute(alice.account_id, bob.account_id, 800)

        assert exc_info.value.required == 800
        assert exc_info.value.available == 700
        assert store.balance(alice.account_id) == 700
        assert store.balance(bob.account_id) == 300
        assert len(store.transfers) == 1


class TestRejections:
    async def test_self_transfer(self, engine, store, alice) -> None:
        with pytest.raises(SelfTransferError):
            await engine.execute(alice.account_id, alice.account_id, 10)
        assert store.calls.get("lock_accounts", 0) == 0

    @pytest.mark.parametrize("amount", [0, -1, True, 1.5, "10"])
    async def test_invalid_amount(self, engine, store, alice, bob, amount) -> None:
        with pytest.raises(InvalidInputError):
            await engine.execute(alice.account_id, bob.account_id, amount)
        assert store.calls.get("lock_accounts", 0) == 0

    async def test_unknown_sender(self, engine, store, bob) -> None:
        with pytest.raises(AccountNotFoundError) as exc_info:
            await engine.execute("acc_missing", bob.account_id, 10)
        assert exc_info.value.account_id == "acc_missing"
        assert store.transfers == {}

    async def test_unknown_recipient(self, engine, store, alice) -> None:
        with pytest.raises(AccountNotFoundError) as exc_info:
            await engine.execute(alice.account_id, "acc_missing", 10)
        assert exc_info.value.account_id == "acc_missing"
        assert store.balance(alice.account_id) == 1000

    async def test_insufficient_funds_leaves_no_trace(self, engine, store, alice, bob) -> None:
        entries_before = len(store.ledger)
        with pytest.raises(InsufficientFundsError):
            await engine.execute(alice.account_id, bob.account_id, 1001)
        assert store.balance(alice.account_id) == 1000
        assert store.balance(bob.account_id) == 0
        assert store.transfers == {}
        assert len(store.ledger) == entries_before


class TestAtomicity:
    @pytest.mark.parametrize(
        "failing_call", ["credit", "insert_transfer", "insert_ledger_entry"]
    )
    async def test_failure_mid_transaction_rolls_back_everything(
        self, engine, store, alice, bob, failing_call
    ) -> None:
        entries_before = len(store.ledger)
        store.fail_next(failing_call, StoreError(failing_call))

        with pytest.raises(TransferFailedError) as exc_info:
            await engine.execute(alice.account_id, bob.account_id, 300)

        assert isinstance(exc_info.value.__cause__, StoreError)
        assert store.balance(alice.account_id) == 1000
        assert store.balance(bob.account_id) == 0
        assert store.transfers == {}
        assert len(store.ledger) == entries_before

    async def test_commit_failure_rolls_back(self, engine, store, alice, bob) -> None:
        store.fail_commits(StoreError("commit"))
        with pytest.raises(TransferFailedError):
            await engine.execute(alice.account_id, bob.account_id, 300)
        assert store.balance(alice.account_id) == 1000
        assert store.transfers == {}


class TestRetries:
    async def test_transient_error_is_retried_then_succeeds(
        self, engine, store, alice, bob
    ) -> None:
        store.fail_next("lock_accounts", StoreError("lock accounts", transient=True), times=2)

        outcome = await engine.execute(alice.account_id, bob.account_id, 300)

        assert outcome.sender.balance == 700
        assert store.calls["lock_accounts"] == 3
        assert len(store.transfers) == 1

    async def test_pool_timeout_counts_as_transient(self, engine, store, alice, bob) -> None:
        store.fail_next("lock_accounts", PoolUnavailableError("transaction"))
        outcome = await engine.execute(alice.account_id, bob.account_id, 300)
        assert outcome.recipient.balance == 300

    async def test_retries_exhausted(self, engine, store, alice, bob) -> None:
        store.fail_next("debit", StoreError("debit account", transient=True), times=4)

        with pytest.raises(TransferFailedError) as exc_info:
            await engine.execute(alice.account_id, bob.account_id, 300)

        assert exc_info.value.__cause__.transient is True
        assert store.calls["debit"] == 4  # first attempt + 3 retries
        assert store.balance(alice.account_id) == 1000

    async def test_non_transient_error_is_not_retried(self, engine, store, alice, bob) -> None:
        store.fail_next("debit", StoreError("debit account", transient=False))
        with pytest.raises(TransferFailedError):
            await engine.execute(alice.account_id, bob.account_id, 300)
        assert store.calls["debit"] == 1

    async def test_business_errors_are_not_retried(self, engine, store, alice, bob) -> None:
        with pytest.raises(InsufficientFundsError):
            await engine.execute(alice.account_id, bob.account_id, 5000)
        assert store.calls["lock_accounts"] == 1

    async def test_lost_commit_ack_is_not_applied_twice(self, engine, store, alice, bob) -> None:
        store.lose_commit_acks()

        outcome = await engine.execute(alice.account_id, bob.account_id, 300)

        assert len(store.transfers) == 1
        assert outcome.transfer.transfer_id in store.transfers
        assert store.balance(alice.account_id) == 700
        assert store.balance(bob.account_id) == 300
        assert outcome.sender.balance == 700
        assert len([e for e in store.ledger if e.reference_id]) == 2

    async def test_zero_retries_fails_on_first_transient_error(
        self, store, account_repo, transfer_repo, alice, bob
    ) -> None:
        engine = TransferEngine(
            store, account_repo, transfer_repo, max_retries=0, retry_backoff_ms=0
        )
        store.fail_next("lock_accounts", StoreError("lock accounts", transient=True))
        with pytest.raises(TransferFailedError):
            await engine.execute(alice.account_id, bob.account_id, 1)
        assert store.calls["lock_accounts"] == 1

    def test_negative_max_retries_rejected(self, store, account_repo, transfer_repo) -> None:
        with pytest.raises(ValueError):
            TransferEngine(store, account_repo, transfer_repo, max_retries=-1)


class TestConcurrency:
    async def test_concurrent_debits_never_overdraw(
        self, engine, store, make_account
    ) -> None:
        sender = await make_account("Sender", 1000)
        recipients = [await make_account(f"R{i}") for i in range(5)]

        # 5 x 300 = 1500 requested, only 1000 available: exactly 3 can succeed
        results = await asyncio.gather(
            *(engine.execute(sender.account_id, r.account_id, 300) for r in recipients),
            return_exceptions=True,
        )

        succeeded = [r for r in results if not isinstance(r, Exception)]
        failed = [r for r in results if isinstance(r, Exception)]
        assert len(succeeded) == 3
        assert all(isinstance(f, InsufficientFundsError) for f in failed)
        assert store.balance(sender.account_id) == 100
        assert store.total_balance() == 1000

    async def test_opposing_transfers_conserve_total(
        self, engine, store, make_account
    ) -> None:
        a = await make_account("A", 500)
        b = await make_account("B", 500)
        c = await make_account("C", 500)
        pairs = [(a, b), (b, a), (b, c), (c, a), (a, c), (c, b)] * 10

        await asyncio.gather(
            *(engine.execute(s.account_id, r.account_id, 7) for s, r in pairs),
            return_exceptions=True,
        )

        assert store.total_balance() == 1500
        assert all(acc.balance >= 0 for acc in store.accounts.values())
        # Every committed transfer left exactly one journal pair
        legs = [e for e in store.ledger if e.reference_id]
        assert len(legs) == 2 * len(store.transfers)
        assert sum(e.amount for e in legs) == 0
