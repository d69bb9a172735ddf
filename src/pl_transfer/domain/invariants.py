"""Ledger-wide consistency checks, run against committed state.

Transfers move money and never create it, so across all accounts:
  - sum(balance) == sum(DEPOSIT amounts) + sum(WITHDRAW amounts)   (withdraws are negative)
  - the TRANSFER_OUT/TRANSFER_IN journal rows sum to zero
  - no balance is negative
  - every balance equals the sum of that account's journal rows
"""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_TOTAL_BALANCE_SQL = text("SELECT COALESCE(SUM(balance), 0) FROM accounts")

_NET_DEPOSIT_SQL = text("""
    SELECT COALESCE(SUM(amount), 0)
    FROM ledger_entries
    WHERE entry_type IN ('DEPOSIT', 'WITHDRAW')
""")

_TRANSFER_JOURNAL_SQL = text("""
    SELECT COALESCE(SUM(amount), 0)
    FROM ledger_entries
    WHERE entry_type IN ('TRANSFER_OUT', 'TRANSFER_IN')
""")

_NEGATIVE_BALANCES_SQL = text("SELECT COUNT(*) FROM accounts WHERE balance < 0")

_DRIFTED_ACCOUNTS_SQL = text("""
    SELECT COUNT(*)
    FROM accounts a
    LEFT JOIN (
        SELECT account_id, SUM(amount) AS total
        FROM ledger_entries
        GROUP BY account_id
    ) j ON j.account_id = a.account_id
    WHERE a.balance <> COALESCE(j.total, 0)
""")


async def verify_global_invariants(db: AsyncSession) -> list[str]:
    """Return one message per violated invariant; empty when the ledger is consistent."""
    violations: list[str] = []
    total_balance = (await db.execute(_TOTAL_BALANCE_SQL)).scalar_one()
    net_deposits = (await db.execute(_NET_DEPOSIT_SQL)).scalar_one()
    transfer_sum = (await db.execute(_TRANSFER_JOURNAL_SQL)).scalar_one()
    negative = (await db.execute(_NEGATIVE_BALANCES_SQL)).scalar_one()
    drifted = (await db.execute(_DRIFTED_ACCOUNTS_SQL)).scalar_one()

    if total_balance != net_deposits:
        violations.append(
            f"Conservation violated: total balance {total_balance} != net deposits {net_deposits}"
        )
    if transfer_sum != 0:
        violations.append(f"Transfer journal not zero-sum: {transfer_sum}")
    if negative:
        violations.append(f"{negative} account(s) with negative balance")
    if drifted:
        violations.append(f"{drifted} account(s) whose balance differs from their journal")

    for msg in violations:
        logger.error(msg)
    return violations
