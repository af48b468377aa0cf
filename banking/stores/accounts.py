
import logging
from decimal import Decimal
from typing import Dict, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from banking.models import Account

logger = logging.getLogger(__name__)


class AccountStore:
    """
    Balance-carrying account rows. Every method works inside the caller's
    session so it joins whatever atomic unit is open.
    """

    async def get(self, session: AsyncSession, account_id: int) -> Optional[Account]:
        query = select(Account).where(Account.id == account_id)
        result = await session.execute(query)
        return result.scalar_one_or_none()

    async def lock(self, session: AsyncSession, account_ids: Iterable[int]) -> Dict[int, Account]:
        """
        Takes the write lock on each account, one row at a time in ascending
        id order. Two units locking the same pair always queue in the same
        order, so they can't wait on each other in a cycle.
        Missing ids are absent from the returned mapping.
        """
        locked = {}
        for account_id in sorted(set(account_ids)):
            query = (
                select(Account)
                .where(Account.id == account_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            result = await session.execute(query)
            account = result.scalar_one_or_none()
            if account is not None:
                locked[account_id] = account
        logger.debug(f"Locked accounts {sorted(locked)}")
        return locked

    async def adjust(self, session: AsyncSession, account_id: int, delta: Decimal) -> bool:
        """
        Adds `delta` to the balance in a single conditional UPDATE. A debit
        only applies while the stored balance still covers it. Returns False
        when no row matched.
        """
        stmt = update(Account).where(Account.id == account_id)
        if delta < 0:
            stmt = stmt.where(Account.balance >= -delta)
        stmt = (
            stmt.values(balance=Account.balance + delta)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1
