import logging
from decimal import Decimal
from typing import List, Optional, Union

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from banking.core.config import settings
from banking.db.unit import atomic_unit
from banking.exceptions import (
    AccountNotEmptyError,
    AccountNotFoundError,
    CustomerNotFoundError,
)
from banking.models import Account, AccountKind, Customer
from banking.stores.accounts import AccountStore

logger = logging.getLogger(__name__)


def to_account_kind(kind: Union[AccountKind, str]) -> AccountKind:
    if isinstance(kind, AccountKind):
        return kind
    try:
        return AccountKind(str(kind).strip().upper())
    except ValueError:
        raise ValueError(f"Unknown account kind {kind!r}, expected SAVINGS or CURRENT")


class Directory:
    """
    Customers and their accounts. Creates accounts at a zero balance and
    never touches balances afterwards; that is the ledger engine's job.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        accounts: Optional[AccountStore] = None,
        lock_timeout: Optional[float] = settings.LOCK_TIMEOUT_SECONDS,
    ):
        self.session_factory = session_factory
        self.accounts = accounts or AccountStore()
        self.lock_timeout = lock_timeout

    def _unit(self):
        return atomic_unit(self.session_factory, lock_timeout=self.lock_timeout)

    async def create_customer(
        self, name: str, email: Optional[str] = None, phone: Optional[str] = None
    ) -> Customer:
        name = (name or "").strip()
        if not name:
            raise ValueError("Customer name must not be empty")

        async with self._unit() as session:
            customer = Customer(name=name, email=email or None, phone=phone or None)
            session.add(customer)
            await session.flush()
            await session.refresh(customer)
        logger.info(f"Created customer: {customer.name} (ID: {customer.id})")
        return customer

    async def list_customers(self) -> List[Customer]:
        async with self._unit() as session:
            result = await session.execute(select(Customer).order_by(Customer.id))
            return list(result.scalars().all())

    async def get_customer(self, customer_id: int) -> Customer:
        async with self._unit() as session:
            return await self._require_customer(session, customer_id)

    async def create_account(self, customer_id: int, kind: Union[AccountKind, str]) -> Account:
        kind = to_account_kind(kind)

        async with self._unit() as session:
            await self._require_customer(session, customer_id)
            account = Account(customer_id=customer_id, kind=kind, balance=Decimal("0.00"))
            session.add(account)
            await session.flush()
            await session.refresh(account)
        logger.info(f"Created {kind.value} account {account.id} for customer {customer_id}")
        return account

    async def get_account(self, account_id: int) -> Account:
        async with self._unit() as session:
            account = await self.accounts.get(session, account_id)
            if account is None:
                logger.warning(f"Account lookup failed: {account_id}")
                raise AccountNotFoundError()
            return account

    async def list_accounts(self, customer_id: int) -> List[Account]:
        async with self._unit() as session:
            await self._require_customer(session, customer_id)
            query = select(Account).where(Account.customer_id == customer_id).order_by(Account.id)
            result = await session.execute(query)
            return list(result.scalars().all())

    async def remove_account(self, account_id: int) -> None:
        """
        Deletes an empty account. Its transaction records go with it through
        the ON DELETE CASCADE foreign key. The account is locked first so a
        concurrent deposit can't land between the balance check and the delete.
        """
        async with self._unit() as session:
            locked = await self.accounts.lock(session, [account_id])
            account = locked.get(account_id)
            if account is None:
                raise AccountNotFoundError()
            if account.balance != 0:
                raise AccountNotEmptyError()
            await session.execute(delete(Account).where(Account.id == account_id))
        logger.info(f"Removed account {account_id}")

    async def _require_customer(self, session: AsyncSession, customer_id: int) -> Customer:
        customer = await session.get(Customer, customer_id)
        if customer is None:
            logger.warning(f"Customer lookup failed: {customer_id}")
            raise CustomerNotFoundError()
        return customer
