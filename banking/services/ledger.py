from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import logging

# Setup Logger
logger = logging.getLogger(__name__)

from banking.core.config import settings
from banking.db.unit import atomic_unit
from banking.exceptions import (
    AccountNotFoundError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidLimitError,
    SameAccountError,
)
from banking.models import CENT, MAX_AMOUNT, RecordKind, TransactionRecord
from banking.stores.accounts import AccountStore
from banking.stores.log import LedgerLog


@dataclass(frozen=True)
class TransferResult:
    from_account_id: int
    from_balance: Decimal
    to_account_id: int
    to_balance: Decimal
    amount: Decimal


def to_amount(value) -> Decimal:
    """
    Normalizes a caller-supplied amount to a cent-precise Decimal.
    Floats are refused outright: they cannot represent most cent values.
    """
    if isinstance(value, (bool, float)):
        raise InvalidAmountError("Amount must be a decimal value, not a float")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmountError("Amount is not a number")
    if not amount.is_finite():
        raise InvalidAmountError("Amount is not a number")
    if amount <= 0:
        raise InvalidAmountError()
    if amount > MAX_AMOUNT:
        raise InvalidAmountError(f"Amount cannot exceed {MAX_AMOUNT}")
    try:
        quantized = amount.quantize(CENT)
    except InvalidOperation:
        raise InvalidAmountError("Amount is not a number")
    if amount != quantized:
        raise InvalidAmountError("Amount cannot have more than two decimal places")
    return quantized


def _check_credit(account_id: int, balance: Decimal, amount: Decimal) -> Decimal:
    new_balance = balance + amount
    if new_balance > MAX_AMOUNT:
        logger.warning(f"Credit rejected, balance of {account_id} would exceed {MAX_AMOUNT}")
        raise InvalidAmountError(f"Balance cannot exceed {MAX_AMOUNT}")
    return new_balance


class LedgerEngine:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        accounts: Optional[AccountStore] = None,
        log: Optional[LedgerLog] = None,
        lock_timeout: Optional[float] = settings.LOCK_TIMEOUT_SECONDS,
    ):
        self.session_factory = session_factory
        self.accounts = accounts or AccountStore()
        self.log = log or LedgerLog()
        self.lock_timeout = lock_timeout

    def _unit(self):
        return atomic_unit(self.session_factory, lock_timeout=self.lock_timeout)

    async def deposit(self, account_id: int, amount) -> Decimal:
        """
        Credits an account and records a DEPOSIT entry in one atomic unit.
        Returns the new balance.
        """
        amount = to_amount(amount)

        async with self._unit() as session:
            locked = await self.accounts.lock(session, [account_id])
            account = locked.get(account_id)
            if account is None:
                logger.warning(f"Deposit rejected, unknown account {account_id}")
                raise AccountNotFoundError()

            new_balance = _check_credit(account_id, account.balance, amount)
            if not await self.accounts.adjust(session, account_id, amount):
                logger.warning(f"Deposit rejected, account {account_id} vanished under lock")
                raise AccountNotFoundError()
            await self.log.append(session, account_id, RecordKind.DEPOSIT, amount, "deposit")

        logger.info(f"Deposit successful: {amount} to {account_id} (balance {new_balance})")
        return new_balance

    async def withdraw(self, account_id: int, amount) -> Decimal:
        """
        Debits an account and records a WITHDRAW entry in one atomic unit.
        The balance is re-read under the account lock, and the decrement is
        itself conditional, so a concurrent withdrawal can never slip between
        the check and the write.
        """
        amount = to_amount(amount)

        async with self._unit() as session:
            locked = await self.accounts.lock(session, [account_id])
            account = locked.get(account_id)
            if account is None:
                logger.warning(f"Withdrawal rejected, unknown account {account_id}")
                raise AccountNotFoundError()

            if account.balance < amount:
                logger.info(f"Withdrawal rejected, insufficient funds on {account_id}: {account.balance} < {amount}")
                raise InsufficientFundsError()
            if not await self.accounts.adjust(session, account_id, -amount):
                raise InsufficientFundsError()

            new_balance = account.balance - amount
            await self.log.append(session, account_id, RecordKind.WITHDRAW, amount, "withdraw")

        logger.info(f"Withdrawal successful: {amount} from {account_id} (balance {new_balance})")
        return new_balance

    async def transfer(self, from_account_id: int, to_account_id: int, amount) -> TransferResult:
        """
        Moves money between two distinct accounts. Both balance changes and
        both records (TRANSFER_OUT on the source, TRANSFER_IN on the
        destination) commit together or not at all.
        """
        amount = to_amount(amount)
        if from_account_id == to_account_id:
            raise SameAccountError()

        async with self._unit() as session:
            locked = await self.accounts.lock(session, [from_account_id, to_account_id])
            source = locked.get(from_account_id)
            destination = locked.get(to_account_id)
            if source is None or destination is None:
                missing = from_account_id if source is None else to_account_id
                logger.warning(f"Transfer rejected, unknown account {missing}")
                raise AccountNotFoundError()

            if source.balance < amount:
                logger.info(f"Transfer rejected, insufficient funds on {from_account_id}: {source.balance} < {amount}")
                raise InsufficientFundsError()
            to_balance = _check_credit(to_account_id, destination.balance, amount)
            if not await self.accounts.adjust(session, from_account_id, -amount):
                raise InsufficientFundsError()
            if not await self.accounts.adjust(session, to_account_id, amount):
                raise AccountNotFoundError()

            await self.log.append(
                session, from_account_id, RecordKind.TRANSFER_OUT, amount,
                f"transfer to account {to_account_id}",
            )
            await self.log.append(
                session, to_account_id, RecordKind.TRANSFER_IN, amount,
                f"transfer from account {from_account_id}",
            )
            result = TransferResult(
                from_account_id=from_account_id,
                from_balance=source.balance - amount,
                to_account_id=to_account_id,
                to_balance=to_balance,
                amount=amount,
            )

        logger.info(f"Transfer successful: {amount} from {from_account_id} to {to_account_id}")
        return result

    async def history(self, account_id: int, limit: int = settings.HISTORY_LIMIT) -> List[TransactionRecord]:
        """
        Returns up to `limit` records for the account, newest first.
        An existing account with no activity yields an empty list.
        """
        if limit < 1:
            raise InvalidLimitError()

        async with self._unit() as session:
            if await self.accounts.get(session, account_id) is None:
                logger.warning(f"History lookup failed: {account_id}")
                raise AccountNotFoundError()
            return await self.log.query(session, account_id, limit)

    async def balance(self, account_id: int) -> Decimal:
        async with self._unit() as session:
            account = await self.accounts.get(session, account_id)
            if account is None:
                raise AccountNotFoundError()
            logger.debug(f"Retrieved balance for {account_id}: {account.balance}")
            return account.balance
