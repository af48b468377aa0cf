
import enum
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    String,
    Enum,
    DateTime,
    ForeignKey,
    Integer,
    func
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

Base = declarative_base()

CENT = Decimal("0.01")
# Largest amount or balance a BIGINT cents column can hold
MAX_AMOUNT = Decimal(2**63 - 1).scaleb(-2)


class Money(TypeDecorator):
    """
    Fixed-point currency column. Values are Decimals in Python and whole
    cents (BIGINT) in the database, so balance arithmetic done in SQL is exact
    on every backend.
    """
    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int((Decimal(value) / CENT).to_integral_value(rounding=ROUND_HALF_UP))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return (Decimal(value) * CENT).quantize(CENT)


class AccountKind(str, enum.Enum):
    SAVINGS = "SAVINGS"
    CURRENT = "CURRENT"

class RecordKind(str, enum.Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"
    TRANSFER_OUT = "TRANSFER_OUT"
    TRANSFER_IN = "TRANSFER_IN"

class Customer(Base):
    """
    A bank customer. Customers own accounts; removing one removes its accounts.
    """
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100))
    phone = Column(String(20))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class Account(Base):
    """
    A customer's account. The balance column is written only by the ledger
    engine, always inside an atomic unit.
    """
    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_accounts_balance_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(
        Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind = Column(Enum(AccountKind), nullable=False)
    balance = Column(Money(), default=Decimal("0.00"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class TransactionRecord(Base):
    """
    One immutable line of the ledger: a single balance change on one account.
    A transfer produces two records, TRANSFER_OUT on the source and
    TRANSFER_IN on the destination, written in the same atomic unit.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind = Column(Enum(RecordKind), nullable=False)
    amount = Column(Money(), nullable=False)
    detail = Column(String(255))
    created_at = Column(DateTime(timezone=True), nullable=False)
