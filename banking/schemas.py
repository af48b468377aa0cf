
from decimal import Decimal
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator

from banking.models import AccountKind, RecordKind

# Customer Schemas
class CustomerCreate(BaseModel):
    """
    Schema for registering a new customer.
    """
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)

class CustomerResponse(BaseModel):
    id: int
    name: str
    email: Optional[str]
    phone: Optional[str]
    created_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)

# Account Schemas
class AccountCreate(BaseModel):
    """
    Schema for opening an account. Accounts always start at a zero balance.
    """
    customer_id: int
    kind: AccountKind = AccountKind.SAVINGS

class AccountResponse(BaseModel):
    """
    Account information including current balance.
    """
    id: int
    customer_id: int
    kind: AccountKind
    balance: Decimal
    created_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)

# Transaction Record Schemas
class TransactionRecordResponse(BaseModel):
    """
    A single ledger line on one account.
    """
    id: int
    account_id: int
    kind: RecordKind
    amount: Decimal
    detail: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

# Ledger Operation Schemas
# Amount rules (positive, cent precision) are enforced by the ledger engine so
# the API reports them with the same error kind as every other caller.
class _AmountMixin(BaseModel):
    amount: Decimal

    @field_validator('amount', mode='before')
    def float_amount_via_repr(cls, v):
        if isinstance(v, float):
            # JSON numbers arrive as floats; go through their shortest repr
            return str(v)
        return v

class DepositCreate(_AmountMixin):
    account_id: int

class WithdrawalCreate(_AmountMixin):
    account_id: int

class TransferCreate(_AmountMixin):
    from_account_id: int
    to_account_id: int

class BalanceResponse(BaseModel):
    account_id: int
    balance: Decimal

class TransferResponse(BaseModel):
    from_account_id: int
    from_balance: Decimal
    to_account_id: int
    to_balance: Decimal
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)
