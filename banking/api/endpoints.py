
from typing import List
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from banking.db.session import get_session_factory
from banking.schemas import (
    AccountCreate,
    AccountResponse,
    BalanceResponse,
    CustomerCreate,
    CustomerResponse,
    DepositCreate,
    TransactionRecordResponse,
    TransferCreate,
    TransferResponse,
    WithdrawalCreate,
)
from banking.core.config import settings
from banking.services.directory import Directory
from banking.services.ledger import LedgerEngine

router = APIRouter()

def get_directory(factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory)) -> Directory:
    return Directory(factory)

def get_ledger(factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory)) -> LedgerEngine:
    return LedgerEngine(factory)

@router.post("/customers", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(customer: CustomerCreate, directory: Directory = Depends(get_directory)):
    return await directory.create_customer(customer.name, customer.email, customer.phone)

@router.get("/customers", response_model=List[CustomerResponse])
async def list_customers(directory: Directory = Depends(get_directory)):
    return await directory.list_customers()

@router.get("/customers/{customer_id}", response_model=CustomerResponse)
async def get_customer(customer_id: int, directory: Directory = Depends(get_directory)):
    return await directory.get_customer(customer_id)

@router.get("/customers/{customer_id}/accounts", response_model=List[AccountResponse])
async def list_customer_accounts(customer_id: int, directory: Directory = Depends(get_directory)):
    return await directory.list_accounts(customer_id)

@router.post("/accounts", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def create_account(account: AccountCreate, directory: Directory = Depends(get_directory)):
    return await directory.create_account(account.customer_id, account.kind)

@router.get("/accounts/{account_id}", response_model=AccountResponse)
async def get_account(account_id: int, directory: Directory = Depends(get_directory)):
    return await directory.get_account(account_id)

@router.delete("/accounts/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_account(account_id: int, directory: Directory = Depends(get_directory)):
    await directory.remove_account(account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.get("/accounts/{account_id}/transactions", response_model=List[TransactionRecordResponse])
async def get_account_transactions(
    account_id: int,
    limit: int = Query(default=settings.HISTORY_LIMIT),
    ledger: LedgerEngine = Depends(get_ledger),
):
    return await ledger.history(account_id, limit)

@router.post("/deposits", response_model=BalanceResponse)
async def create_deposit(deposit: DepositCreate, ledger: LedgerEngine = Depends(get_ledger)):
    balance = await ledger.deposit(deposit.account_id, deposit.amount)
    return BalanceResponse(account_id=deposit.account_id, balance=balance)

@router.post("/withdrawals", response_model=BalanceResponse)
async def create_withdrawal(withdrawal: WithdrawalCreate, ledger: LedgerEngine = Depends(get_ledger)):
    balance = await ledger.withdraw(withdrawal.account_id, withdrawal.amount)
    return BalanceResponse(account_id=withdrawal.account_id, balance=balance)

@router.post("/transfers", response_model=TransferResponse)
async def create_transfer(transfer: TransferCreate, ledger: LedgerEngine = Depends(get_ledger)):
    return await ledger.transfer(transfer.from_account_id, transfer.to_account_id, transfer.amount)
