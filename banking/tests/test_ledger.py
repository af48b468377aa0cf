
import pytest
from decimal import Decimal
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from banking.exceptions import (
    AccountNotFoundError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidLimitError,
    SameAccountError,
    StorageFailureError,
)
from banking.models import MAX_AMOUNT, RecordKind, TransactionRecord
from banking.outcomes import OutcomeStatus, settle
from banking.stores.accounts import AccountStore
from banking.services.ledger import LedgerEngine, to_amount
from banking.stores.log import LedgerLog


class FailingLog(LedgerLog):
    """Log whose append blows up for the given record kinds."""

    def __init__(self, *kinds):
        self.kinds = set(kinds)

    async def append(self, session, account_id, kind, amount, detail):
        if kind in self.kinds:
            raise OperationalError("INSERT INTO transactions", {}, Exception("disk I/O error"))
        return await super().append(session, account_id, kind, amount, detail)


class VanishingAccounts(AccountStore):
    """Account store whose credits match no row, as if the account was deleted."""

    async def adjust(self, session, account_id, delta):
        if delta > 0:
            return False
        return await super().adjust(session, account_id, delta)


async def count_records(session_factory) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count(TransactionRecord.id)))
        return result.scalar_one()


@pytest.mark.asyncio
async def test_deposit_increases_balance_and_records_once(ledger, open_account):
    account_id = await open_account(Decimal("25.50"))

    balance = await ledger.deposit(account_id, Decimal("10.25"))
    assert balance == Decimal("35.75")
    assert await ledger.balance(account_id) == Decimal("35.75")

    records = await ledger.history(account_id)
    deposits = [r for r in records if r.amount == Decimal("10.25")]
    assert len(deposits) == 1
    assert deposits[0].kind == RecordKind.DEPOSIT
    assert deposits[0].detail == "deposit"

@pytest.mark.asyncio
async def test_repeated_small_deposits_stay_exact(ledger, open_account):
    account_id = await open_account()
    for _ in range(10):
        await ledger.deposit(account_id, "0.10")
    assert await ledger.balance(account_id) == Decimal("1.00")

@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), 0, "-0.01"])
async def test_deposit_rejects_non_positive_amount(ledger, open_account, session_factory, amount):
    account_id = await open_account(Decimal("40.00"))
    before = await count_records(session_factory)

    with pytest.raises(InvalidAmountError):
        await ledger.deposit(account_id, amount)

    assert await ledger.balance(account_id) == Decimal("40.00")
    assert await count_records(session_factory) == before

@pytest.mark.asyncio
async def test_deposit_unknown_account(ledger):
    with pytest.raises(AccountNotFoundError):
        await ledger.deposit(999, Decimal("10.00"))

@pytest.mark.asyncio
async def test_withdraw_within_balance(ledger, open_account):
    account_id = await open_account(Decimal("100.00"))

    assert await ledger.withdraw(account_id, Decimal("100.00")) == Decimal("0.00")

    latest = (await ledger.history(account_id, 1))[0]
    assert latest.kind == RecordKind.WITHDRAW
    assert latest.amount == Decimal("100.00")

@pytest.mark.asyncio
async def test_withdraw_more_than_balance_leaves_account_untouched(ledger, open_account, session_factory):
    account_id = await open_account(Decimal("10.00"))
    before = await count_records(session_factory)

    with pytest.raises(InsufficientFundsError):
        await ledger.withdraw(account_id, Decimal("10.01"))

    assert await ledger.balance(account_id) == Decimal("10.00")
    assert await count_records(session_factory) == before

@pytest.mark.asyncio
async def test_withdraw_unknown_account(ledger):
    with pytest.raises(AccountNotFoundError):
        await ledger.withdraw(42, Decimal("1.00"))

@pytest.mark.asyncio
async def test_transfer_moves_exact_amount_with_paired_records(ledger, open_account):
    source = await open_account(Decimal("200.00"), owner="Alice")
    destination = await open_account(Decimal("5.00"), kind="CURRENT", owner="Bob")

    result = await ledger.transfer(source, destination, Decimal("50.00"))

    assert result.from_balance == Decimal("150.00")
    assert result.to_balance == Decimal("55.00")
    assert await ledger.balance(source) == Decimal("150.00")
    assert await ledger.balance(destination) == Decimal("55.00")

    out_record = (await ledger.history(source, 1))[0]
    in_record = (await ledger.history(destination, 1))[0]
    assert out_record.kind == RecordKind.TRANSFER_OUT
    assert out_record.amount == Decimal("50.00")
    assert out_record.detail == f"transfer to account {destination}"
    assert in_record.kind == RecordKind.TRANSFER_IN
    assert in_record.amount == Decimal("50.00")
    assert in_record.detail == f"transfer from account {source}"

@pytest.mark.asyncio
async def test_transfer_to_same_account_is_rejected(ledger, open_account):
    account_id = await open_account(Decimal("30.00"))

    with pytest.raises(SameAccountError):
        await ledger.transfer(account_id, account_id, Decimal("10.00"))

    assert await ledger.balance(account_id) == Decimal("30.00")

@pytest.mark.asyncio
async def test_transfer_insufficient_funds(ledger, open_account):
    source = await open_account(Decimal("10.00"))
    destination = await open_account()

    with pytest.raises(InsufficientFundsError):
        await ledger.transfer(source, destination, Decimal("100.00"))

    assert await ledger.balance(source) == Decimal("10.00")
    assert await ledger.balance(destination) == Decimal("0.00")
    assert await ledger.history(destination) == []

@pytest.mark.asyncio
async def test_transfer_unknown_destination(ledger, open_account):
    source = await open_account(Decimal("10.00"))

    with pytest.raises(AccountNotFoundError):
        await ledger.transfer(source, source + 100, Decimal("1.00"))

    assert await ledger.balance(source) == Decimal("10.00")

@pytest.mark.asyncio
async def test_log_failure_rolls_back_deposit(session_factory, open_account, ledger):
    account_id = await open_account(Decimal("20.00"))
    broken = LedgerEngine(session_factory, log=FailingLog(RecordKind.DEPOSIT))

    with pytest.raises(StorageFailureError):
        await broken.deposit(account_id, Decimal("5.00"))

    assert await ledger.balance(account_id) == Decimal("20.00")

@pytest.mark.asyncio
async def test_log_failure_mid_transfer_rolls_back_both_sides(session_factory, open_account, ledger):
    source = await open_account(Decimal("80.00"))
    destination = await open_account(Decimal("1.00"))
    before = await count_records(session_factory)
    # TRANSFER_OUT is written, both balances are updated, then TRANSFER_IN fails
    broken = LedgerEngine(session_factory, log=FailingLog(RecordKind.TRANSFER_IN))

    with pytest.raises(StorageFailureError) as excinfo:
        await broken.transfer(source, destination, Decimal("30.00"))

    assert excinfo.value.retryable
    assert await ledger.balance(source) == Decimal("80.00")
    assert await ledger.balance(destination) == Decimal("1.00")
    assert await count_records(session_factory) == before

@pytest.mark.asyncio
async def test_history_is_newest_first(ledger, open_account):
    account_id = await open_account()
    await ledger.deposit(account_id, Decimal("10.00"))
    await ledger.withdraw(account_id, Decimal("3.00"))

    records = await ledger.history(account_id, 2)

    assert [(r.kind, r.amount) for r in records] == [
        (RecordKind.WITHDRAW, Decimal("3.00")),
        (RecordKind.DEPOSIT, Decimal("10.00")),
    ]

@pytest.mark.asyncio
async def test_history_respects_limit(ledger, open_account):
    account_id = await open_account()
    for amount in ("1.00", "2.00", "3.00", "4.00"):
        await ledger.deposit(account_id, amount)

    records = await ledger.history(account_id, 3)
    assert [r.amount for r in records] == [Decimal("4.00"), Decimal("3.00"), Decimal("2.00")]

@pytest.mark.asyncio
async def test_history_empty_and_missing(ledger, open_account):
    account_id = await open_account()
    assert await ledger.history(account_id) == []

    with pytest.raises(AccountNotFoundError):
        await ledger.history(account_id + 1)
    with pytest.raises(InvalidLimitError):
        await ledger.history(account_id, 0)

@pytest.mark.parametrize("raw", [0.1, True, "abc", "NaN", "Infinity", "1.001", None, "1e30", Decimal("1e17")])
def test_to_amount_rejects(raw):
    with pytest.raises(InvalidAmountError):
        to_amount(raw)

def test_to_amount_normalizes():
    assert to_amount("12.5") == Decimal("12.50")
    assert to_amount(3) == Decimal("3.00")
    assert to_amount(Decimal("0.01")) == Decimal("0.01")

@pytest.mark.asyncio
async def test_oversized_amounts_are_rejected_not_stored(ledger, open_account, session_factory):
    account_id = await open_account(Decimal("1.00"))
    before = await count_records(session_factory)

    with pytest.raises(InvalidAmountError):
        await ledger.deposit(account_id, Decimal("100000000000000000"))
    outcome = await settle(ledger.deposit, account_id, "1e30")

    assert outcome.status is OutcomeStatus.REJECTED
    assert await ledger.balance(account_id) == Decimal("1.00")
    assert await count_records(session_factory) == before

@pytest.mark.asyncio
async def test_credit_past_maximum_balance_is_rejected(ledger, open_account):
    full = await open_account(MAX_AMOUNT)
    source = await open_account(Decimal("5.00"))

    with pytest.raises(InvalidAmountError):
        await ledger.deposit(full, Decimal("0.01"))
    with pytest.raises(InvalidAmountError):
        await ledger.transfer(source, full, Decimal("5.00"))

    assert await ledger.balance(full) == MAX_AMOUNT
    assert await ledger.balance(source) == Decimal("5.00")
    assert len(await ledger.history(full)) == 1

@pytest.mark.asyncio
async def test_deposit_that_updates_no_row_writes_nothing(session_factory, open_account, ledger):
    account_id = await open_account(Decimal("4.00"))
    before = await count_records(session_factory)
    broken = LedgerEngine(session_factory, accounts=VanishingAccounts())

    with pytest.raises(AccountNotFoundError):
        await broken.deposit(account_id, Decimal("1.00"))

    assert await ledger.balance(account_id) == Decimal("4.00")
    assert await count_records(session_factory) == before
