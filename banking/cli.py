"""Banking CLI.

Commands:
  banking init-db      Create the database tables
  banking menu         Interactive menu for customers, accounts and the ledger
  banking serve        Run the HTTP API
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import Callable, List, Optional

from banking.core.config import settings
from banking.core.logging import setup_logging
from banking.exceptions import LedgerError
from banking.outcomes import Outcome, OutcomeStatus, settle
from banking.services.directory import Directory
from banking.services.ledger import LedgerEngine

logger = logging.getLogger(__name__)

MENU = """--- Simple Banking System ---
1. Create Customer
2. List Customers
3. Create Account
4. List Accounts (by customer)
5. Deposit
6. Withdraw
7. Transfer
8. View Account & Recent Transactions
9. Exit"""


class Menu:
    """
    Interactive console front end. Input and output are injectable so the
    loop can be driven from tests.
    """

    def __init__(
        self,
        directory: Directory,
        ledger: LedgerEngine,
        input_fn: Callable[[str], str] = input,
        output_fn: Callable[[str], None] = print,
        retries: int = settings.CONTENTION_RETRIES,
    ) -> None:
        self.directory = directory
        self.ledger = ledger
        self.input = input_fn
        self.output = output_fn
        self.retries = retries
        self.actions = {
            "1": self.create_customer,
            "2": self.list_customers,
            "3": self.create_account,
            "4": self.list_accounts,
            "5": self.deposit,
            "6": self.withdraw,
            "7": self.transfer,
            "8": self.view_account,
        }

    async def run(self) -> None:
        while True:
            self.output(MENU)
            try:
                choice = self.input("Choose: ").strip()
            except EOFError:
                return
            action = self.actions.get(choice)
            if action is None:
                return
            try:
                await action()
            except (ValueError, InvalidOperation) as exc:
                self.output(f"Invalid input: {exc}")
            except LedgerError as exc:
                self.output(f"Failed: {exc.detail}")

    def _ask_int(self, prompt: str) -> int:
        raw = self.input(prompt).strip()
        try:
            return int(raw)
        except ValueError:
            raise ValueError(f"{raw!r} is not a number")

    def _ask_amount(self) -> Decimal:
        raw = self.input("Amount: ").strip()
        try:
            return Decimal(raw)
        except InvalidOperation:
            raise ValueError(f"{raw!r} is not an amount")

    def _report(self, action: str, outcome: Outcome, committed: str) -> None:
        if outcome.status is OutcomeStatus.COMMITTED:
            self.output(f"{action} successful. {committed}")
        elif outcome.status is OutcomeStatus.REJECTED:
            self.output(f"{action} rejected: {outcome.error.detail}")
        else:
            self.output(f"{action} failed, nothing was changed: {outcome.error.detail}. Try again later.")

    async def create_customer(self) -> None:
        name = self.input("Name: ")
        email = self.input("Email: ").strip()
        phone = self.input("Phone: ").strip()
        customer = await self.directory.create_customer(name, email, phone)
        self.output(f"Customer created with ID: {customer.id}")

    async def list_customers(self) -> None:
        for customer in await self.directory.list_customers():
            self.output(f"{customer.id}: {customer.name} ({customer.email or '-'}) {customer.phone or ''}".rstrip())

    async def create_account(self) -> None:
        customer_id = self._ask_int("Customer ID: ")
        kind = self.input("Account type (SAVINGS/CURRENT): ")
        account = await self.directory.create_account(customer_id, kind)
        self.output(f"Account created with ID: {account.id}")

    async def list_accounts(self) -> None:
        customer_id = self._ask_int("Customer ID: ")
        for account in await self.directory.list_accounts(customer_id):
            self.output(f"{account.id}: {account.kind.value} Balance: {account.balance}")

    async def deposit(self) -> None:
        account_id = self._ask_int("Account ID: ")
        amount = self._ask_amount()
        outcome = await settle(self.ledger.deposit, account_id, amount, retries=self.retries)
        self._report("Deposit", outcome, f"New balance: {outcome.value}")

    async def withdraw(self) -> None:
        account_id = self._ask_int("Account ID: ")
        amount = self._ask_amount()
        outcome = await settle(self.ledger.withdraw, account_id, amount, retries=self.retries)
        self._report("Withdrawal", outcome, f"New balance: {outcome.value}")

    async def transfer(self) -> None:
        from_id = self._ask_int("From Account ID: ")
        to_id = self._ask_int("To Account ID: ")
        amount = self._ask_amount()
        outcome = await settle(self.ledger.transfer, from_id, to_id, amount, retries=self.retries)
        summary = ""
        if outcome.ok:
            summary = f"Balances: {outcome.value.from_balance} / {outcome.value.to_balance}"
        self._report("Transfer", outcome, summary)

    async def view_account(self) -> None:
        account_id = self._ask_int("Account ID: ")
        account = await self.directory.get_account(account_id)
        self.output(f"Account {account.id} ({account.kind.value}) Balance: {account.balance}")
        for record in await self.ledger.history(account_id, settings.HISTORY_LIMIT):
            self.output(f"{record.created_at} | {record.kind.value} | {record.amount} | {record.detail}")


async def run_menu() -> None:
    from banking.db.session import AsyncSessionLocal, engine

    try:
        await Menu(Directory(AsyncSessionLocal), LedgerEngine(AsyncSessionLocal)).run()
    finally:
        await engine.dispose()


async def create_tables() -> None:
    from banking.db.session import engine, init_db

    try:
        await init_db(engine)
    finally:
        await engine.dispose()


def cmd_init_db(args: argparse.Namespace) -> int:
    asyncio.run(create_tables())
    print("Tables created")
    return 0


def cmd_menu(args: argparse.Namespace) -> int:
    asyncio.run(run_menu())
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("banking.main:app", host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="banking", description="Customer accounts and ledger")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL, help="DEBUG, INFO, WARNING or ERROR")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_db = subparsers.add_parser("init-db", help="Create the database tables")
    init_db.set_defaults(func=cmd_init_db)

    menu = subparsers.add_parser("menu", help="Interactive banking menu")
    menu.set_defaults(func=cmd_menu)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
