
import pytest
import pytest_asyncio
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from banking.main import app
from banking.db.session import build_engine, build_session_factory, get_session_factory, init_db
from banking.services.directory import Directory
from banking.services.ledger import LedgerEngine

@pytest_asyncio.fixture(loop_scope="function")
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    # One file-backed database per test; in-memory SQLite can't be shared
    # between the connections that concurrent units need
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}", lock_timeout=10.0)
    await init_db(engine)
    yield engine
    await engine.dispose()

@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(db_engine)

@pytest.fixture
def ledger(session_factory) -> LedgerEngine:
    return LedgerEngine(session_factory)

@pytest.fixture
def directory(session_factory) -> Directory:
    return Directory(session_factory)

@pytest.fixture
def open_account(directory, ledger):
    """
    Factory fixture: opens an account for a fresh customer and optionally
    funds it with a deposit. Returns the account id.
    """
    async def _open(opening_deposit=None, kind="SAVINGS", owner="Test Customer") -> int:
        customer = await directory.create_customer(owner)
        account = await directory.create_account(customer.id, kind)
        if opening_deposit is not None:
            await ledger.deposit(account.id, opening_deposit)
        return account.id
    return _open

@pytest_asyncio.fixture(loop_scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    # Override the session factory dependency
    async def override_get_session_factory():
        return session_factory

    app.dependency_overrides[get_session_factory] = override_get_session_factory

    # Create transport with the app
    transport = ASGITransport(app=app)

    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
