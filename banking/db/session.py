
import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.engine import make_url

from banking.core.config import settings
from banking.models import Base

logger = logging.getLogger(__name__)


def build_engine(
    database_url: str,
    echo: bool = False,
    lock_timeout: float = settings.LOCK_TIMEOUT_SECONDS,
) -> AsyncEngine:
    """
    Creates the async engine for a database URL.

    SQLite has no row locks, so every SQLite transaction opens with
    BEGIN IMMEDIATE: writers are serialized by the database file lock and wait
    at most `lock_timeout` seconds (the driver busy timeout) before failing.
    PostgreSQL gets its bound per transaction in `banking.db.unit`.
    """
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_async_engine(database_url, echo=echo, pool_pre_ping=True)

    engine = create_async_engine(
        database_url, echo=echo, connect_args={"timeout": lock_timeout}
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Hand transaction control to the "begin" hook below
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    logger.debug(f"SQLite engine ready for {url.database} (busy timeout {lock_timeout}s)")
    return engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=bind, expire_on_commit=False)


async def init_db(bind: AsyncEngine) -> None:
    """Creates any missing tables."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema is up to date")


engine = build_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
AsyncSessionLocal = build_session_factory(engine)


async def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return AsyncSessionLocal

