"""
The atomic unit every ledger mutation runs in.

A unit is one database transaction on its own session. It commits when the
block exits normally and rolls back on any exception, cancellation included,
so no caller ever repeats the commit/rollback dance by hand. Storage errors
leave the unit translated into the ledger's error taxonomy.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from banking.exceptions import ContentionError, LedgerError, StorageFailureError

logger = logging.getLogger(__name__)

# lock_not_available, serialization_failure, deadlock_detected
CONTENTION_SQLSTATES = {"55P03", "40001", "40P01"}
CONTENTION_MESSAGES = ("database is locked", "database table is locked")


def is_contention(exc: SQLAlchemyError) -> bool:
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in CONTENTION_SQLSTATES:
        return True
    message = str(orig).lower()
    return any(marker in message for marker in CONTENTION_MESSAGES)


def translate_storage_error(exc: SQLAlchemyError) -> LedgerError:
    if is_contention(exc):
        logger.warning(f"Atomic unit rolled back on lock contention: {exc}")
        return ContentionError()
    logger.error(f"Atomic unit rolled back on storage failure: {exc}")
    return StorageFailureError()


@asynccontextmanager
async def atomic_unit(
    session_factory: async_sessionmaker[AsyncSession],
    lock_timeout: Optional[float] = None,
) -> AsyncIterator[AsyncSession]:
    """
    Yields a session inside an open transaction.

    Ledger errors raised inside the block propagate unchanged after rollback.
    SQLAlchemy errors, including those raised by the final COMMIT, become
    ContentionError or StorageFailureError, chained to the original.
    """
    session = session_factory()
    try:
        async with session.begin():
            if lock_timeout is not None:
                await _bound_lock_wait(session, lock_timeout)
            yield session
    except SQLAlchemyError as exc:
        raise translate_storage_error(exc) from exc
    finally:
        await session.close()


async def _bound_lock_wait(session: AsyncSession, lock_timeout: float) -> None:
    connection = await session.connection()
    if connection.dialect.name == "postgresql":
        # SET does not accept bind parameters
        millis = max(1, int(lock_timeout * 1000))
        await session.execute(text(f"SET LOCAL lock_timeout = '{millis}ms'"))
