
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from banking.models import RecordKind, TransactionRecord

logger = logging.getLogger(__name__)


class LedgerLog:
    """
    Append-only history of balance changes, newest first on the way out.
    """

    async def append(
        self,
        session: AsyncSession,
        account_id: int,
        kind: RecordKind,
        amount: Decimal,
        detail: str,
    ) -> TransactionRecord:
        """
        Writes one record inside the caller's atomic unit. The timestamp is
        taken while the caller holds the account lock, which keeps it
        non-decreasing per account.
        """
        record = TransactionRecord(
            account_id=account_id,
            kind=kind,
            amount=amount,
            detail=detail,
            created_at=datetime.now(timezone.utc),
        )
        session.add(record)
        await session.flush()
        logger.debug(f"Appended {kind.value} {amount} on account {account_id} (record {record.id})")
        return record

    async def query(self, session: AsyncSession, account_id: int, limit: int) -> List[TransactionRecord]:
        query = (
            select(TransactionRecord)
            .where(TransactionRecord.account_id == account_id)
            .order_by(TransactionRecord.created_at.desc(), TransactionRecord.id.desc())
            .limit(limit)
        )
        result = await session.execute(query)
        records = result.scalars().all()
        logger.debug(f"Retrieved {len(records)} records for account {account_id}")
        return list(records)
