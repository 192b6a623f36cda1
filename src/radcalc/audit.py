"""
Append-only audit trail for the alpha/beta reference table.

Entries are never updated. The only deletion path is :meth:`AuditLog.trim`,
an explicit maintenance operation that normal reads and writes never call.
"""
from datetime import datetime, timedelta
from typing import List

from loguru import logger
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .db import Storage
from .errors import StorageUnavailable, ValidationError
from .models import ReferenceHistory, to_storage_time, utcnow
from .schemas import AuditEntry, AuditEntryCreate


class AuditLog:
    """Reads and appends ``reference_history`` rows."""

    def __init__(self, storage: Storage):
        self._storage = storage

    async def stage(self, session: AsyncSession, entry: AuditEntryCreate) -> ReferenceHistory:
        """
        Add an entry to ``session`` without committing.

        Used by the reference repository so the mutation and its audit entry
        commit together. The timestamp never precedes the newest existing one.
        """
        newest = await session.scalar(select(func.max(ReferenceHistory.timestamp)))
        timestamp = utcnow()
        if newest is not None:
            newest = to_storage_time(newest)
            if newest > timestamp:
                timestamp = newest

        row = ReferenceHistory(
            action=entry.action.value,
            tissue=entry.tissue,
            alpha_beta=entry.alpha_beta,
            description=entry.description,
            previous_tissue=entry.previous_tissue,
            previous_alpha_beta=entry.previous_alpha_beta,
            previous_description=entry.previous_description,
            timestamp=timestamp,
        )
        session.add(row)
        await session.flush()
        return row

    async def append(self, entry: AuditEntryCreate) -> int:
        """Persist one entry in its own transaction and return its id."""
        await self._storage.schema.ensure_schema()
        try:
            async with self._storage.session() as session:
                async with session.begin():
                    row = await self.stage(session, entry)
        except SQLAlchemyError as e:
            logger.error(f"Audit append failed: {e}")
            raise StorageUnavailable(f"could not record {entry.action.value} for '{entry.tissue}': {e}") from e
        return row.id

    async def query(self, window_start: datetime, window_end: datetime) -> List[AuditEntry]:
        """Entries with ``window_start <= timestamp <= window_end``, newest first."""
        stmt = (
            select(ReferenceHistory)
            .where(ReferenceHistory.timestamp.between(to_storage_time(window_start), to_storage_time(window_end)))
            .order_by(ReferenceHistory.timestamp.desc(), ReferenceHistory.id.desc())
        )
        return await self._read(stmt)

    async def query_recent(self, limit: int = 100, offset: int = 0) -> List[AuditEntry]:
        """The ``limit`` newest entries after skipping ``offset``."""
        stmt = (
            select(ReferenceHistory)
            .order_by(ReferenceHistory.timestamp.desc(), ReferenceHistory.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return await self._read(stmt)

    async def query_last_days(self, days: int) -> List[AuditEntry]:
        now = utcnow()
        return await self.query(now - timedelta(days=days), now)

    async def count(self) -> int:
        await self._storage.schema.ensure_schema()
        try:
            async with self._storage.session() as session:
                return await session.scalar(select(func.count()).select_from(ReferenceHistory)) or 0
        except SQLAlchemyError as e:
            logger.warning(f"Audit count failed, reporting 0: {e}")
            return 0

    async def trim(self, older_than_days: int) -> int:
        """
        Delete entries older than ``older_than_days`` days.

        Returns:
            Number of entries removed.
        """
        if older_than_days < 0:
            raise ValidationError("retention horizon must be zero or more days")

        cutoff = utcnow() - timedelta(days=older_than_days)
        await self._storage.schema.ensure_schema()
        try:
            async with self._storage.session() as session:
                async with session.begin():
                    result = await session.execute(
                        delete(ReferenceHistory).where(ReferenceHistory.timestamp < cutoff)
                    )
        except SQLAlchemyError as e:
            logger.error(f"Audit trim failed: {e}")
            raise StorageUnavailable(f"could not trim history: {e}") from e

        removed = result.rowcount or 0
        logger.info(f"Trimmed {removed} history entries older than {older_than_days} days")
        return removed

    async def _read(self, stmt) -> List[AuditEntry]:
        await self._storage.schema.ensure_schema()
        try:
            async with self._storage.session() as session:
                rows = (await session.scalars(stmt)).all()
        except SQLAlchemyError as e:
            logger.warning(f"History read failed, returning no entries: {e}")
            return []
        return [AuditEntry.model_validate(row) for row in rows]


__all__ = ["AuditLog"]
