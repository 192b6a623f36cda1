"""Append-only store of computed BED/EQD2 results."""
from datetime import timedelta
from typing import List, Optional

from loguru import logger
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from .db import Storage
from .errors import NotFoundError, StorageUnavailable
from .models import CalculationRow, utcnow
from .schemas import Calculation, CalculationStats

STORED_DECIMALS = 4
RECENT_COUNT = 5


class CalculationRepository:
    """Saves, lists and deletes calculations; never updates one."""

    def __init__(self, storage: Storage):
        self._storage = storage

    async def save(
        self,
        dose: float,
        fractions: int,
        alpha_beta: float,
        bed: float,
        eqd2: float,
        tissue_label: Optional[str] = None,
    ) -> int:
        """
        Persist one result. Inputs are trusted; validation happened upstream.

        BED and EQD2 are stored rounded to four decimals.
        """
        row = CalculationRow(
            dose=dose,
            fractions=fractions,
            alpha_beta=alpha_beta,
            bed=round(bed, STORED_DECIMALS),
            eqd2=round(eqd2, STORED_DECIMALS),
            date=utcnow(),
            tissue_label=tissue_label,
        )
        await self._storage.schema.ensure_schema()
        try:
            async with self._storage.session() as session:
                async with session.begin():
                    session.add(row)
        except SQLAlchemyError as e:
            logger.error(f"Saving calculation failed: {e}")
            raise StorageUnavailable(f"could not save the calculation: {e}") from e

        logger.info(f"Saved calculation {row.id}: {fractions} x {dose} Gy, alpha/beta={alpha_beta}")
        return row.id

    async def list(self, limit: Optional[int] = None) -> List[Calculation]:
        """Newest first."""
        stmt = select(CalculationRow).order_by(CalculationRow.date.desc(), CalculationRow.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)

        await self._storage.schema.ensure_schema()
        try:
            async with self._storage.session() as session:
                rows = (await session.scalars(stmt)).all()
        except SQLAlchemyError as e:
            logger.warning(f"Calculation read failed, returning no rows: {e}")
            return []
        return [Calculation.model_validate(row) for row in rows]

    async def delete(self, calculation_id: int) -> None:
        await self._storage.schema.ensure_schema()
        try:
            async with self._storage.session() as session:
                async with session.begin():
                    result = await session.execute(
                        delete(CalculationRow).where(CalculationRow.id == calculation_id)
                    )
        except SQLAlchemyError as e:
            logger.error(f"Deleting calculation {calculation_id} failed: {e}")
            raise StorageUnavailable(f"could not delete calculation {calculation_id}: {e}") from e

        if not result.rowcount:
            raise NotFoundError(f"no calculation with id {calculation_id}")
        logger.info(f"Deleted calculation {calculation_id}")

    async def delete_all(self) -> int:
        """Remove every calculation and return how many were removed."""
        await self._storage.schema.ensure_schema()
        try:
            async with self._storage.session() as session:
                async with session.begin():
                    result = await session.execute(delete(CalculationRow))
        except SQLAlchemyError as e:
            logger.error(f"Clearing calculations failed: {e}")
            raise StorageUnavailable(f"could not clear calculations: {e}") from e

        removed = result.rowcount or 0
        logger.info(f"Cleared {removed} calculations")
        return removed

    async def stats(self) -> CalculationStats:
        """Totals, today's count (UTC day), the five newest rows and averages."""
        today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        tomorrow = today + timedelta(days=1)

        await self._storage.schema.ensure_schema()
        try:
            async with self._storage.session() as session:
                totals = (await session.execute(
                    select(
                        func.count(CalculationRow.id),
                        func.min(CalculationRow.date),
                        func.max(CalculationRow.date),
                        func.avg(CalculationRow.dose),
                        func.avg(CalculationRow.fractions),
                        func.avg(CalculationRow.alpha_beta),
                    )
                )).one()
                today_count = await session.scalar(
                    select(func.count(CalculationRow.id))
                    .where(CalculationRow.date >= today, CalculationRow.date < tomorrow)
                )
                recent = (await session.scalars(
                    select(CalculationRow)
                    .order_by(CalculationRow.date.desc(), CalculationRow.id.desc())
                    .limit(RECENT_COUNT)
                )).all()
        except SQLAlchemyError as e:
            logger.warning(f"Calculation stats failed, reporting empty stats: {e}")
            return CalculationStats()

        total, first_date, last_date, avg_dose, avg_fractions, avg_alpha_beta = totals
        return CalculationStats(
            total=total or 0,
            today_count=today_count or 0,
            recent=[Calculation.model_validate(row) for row in recent],
            first_date=first_date,
            last_date=last_date,
            average_dose=avg_dose,
            average_fractions=avg_fractions,
            average_alpha_beta=avg_alpha_beta,
        )


__all__ = ["CalculationRepository"]
