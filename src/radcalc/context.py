"""
Application context: the repositories a front end works with.

The store is opened once. If it cannot be opened the context is built from
the null-object repositories instead and flagged ``degraded``; callers use
the same interface either way.
"""
from typing import Optional

from loguru import logger

from .audit import AuditLog
from .calculations import CalculationRepository
from .calculator import Calculator
from .config import Settings, get_settings
from .db import Storage, open_storage
from .errors import StorageUnavailable
from .null_store import NullAuditLog, NullCalculationRepository, NullReferenceRepository
from .references import ReferenceRepository
from .seed import seed_references


class AppContext:
    """Repositories plus the calculator, bound to one storage handle."""

    def __init__(self, references, audit, calculations, storage: Optional[Storage] = None):
        self.references = references
        self.audit = audit
        self.calculations = calculations
        self.calculator = Calculator(calculations)
        self.storage = storage

    @property
    def degraded(self) -> bool:
        return self.storage is None

    @classmethod
    def from_storage(cls, storage: Storage) -> "AppContext":
        audit = AuditLog(storage)
        return cls(
            references=ReferenceRepository(storage, audit),
            audit=audit,
            calculations=CalculationRepository(storage),
            storage=storage,
        )

    @classmethod
    def unavailable(cls, reason: str) -> "AppContext":
        return cls(
            references=NullReferenceRepository(reason),
            audit=NullAuditLog(reason),
            calculations=NullCalculationRepository(reason),
        )

    async def close(self) -> None:
        if self.storage is not None:
            await self.storage.dispose()


async def open_context(settings: Optional[Settings] = None, seed: bool = True) -> AppContext:
    """
    Open the configured store and build the context.

    Args:
        settings: configuration; read from the environment when omitted
        seed: insert the literature seed set when the reference table is empty
    """
    settings = settings or get_settings()
    try:
        storage = await open_storage(settings.database_url, echo=settings.echo_sql)
    except StorageUnavailable as e:
        logger.error(f"Running without persistence: {e}")
        return AppContext.unavailable(str(e))

    context = AppContext.from_storage(storage)
    if seed:
        try:
            await seed_references(context.references)
        except StorageUnavailable as e:
            logger.error(f"Seeding reference data failed: {e}")
    return context


__all__ = ["AppContext", "open_context"]
