"""
In-memory null-object repositories used when the store cannot be opened.

They mirror the public methods of the real repositories. Reads return empty
results; writes are discarded and raise StorageUnavailable so the caller
always learns that nothing was persisted.
"""
from datetime import datetime
from typing import List, Optional

from .errors import StorageUnavailable
from .schemas import AuditEntry, AuditEntryCreate, CalculationStats, Calculation, TissueReference


class _NullStore:
    def __init__(self, reason: str = "local storage is unavailable"):
        self.reason = reason

    def _refuse(self, what: str):
        raise StorageUnavailable(f"{what} was not saved: {self.reason}")


class NullAuditLog(_NullStore):
    async def append(self, entry: AuditEntryCreate) -> int:
        self._refuse("history entry")

    async def query(self, window_start: datetime, window_end: datetime) -> List[AuditEntry]:
        return []

    async def query_recent(self, limit: int = 100, offset: int = 0) -> List[AuditEntry]:
        return []

    async def query_last_days(self, days: int) -> List[AuditEntry]:
        return []

    async def count(self) -> int:
        return 0

    async def trim(self, older_than_days: int) -> int:
        self._refuse("history trim")


class NullReferenceRepository(_NullStore):
    async def list(self) -> List[TissueReference]:
        return []

    async def search(self, text: str) -> List[TissueReference]:
        return []

    async def by_id(self, reference_id: int) -> Optional[TissueReference]:
        return None

    async def by_tissue(self, tissue: str) -> Optional[TissueReference]:
        return None

    async def count(self) -> int:
        return 0

    async def add(self, tissue, alpha_beta, description="", citations=()) -> TissueReference:
        self._refuse(f"tissue '{tissue}'")

    async def update(self, reference_id, tissue, alpha_beta, description="", citations=()) -> TissueReference:
        self._refuse(f"tissue reference {reference_id}")

    async def delete(self, reference_id: int) -> None:
        self._refuse(f"deletion of tissue reference {reference_id}")


class NullCalculationRepository(_NullStore):
    async def save(self, dose, fractions, alpha_beta, bed, eqd2, tissue_label=None) -> int:
        self._refuse("calculation")

    async def list(self, limit: Optional[int] = None) -> List[Calculation]:
        return []

    async def delete(self, calculation_id: int) -> None:
        self._refuse(f"deletion of calculation {calculation_id}")

    async def delete_all(self) -> int:
        self._refuse("clearing of calculations")

    async def stats(self) -> CalculationStats:
        return CalculationStats()


__all__ = ["NullAuditLog", "NullReferenceRepository", "NullCalculationRepository"]
