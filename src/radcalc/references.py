"""
Repository for the tissue alpha/beta reference table.

Tissue names are unique under case-insensitive comparison. The comparison is
done with ``str.casefold`` in Python rather than by SQLite, whose NOCASE
collation only folds ASCII letters; the table holds a few dozen rows so this
costs nothing. Every add, update and delete stages its audit entry in the
same transaction as the mutation.
"""
import math
from typing import Iterable, List, Optional, Tuple

from loguru import logger
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .audit import AuditLog
from .db import Storage
from .errors import DuplicateError, NotFoundError, StorageUnavailable, ValidationError
from .models import AlphaBetaReference
from .schemas import (
    AuditAction,
    AuditEntryCreate,
    Citation,
    TissueReference,
    decode_citations,
    encode_citations,
)


def _clean_fields(tissue, alpha_beta, description, citations) -> Tuple[str, float, str, str]:
    """Validate and normalize user-supplied reference fields."""
    if not isinstance(tissue, str) or not tissue.strip():
        raise ValidationError("tissue name must not be empty")
    tissue = tissue.strip()

    if isinstance(alpha_beta, bool):
        raise ValidationError("alpha/beta must be a positive number")
    try:
        alpha_beta = float(alpha_beta)
    except (TypeError, ValueError):
        raise ValidationError("alpha/beta must be a positive number") from None
    if not math.isfinite(alpha_beta) or alpha_beta <= 0:
        raise ValidationError("alpha/beta must be a positive number")

    description = (description or "").strip()

    try:
        references_json = encode_citations(citations)
    except PydanticValidationError as e:
        raise ValidationError(f"invalid citation: {e.errors()[0]['msg']}") from e

    return tissue, alpha_beta, description, references_json


def _to_schema(row: AlphaBetaReference) -> TissueReference:
    citations = decode_citations(row.references_json)
    if not citations and (row.references_json or "").strip() not in ("", "[]"):
        logger.warning(f"Unreadable citations for reference {row.id}, treating as empty")
    return TissueReference(
        id=row.id,
        tissue=row.tissue,
        alpha_beta=row.alpha_beta,
        description=row.description or "",
        citations=citations,
    )


class ReferenceRepository:
    """CRUD over ``alpha_beta_references`` with a mandatory audit trail."""

    def __init__(self, storage: Storage, audit: AuditLog):
        self._storage = storage
        self._audit = audit

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list(self) -> List[TissueReference]:
        """All live rows, ordered by tissue name ignoring case."""
        rows = await self._read_all()
        return sorted(rows, key=lambda r: (r.tissue.casefold(), r.id))

    async def search(self, text: str) -> List[TissueReference]:
        """Case-insensitive substring match on tissue and description."""
        needle = (text or "").strip().casefold()
        return [
            ref for ref in await self.list()
            if needle in ref.tissue.casefold() or needle in ref.description.casefold()
        ]

    async def by_id(self, reference_id: int) -> Optional[TissueReference]:
        await self._storage.schema.ensure_schema()
        try:
            async with self._storage.session() as session:
                row = await session.get(AlphaBetaReference, reference_id)
        except SQLAlchemyError as e:
            logger.warning(f"Reference lookup failed for id {reference_id}: {e}")
            return None
        return _to_schema(row) if row is not None else None

    async def by_tissue(self, tissue: str) -> Optional[TissueReference]:
        """Exact tissue name lookup ignoring case and surrounding whitespace."""
        key = (tissue or "").strip().casefold()
        for ref in await self._read_all():
            if ref.tissue.casefold() == key:
                return ref
        return None

    async def count(self) -> int:
        await self._storage.schema.ensure_schema()
        try:
            async with self._storage.session() as session:
                return await session.scalar(select(func.count()).select_from(AlphaBetaReference)) or 0
        except SQLAlchemyError as e:
            logger.warning(f"Reference count failed, reporting 0: {e}")
            return 0

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add(
        self,
        tissue: str,
        alpha_beta: float,
        description: str = "",
        citations: Iterable[Citation] = (),
    ) -> TissueReference:
        """
        Insert a new reference and record an ADD entry.

        Raises:
            ValidationError: empty tissue or non-positive alpha/beta
            DuplicateError: a tissue with the same name already exists
            StorageUnavailable: the store rejected the write
        """
        tissue, alpha_beta, description, references_json = _clean_fields(
            tissue, alpha_beta, description, citations
        )

        await self._storage.schema.ensure_schema()
        try:
            async with self._storage.session() as session:
                async with session.begin():
                    await self._check_unique(session, tissue)
                    row = AlphaBetaReference(
                        tissue=tissue,
                        alpha_beta=alpha_beta,
                        description=description,
                        references_json=references_json,
                    )
                    session.add(row)
                    await session.flush()
                    await self._audit.stage(session, AuditEntryCreate(
                        action=AuditAction.ADD,
                        tissue=tissue,
                        alpha_beta=alpha_beta,
                        description=description,
                    ))
        except IntegrityError as e:
            raise DuplicateError(f"tissue '{tissue}' already exists") from e
        except SQLAlchemyError as e:
            logger.error(f"Adding reference '{tissue}' failed: {e}")
            raise StorageUnavailable(f"could not add tissue '{tissue}': {e}") from e

        logger.info(f"Added reference {row.id}: {tissue} (alpha/beta={alpha_beta})")
        return _to_schema(row)

    async def update(
        self,
        reference_id: int,
        tissue: str,
        alpha_beta: float,
        description: str = "",
        citations: Iterable[Citation] = (),
    ) -> TissueReference:
        """
        Overwrite every mutable field of a reference and record an UPDATE entry
        holding both the old and the new values.

        Raises:
            NotFoundError: no live row has ``reference_id``
            ValidationError: empty tissue or non-positive alpha/beta
            DuplicateError: another row already uses the tissue name
            StorageUnavailable: the store rejected the write
        """
        await self._storage.schema.ensure_schema()
        try:
            async with self._storage.session() as session:
                async with session.begin():
                    row = await session.get(AlphaBetaReference, reference_id)
                    if row is None:
                        raise NotFoundError(f"no tissue reference with id {reference_id}")

                    tissue, alpha_beta, description, references_json = _clean_fields(
                        tissue, alpha_beta, description, citations
                    )
                    await self._check_unique(session, tissue, exclude_id=reference_id)

                    previous = AuditEntryCreate(
                        action=AuditAction.UPDATE,
                        tissue=tissue,
                        alpha_beta=alpha_beta,
                        description=description,
                        previous_tissue=row.tissue,
                        previous_alpha_beta=row.alpha_beta,
                        previous_description=row.description or "",
                    )

                    row.tissue = tissue
                    row.alpha_beta = alpha_beta
                    row.description = description
                    row.references_json = references_json
                    await session.flush()
                    await self._audit.stage(session, previous)
        except IntegrityError as e:
            raise DuplicateError(f"tissue '{tissue}' already exists") from e
        except SQLAlchemyError as e:
            logger.error(f"Updating reference {reference_id} failed: {e}")
            raise StorageUnavailable(f"could not update tissue reference {reference_id}: {e}") from e

        logger.info(f"Updated reference {reference_id}: {tissue} (alpha/beta={alpha_beta})")
        return _to_schema(row)

    async def delete(self, reference_id: int) -> None:
        """
        Remove a reference and record a DELETE entry describing what was removed.

        Raises:
            NotFoundError: no live row has ``reference_id``
            StorageUnavailable: the store rejected the write
        """
        await self._storage.schema.ensure_schema()
        try:
            async with self._storage.session() as session:
                async with session.begin():
                    row = await session.get(AlphaBetaReference, reference_id)
                    if row is None:
                        raise NotFoundError(f"no tissue reference with id {reference_id}")

                    removed = AuditEntryCreate(
                        action=AuditAction.DELETE,
                        tissue=row.tissue,
                        alpha_beta=row.alpha_beta,
                        description=row.description or "",
                        previous_tissue=row.tissue,
                        previous_alpha_beta=row.alpha_beta,
                        previous_description=row.description or "",
                    )
                    await session.delete(row)
                    await session.flush()
                    await self._audit.stage(session, removed)
        except SQLAlchemyError as e:
            logger.error(f"Deleting reference {reference_id} failed: {e}")
            raise StorageUnavailable(f"could not delete tissue reference {reference_id}: {e}") from e

        logger.info(f"Deleted reference {reference_id}: {removed.tissue}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _check_unique(self, session: AsyncSession, tissue: str, exclude_id: Optional[int] = None) -> None:
        key = tissue.casefold()
        result = await session.execute(select(AlphaBetaReference.id, AlphaBetaReference.tissue))
        for row_id, existing in result.all():
            if row_id != exclude_id and existing.casefold() == key:
                raise DuplicateError(f"tissue '{existing}' already exists")

    async def _read_all(self) -> List[TissueReference]:
        await self._storage.schema.ensure_schema()
        try:
            async with self._storage.session() as session:
                rows = (await session.scalars(select(AlphaBetaReference))).all()
        except SQLAlchemyError as e:
            logger.warning(f"Reference read failed, returning no rows: {e}")
            return []
        return [_to_schema(row) for row in rows]


__all__ = ["ReferenceRepository"]
