"""
SQLAlchemy ORM models for the local calculator store.

Three tables: computed results, the editable alpha/beta reference table and
its append-only change history. Column names in the database keep the
historical camelCase spelling (``alphaBeta``) so stores created by earlier
releases are migrated in place rather than rebuilt.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Current instant as a naive UTC datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_storage_time(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values are taken as UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


# ============================================================================
# Calculations
# ============================================================================

class CalculationRow(Base):
    """Immutable BED/EQD2 results."""
    __tablename__ = "calculations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    dose: Mapped[float] = mapped_column(Float, nullable=False)
    fractions: Mapped[int] = mapped_column(Integer, nullable=False)
    alpha_beta: Mapped[float] = mapped_column("alphaBeta", Float, nullable=False)
    bed: Mapped[float] = mapped_column(Float, nullable=False)
    eqd2: Mapped[float] = mapped_column(Float, nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    tissue_label: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index("idx_calculations_date", "date"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return f"<CalculationRow(id={self.id}, dose={self.dose}, fractions={self.fractions}, alphaBeta={self.alpha_beta})>"


# ============================================================================
# Reference data
# ============================================================================

class AlphaBetaReference(Base):
    """Tissue alpha/beta ratios with their literature citations."""
    __tablename__ = "alpha_beta_references"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tissue: Mapped[str] = mapped_column(String(collation="NOCASE"), nullable=False, unique=True)
    alpha_beta: Mapped[float] = mapped_column("alphaBeta", Float, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    references_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]", server_default="[]")
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return f"<AlphaBetaReference(id={self.id}, tissue='{self.tissue}', alphaBeta={self.alpha_beta})>"


# ============================================================================
# Audit
# ============================================================================

class ReferenceHistory(Base):
    """Append-only trail of every add/update/delete on alpha_beta_references."""
    __tablename__ = "reference_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    action: Mapped[str] = mapped_column(String(10), nullable=False)
    tissue: Mapped[str] = mapped_column(Text, nullable=False)
    alpha_beta: Mapped[float] = mapped_column("alphaBeta", Float, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    previous_tissue: Mapped[Optional[str]] = mapped_column(Text)
    previous_alpha_beta: Mapped[Optional[float]] = mapped_column("previous_alphaBeta", Float)
    previous_description: Mapped[Optional[str]] = mapped_column(Text)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_reference_history_timestamp", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return f"<ReferenceHistory(id={self.id}, action='{self.action}', tissue='{self.tissue}')>"


__all__ = [
    "utcnow",
    "to_storage_time",
    "Base",
    "CalculationRow",
    "AlphaBetaReference",
    "ReferenceHistory",
]
