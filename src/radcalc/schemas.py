"""Pydantic schemas for the values handed to and returned by the core."""
import json
from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError


# ============================================================================
# Reference data
# ============================================================================

class Citation(BaseModel):
    """One literature source backing an alpha/beta value."""

    title: str
    year: Optional[int] = None
    url: Optional[str] = None


_CITATION_LIST = TypeAdapter(List[Citation])


def encode_citations(citations) -> str:
    """Serialize citations to the JSON text stored in ``references_json``."""
    items = [c if isinstance(c, Citation) else Citation.model_validate(c) for c in citations or ()]
    return _CITATION_LIST.dump_json(items).decode("utf-8")


def decode_citations(raw: Optional[str]) -> List[Citation]:
    """
    Parse ``references_json``.

    Unreadable JSON decodes to an empty list; inside a readable list, items
    that are not valid citations are dropped and the rest are kept.
    """
    if not raw:
        return []
    try:
        items = json.loads(raw)
    except ValueError:
        return []
    if not isinstance(items, list):
        return []

    citations = []
    for item in items:
        try:
            citations.append(Citation.model_validate(item))
        except PydanticValidationError:
            continue
    return citations


class TissueReference(BaseModel):
    """A named radiosensitivity record."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    tissue: str
    alpha_beta: float
    description: str = ""
    citations: List[Citation] = Field(default_factory=list)


# ============================================================================
# Audit trail
# ============================================================================

class AuditAction(str, Enum):
    ADD = "ADD"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class AuditEntryCreate(BaseModel):
    """Values for a new audit entry; id and timestamp are assigned on append."""

    action: AuditAction
    tissue: str
    alpha_beta: float
    description: str = ""
    previous_tissue: Optional[str] = None
    previous_alpha_beta: Optional[float] = None
    previous_description: Optional[str] = None

    @field_validator("description", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        # rows written by early releases may hold NULL here
        return "" if v is None else v


class AuditEntry(AuditEntryCreate):
    """An immutable record of one reference mutation."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    timestamp: datetime


# ============================================================================
# Calculations
# ============================================================================

class Calculation(BaseModel):
    """One persisted BED/EQD2 computation."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    dose: float
    fractions: int
    alpha_beta: float
    bed: float
    eqd2: float
    date: datetime
    tissue_label: Optional[str] = None


class CalculationStats(BaseModel):
    """Aggregate view of the calculation history."""

    total: int = 0
    today_count: int = 0
    recent: List[Calculation] = Field(default_factory=list)
    first_date: Optional[datetime] = None
    last_date: Optional[datetime] = None
    average_dose: Optional[float] = None
    average_fractions: Optional[float] = None
    average_alpha_beta: Optional[float] = None


# ============================================================================
# Input validation & computation results
# ============================================================================

class ValidInput(BaseModel):
    """Normalized numeric triple ready for the dose model."""

    ok: Literal[True] = True
    dose: float
    fractions: int
    alpha_beta: float


class Rejection(BaseModel):
    """Why raw input was refused."""

    ok: Literal[False] = False
    reason: str


ValidationResult = Union[ValidInput, Rejection]


class DoseSafety(BaseModel):
    """Advisory about the dose per fraction; never blocks a computation."""

    safe: bool
    warning: str = ""
    recommendation: str = ""


class CalculationOutcome(BaseModel):
    """Everything the calculator produced for one request."""

    dose: float
    fractions: int
    alpha_beta: float
    total_dose: float
    bed: float
    eqd2: float
    tissue_label: Optional[str] = None
    safety: DoseSafety
    calculation_id: Optional[int] = None
    saved: bool = False
    save_error: Optional[str] = None


__all__ = [
    "Citation",
    "encode_citations",
    "decode_citations",
    "TissueReference",
    "AuditAction",
    "AuditEntryCreate",
    "AuditEntry",
    "Calculation",
    "CalculationStats",
    "ValidInput",
    "Rejection",
    "ValidationResult",
    "DoseSafety",
    "CalculationOutcome",
]
