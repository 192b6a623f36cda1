"""
Validation of raw, user-entered calculator fields.

Turns three strings into a :class:`ValidInput` (dose, fractions, alpha/beta)
or a :class:`Rejection` with a specific reason. A comma is accepted as the
decimal separator for dose and alpha/beta.

Upper bounds are clinical plausibility limits meant to catch unit or
transposition errors, not mathematical constraints.
"""

import math
import re
from typing import Optional

from .schemas import Rejection, ValidInput, ValidationResult

MAX_DOSE_PER_FRACTION = 20.0
MAX_FRACTIONS = 100
MAX_ALPHA_BETA = 100.0

_DECIMAL = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")
_INTEGER = re.compile(r"^[+-]?\d+$")


def _parse_decimal(text: str) -> Optional[float]:
    normalized = text.strip().replace(",", ".")
    if not _DECIMAL.match(normalized):
        return None
    value = float(normalized)
    return value if math.isfinite(value) else None


def _parse_integer(text: str) -> Optional[int]:
    stripped = text.strip()
    if not _INTEGER.match(stripped):
        return None
    return int(stripped)


def _blank(text: Optional[str]) -> bool:
    return text is None or not str(text).strip()


def validate(
    dose_text: Optional[str],
    fractions_text: Optional[str],
    alpha_beta_text: Optional[str],
) -> ValidationResult:
    """
    Check raw calculator input.

    Example:
        >>> validate("2,0", "30", "3.0")
        ValidInput(ok=True, dose=2.0, fractions=30, alpha_beta=3.0)
        >>> validate("-1", "30", "3.0").reason
        'dose must be positive'
    """
    if _blank(dose_text):
        return Rejection(reason="enter the dose per fraction")
    if _blank(fractions_text):
        return Rejection(reason="enter the number of fractions")
    if _blank(alpha_beta_text):
        return Rejection(reason="enter or select an alpha/beta value")

    dose = _parse_decimal(str(dose_text))
    if dose is None:
        return Rejection(reason="dose must be a number")
    if dose <= 0:
        return Rejection(reason="dose must be positive")
    if dose > MAX_DOSE_PER_FRACTION:
        return Rejection(reason=f"dose per fraction is too high (> {MAX_DOSE_PER_FRACTION:g} Gy)")

    fractions = _parse_integer(str(fractions_text))
    if fractions is None:
        return Rejection(reason="number of fractions must be a whole number")
    if fractions <= 0:
        return Rejection(reason="number of fractions must be positive")
    if fractions > MAX_FRACTIONS:
        return Rejection(reason=f"too many fractions (> {MAX_FRACTIONS})")

    alpha_beta = _parse_decimal(str(alpha_beta_text))
    if alpha_beta is None:
        return Rejection(reason="alpha/beta must be a number")
    if alpha_beta <= 0:
        return Rejection(reason="alpha/beta must be positive")
    if alpha_beta > MAX_ALPHA_BETA:
        return Rejection(reason=f"alpha/beta is too high (> {MAX_ALPHA_BETA:g})")

    return ValidInput(dose=dose, fractions=fractions, alpha_beta=alpha_beta)


__all__ = [
    "MAX_DOSE_PER_FRACTION",
    "MAX_FRACTIONS",
    "MAX_ALPHA_BETA",
    "validate",
]
