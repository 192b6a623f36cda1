"""
Linear-quadratic dose conversions.

Formulas, with d the dose per fraction (Gy), n the number of fractions and
alpha_beta the tissue alpha/beta ratio (Gy):

    BED  = n * d * (1 + d / alpha_beta)
    EQD2 = BED / (1 + 2 / alpha_beta)

Results are clamped (BED <= 1000, EQD2 <= 500) so pathological inputs cannot
produce non-physical numbers. No rounding is applied here; formatting is the
caller's concern.

The functions are pure and never touch storage.
"""

from __future__ import annotations

import math
from numbers import Real
from typing import Optional

from .errors import InvalidArgument
from .schemas import DoseSafety

BED_CEILING = 1000.0
EQD2_CEILING = 500.0
REFERENCE_FRACTION_DOSE = 2.0


def _require_positive(name: str, value: Optional[float]) -> float:
    """Return ``value`` as float or raise InvalidArgument."""
    if value is None:
        raise InvalidArgument(f"{name} is required")
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidArgument(f"{name} must be a number, got {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise InvalidArgument(f"{name} must be finite, got {value}")
    if value <= 0:
        raise InvalidArgument(f"{name} must be greater than zero, got {value}")
    return value


def total_dose(dose_per_fraction: float, fractions: float) -> float:
    """Physical total dose n * d in Gy."""
    d = _require_positive("dose_per_fraction", dose_per_fraction)
    n = _require_positive("fractions", fractions)
    return d * n


def compute_bed(dose_per_fraction: float, fractions: float, alpha_beta: float) -> float:
    """
    Biologically effective dose for a fractionated regimen.

    :param dose_per_fraction: dose per fraction in Gy
    :param fractions: number of fractions
    :param alpha_beta: tissue alpha/beta ratio in Gy
    :return: BED in Gy, at most ``BED_CEILING``
    :raises InvalidArgument: if any argument is missing, non-finite or <= 0
    """
    d = _require_positive("dose_per_fraction", dose_per_fraction)
    n = _require_positive("fractions", fractions)
    ab = _require_positive("alpha_beta", alpha_beta)

    bed = d * n * (1 + d / ab)
    return min(bed, BED_CEILING)


def compute_eqd2(bed: float, alpha_beta: float) -> float:
    """
    Equivalent dose in 2 Gy fractions for a given BED.

    :return: EQD2 in Gy, at most ``EQD2_CEILING``
    :raises InvalidArgument: if any argument is missing, non-finite or <= 0
    """
    b = _require_positive("bed", bed)
    ab = _require_positive("alpha_beta", alpha_beta)

    eqd2 = b / (1 + REFERENCE_FRACTION_DOSE / ab)
    return min(eqd2, EQD2_CEILING)


def compute_ntd(
    dose_per_fraction: float,
    fractions: float,
    alpha_beta: float,
    reference_dose: float = REFERENCE_FRACTION_DOSE,
) -> float:
    """
    Normalized total dose delivered in ``reference_dose`` fractions.

    EQD2 is the special case ``reference_dose == 2``; unlike compute_eqd2 the
    result is not clamped beyond the BED ceiling.
    """
    ref = _require_positive("reference_dose", reference_dose)
    bed = compute_bed(dose_per_fraction, fractions, alpha_beta)
    return bed / (1 + ref / float(alpha_beta))


def check_dose_safety(dose_per_fraction: float, alpha_beta: float) -> DoseSafety:
    """
    Empirical advisory on the size of the dose per fraction.

    The rules are rough clinical heuristics. They never block a computation.
    """
    d = _require_positive("dose_per_fraction", dose_per_fraction)
    ab = _require_positive("alpha_beta", alpha_beta)

    if ab < 3 and d > 2:
        return DoseSafety(
            safe=False,
            warning="high dose per fraction for a low alpha/beta tissue",
            recommendation="consider reducing the dose per fraction",
        )
    if 3 <= ab < 8 and d > 3:
        return DoseSafety(
            safe=False,
            warning="high dose per fraction",
            recommendation="check the dose against the applicable protocol",
        )
    if d > 5:
        return DoseSafety(
            safe=False,
            warning="very high dose per fraction",
            recommendation="requires specific clinical justification",
        )
    return DoseSafety(safe=True)


def describe_alpha_beta(alpha_beta: float) -> str:
    """Short category text for an alpha/beta value."""
    ab = _require_positive("alpha_beta", alpha_beta)
    if ab < 2:
        return "very low: late-responding tissues, radioresistant tumours (prostate, melanoma)"
    if ab < 5:
        return "low: most late normal-tissue reactions (spinal cord, liver, kidney)"
    if ab < 8:
        return "intermediate: early normal-tissue reactions, some tumours"
    if ab <= 10:
        return "high: most tumours, early reactions (skin, mucosa)"
    return "very high: rapidly proliferating tumours, acute reactions"


__all__ = [
    "BED_CEILING",
    "EQD2_CEILING",
    "REFERENCE_FRACTION_DOSE",
    "total_dose",
    "compute_bed",
    "compute_eqd2",
    "compute_ntd",
    "check_dose_safety",
    "describe_alpha_beta",
]
