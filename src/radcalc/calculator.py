"""
Calculator service: validate raw input, compute BED/EQD2, persist the result.

This is the one place where the validator, the dose model and the calculation
repository meet. It holds no state of its own.
"""
from typing import Optional

from loguru import logger

from . import radiobiology
from .errors import StorageUnavailable, ValidationError
from .schemas import CalculationOutcome, Rejection
from .validation import validate


class Calculator:
    """Runs one calculation request end to end."""

    def __init__(self, calculations):
        self._calculations = calculations

    async def calculate(
        self,
        dose_text: str,
        fractions_text: str,
        alpha_beta_text: str,
        tissue_label: Optional[str] = None,
        save: bool = True,
    ) -> CalculationOutcome:
        """
        Validate, compute and (optionally) save.

        Raises:
            ValidationError: the input was rejected; the dose model is not run.

        A failed save does not raise. The outcome comes back with
        ``saved=False`` and ``save_error`` set.
        """
        checked = validate(dose_text, fractions_text, alpha_beta_text)
        if isinstance(checked, Rejection):
            raise ValidationError(checked.reason)

        d, n, ab = checked.dose, checked.fractions, checked.alpha_beta
        bed = radiobiology.compute_bed(d, n, ab)
        eqd2 = radiobiology.compute_eqd2(bed, ab)

        outcome = CalculationOutcome(
            dose=d,
            fractions=n,
            alpha_beta=ab,
            total_dose=radiobiology.total_dose(d, n),
            bed=bed,
            eqd2=eqd2,
            tissue_label=tissue_label,
            safety=radiobiology.check_dose_safety(d, ab),
        )
        if not save:
            return outcome

        try:
            outcome.calculation_id = await self._calculations.save(d, n, ab, bed, eqd2, tissue_label=tissue_label)
            outcome.saved = True
        except StorageUnavailable as e:
            logger.warning(f"Calculation computed but not saved: {e}")
            outcome.save_error = str(e)
        return outcome


__all__ = ["Calculator"]
