"""
test_radiobiology.py
--------------------
Unit tests for the BED/EQD2 dose model.

We focus on:
- Known textbook cases.
- The algebraic link between BED and EQD2.
- Clamping at the BED and EQD2 ceilings.
- Rejection of missing, non-finite and non-positive arguments.
"""

import math

import pytest

from radcalc.errors import InvalidArgument
from radcalc.radiobiology import (
    BED_CEILING,
    EQD2_CEILING,
    check_dose_safety,
    compute_bed,
    compute_eqd2,
    compute_ntd,
    describe_alpha_beta,
    total_dose,
)


def test_conventional_regimen():
    """
    30 x 2 Gy with alpha/beta = 3:
    total dose 60 Gy, BED = 60 * (1 + 2/3) = 100 Gy, EQD2 = 100 / (1 + 2/3) = 60 Gy
    """
    bed = compute_bed(2.0, 30, 3.0)
    assert math.isclose(bed, 100.0, rel_tol=1e-12)
    assert math.isclose(compute_eqd2(bed, 3.0), 60.0, rel_tol=1e-12)
    assert total_dose(2.0, 30) == 60.0


def test_hypofractionated_regimen():
    # 5 x 7 Gy, alpha/beta 1.5: BED = 35 * (1 + 7/1.5)
    expected = 35 * (1 + 7 / 1.5)
    assert math.isclose(compute_bed(7.0, 5, 1.5), expected, rel_tol=1e-12)


@pytest.mark.parametrize("d, n, ab", [
    (1.8, 28, 10.0),
    (2.0, 30, 3.0),
    (2.67, 15, 4.0),
    (3.0, 20, 1.5),
    (0.5, 1, 0.6),
])
def test_eqd2_is_bed_over_two_gray_factor(d, n, ab):
    bed = compute_bed(d, n, ab)
    assert compute_eqd2(bed, ab) == bed / (1 + 2 / ab)


def test_monotonic_in_dose_and_fractions():
    ab = 3.0
    beds = [compute_bed(d, 10, ab) for d in (1.0, 1.5, 2.0, 2.5, 3.0)]
    assert beds == sorted(beds)

    beds = [compute_bed(2.0, n, ab) for n in (1, 5, 10, 20, 40)]
    assert beds == sorted(beds)
    eqd2s = [compute_eqd2(b, ab) for b in beds]
    assert eqd2s == sorted(eqd2s)


def test_bed_is_clamped():
    # 100 x 20 Gy at alpha/beta 1 is far beyond 1000 Gy
    assert compute_bed(20.0, 100, 1.0) == BED_CEILING


def test_eqd2_is_clamped():
    assert compute_eqd2(999.0, 100.0) == EQD2_CEILING
    assert compute_eqd2(compute_bed(20.0, 100, 1.0), 1.0) <= EQD2_CEILING


@pytest.mark.parametrize("args", [
    (0, 30, 3.0),
    (-2.0, 30, 3.0),
    (2.0, 0, 3.0),
    (2.0, 30, 0),
    (2.0, 30, -1.0),
    (None, 30, 3.0),
    (float("nan"), 30, 3.0),
    (2.0, float("inf"), 3.0),
    ("2.0", 30, 3.0),
    (True, 30, 3.0),
])
def test_bed_rejects_invalid_arguments(args):
    with pytest.raises(InvalidArgument):
        compute_bed(*args)


@pytest.mark.parametrize("args", [(0, 3.0), (100.0, 0), (None, 3.0), (100.0, float("nan"))])
def test_eqd2_rejects_invalid_arguments(args):
    with pytest.raises(InvalidArgument):
        compute_eqd2(*args)


def test_ntd_matches_eqd2_for_two_gray_reference():
    assert math.isclose(compute_ntd(2.0, 30, 3.0), 60.0, rel_tol=1e-12)
    # 1.8 Gy reference: 100 / (1 + 1.8/3)
    assert math.isclose(compute_ntd(2.0, 30, 3.0, reference_dose=1.8), 100 / 1.6, rel_tol=1e-12)


def test_dose_safety_rules():
    assert check_dose_safety(2.0, 3.0).safe
    low_ab = check_dose_safety(2.5, 2.0)
    assert not low_ab.safe and "low alpha/beta" in low_ab.warning
    assert not check_dose_safety(3.5, 4.0).safe
    very_high = check_dose_safety(6.0, 10.0)
    assert not very_high.safe and very_high.warning == "very high dose per fraction"
    assert very_high.recommendation


def test_describe_alpha_beta_bands():
    assert describe_alpha_beta(1.5).startswith("very low")
    assert describe_alpha_beta(3.0).startswith("low")
    assert describe_alpha_beta(6.0).startswith("intermediate")
    assert describe_alpha_beta(10.0).startswith("high")
    assert describe_alpha_beta(15.0).startswith("very high")
