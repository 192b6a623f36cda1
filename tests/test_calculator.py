"""Tests for the calculator service and the application context."""
import pytest

from radcalc import radiobiology
from radcalc.calculator import Calculator
from radcalc.config import Settings
from radcalc.context import AppContext, open_context
from radcalc.errors import StorageUnavailable, ValidationError
from radcalc.seed import SEED_REFERENCES
from radcalc.null_store import NullCalculationRepository


async def test_calculate_and_save(calculations):
    outcome = await Calculator(calculations).calculate("2,0", "30", "3", tissue_label="Lung")

    assert outcome.bed == pytest.approx(100.0)
    assert outcome.eqd2 == pytest.approx(60.0)
    assert outcome.total_dose == 60.0
    assert outcome.safety.safe
    assert outcome.saved and outcome.save_error is None

    [row] = await calculations.list()
    assert row.id == outcome.calculation_id
    assert row.tissue_label == "Lung"


async def test_no_save(calculations):
    outcome = await Calculator(calculations).calculate("2", "30", "3", save=False)
    assert not outcome.saved and outcome.calculation_id is None
    assert await calculations.list() == []


async def test_rejected_input_never_reaches_the_dose_model(calculations, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("dose model must not run on rejected input")

    monkeypatch.setattr(radiobiology, "compute_bed", fail)
    monkeypatch.setattr(radiobiology, "compute_eqd2", fail)

    with pytest.raises(ValidationError, match="dose must be positive"):
        await Calculator(calculations).calculate("-1", "30", "3")
    assert await calculations.list() == []


async def test_failed_save_still_returns_the_result():
    calculator = Calculator(NullCalculationRepository("disk is gone"))
    outcome = await calculator.calculate("2", "30", "3")

    assert outcome.bed == pytest.approx(100.0)
    assert not outcome.saved
    assert "disk is gone" in outcome.save_error


async def test_open_context_seeds_once(database_url):
    context = await open_context(Settings(database_url=database_url))
    try:
        assert not context.degraded
        assert await context.references.count() == len(SEED_REFERENCES)
        assert await context.audit.count() == len(SEED_REFERENCES)
        melanoma = await context.references.by_tissue("melanoma")
        assert melanoma.alpha_beta == 0.6
        assert melanoma.citations
    finally:
        await context.close()

    context = await open_context(Settings(database_url=database_url))
    try:
        assert await context.references.count() == len(SEED_REFERENCES)
    finally:
        await context.close()


async def test_open_context_without_seed(database_url):
    context = await open_context(Settings(database_url=database_url), seed=False)
    try:
        assert await context.references.count() == 0
    finally:
        await context.close()


async def test_unopenable_store_gives_a_degraded_context(tmp_path):
    url = f"sqlite:///{tmp_path / 'missing' / 'dir' / 'radcalc.db'}"
    context = await open_context(Settings(database_url=url))

    assert context.degraded
    assert await context.references.list() == []
    assert await context.audit.query_recent() == []
    assert (await context.calculations.stats()).total == 0

    with pytest.raises(StorageUnavailable):
        await context.references.add("Lung", 3.0)

    outcome = await context.calculator.calculate("2", "30", "3")
    assert outcome.eqd2 == pytest.approx(60.0)
    assert not outcome.saved and outcome.save_error
    await context.close()


def test_unavailable_context_uses_null_repositories():
    context = AppContext.unavailable("read-only media")
    assert context.degraded
    assert context.storage is None
