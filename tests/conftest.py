"""Shared fixtures: every test gets its own throwaway SQLite file."""
import pytest

from radcalc.audit import AuditLog
from radcalc.calculations import CalculationRepository
from radcalc.db import open_storage
from radcalc.references import ReferenceRepository


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'radcalc.db'}"


@pytest.fixture
async def storage(database_url):
    storage = await open_storage(database_url)
    yield storage
    await storage.dispose()


@pytest.fixture
def audit(storage):
    return AuditLog(storage)


@pytest.fixture
def references(storage, audit):
    return ReferenceRepository(storage, audit)


@pytest.fixture
def calculations(storage):
    return CalculationRepository(storage)
