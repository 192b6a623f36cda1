"""Tests for schema creation and additive migration of older stores."""
from datetime import datetime

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import create_async_engine

from radcalc.audit import AuditLog
from radcalc.calculations import CalculationRepository
from radcalc.db import Storage
from radcalc.references import ReferenceRepository
from radcalc.schema import SchemaManager, parse_legacy_time


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'legacy.db'}")
    yield engine
    await engine.dispose()


async def _columns(engine, table):
    async with engine.connect() as conn:
        return await conn.run_sync(lambda sync_conn: {c["name"] for c in inspect(sync_conn).get_columns(table)})


async def _indexes(engine, table):
    async with engine.connect() as conn:
        return await conn.run_sync(lambda sync_conn: {i["name"] for i in inspect(sync_conn).get_indexes(table)})


async def test_fresh_store_gets_every_table(engine):
    applied = await SchemaManager(engine).migrate()

    assert "created table calculations" in applied
    assert "created table alpha_beta_references" in applied
    assert "created table reference_history" in applied
    assert "idx_calculations_date" in await _indexes(engine, "calculations")
    assert "idx_reference_history_timestamp" in await _indexes(engine, "reference_history")


async def test_migrate_is_idempotent(engine):
    manager = SchemaManager(engine)
    await manager.migrate()
    assert await manager.migrate() == []
    assert await manager.ensure_schema() is True


async def test_legacy_reference_table_keeps_its_rows(engine):
    async with engine.begin() as conn:
        await conn.execute(text(
            "CREATE TABLE alpha_beta_references ("
            " id INTEGER PRIMARY KEY AUTOINCREMENT,"
            " tissue TEXT NOT NULL UNIQUE,"
            " alphaBeta REAL NOT NULL)"
        ))
        await conn.execute(text(
            "INSERT INTO alpha_beta_references (tissue, alphaBeta) VALUES ('Lung', 3.0), ('Liver', 2.0)"
        ))

    applied = await SchemaManager(engine).migrate()

    assert "added column alpha_beta_references.description" in applied
    assert "added column alpha_beta_references.references_json" in applied
    assert "created table reference_history" in applied
    assert {"description", "references_json", "created_at", "updated_at"} <= await _columns(engine, "alpha_beta_references")

    async with engine.connect() as conn:
        rows = (await conn.execute(text(
            "SELECT tissue, alphaBeta, description, references_json FROM alpha_beta_references ORDER BY id"
        ))).all()
    assert [tuple(r) for r in rows] == [("Lung", 3.0, "", "[]"), ("Liver", 2.0, "", "[]")]


async def test_migrated_store_is_usable_by_the_repositories(engine):
    async with engine.begin() as conn:
        await conn.execute(text(
            "CREATE TABLE alpha_beta_references ("
            " id INTEGER PRIMARY KEY AUTOINCREMENT,"
            " tissue TEXT NOT NULL UNIQUE,"
            " alphaBeta REAL NOT NULL)"
        ))
        await conn.execute(text("INSERT INTO alpha_beta_references (tissue, alphaBeta) VALUES ('Lung', 3.0)"))

    storage = Storage(engine)
    audit = AuditLog(storage)
    references = ReferenceRepository(storage, audit)

    [lung] = await references.list()
    assert lung.tissue == "Lung" and lung.description == "" and lung.citations == []

    await references.update(lung.id, "Lung", 3.5, "late effects")
    assert (await references.by_id(lung.id)).alpha_beta == 3.5
    assert await audit.count() == 1


ORIGINAL_DDL = [
    "CREATE TABLE calculations ("
    " id INTEGER PRIMARY KEY AUTOINCREMENT, dose REAL NOT NULL, fractions INTEGER NOT NULL,"
    " alphaBeta REAL NOT NULL, bed REAL NOT NULL, eqd2 REAL NOT NULL, date TEXT NOT NULL)",
    "CREATE TABLE alpha_beta_references ("
    " id INTEGER PRIMARY KEY AUTOINCREMENT, tissue TEXT NOT NULL UNIQUE, alphaBeta REAL NOT NULL,"
    " description TEXT, references_json TEXT)",
    "CREATE TABLE reference_history ("
    " id INTEGER PRIMARY KEY AUTOINCREMENT, action TEXT NOT NULL, tissue TEXT NOT NULL,"
    " alphaBeta REAL NOT NULL, description TEXT, previous_tissue TEXT, previous_alphaBeta REAL,"
    " previous_description TEXT, timestamp TEXT NOT NULL)",
    "INSERT INTO calculations (dose, fractions, alphaBeta, bed, eqd2, date)"
    " VALUES (2.0, 30, 3.0, 100.0, 60.0, '2024-05-01T08:00:00.000Z')",
    "INSERT INTO alpha_beta_references (tissue, alphaBeta, description, references_json)"
    " VALUES ('Lung', 3.0, NULL, NULL)",
    "INSERT INTO reference_history (action, tissue, alphaBeta, timestamp)"
    " VALUES ('ADD', 'Lung', 3.0, '2024-05-01T10:20:30.123Z')",
]


async def _build_original_store(engine):
    async with engine.begin() as conn:
        for statement in ORIGINAL_DDL:
            await conn.execute(text(statement))


async def test_iso_text_timestamps_are_normalized(engine):
    await _build_original_store(engine)

    applied = await SchemaManager(engine).migrate()
    assert "normalized 1 legacy timestamps in reference_history.timestamp" in applied
    assert "normalized 1 legacy timestamps in calculations.date" in applied

    async with engine.connect() as conn:
        stamp = await conn.scalar(text("SELECT timestamp FROM reference_history"))
        date = await conn.scalar(text("SELECT date FROM calculations"))
    assert stamp == "2024-05-01 10:20:30.123000"
    assert date == "2024-05-01 08:00:00.000000"

    assert await SchemaManager(engine).migrate() == []


async def test_original_store_accepts_writes_after_migration(engine):
    await _build_original_store(engine)

    storage = Storage(engine)
    audit = AuditLog(storage)
    references = ReferenceRepository(storage, audit)
    calculations = CalculationRepository(storage)

    liver = await references.add("Liver", 2.0)
    [lung] = [r for r in await references.list() if r.tissue == "Lung"]
    await references.update(lung.id, "Lung", 3.5, "late effects")
    await references.delete(liver.id)

    entries = await audit.query_recent()
    assert [e.action.value for e in entries] == ["DELETE", "UPDATE", "ADD", "ADD"]
    assert all(e.timestamp.tzinfo is None for e in entries)
    assert entries[-1].timestamp == datetime(2024, 5, 1, 10, 20, 30, 123000)

    [calc] = await calculations.list()
    assert calc.date == datetime(2024, 5, 1, 8, 0)
    assert calc.date.tzinfo is None


def test_parse_legacy_time():
    assert parse_legacy_time("2024-05-01T10:20:30.123Z") == datetime(2024, 5, 1, 10, 20, 30, 123000)
    assert parse_legacy_time("2024-05-01T12:00:00+02:00") == datetime(2024, 5, 1, 10, 0)
    assert parse_legacy_time("yesterday") is None
