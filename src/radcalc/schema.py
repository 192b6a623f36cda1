"""
Schema creation and additive in-place migration.

The manager compares the live SQLite schema with the ORM metadata:

- missing tables are created with their full column set and indexes;
- missing columns on existing tables are added with the column's server
  default, so existing rows are preserved;
- ISO-8601 text timestamps written by earlier releases are rewritten to
  the naive-UTC storage format;
- nothing is ever dropped or renamed.

``ensure_schema()`` is idempotent and cheap enough to run before every
repository operation, which lets stores written by older releases heal on
next use.
"""

from datetime import datetime
from typing import List, Optional

from loguru import logger
from sqlalchemy import Column, DateTime, Table, inspect, text
from sqlalchemy.engine import Connection, Dialect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from .errors import SchemaError
from .models import Base, to_storage_time


def _default_literal(column: Column) -> Optional[str]:
    """SQL literal for a column's server default, or None."""
    default = column.server_default
    if default is None:
        return None
    arg = getattr(default, "arg", None)
    if isinstance(arg, str):
        return "'" + arg.replace("'", "''") + "'"
    if arg is not None and hasattr(arg, "text"):
        return arg.text
    return None


def add_column_ddl(dialect: Dialect, table: Table, column: Column) -> str:
    """
    Build an ``ALTER TABLE ... ADD COLUMN`` statement for ``column``.

    NOT NULL is only kept when a default exists to fill existing rows;
    otherwise the column is added as nullable.
    """
    preparer = dialect.identifier_preparer
    col_type = column.type.compile(dialect=dialect)
    ddl = f"ALTER TABLE {preparer.format_table(table)} ADD COLUMN {preparer.quote(column.name)} {col_type}"

    default = _default_literal(column)
    if default is not None:
        ddl += f" DEFAULT {default}"
        if not column.nullable:
            ddl += " NOT NULL"
    return ddl


def parse_legacy_time(raw: str) -> Optional[datetime]:
    """
    Parse an ISO-8601 text timestamp such as ``2024-05-01T10:20:30.123Z``
    into naive UTC, or return None if it is not one.
    """
    value = raw.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return to_storage_time(parsed)


def normalize_legacy_times(conn: Connection, table: Table, column: Column) -> int:
    """
    Rewrite ISO-8601 text timestamps (``T`` separator, ``Z`` or offset suffix)
    in ``column`` to the naive-UTC storage format. Returns the number of rows
    rewritten; unparseable values are logged and left alone.
    """
    preparer = conn.dialect.identifier_preparer
    tbl = preparer.format_table(table)
    col = preparer.quote(column.name)
    pk = preparer.quote(list(table.primary_key.columns)[0].name)

    rows = conn.execute(text(
        f"SELECT {pk}, {col} FROM {tbl} "
        f"WHERE typeof({col}) = 'text' AND (instr({col}, 'T') > 0 OR {col} LIKE '%Z' OR {col} LIKE '%+__:__')"
    )).all()

    fixed = 0
    for row_id, raw in rows:
        parsed = parse_legacy_time(raw)
        if parsed is None:
            logger.warning(f"Leaving unreadable timestamp {raw!r} in {table.name}.{column.name} (id {row_id})")
            continue
        conn.execute(
            text(f"UPDATE {tbl} SET {col} = :value WHERE {pk} = :id"),
            {"value": parsed.isoformat(sep=" ", timespec="microseconds"), "id": row_id},
        )
        fixed += 1
    return fixed


class SchemaManager:
    """Keeps the live store in line with ``Base.metadata``."""

    def __init__(self, engine: AsyncEngine, metadata=Base.metadata):
        self._engine = engine
        self._metadata = metadata

    async def migrate(self) -> List[str]:
        """
        Create missing tables, add missing columns and normalize legacy
        text timestamps.

        Changes that succeed are committed even when others fail.

        Returns:
            Human-readable list of applied changes (empty when up to date).

        Raises:
            SchemaError: if the store could not be inspected or a change failed.
        """
        try:
            async with self._engine.begin() as conn:
                applied, failures = await conn.run_sync(self._migrate_sync)
        except SQLAlchemyError as e:
            raise SchemaError(f"could not inspect or migrate the store: {e}") from e

        for change in applied:
            logger.info(f"Schema migration: {change}")
        if failures:
            raise SchemaError("; ".join(failures))
        return applied

    async def ensure_schema(self) -> bool:
        """
        Best-effort variant of :meth:`migrate` for use before every operation.

        Returns:
            True if the schema is up to date, False if migration failed
            (the failure is logged and the caller carries on).
        """
        try:
            await self.migrate()
        except SchemaError as e:
            logger.warning(f"Schema migration incomplete, continuing best-effort: {e}")
            return False
        return True

    def _migrate_sync(self, conn: Connection):
        applied: List[str] = []
        failures: List[str] = []

        inspector = inspect(conn)
        existing = set(inspector.get_table_names())

        missing = [t for t in self._metadata.sorted_tables if t.name not in existing]
        if missing:
            self._metadata.create_all(conn, tables=missing)
            applied.extend(f"created table {t.name}" for t in missing)

        for table in self._metadata.sorted_tables:
            if table in missing:
                continue

            live_columns = {col["name"] for col in inspector.get_columns(table.name)}
            for column in table.columns:
                if column.name in live_columns:
                    continue
                try:
                    conn.execute(text(add_column_ddl(conn.dialect, table, column)))
                    applied.append(f"added column {table.name}.{column.name}")
                except SQLAlchemyError as e:
                    failures.append(f"could not add column {table.name}.{column.name}: {e}")

            for column in table.columns:
                if column.name in live_columns and isinstance(column.type, DateTime):
                    try:
                        fixed = normalize_legacy_times(conn, table, column)
                    except SQLAlchemyError as e:
                        failures.append(f"could not normalize {table.name}.{column.name}: {e}")
                        continue
                    if fixed:
                        applied.append(f"normalized {fixed} legacy timestamps in {table.name}.{column.name}")

            for index in table.indexes:
                try:
                    index.create(conn, checkfirst=True)
                except SQLAlchemyError as e:
                    failures.append(f"could not create index {index.name}: {e}")

        return applied, failures


__all__ = ["SchemaManager", "add_column_ddl", "parse_legacy_time", "normalize_legacy_times"]
