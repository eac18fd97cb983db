import os
import sqlite3
from datetime import datetime, timezone
from typing import Any, List

import anysqlite
import pytest

STATE_QUERIES = {
    "stores": "SELECT name, created_at FROM stores ORDER BY name",
    "entries": "SELECT store, identity, created_at FROM entries ORDER BY store, identity",
}


def format_row(row: Any) -> str:
    """Render one row, showing timestamps as ISO dates so snapshots stay stable."""
    values: List[str] = []
    for value in row:
        if isinstance(value, float):
            values.append(datetime.fromtimestamp(value, tz=timezone.utc).date().isoformat())
        else:
            values.append(str(value))
    return " | ".join(values)


def format_tables(tables: "dict[str, list[Any]]") -> str:
    lines: List[str] = []
    for table_name, rows in tables.items():
        lines.append(f"{table_name} ({len(rows)} rows)")
        if not rows:
            lines.append("  (empty)")
        lines.extend(f"  {format_row(row)}" for row in rows)
    return "\n".join(lines)


def print_sqlite_state(conn: sqlite3.Connection) -> str:
    """
    Dump the stores and entries tables in a form suitable for inline snapshots.

    Entry payloads are left out, only their addresses are shown.
    """
    tables = {}
    for table_name, query in STATE_QUERIES.items():
        cursor = conn.cursor()
        cursor.execute(query)
        tables[table_name] = cursor.fetchall()
    return format_tables(tables)


async def aprint_sqlite_state(conn: anysqlite.Connection) -> str:
    tables = {}
    for table_name, query in STATE_QUERIES.items():
        cursor = await conn.cursor()
        await cursor.execute(query)
        tables[table_name] = await cursor.fetchall()
    return format_tables(tables)


@pytest.fixture()
def use_temp_dir(tmpdir):
    cur_dir = os.getcwd()
    os.chdir(tmpdir)
    yield
    os.chdir(cur_dir)
