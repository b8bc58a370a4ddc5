"""DuckDB connection and transaction helpers."""
from __future__ import annotations

import contextlib
import importlib
from collections.abc import Iterator
from pathlib import Path
from typing import Any

# Dynamic DuckDB import for pyright compatibility
_duckdb_mod = importlib.import_module("duckdb")


def connect(db_path: Path | str, *, read_only: bool = False) -> Any:
    """Open a DuckDB connection (``":memory:"`` for an in-process database)."""
    return _duckdb_mod.connect(str(db_path), read_only=read_only)


@contextlib.contextmanager
def transaction(conn: Any) -> Iterator[Any]:
    """Run the enclosed statements as one all-or-nothing transaction.

    On any exception the transaction is rolled back and the original
    exception propagates unchanged.
    """
    conn.execute("BEGIN")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    # A failed COMMIT is already rolled back by DuckDB.
    conn.execute("COMMIT")


def fetch_id(conn: Any, sql: str, params: list[Any]) -> int:
    """Execute an ``INSERT ... RETURNING id`` and return the new id."""
    row = conn.execute(sql, params).fetchone()
    return int(row[0])
