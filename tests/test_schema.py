"""Tests for specmodel.schema — idempotent migration and version tracking."""
from __future__ import annotations

from typing import Any

import duckdb
import pytest

from specmodel.schema import (
    CORE_TABLES,
    SCHEMA_VERSION,
    SchemaVersionError,
    ensure_schema_version,
    migrate_schema,
    read_schema_version,
    split_statements,
)


@pytest.fixture()
def conn() -> Any:
    c = duckdb.connect(":memory:")
    yield c
    c.close()


def _tables(conn: Any) -> set[str]:
    rows = conn.execute(
        "SELECT table_name FROM information_schema.tables"
    ).fetchall()
    return {r[0] for r in rows}


class TestSplitStatements:
    def test_strips_comments_and_blanks(self) -> None:
        ddl = "-- heading\nCREATE TABLE a (x INT); /* block */\n;\nCREATE TABLE b (y INT);"
        assert split_statements(ddl) == ["CREATE TABLE a (x INT)", "CREATE TABLE b (y INT)"]


class TestMigrateSchema:
    def test_fresh_database(self, conn: Any) -> None:
        result = migrate_schema(conn)
        assert result.success
        assert result.errors == ()
        assert set(CORE_TABLES) <= _tables(conn)
        assert read_schema_version(conn) == SCHEMA_VERSION

    def test_rerun_is_noop(self, conn: Any) -> None:
        migrate_schema(conn)
        conn.execute(
            "INSERT INTO spec_documents (ref, title) VALUES ('keep', 'Keep')"
        )
        second = migrate_schema(conn)
        assert second.success
        assert conn.execute("SELECT COUNT(*) FROM spec_documents").fetchone()[0] == 1

    def test_already_exists_is_swallowed(self, conn: Any) -> None:
        ddl = "CREATE TABLE t (x INTEGER); CREATE TABLE t (x INTEGER)"
        result = migrate_schema(conn, ddl)
        assert result.success

    def test_custom_ddl_without_version_table(self, conn: Any) -> None:
        result = migrate_schema(conn, "CREATE TABLE t (x INTEGER)")
        assert result.success
        assert result.errors == ()
        assert "_schema_version" not in _tables(conn)
        assert read_schema_version(conn) == "unknown"

    def test_other_failures_reported_and_rest_still_runs(self, conn: Any) -> None:
        ddl = (
            "CREATE TABLE bad (x NO_SUCH_TYPE);"
            "CREATE TABLE good (x INTEGER)"
        )
        result = migrate_schema(conn, ddl)
        assert not result.success
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Statement failed: CREATE TABLE bad")
        assert "Error:" in result.errors[0]
        assert "good" in _tables(conn)

    def test_fts_flag_is_boolean(self, conn: Any) -> None:
        assert isinstance(migrate_schema(conn).fts_enabled, bool)


class TestSchemaVersion:
    def test_unknown_before_migration(self, conn: Any) -> None:
        assert read_schema_version(conn) == "unknown"

    def test_ensure_matches(self, conn: Any) -> None:
        migrate_schema(conn)
        assert ensure_schema_version(conn) == SCHEMA_VERSION

    def test_ensure_mismatch_raises(self, conn: Any) -> None:
        migrate_schema(conn)
        conn.execute("UPDATE _schema_version SET version = '0.0.1' WHERE table_name = 'spec'")
        with pytest.raises(SchemaVersionError, match="expected 1.0.0, got 0.0.1"):
            ensure_schema_version(conn)


class TestConstraints:
    def test_section_level_check(self, conn: Any) -> None:
        migrate_schema(conn)
        with pytest.raises(duckdb.ConstraintException):
            conn.execute(
                "INSERT INTO spec_sections (doc_id, ref, title, level, ord) "
                "VALUES (1, 'A', 'A', 7, 1)"
            )

    @pytest.mark.parametrize(
        ("slot_name", "slot_type"),
        [("TestSlot", "slot"), ("EntityRef", "ref"), ("anyName", "value")],
    )
    def test_slot_lexical_guard_accepts(self, conn: Any, slot_name: str, slot_type: str) -> None:
        migrate_schema(conn)
        conn.execute(
            "INSERT INTO episteme_kind_slots (kind_id, slot_name, slot_type) VALUES (1, ?, ?)",
            [slot_name, slot_type],
        )

    @pytest.mark.parametrize("slot_type", ["slot", "ref"])
    def test_slot_lexical_guard_rejects(self, conn: Any, slot_type: str) -> None:
        migrate_schema(conn)
        with pytest.raises(duckdb.ConstraintException):
            conn.execute(
                "INSERT INTO episteme_kind_slots (kind_id, slot_name, slot_type) "
                "VALUES (1, 'BadName', ?)",
                [slot_type],
            )
