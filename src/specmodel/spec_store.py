"""DuckDB store for decomposed spec documents and knowledge cards.

Manages a single writable DuckDB file (or ``":memory:"``). Opening a store
always runs the idempotent migration, so older files pick up any objects
added since they were created. The store owns its connection; writers in
:mod:`specmodel.ingest` and :mod:`specmodel.cards` take the raw connection
and are reused here.

Write discipline: one writer per file. Two concurrent ingestions of the same
ref are serialised by DuckDB; the loser receives a transaction conflict.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any

from specmodel.cards import register_kind, upsert_card
from specmodel.db import connect
from specmodel.fts import rebuild_fts, search_sections
from specmodel.ingest import ingest_spec_markdown
from specmodel.parser_config import DEFAULT_CONFIG, ParserConfig
from specmodel.schema import CORE_TABLES, SCHEMA_VERSION, ensure_schema_version, migrate_schema
from specmodel.spec_types import (
    CardUpsertResult,
    FtsRebuildResult,
    IngestSummary,
    KindRegisterResult,
    MigrationResult,
)

IN_MEMORY = ":memory:"


def _to_dict(cols: list[str], row: tuple[Any, ...]) -> dict[str, Any]:
    """Zip column names with a row tuple into a dict (strict length check)."""
    return dict(zip(cols, row, strict=True))


class SpecStore:
    """Read/write facade over the spec schema."""

    def __init__(
        self,
        db_path: Path | str,
        *,
        create_if_missing: bool = False,
    ) -> None:
        self._db_path = str(db_path)
        if (
            self._db_path != IN_MEMORY
            and not Path(self._db_path).exists()
            and not create_if_missing
        ):
            raise FileNotFoundError(f"Spec database not found: {self._db_path}")

        self._conn: Any = connect(self._db_path)
        self.migration: MigrationResult = migrate_schema(self._conn)

    @property
    def conn(self) -> Any:
        return self._conn

    def _rows(self, sql: str, params: list[Any] | None = None) -> list[dict[str, Any]]:
        cursor = self._conn.execute(sql, params or [])
        rows = cursor.fetchall()
        cols = [d[0] for d in cursor.description]
        return [_to_dict(cols, r) for r in rows]

    def check_schema_version(self, expected: str = SCHEMA_VERSION) -> str:
        return ensure_schema_version(self._conn, expected=expected)

    # ─── Writes ───────────────────────────────────────────────────

    def ingest(
        self,
        *,
        doc_ref: str,
        title: str,
        md: str,
        version: str | None = None,
        config: ParserConfig = DEFAULT_CONFIG,
    ) -> IngestSummary:
        return ingest_spec_markdown(
            self._conn, doc_ref=doc_ref, title=title, md=md,
            version=version, config=config,
        )

    def upsert_card(self, card: dict[str, Any]) -> CardUpsertResult:
        return upsert_card(self._conn, card)

    def register_kind(self, kind: dict[str, Any]) -> KindRegisterResult:
        return register_kind(self._conn, kind)

    def rebuild_fts(self) -> FtsRebuildResult:
        return rebuild_fts(self._conn)

    # ─── Documents ────────────────────────────────────────────────

    def get_document(self, ref: str) -> dict[str, Any] | None:
        rows = self._rows("SELECT * FROM spec_documents WHERE ref = ?", [ref])
        return rows[0] if rows else None

    def list_documents(self) -> list[dict[str, Any]]:
        return self._rows(
            "SELECT id, ref, title, version, ingested_at FROM spec_documents ORDER BY ref"
        )

    # ─── Sections, clauses, xrefs ─────────────────────────────────

    def get_sections(self, doc_id: int) -> list[dict[str, Any]]:
        """All sections of a document in document order."""
        return self._rows(
            "SELECT * FROM spec_sections WHERE doc_id = ? ORDER BY ord", [doc_id]
        )

    def find_sections_by_ref(self, doc_id: int, ref_pattern: str) -> list[dict[str, Any]]:
        """Sections whose ref matches a SQL ``LIKE`` pattern (e.g. ``'A.1%'``)."""
        return self._rows(
            "SELECT * FROM spec_sections WHERE doc_id = ? AND ref LIKE ? ORDER BY ord",
            [doc_id, ref_pattern],
        )

    def find_clauses_by_code(self, doc_id: int, code_pattern: str) -> list[dict[str, Any]]:
        """Clauses whose code matches a SQL ``LIKE`` pattern, in line order."""
        return self._rows(
            "SELECT * FROM spec_clauses WHERE doc_id = ? AND code LIKE ? "
            "ORDER BY line_num",
            [doc_id, code_pattern],
        )

    def get_xrefs_for_section(self, section_id: int) -> list[dict[str, Any]]:
        return self._rows(
            "SELECT * FROM spec_xrefs WHERE source_id = ? ORDER BY source_line, id",
            [section_id],
        )

    def get_xrefs_to(self, target_ref: str) -> list[dict[str, Any]]:
        """Incoming references: every xref pointing at *target_ref*."""
        return self._rows(
            "SELECT * FROM spec_xrefs WHERE target_ref = ? ORDER BY doc_id, source_line",
            [target_ref],
        )

    def section_ancestors(self, section_id: int) -> list[dict[str, Any]]:
        """Ancestors of a section, nearest parent first."""
        chain: list[dict[str, Any]] = []
        current = self._rows(
            "SELECT parent_id FROM spec_sections WHERE id = ?", [section_id]
        )
        parent_id = current[0]["parent_id"] if current else None
        while parent_id is not None:
            rows = self._rows("SELECT * FROM spec_sections WHERE id = ?", [parent_id])
            if not rows:
                break
            chain.append(rows[0])
            parent_id = rows[0]["parent_id"]
        return chain

    def search_sections(self, query: str, limit: int = 20) -> list[dict[str, Any]]:
        return search_sections(self._conn, query, limit)

    # ─── Knowledge cards ──────────────────────────────────────────

    def get_card(self, card_id: int) -> dict[str, Any] | None:
        rows = self._rows("SELECT * FROM episteme_cards WHERE id = ?", [card_id])
        if not rows:
            return None
        card = rows[0]
        slots = self._rows(
            "SELECT slot_name, value_json FROM episteme_card_slots "
            "WHERE card_id = ? ORDER BY slot_name",
            [card_id],
        )
        card["slots"] = {s["slot_name"]: s["value_json"] for s in slots}
        return card

    def find_cards(self, described_entity_ref: str) -> list[dict[str, Any]]:
        return self._rows(
            "SELECT * FROM episteme_cards WHERE described_entity_ref = ? ORDER BY id",
            [described_entity_ref],
        )

    def get_kind_slots(self, kind_ref: str) -> list[dict[str, Any]]:
        return self._rows(
            """
            SELECT s.* FROM episteme_kind_slots s
            JOIN episteme_kinds k ON k.id = s.kind_id
            WHERE k.ref = ?
            ORDER BY s.ord
            """,
            [kind_ref],
        )

    # ─── Stats ────────────────────────────────────────────────────

    def stats(self) -> dict[str, int]:
        """Row count per core table."""
        return {
            table: int(self._conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0])
            for table in CORE_TABLES
        }

    def close(self) -> None:
        """Close the DuckDB connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
