"""Best-effort full-text search sidecar over sections, clauses and cards.

Backed by DuckDB's ``fts`` extension. The extension may be unavailable
(offline install, restricted build); every entry point here degrades to a
``False`` capability flag or a plain ``ILIKE`` scan instead of failing.
Indexes are snapshots: call :func:`rebuild_fts` after bulk ingestion.
"""
from __future__ import annotations

import contextlib
import logging
from typing import Any

from specmodel.spec_types import FtsRebuildResult

log = logging.getLogger(__name__)

# table -> (id column, indexed columns)
FTS_INDEXES: dict[str, tuple[str, tuple[str, ...]]] = {
    "spec_sections": ("id", ("ref", "title", "text")),
    "spec_clauses": ("id", ("code", "text")),
    "episteme_cards": ("id", ("described_entity_ref", "content")),
}


def load_fts_extension(conn: Any) -> bool:
    """Load (installing if needed) the fts extension. False if unavailable."""
    with contextlib.suppress(Exception):
        conn.execute("LOAD fts")
        return True
    try:
        conn.execute("INSTALL fts")
        conn.execute("LOAD fts")
        return True
    except Exception as exc:
        log.warning("full-text search unavailable: %s", exc)
        return False


def _build_index(conn: Any, table: str) -> bool:
    id_col, columns = FTS_INDEXES[table]
    col_args = ", ".join(f"'{c}'" for c in columns)
    try:
        conn.execute(
            f"PRAGMA create_fts_index('{table}', '{id_col}', {col_args}, overwrite=1)"
        )
    except Exception as exc:
        log.warning("fts index for %s not built: %s", table, exc)
        return False
    return True


def rebuild_fts(conn: Any) -> FtsRebuildResult:
    """Rebuild every full-text index. Idempotent; safe to call repeatedly."""
    if not load_fts_extension(conn):
        return FtsRebuildResult(sections=False, clauses=False, cards=False)
    return FtsRebuildResult(
        sections=_build_index(conn, "spec_sections"),
        clauses=_build_index(conn, "spec_clauses"),
        cards=_build_index(conn, "episteme_cards"),
    )


def search_sections(conn: Any, query: str, limit: int = 20) -> list[dict[str, Any]]:
    """BM25 search over sections, falling back to a substring scan.

    Returns dicts with ``ref``, ``title``, ``snippet`` and ``score``
    (``None`` for fallback hits).
    """
    cols = ["ref", "title", "snippet", "score"]
    try:
        rows = conn.execute(
            """
            SELECT ref, title, snippet, score FROM (
                SELECT s.ref, s.title, substr(s.text, 1, 200) AS snippet,
                       fts_main_spec_sections.match_bm25(s.id, ?) AS score
                FROM spec_sections s
            ) hits
            WHERE score IS NOT NULL
            ORDER BY score DESC
            LIMIT ?
            """,
            [query, limit],
        ).fetchall()
    except Exception as exc:
        log.debug("fts search failed, falling back to ILIKE: %s", exc)
        rows = conn.execute(
            """
            SELECT ref, title, substr(text, 1, 200) AS snippet, NULL AS score
            FROM spec_sections
            WHERE text ILIKE ? OR title ILIKE ?
            ORDER BY doc_id, ord
            LIMIT ?
            """,
            [f"%{query}%", f"%{query}%", limit],
        ).fetchall()
    return [dict(zip(cols, row, strict=True)) for row in rows]
