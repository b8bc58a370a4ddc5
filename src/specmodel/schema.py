"""DuckDB schema for ingested spec documents and knowledge cards.

Tables:
    spec_documents       — one row per document ref (re-ingestion updates in place)
    spec_sections        — heading-delimited regions (UNIQUE per doc + ord)
    spec_clauses         — CC clauses (UNIQUE per doc + code + line)
    spec_xrefs           — detected cross-references
    episteme_kinds       — knowledge-card kinds (UNIQUE ref)
    episteme_kind_slots  — slot definitions per kind, lexically guarded
    episteme_cards       — content-addressed knowledge cards
    episteme_card_slots  — named slot values per card
    _schema_version      — schema version tracking

Ids come from sequences. Ownership is enforced by the writers (ingestion
deletes a document's xrefs, clauses and sections together) rather than by
declared foreign keys, which DuckDB checks too eagerly for delete-and-reinsert
inside one transaction.
"""
from __future__ import annotations

import logging
import re
from typing import Any

from specmodel.fts import load_fts_extension
from specmodel.spec_types import MigrationResult

log = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0.0"


class SchemaVersionError(RuntimeError):
    """Raised when a spec DB schema version does not match expected."""


SCHEMA_DDL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS _schema_version (
    table_name VARCHAR PRIMARY KEY,
    version VARCHAR NOT NULL
);

-- ─── DOCUMENTS ────────────────────────────────────────────────────────
CREATE SEQUENCE IF NOT EXISTS seq_spec_documents START 1;
CREATE TABLE IF NOT EXISTS spec_documents (
    id BIGINT PRIMARY KEY DEFAULT nextval('seq_spec_documents'),
    ref VARCHAR NOT NULL UNIQUE,
    title VARCHAR NOT NULL,
    version VARCHAR,
    ingested_at TIMESTAMP DEFAULT current_timestamp,
    raw_hash VARCHAR,
    meta_json VARCHAR
);

-- ─── SECTIONS ─────────────────────────────────────────────────────────
CREATE SEQUENCE IF NOT EXISTS seq_spec_sections START 1;
CREATE TABLE IF NOT EXISTS spec_sections (
    id BIGINT PRIMARY KEY DEFAULT nextval('seq_spec_sections'),
    doc_id BIGINT NOT NULL,
    ref VARCHAR NOT NULL,
    title VARCHAR NOT NULL,
    level INTEGER NOT NULL CHECK (level BETWEEN 1 AND 6),
    ord INTEGER NOT NULL,
    parent_id BIGINT,
    text VARCHAR,
    line_start INTEGER,
    line_end INTEGER,
    UNIQUE (doc_id, ord)
);
CREATE INDEX IF NOT EXISTS idx_section_ref ON spec_sections(ref);
CREATE INDEX IF NOT EXISTS idx_section_parent ON spec_sections(parent_id);

-- ─── CLAUSES ──────────────────────────────────────────────────────────
-- The same code may be restated at several lines of one document.
CREATE SEQUENCE IF NOT EXISTS seq_spec_clauses START 1;
CREATE TABLE IF NOT EXISTS spec_clauses (
    id BIGINT PRIMARY KEY DEFAULT nextval('seq_spec_clauses'),
    doc_id BIGINT NOT NULL,
    section_id BIGINT,
    code VARCHAR NOT NULL,
    text VARCHAR NOT NULL,
    modality VARCHAR,
    line_num INTEGER,
    UNIQUE (doc_id, code, line_num)
);
CREATE INDEX IF NOT EXISTS idx_clause_code ON spec_clauses(code);
CREATE INDEX IF NOT EXISTS idx_clause_section ON spec_clauses(section_id);

-- ─── CROSS-REFERENCES ─────────────────────────────────────────────────
CREATE SEQUENCE IF NOT EXISTS seq_spec_xrefs START 1;
CREATE TABLE IF NOT EXISTS spec_xrefs (
    id BIGINT PRIMARY KEY DEFAULT nextval('seq_spec_xrefs'),
    doc_id BIGINT NOT NULL,
    source_id BIGINT,
    source_line INTEGER,
    target_ref VARCHAR NOT NULL,
    target_type VARCHAR NOT NULL,
    context VARCHAR
);
CREATE INDEX IF NOT EXISTS idx_xref_doc ON spec_xrefs(doc_id);
CREATE INDEX IF NOT EXISTS idx_xref_source ON spec_xrefs(source_id);
CREATE INDEX IF NOT EXISTS idx_xref_target ON spec_xrefs(target_ref);

-- ─── EPISTEME KINDS ───────────────────────────────────────────────────
CREATE SEQUENCE IF NOT EXISTS seq_episteme_kinds START 1;
CREATE TABLE IF NOT EXISTS episteme_kinds (
    id BIGINT PRIMARY KEY DEFAULT nextval('seq_episteme_kinds'),
    ref VARCHAR NOT NULL UNIQUE,
    name VARCHAR NOT NULL,
    parent_kind_ref VARCHAR,
    signature_json VARCHAR,
    description VARCHAR,
    created_at TIMESTAMP DEFAULT current_timestamp,
    updated_at TIMESTAMP DEFAULT current_timestamp
);

-- slot_name must end in 'Slot' for slot types and 'Ref' for ref types
CREATE SEQUENCE IF NOT EXISTS seq_episteme_kind_slots START 1;
CREATE TABLE IF NOT EXISTS episteme_kind_slots (
    id BIGINT PRIMARY KEY DEFAULT nextval('seq_episteme_kind_slots'),
    kind_id BIGINT NOT NULL,
    slot_name VARCHAR NOT NULL,
    slot_type VARCHAR NOT NULL,
    value_kind_ref VARCHAR,
    cardinality VARCHAR NOT NULL DEFAULT '1',
    is_required BOOLEAN NOT NULL DEFAULT true,
    description VARCHAR,
    ord INTEGER NOT NULL DEFAULT 0,
    CHECK (
        (slot_type = 'slot' AND slot_name LIKE '%Slot') OR
        (slot_type = 'ref' AND slot_name LIKE '%Ref') OR
        (slot_type = 'value')
    ),
    UNIQUE (kind_id, slot_name)
);

-- ─── EPISTEME CARDS ───────────────────────────────────────────────────
-- Minimal identity: (bounded_context_ref, described_entity_ref, content_hash)
CREATE SEQUENCE IF NOT EXISTS seq_episteme_cards START 1;
CREATE TABLE IF NOT EXISTS episteme_cards (
    id BIGINT PRIMARY KEY DEFAULT nextval('seq_episteme_cards'),
    kind_ref VARCHAR NOT NULL,
    bounded_context_ref VARCHAR NOT NULL,
    described_entity_ref VARCHAR NOT NULL,
    grounding_holon_ref VARCHAR,
    viewpoint_ref VARCHAR,
    reference_scheme VARCHAR,
    content VARCHAR NOT NULL,
    content_hash VARCHAR NOT NULL,
    meta_json VARCHAR,
    formality_level VARCHAR,
    assurance_level VARCHAR,
    created_at TIMESTAMP DEFAULT current_timestamp,
    updated_at TIMESTAMP DEFAULT current_timestamp,
    UNIQUE (bounded_context_ref, described_entity_ref, content_hash)
);
CREATE INDEX IF NOT EXISTS idx_card_entity ON episteme_cards(described_entity_ref);

CREATE SEQUENCE IF NOT EXISTS seq_episteme_card_slots START 1;
CREATE TABLE IF NOT EXISTS episteme_card_slots (
    id BIGINT PRIMARY KEY DEFAULT nextval('seq_episteme_card_slots'),
    card_id BIGINT NOT NULL,
    slot_name VARCHAR NOT NULL,
    value_json VARCHAR NOT NULL,
    UNIQUE (card_id, slot_name)
);
"""

CORE_TABLES: tuple[str, ...] = (
    "spec_documents",
    "spec_sections",
    "spec_clauses",
    "spec_xrefs",
    "episteme_kinds",
    "episteme_kind_slots",
    "episteme_cards",
    "episteme_card_slots",
)

_LINE_COMMENT_RE = re.compile(r"--.*$", re.MULTILINE)
_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)


def split_statements(ddl: str) -> list[str]:
    """Strip SQL comments and split *ddl* into non-empty statements."""
    cleaned = _LINE_COMMENT_RE.sub("", _BLOCK_COMMENT_RE.sub("", ddl))
    return [s.strip() for s in cleaned.split(";") if s.strip()]


def _has_version_table(conn: Any) -> bool:
    row = conn.execute(
        "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = '_schema_version'"
    ).fetchone()
    return bool(row and row[0])


def migrate_schema(conn: Any, ddl: str = SCHEMA_DDL) -> MigrationResult:
    """Apply *ddl* statement by statement, then try to load full-text search.

    "Already exists" failures are expected on re-runs and ignored. A missing
    full-text extension only clears ``fts_enabled``. Every other failure is
    recorded with the statement's lead text; the remaining statements still run.
    The version row is written only when *ddl* left a ``_schema_version`` table.
    """
    errors: list[str] = []
    for stmt in split_statements(ddl):
        try:
            conn.execute(stmt)
        except Exception as exc:
            msg = str(exc)
            if "already exists" in msg:
                log.debug("skipping existing object: %s", stmt[:60])
                continue
            errors.append(f"Statement failed: {stmt[:100]}... Error: {msg}")

    if not errors and _has_version_table(conn):
        conn.execute(
            "INSERT OR REPLACE INTO _schema_version (table_name, version) VALUES (?, ?)",
            ["spec", SCHEMA_VERSION],
        )
    for err in errors:
        log.warning(err)

    fts_enabled = load_fts_extension(conn)
    return MigrationResult(
        success=not errors,
        fts_enabled=fts_enabled,
        errors=tuple(errors),
    )


def read_schema_version(conn: Any) -> str:
    """Read the spec schema version from an open DuckDB connection."""
    try:
        row = conn.execute(
            "SELECT version FROM _schema_version WHERE table_name = 'spec'"
        ).fetchone()
    except Exception:
        return "unknown"
    return str(row[0]) if row else "unknown"


def ensure_schema_version(conn: Any, *, expected: str = SCHEMA_VERSION) -> str:
    """Return the actual schema version; raise SchemaVersionError on mismatch."""
    actual = read_schema_version(conn)
    if actual != expected:
        raise SchemaVersionError(
            f"Schema version mismatch: expected {expected}, got {actual}"
        )
    return actual
