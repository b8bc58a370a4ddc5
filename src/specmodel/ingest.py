"""Idempotent ingestion of parsed spec documents into DuckDB.

Re-ingesting a document ref updates the document row in place (its id and
every external link keyed on the ref survive) and replaces the whole section
tree, clause list and xref list. Steps run inside one transaction, so an
observer sees either the previous committed state or the new one, never a
half-written tree.

Insert order follows ownership: document, then sections in ord order (a
parent's ord is always smaller than its children's, so parents are written
first), then clauses, then xrefs. Parser ordinals are translated to row ids
through a map filled as each section insert returns.
"""
from __future__ import annotations

import logging
from typing import Any

from specmodel.db import fetch_id, transaction
from specmodel.doc_parser import parse_spec_markdown
from specmodel.parser_config import DEFAULT_CONFIG, ParserConfig
from specmodel.spec_types import IngestSummary, ParsedSpec

log = logging.getLogger(__name__)


def _upsert_document(conn: Any, parsed: ParsedSpec) -> int:
    doc = parsed.doc
    row = conn.execute(
        "SELECT id FROM spec_documents WHERE ref = ?", [doc.ref]
    ).fetchone()
    if row is None:
        return fetch_id(
            conn,
            "INSERT INTO spec_documents (ref, title, version, raw_hash) "
            "VALUES (?, ?, ?, ?) RETURNING id",
            [doc.ref, doc.title, doc.version, doc.raw_hash],
        )

    doc_id = int(row[0])
    conn.execute(
        "UPDATE spec_documents SET title = ?, version = ?, raw_hash = ?, "
        "ingested_at = current_timestamp WHERE id = ?",
        [doc.title, doc.version, doc.raw_hash, doc_id],
    )
    # Children before the sections they point at.
    conn.execute("DELETE FROM spec_xrefs WHERE doc_id = ?", [doc_id])
    conn.execute("DELETE FROM spec_clauses WHERE doc_id = ?", [doc_id])
    conn.execute("DELETE FROM spec_sections WHERE doc_id = ?", [doc_id])
    return doc_id


def write_parsed_spec(conn: Any, parsed: ParsedSpec) -> IngestSummary:
    """Persist *parsed* in one transaction; returns the written row counts."""
    with transaction(conn):
        doc_id = _upsert_document(conn, parsed)

        ord_to_id: dict[int, int] = {}
        for section in parsed.sections:
            parent_id = (
                ord_to_id[section.parent_ord]
                if section.parent_ord is not None
                else None
            )
            ord_to_id[section.ord] = fetch_id(
                conn,
                """
                INSERT INTO spec_sections
                (doc_id, ref, title, level, ord, parent_id, text, line_start, line_end)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING id
                """,
                [
                    doc_id,
                    section.ref,
                    section.title,
                    section.level,
                    section.ord,
                    parent_id,
                    section.text,
                    section.line_start,
                    section.line_end,
                ],
            )

        for clause in parsed.clauses:
            conn.execute(
                "INSERT INTO spec_clauses "
                "(doc_id, section_id, code, text, modality, line_num) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                [
                    doc_id,
                    ord_to_id.get(clause.section_ord) if clause.section_ord is not None else None,
                    clause.code,
                    clause.text,
                    clause.modality,
                    clause.line_num,
                ],
            )

        for xref in parsed.xrefs:
            conn.execute(
                "INSERT INTO spec_xrefs "
                "(doc_id, source_id, source_line, target_ref, target_type, context) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                [
                    doc_id,
                    ord_to_id.get(xref.source_ord) if xref.source_ord is not None else None,
                    xref.source_line,
                    xref.target_ref,
                    xref.target_type,
                    xref.context,
                ],
            )

    summary = IngestSummary(
        document_id=doc_id,
        section_count=len(parsed.sections),
        clause_count=len(parsed.clauses),
        xref_count=len(parsed.xrefs),
    )
    log.info(
        "ingested %s (id=%d): %d sections, %d clauses, %d xrefs",
        parsed.doc.ref,
        summary.document_id,
        summary.section_count,
        summary.clause_count,
        summary.xref_count,
    )
    return summary


def ingest_spec_markdown(
    conn: Any,
    *,
    doc_ref: str,
    title: str,
    md: str,
    version: str | None = None,
    config: ParserConfig = DEFAULT_CONFIG,
) -> IngestSummary:
    """Parse *md* and write it under *doc_ref*, replacing any earlier ingestion.

    Args:
        conn: Open DuckDB connection with the schema applied. The caller owns it.
        doc_ref: Stable external reference (unique business key).
        title: Document title.
        md: Raw markdown text.
        version: Optional version; extracted from the text when omitted.
        config: Parser policy.

    Raises:
        Any statement error (for example a unique-constraint violation),
        after the transaction has been rolled back.
    """
    parsed = parse_spec_markdown(
        md, doc_ref=doc_ref, title=title, version=version, config=config,
    )
    return write_parsed_spec(conn, parsed)
