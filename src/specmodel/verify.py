"""Post-ingestion consistency checks.

Nothing here raises on a failed check; mismatches are returned as data so
callers (the CLI, CI jobs) decide what counts as fatal.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from specmodel.clause_extractor import extract_clause
from specmodel.doc_parser import HEADING_LINE_RE
from specmodel.hashing import sha256_hex


@dataclass(frozen=True, slots=True)
class IngestCheck:
    """Stored clause count of one document compared against a marker count."""

    doc_ref: str
    found: bool
    stored_clauses: int
    marker_count: int
    hash_matches: bool

    @property
    def ok(self) -> bool:
        return self.found and self.hash_matches and self.stored_clauses == self.marker_count

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "ok": self.ok}


def count_clause_markers(md: str) -> int:
    """Count content lines the clause extractor would turn into a clause."""
    count = 0
    for line_num, line in enumerate(md.split("\n"), start=1):
        if HEADING_LINE_RE.match(line):
            continue
        if extract_clause(line, line_num) is not None:
            count += 1
    return count


def check_ingestion(conn: Any, doc_ref: str, md: str) -> IngestCheck:
    """Compare what is stored under *doc_ref* with the markdown it came from."""
    markers = count_clause_markers(md)
    row = conn.execute(
        "SELECT id, raw_hash FROM spec_documents WHERE ref = ?", [doc_ref]
    ).fetchone()
    if row is None:
        return IngestCheck(
            doc_ref=doc_ref, found=False, stored_clauses=0,
            marker_count=markers, hash_matches=False,
        )
    doc_id, raw_hash = int(row[0]), row[1]
    stored = int(
        conn.execute(
            "SELECT COUNT(*) FROM spec_clauses WHERE doc_id = ?", [doc_id]
        ).fetchone()[0]
    )
    return IngestCheck(
        doc_ref=doc_ref,
        found=True,
        stored_clauses=stored,
        marker_count=markers,
        hash_matches=raw_hash == sha256_hex(md),
    )


def verify_card_hashes(conn: Any) -> list[dict[str, Any]]:
    """Cards whose stored content no longer hashes to their content_hash."""
    rows = conn.execute(
        "SELECT id, content, content_hash FROM episteme_cards ORDER BY id"
    ).fetchall()
    mismatches: list[dict[str, Any]] = []
    for card_id, content, stored_hash in rows:
        actual = sha256_hex(content)
        if actual != stored_hash:
            mismatches.append(
                {"id": int(card_id), "expected": stored_hash, "actual": actual}
            )
    return mismatches
