"""Core types shared by the spec parser and the ingestion pipeline.

Everything the parser emits is keyed by a per-parse ordinal (``ord``).
Persisted row ids only exist after ingestion; until then sections, clauses
and cross-references point at each other exclusively through ``ord``.

Type hierarchy:
  HeadingRef      — Classified heading (structural ref + title)
  SpecDocRecord   — Document summary (ref, title, version, raw hash)
  SpecSection     — Heading-delimited region, flat arena entry
  SpecClause      — Labeled conformance clause (CC-code)
  SpecXref        — Inline mention of a section, clause or part
  ParsedSpec      — Complete output of one parse
  IngestSummary   — Row counts returned by ingestion
  MigrationResult — Outcome of a schema migration
  FtsRebuildResult — Per-index outcome of a full-text rebuild
  CardUpsertResult / KindRegisterResult — Store write outcomes
"""
from __future__ import annotations

from dataclasses import dataclass, field

# Two-word negatives precede their single-word prefixes.
MODALITIES: tuple[str, ...] = (
    "MUST NOT",
    "MUST",
    "SHALL NOT",
    "SHALL",
    "SHOULD NOT",
    "SHOULD",
    "MAY",
)

XREF_SECTION = "section"
XREF_CLAUSE = "clause"
XREF_EXTERNAL = "external"
XREF_TARGET_TYPES: tuple[str, ...] = (XREF_SECTION, XREF_CLAUSE, XREF_EXTERNAL)


# ---------------------------------------------------------------------------
# Parser output
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class HeadingRef:
    """Result of classifying one heading line.

    ``ref`` is ``None`` when no structural id could be recovered; the caller
    synthesizes a positional placeholder in that case.
    """

    ref: str | None
    title: str


@dataclass(frozen=True, slots=True)
class SpecDocRecord:
    """Summary record for one parsed document."""

    ref: str
    title: str
    version: str | None
    raw_hash: str


@dataclass(frozen=True, slots=True)
class SpecSection:
    """A heading-delimited region of the document (flat arena entry)."""

    ref: str             # "A.1.1", "Part-A", or "<doc_ref>:L<line>"
    title: str
    level: int           # heading depth 1-6
    ord: int             # 1-based, strictly increasing in document order
    parent_ord: int | None
    text: str | None     # None when no body lines were accumulated
    line_start: int
    line_end: int | None


@dataclass(frozen=True, slots=True)
class SpecClause:
    """A labeled conformance clause found on a content line."""

    code: str            # "CC-A.1-1"
    text: str
    modality: str | None
    line_num: int
    section_ord: int | None = None


@dataclass(frozen=True, slots=True)
class SpecXref:
    """A cross-reference detected on a content line."""

    target_ref: str
    target_type: str     # one of XREF_TARGET_TYPES
    context: str
    source_ord: int | None = None
    source_line: int | None = None


@dataclass(frozen=True, slots=True)
class ParsedSpec:
    """Complete output of one parse."""

    doc: SpecDocRecord
    sections: tuple[SpecSection, ...] = ()
    clauses: tuple[SpecClause, ...] = ()
    xrefs: tuple[SpecXref, ...] = ()

    def section_by_ord(self, ord_: int) -> SpecSection | None:
        # ords are dense and 1-based
        if 1 <= ord_ <= len(self.sections):
            return self.sections[ord_ - 1]
        return None


# ---------------------------------------------------------------------------
# Store outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class IngestSummary:
    """Counts written by one ingestion, for logging and completeness checks."""

    document_id: int
    section_count: int
    clause_count: int
    xref_count: int

    def to_dict(self) -> dict[str, int]:
        return {
            "document_id": self.document_id,
            "section_count": self.section_count,
            "clause_count": self.clause_count,
            "xref_count": self.xref_count,
        }


@dataclass(frozen=True, slots=True)
class MigrationResult:
    """Outcome of applying the schema DDL statement by statement."""

    success: bool
    fts_enabled: bool
    errors: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class FtsRebuildResult:
    sections: bool
    clauses: bool
    cards: bool


@dataclass(frozen=True, slots=True)
class CardUpsertResult:
    id: int
    created: bool


@dataclass(frozen=True, slots=True)
class KindRegisterResult:
    id: int
    created: bool
    slot_count: int
