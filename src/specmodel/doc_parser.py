"""Single-pass parser for structured spec markdown.

Recovers an implicit section tree from a flat line stream. Sections are kept
in a flat, ord-ordered list (an arena); hierarchy is expressed through
``parent_ord`` indices, computed with a stack of (level, ord) pairs:

    ## Part A – Kernel          ord=1 level=2 parent=None
    ### A.1 - Overview          ord=2 level=3 parent=1
    #### A.1.1 - Detail         ord=3 level=4 parent=2
    ### A.2 - Identity          ord=4 level=3 parent=1   (pops 3, 2)

Non-heading lines accumulate into the open section's body and are fed to
the clause extractor and, when the xref gate opens, the xref extractor.
Parsing never raises on ill-formed markdown: empty input, heading-less input
and unrecognisable headings all degrade to valid (possibly empty) results.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from specmodel.clause_extractor import extract_clause
from specmodel.hashing import sha256_hex
from specmodel.heading_classifier import DEFAULT_RULES, HeadingRule, classify_heading
from specmodel.parser_config import DEFAULT_CONFIG, ParserConfig
from specmodel.spec_types import (
    ParsedSpec,
    SpecClause,
    SpecDocRecord,
    SpecSection,
    SpecXref,
)
from specmodel.xref_extractor import extract_xrefs, xref_gate

HEADING_LINE_RE = re.compile(r"^(#{1,6})\s+(.+)$")

_MONTH_YEAR_RE = re.compile(
    r"\b(January|February|March|April|May|June|July|August|September|"
    r"October|November|December)\s+(\d{4})\b",
    re.IGNORECASE,
)
_VERSION_RE = re.compile(r"\b(?:Version|v)\s*(\d+(?:\.\d+)+)", re.IGNORECASE)


def extract_version(md: str) -> str | None:
    """Best-effort version token: "December 2025" first, then "v1.2.3"."""
    m = _MONTH_YEAR_RE.search(md)
    if m:
        return f"{m.group(1)} {m.group(2)}"
    m = _VERSION_RE.search(md)
    if m:
        return m.group(1)
    return None


def placeholder_ref(doc_ref: str, line_num: int) -> str:
    """Positional ref for a heading with no recoverable structural id."""
    return f"{doc_ref}:L{line_num}"


class ParseState(Enum):
    BEFORE_FIRST_HEADING = "before-first-heading"
    INSIDE_SECTION = "inside-section"
    FINISHED = "finished"


@dataclass(slots=True)
class _OpenSection:
    """Mutable accumulator for the section currently receiving lines."""

    ref: str
    title: str
    level: int
    ord: int
    parent_ord: int | None
    line_start: int
    body: list[str] = field(default_factory=list)

    def close(self, line_end: int) -> SpecSection:
        has_body = bool(self.body)
        return SpecSection(
            ref=self.ref,
            title=self.title,
            level=self.level,
            ord=self.ord,
            parent_ord=self.parent_ord,
            text="\n".join(self.body).strip() if has_body else None,
            line_start=self.line_start,
            line_end=line_end if has_body else None,
        )


class SpecMarkdownParser:
    """State machine over an ordered line sequence. One instance per parse."""

    def __init__(
        self,
        doc_ref: str,
        *,
        config: ParserConfig = DEFAULT_CONFIG,
        heading_rules: tuple[HeadingRule, ...] = DEFAULT_RULES,
    ) -> None:
        self.doc_ref = doc_ref
        self.config = config
        self.heading_rules = heading_rules
        self.state = ParseState.BEFORE_FIRST_HEADING
        self._sections: list[SpecSection] = []
        self._clauses: list[SpecClause] = []
        self._xrefs: list[SpecXref] = []
        self._stack: list[tuple[int, int]] = []  # (level, ord)
        self._open: _OpenSection | None = None
        self._next_ord = 1

    @property
    def current_ord(self) -> int | None:
        if self.state is not ParseState.INSIDE_SECTION:
            return None
        assert self._open is not None
        return self._open.ord

    def feed(self, line: str, line_num: int) -> None:
        if self.state is ParseState.FINISHED:
            raise RuntimeError(f"parser for {self.doc_ref!r} already finished")
        m = HEADING_LINE_RE.match(line)
        if m:
            self._on_heading(line, len(m.group(1)), line_num)
        else:
            self._on_content(line, line_num)

    def finish(self, total_lines: int) -> tuple[
        tuple[SpecSection, ...], tuple[SpecClause, ...], tuple[SpecXref, ...]
    ]:
        self._close_open(total_lines)
        self.state = ParseState.FINISHED
        # Sections close in ord order, so the arena is already sorted.
        return tuple(self._sections), tuple(self._clauses), tuple(self._xrefs)

    # ── transitions ──────────────────────────────────────────────

    def _close_open(self, line_end: int) -> None:
        if self._open is not None:
            self._sections.append(self._open.close(line_end))
            self._open = None

    def _on_heading(self, line: str, level: int, line_num: int) -> None:
        self._close_open(line_num - 1)

        heading = classify_heading(line, self.heading_rules)
        ref = heading.ref or placeholder_ref(self.doc_ref, line_num)

        while self._stack and self._stack[-1][0] >= level:
            self._stack.pop()
        parent_ord = self._stack[-1][1] if self._stack else None

        ord_ = self._next_ord
        self._next_ord += 1
        self._stack.append((level, ord_))
        self._open = _OpenSection(
            ref=ref,
            title=heading.title,
            level=level,
            ord=ord_,
            parent_ord=parent_ord,
            line_start=line_num,
        )
        self.state = ParseState.INSIDE_SECTION

    def _on_content(self, line: str, line_num: int) -> None:
        if self.state is ParseState.INSIDE_SECTION:
            assert self._open is not None
            self._open.body.append(line)
        section_ord = self.current_ord

        clause = extract_clause(line, line_num, section_ord)
        if clause is not None:
            self._clauses.append(clause)

        if xref_gate(line, self.config):
            self._xrefs.extend(
                extract_xrefs(line, line_num, section_ord, self.config)
            )


def parse_spec_markdown(
    md: str,
    *,
    doc_ref: str,
    title: str,
    version: str | None = None,
    config: ParserConfig = DEFAULT_CONFIG,
    heading_rules: tuple[HeadingRule, ...] = DEFAULT_RULES,
) -> ParsedSpec:
    """Parse spec markdown into a document record, sections, clauses and xrefs.

    Args:
        md: Raw markdown text.
        doc_ref: Stable external reference of the document ("FPF-Spec(4)").
        title: Document title.
        version: Caller-supplied version; extracted from *md* when omitted.
        config: Xref gate and snippet policy.
        heading_rules: Heading classification chain.

    Returns:
        ParsedSpec whose collections are ordered by source position and
        cross-linked only through section ordinals.
    """
    doc = SpecDocRecord(
        ref=doc_ref,
        title=title,
        version=version or extract_version(md),
        raw_hash=sha256_hex(md),
    )

    lines = md.split("\n")
    parser = SpecMarkdownParser(doc_ref, config=config, heading_rules=heading_rules)
    for i, line in enumerate(lines, start=1):
        parser.feed(line, i)
    sections, clauses, xrefs = parser.finish(len(lines))

    return ParsedSpec(doc=doc, sections=sections, clauses=clauses, xrefs=xrefs)
