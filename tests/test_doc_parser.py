"""Tests for specmodel.doc_parser — section tree, clauses and xrefs from markdown."""
from __future__ import annotations

import pytest

from specmodel.doc_parser import (
    ParseState,
    SpecMarkdownParser,
    extract_version,
    parse_spec_markdown,
    placeholder_ref,
)
from specmodel.hashing import sha256_hex
from specmodel.parser_config import ParserConfig
from specmodel.spec_types import XREF_CLAUSE, XREF_SECTION, ParsedSpec

SAMPLE_SPEC = """# FPF-Spec (4)
December 2025

## Part A – Kernel

This is the kernel section.

### A.1 - Overview

The overview section introduces core concepts.

**CC-A.1-1** | Every FPF-compliant system MUST support episteme cards.

**CC-A.1-2** | Systems SHOULD implement slot validation.

### A.1.1 - Core Concepts

Builds on A.1 for detailed concepts.

Coordinates with Part B for extended features.

### A.2 - Minimal Identity

**CC-A.2-1** | Minimal identity is defined as (bounded_context_ref, described_entity_ref, content_hash).

## Part B – Extensions

Extended features build on Part A.

### B.1 - Advanced Features

**CC-B.1-1** | Extensions MAY define custom kinds.

References: A.1, A.2, CC-A.1-1
"""


def _parse(md: str = SAMPLE_SPEC, version: str | None = None) -> ParsedSpec:
    return parse_spec_markdown(md, doc_ref="FPF-Spec(4)", title="FPF-Spec (4)", version=version)


class TestHelpers:
    def test_extract_version_month_year(self) -> None:
        assert extract_version("# Spec\nDecember 2025\n") == "December 2025"

    def test_extract_version_month_year_preferred(self) -> None:
        assert extract_version("v1.2.3 released March 2024") == "March 2024"

    def test_extract_version_dotted(self) -> None:
        assert extract_version("# Spec\nVersion 2.1\n") == "2.1"
        assert extract_version("tagged v1.2.3 today") == "1.2.3"

    def test_extract_version_none(self) -> None:
        assert extract_version("no version here") is None

    def test_placeholder_ref(self) -> None:
        assert placeholder_ref("doc", 12) == "doc:L12"


class TestSampleDocument:
    def test_document_record(self) -> None:
        parsed = _parse()
        assert parsed.doc.ref == "FPF-Spec(4)"
        assert parsed.doc.title == "FPF-Spec (4)"
        assert parsed.doc.version == "December 2025"
        assert parsed.doc.raw_hash == sha256_hex(SAMPLE_SPEC)

    def test_explicit_version_wins(self) -> None:
        assert _parse(version="4.0").doc.version == "4.0"

    def test_section_tree(self) -> None:
        parsed = _parse()
        rows = [(s.ord, s.ref, s.level, s.parent_ord) for s in parsed.sections]
        assert rows == [
            (1, "FPF-Spec(4):L1", 1, None),
            (2, "Part-A", 2, 1),
            (3, "A.1", 3, 2),
            (4, "A.1.1", 3, 2),
            (5, "A.2", 3, 2),
            (6, "Part-B", 2, 1),
            (7, "B.1", 3, 6),
        ]

    def test_titles(self) -> None:
        titles = {s.ref: s.title for s in _parse().sections}
        assert titles["FPF-Spec(4):L1"] == "FPF-Spec (4)"
        assert titles["Part-A"] == "Kernel"
        assert titles["A.1"] == "Overview"
        assert titles["A.1.1"] == "Core Concepts"

    def test_line_spans(self) -> None:
        spans = {s.ref: (s.line_start, s.line_end) for s in _parse().sections}
        assert spans["Part-A"] == (4, 7)
        assert spans["A.1"] == (8, 15)
        # Last section runs to the end of input (trailing newline included).
        assert spans["B.1"] == (30, 35)

    def test_section_text(self) -> None:
        a1 = next(s for s in _parse().sections if s.ref == "A.1")
        assert a1.text is not None
        assert a1.text.startswith("The overview section")
        assert "**CC-A.1-2**" in a1.text

    def test_clauses(self) -> None:
        parsed = _parse()
        rows = [(c.code, c.modality, c.line_num, c.section_ord) for c in parsed.clauses]
        assert rows == [
            ("CC-A.1-1", "MUST", 12, 3),
            ("CC-A.1-2", "SHOULD", 14, 3),
            ("CC-A.2-1", None, 24, 5),
            ("CC-B.1-1", "MAY", 32, 7),
        ]

    def test_builds_on_xref(self) -> None:
        xrefs = [x for x in _parse().xrefs if x.source_line == 18]
        assert [(x.target_ref, x.target_type, x.source_ord) for x in xrefs] == [
            ("A.1", XREF_SECTION, 4)
        ]

    def test_part_xref(self) -> None:
        xrefs = [x for x in _parse().xrefs if x.source_line == 20]
        assert [x.target_ref for x in xrefs] == ["Part-B"]

    def test_ungated_line_has_no_xrefs(self) -> None:
        assert not [x for x in _parse().xrefs if x.source_line == 28]

    def test_reference_line(self) -> None:
        xrefs = [x for x in _parse().xrefs if x.source_line == 34]
        assert [(x.target_ref, x.target_type) for x in xrefs] == [
            ("CC-A.1-1", XREF_CLAUSE),
            ("A.1", XREF_SECTION),
            ("A.2", XREF_SECTION),
        ]

    def test_section_by_ord(self) -> None:
        parsed = _parse()
        assert parsed.section_by_ord(3).ref == "A.1"  # type: ignore[union-attr]
        assert parsed.section_by_ord(99) is None


class TestInvariants:
    def test_ordinals_strictly_increasing(self) -> None:
        ords = [s.ord for s in _parse().sections]
        assert ords == sorted(set(ords))

    def test_parent_depth(self) -> None:
        parsed = _parse()
        for section in parsed.sections:
            if section.parent_ord is None:
                continue
            parent = parsed.section_by_ord(section.parent_ord)
            assert parent is not None
            assert parent.level < section.level
            assert parent.ord < section.ord

    def test_line_span_validity(self) -> None:
        for section in _parse().sections:
            if section.text:
                assert section.line_end is not None
                assert section.line_start <= section.line_end

    def test_deterministic(self) -> None:
        assert _parse() == _parse()


class TestScenarios:
    def test_basic_document(self) -> None:
        md = (
            "## Part A – Kernel\n"
            "### A.1 - Overview\n"
            "**CC-A.1-1** | Systems MUST support X."
        )
        parsed = parse_spec_markdown(md, doc_ref="basic", title="Basic")
        part_a, a1 = parsed.sections
        assert (part_a.ref, part_a.level, part_a.parent_ord) == ("Part-A", 2, None)
        assert (a1.ref, a1.level, a1.parent_ord) == ("A.1", 3, part_a.ord)
        assert len(parsed.clauses) == 1
        clause = parsed.clauses[0]
        assert clause.code == "CC-A.1-1"
        assert clause.modality == "MUST"
        assert clause.section_ord == a1.ord

    def test_restated_clause(self) -> None:
        md = (
            "## A.1 - First\n"
            "**CC-A.1-1** | Systems MUST do X.\n"
            "## A.2 - Second\n"
            "**CC-A.1-1** | Systems MUST do X.\n"
        )
        clauses = parse_spec_markdown(md, doc_ref="r", title="R").clauses
        assert [(c.code, c.line_num) for c in clauses] == [("CC-A.1-1", 2), ("CC-A.1-1", 4)]

    def test_level_jump_back(self) -> None:
        md = "# Root\n#### A.1.1.1 - Deep\n## A.2 - Shallow\n"
        sections = parse_spec_markdown(md, doc_ref="j", title="J").sections
        assert [(s.ref, s.parent_ord) for s in sections] == [
            ("j:L1", None),
            ("A.1.1.1", 1),
            ("A.2", 1),
        ]

    def test_sibling_headings_without_body(self) -> None:
        sections = parse_spec_markdown("## A.1\n## A.2", doc_ref="s", title="S").sections
        assert [(s.ref, s.parent_ord, s.text, s.line_end) for s in sections] == [
            ("A.1", None, None, None),
            ("A.2", None, None, None),
        ]


class TestEdgeCases:
    def test_empty_input(self) -> None:
        parsed = parse_spec_markdown("", doc_ref="empty", title="Empty")
        assert parsed.doc.ref == "empty"
        assert parsed.doc.raw_hash == sha256_hex("")
        assert parsed.doc.version is None
        assert parsed.sections == ()
        assert parsed.clauses == ()
        assert parsed.xrefs == ()

    def test_no_headings(self) -> None:
        md = "**CC-A.1-1** | Systems MUST do X.\nBuilds on A.2 here.\n"
        parsed = parse_spec_markdown(md, doc_ref="flat", title="Flat")
        assert parsed.sections == ()
        assert [(c.code, c.section_ord) for c in parsed.clauses] == [("CC-A.1-1", None)]
        assert any(x.target_ref == "A.2" and x.source_ord is None for x in parsed.xrefs)

    def test_prose_before_first_heading_not_in_a_section(self) -> None:
        md = "preamble text\n## A.1 - Overview\nbody\n"
        section = parse_spec_markdown(md, doc_ref="p", title="P").sections[0]
        assert section.text == "body"
        assert section.line_start == 2

    def test_unrecognised_heading_gets_placeholder(self) -> None:
        md = "intro\n\n## Table of Contents\n"
        section = parse_spec_markdown(md, doc_ref="toc", title="TOC").sections[0]
        assert section.ref == "toc:L3"
        assert section.title == "Table of Contents"

    def test_hash_line_without_space_is_content(self) -> None:
        parsed = parse_spec_markdown("#hashtag A.1\n", doc_ref="h", title="H")
        assert parsed.sections == ()

    def test_config_controls_gate(self) -> None:
        md = "## A.1 - X\nSee A.2 later\n"
        gated = parse_spec_markdown(md, doc_ref="g", title="G")
        strict = parse_spec_markdown(
            md, doc_ref="g", title="G", config=ParserConfig(gate_on_id_shape=False),
        )
        assert [x.target_ref for x in gated.xrefs] == ["A.2"]
        assert strict.xrefs == ()


class TestIncrementalParser:
    def test_state_transitions(self) -> None:
        parser = SpecMarkdownParser("inc")
        assert parser.state is ParseState.BEFORE_FIRST_HEADING
        parser.feed("**CC-A.1-1** | Early MUST.", 1)
        assert parser.current_ord is None
        parser.feed("## A.1 - Overview", 2)
        assert parser.state is ParseState.INSIDE_SECTION
        assert parser.current_ord == 1
        parser.feed("body", 3)
        sections, clauses, xrefs = parser.finish(3)
        assert [s.ref for s in sections] == ["A.1"]
        assert sections[0].line_end == 3
        assert clauses[0].section_ord is None

    def test_preamble_not_buffered_before_first_heading(self) -> None:
        parser = SpecMarkdownParser("pre")
        parser.feed("preamble text", 1)
        parser.feed("Builds on A.2 early.", 2)
        assert parser.state is ParseState.BEFORE_FIRST_HEADING
        parser.feed("## A.1 - Overview", 3)
        parser.feed("body", 4)
        sections, _, xrefs = parser.finish(4)
        assert sections[0].text == "body"
        assert [(x.target_ref, x.source_ord) for x in xrefs] == [("A.2", None)]

    def test_finish_closes_parser(self) -> None:
        parser = SpecMarkdownParser("done")
        parser.feed("## A.1 - Overview", 1)
        parser.finish(1)
        assert parser.state is ParseState.FINISHED
        assert parser.current_ord is None
        with pytest.raises(RuntimeError, match="already finished"):
            parser.feed("late line", 2)
