"""Cross-reference extraction from content lines.

Three independent passes run over a gated line:
    1. Clause codes ("CC-A.1-1")       -> target_type "clause"
    2. Structural ids ("A.1", "C.2.1:4") -> target_type "section"
    3. Part mentions ("Part B")         -> "Part-B", target_type "section"

Scanning every line for "letter.digit" tokens drowns the output in version
numbers, enumerations and decimals, so only lines that pass :func:`xref_gate`
are scanned at all.
"""
from __future__ import annotations

import re

from specmodel.clause_extractor import CLAUSE_CODE, normalize_dashes
from specmodel.parser_config import DEFAULT_CONFIG, ParserConfig
from specmodel.spec_types import XREF_CLAUSE, XREF_SECTION, SpecXref

_ID_SHAPE_RE = re.compile(r"\b[A-Z]\.\d+")

_CLAUSE_MENTION_RE = re.compile(CLAUSE_CODE, re.IGNORECASE)
_SECTION_MENTION_RE = re.compile(r"\b([A-Z])\.(\d+(?:\.\d+)*(?::\d+(?:\.\d+)*)?)\b")
_PART_MENTION_RE = re.compile(r"\bPart\s+([A-Z])\b", re.IGNORECASE)


def xref_gate(line: str, config: ParserConfig = DEFAULT_CONFIG) -> bool:
    """Cheap pre-filter: is *line* likely to contain a citation?"""
    if config.require_period and "." not in line:
        return False
    if any(keyword in line for keyword in config.xref_keywords):
        return True
    return config.gate_on_id_shape and _ID_SHAPE_RE.search(line) is not None


def _snippet(text: str, start: int, end: int, radius: int) -> str:
    return text[max(0, start - radius):min(len(text), end + radius)].strip()


def extract_xrefs(
    line: str,
    line_num: int | None = None,
    source_ord: int | None = None,
    config: ParserConfig = DEFAULT_CONFIG,
) -> list[SpecXref]:
    """Extract cross-references from one (already gated) line.

    References are deduplicated within the line on the emitted target.
    Context snippets are cut from the original line; dash normalisation is
    one-for-one, so offsets carry over unchanged.
    """
    normalized = normalize_dashes(line)
    radius = config.context_radius
    seen: set[str] = set()
    out: list[SpecXref] = []

    def _add(ref: str, target_type: str, m: re.Match[str]) -> None:
        if ref in seen:
            return
        seen.add(ref)
        out.append(SpecXref(
            target_ref=ref,
            target_type=target_type,
            context=_snippet(line, m.start(), m.end(), radius),
            source_ord=source_ord,
            source_line=line_num,
        ))

    for m in _CLAUSE_MENTION_RE.finditer(normalized):
        _add(m.group(0).upper(), XREF_CLAUSE, m)
    for m in _SECTION_MENTION_RE.finditer(normalized):
        _add(m.group(0), XREF_SECTION, m)
    for m in _PART_MENTION_RE.finditer(normalized):
        _add(f"Part-{m.group(1).upper()}", XREF_SECTION, m)

    return out
