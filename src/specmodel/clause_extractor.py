"""Conformance clause (CC-code) extraction.

Recognises clause markers such as::

    **CC-A.1-1** | Every system MUST support X.
    | **CC‑A0‑1** | Description |
    **CC-C.2.1-4 (Label).** Description

Source documents use typographic dashes inconsistently, including inside the
marker itself, so every dash variant is folded to ``-`` before matching.
"""
from __future__ import annotations

import re

from specmodel.spec_types import MODALITIES, SpecClause

# Non-breaking hyphen, en-dash, em-dash
_DASH_VARIANTS_RE = re.compile("[‑–—]")

CLAUSE_CODE = r"CC-[A-Z][A-Z0-9.]*-\d+"

_CLAUSE_RE = re.compile(
    r"\*{0,2}CC-([A-Z][A-Z0-9.]*-\d+)"
    r"(?:\s*\([^)]*\))?"      # optional "(Label)"
    r"\*{0,2}\.?\*{0,2}"      # closing bold, optional period
    r"\s*\|?\s*"              # optional table separator
    r"(.*)",
    re.IGNORECASE,
)

_LEADING_DECORATION_RE = re.compile(r"^[|*\s]+")
_TRAILING_DECORATION_RE = re.compile(r"[|\s]+$")

# Alternation order puts the negatives first so "MUST NOT" never reads as "MUST".
_MODALITY_RE = re.compile(r"\b(" + "|".join(MODALITIES) + r")\b")


def normalize_dashes(text: str) -> str:
    """Replace non-breaking hyphens, en-dashes and em-dashes with ``-``."""
    return _DASH_VARIANTS_RE.sub("-", text)


def extract_modality(text: str) -> str | None:
    """Return the first modality keyword in *text*, or None."""
    m = _MODALITY_RE.search(text)
    return m.group(1) if m else None


def extract_clause(
    line: str,
    line_num: int,
    section_ord: int | None = None,
) -> SpecClause | None:
    """Decode one clause from a content line.

    Args:
        line: A non-heading line.
        line_num: 1-based source line number.
        section_ord: Ordinal of the enclosing section, if any.

    Returns:
        SpecClause, or None if the line carries no clause marker or the
        marker is followed by no statement text.
    """
    normalized = normalize_dashes(line)
    m = _CLAUSE_RE.search(normalized)
    if not m:
        return None

    code = f"CC-{m.group(1).upper()}"
    text = _LEADING_DECORATION_RE.sub("", m.group(2))
    text = _TRAILING_DECORATION_RE.sub("", text)
    # A bare marker ("References: CC-A.1-1") cites a clause, it does not state one.
    if not text:
        return None

    return SpecClause(
        code=code,
        text=text,
        modality=extract_modality(text),
        line_num=line_num,
        section_ord=section_ord,
    )
