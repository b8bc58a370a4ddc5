"""Heading classifier for spec markdown.

Turns one heading line into a structural reference and a title. Headings in
spec documents mix IDed forms ("A.1 - Overview", "Part A – Kernel") with free
prose ("Table of Contents"). Classification is an ordered chain of rules;
the first match wins, and a heading that matches nothing still yields a
title with ``ref=None`` so the section is never dropped.

Patterns overlap (a bare "A.1" is a prefix of "A.1 - Overview"), so rule
order is significant:
    1. Structural id + dash + title
    2. "Part X" + dash + title
    3. "Cluster X[.ROMAN]" + dash + title, optionally bold
    4. Bare structural id
    5. Fallback: title only
"""
from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from specmodel.spec_types import HeadingRef

# Hyphen, en-dash, em-dash
_DASH = r"[-–—]"

# "A.1", "A.1.1", "A.1:4.1", "C.2.1"
STRUCTURAL_ID = r"[A-Z]\.[\d.]+(?::[.\d]+)?"

_HEADING_MARKER_RE = re.compile(r"^#+\s*")


@dataclass(frozen=True, slots=True)
class HeadingRule:
    """One (pattern, builder) link in the classification chain."""

    name: str
    pattern: re.Pattern[str]
    build: Callable[[re.Match[str]], HeadingRef]


def _structural(m: re.Match[str]) -> HeadingRef:
    return HeadingRef(ref=m.group(1), title=m.group(2).strip())


def _part(m: re.Match[str]) -> HeadingRef:
    return HeadingRef(ref=f"Part-{m.group(1).upper()}", title=m.group(2).strip())


def _cluster(m: re.Match[str]) -> HeadingRef:
    return HeadingRef(ref=f"Cluster-{m.group(1)}", title=m.group(2).strip())


def _bare(m: re.Match[str]) -> HeadingRef:
    return HeadingRef(ref=m.group(1), title=m.group(1))


DEFAULT_RULES: tuple[HeadingRule, ...] = (
    HeadingRule(
        "structural",
        re.compile(rf"^({STRUCTURAL_ID})\s*{_DASH}\s*(.+)$"),
        _structural,
    ),
    HeadingRule(
        "part",
        re.compile(rf"^Part\s+([A-Z])\s*{_DASH}\s*(.+)$", re.IGNORECASE),
        _part,
    ),
    HeadingRule(
        "cluster",
        re.compile(
            rf"^(?:\*{{0,2}})Cluster\s+([A-Z](?:\.[IVX]+)?)\s*{_DASH}\s*(.+?)(?:\*{{0,2}})$",
            re.IGNORECASE,
        ),
        _cluster,
    ),
    HeadingRule(
        "bare_structural",
        re.compile(rf"^({STRUCTURAL_ID})\s*$"),
        _bare,
    ),
)


def heading_text(line: str) -> str:
    """Strip the leading ``#`` run and surrounding whitespace."""
    return _HEADING_MARKER_RE.sub("", line).strip()


def classify_heading(
    line: str,
    rules: tuple[HeadingRule, ...] = DEFAULT_RULES,
) -> HeadingRef:
    """Classify a heading line into ``HeadingRef(ref, title)``.

    Args:
        line: Raw heading line, with or without its ``#`` marker.
        rules: Ordered rule chain; extend it to support new dialects.

    Returns:
        HeadingRef with ``ref=None`` when no rule matched.
    """
    text = heading_text(line)
    for rule in rules:
        m = rule.pattern.match(text)
        if m:
            return rule.build(m)
    return HeadingRef(ref=None, title=text)
