"""Tunable parsing policy.

The cross-reference gate is a precision/recall trade-off tuned against one
document dialect. It lives here, not in the extractor, so a new dialect means
writing a parser_config.json rather than editing regexes.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from specmodel.io_utils import load_json

DEFAULT_XREF_KEYWORDS: tuple[str, ...] = (
    "Builds on",
    "Prerequisite",
    "Coordinates",
    "Constrains",
    "Used by",
    "Refines",
    "Informs",
)


@dataclass(frozen=True, slots=True)
class ParserConfig:
    """Policy knobs for :mod:`specmodel.doc_parser`.

    Attributes:
        xref_keywords: Relation phrases that open the xref gate.
        gate_on_id_shape: Also open the gate for lines containing a bare
            structural id (``A.1``).
        require_period: Additionally require a ``.`` somewhere on the line
            (a stricter tuning for prose-heavy documents).
        context_radius: Characters captured on each side of an xref match.
    """

    xref_keywords: tuple[str, ...] = DEFAULT_XREF_KEYWORDS
    gate_on_id_shape: bool = True
    require_period: bool = False
    context_radius: int = 30

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> ParserConfig:
        keywords = data.get("xref_keywords")
        return cls(
            xref_keywords=(
                tuple(str(k) for k in keywords)  # type: ignore[union-attr]
                if keywords is not None
                else DEFAULT_XREF_KEYWORDS
            ),
            gate_on_id_shape=bool(data.get("gate_on_id_shape", True)),
            require_period=bool(data.get("require_period", False)),
            context_radius=int(data.get("context_radius", 30)),  # type: ignore[arg-type]
        )

    @classmethod
    def from_json(cls, path: Path) -> ParserConfig:
        """Load from a parser_config.json file. Missing keys keep defaults."""
        return cls.from_dict(load_json(path))


DEFAULT_CONFIG = ParserConfig()
