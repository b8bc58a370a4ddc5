"""I/O utilities for JSON and markdown file operations.

orjson-backed JSON I/O. Dataclass results (ingest summaries, verification
reports) serialise natively through orjson.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson


def load_json(path: Path) -> Any:
    """Load JSON from a file."""
    return orjson.loads(path.read_bytes())


def save_json(obj: Any, path: Path, *, pretty: bool = True) -> None:
    """Save an object as JSON, creating parent directories as needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    opts = orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS if pretty else orjson.OPT_SORT_KEYS
    path.write_bytes(orjson.dumps(obj, option=opts))


def dumps_json(obj: Any, *, pretty: bool = False) -> str:
    """Serialise *obj* to a JSON string (sorted keys)."""
    opts = orjson.OPT_SORT_KEYS | (orjson.OPT_INDENT_2 if pretty else 0)
    return orjson.dumps(obj, option=opts).decode("utf-8")


def read_markdown(path: Path) -> str:
    """Read a markdown file as UTF-8, normalising CRLF line endings."""
    return path.read_text(encoding="utf-8").replace("\r\n", "\n")
