"""Content fingerprinting for documents and knowledge cards."""
from __future__ import annotations

import hashlib


def sha256_hex(text: str) -> str:
    """SHA-256 of *text* encoded as UTF-8 (full lowercase hex digest)."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
