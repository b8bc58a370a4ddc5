"""Content-addressed knowledge (episteme) cards and their kinds.

A card's minimal identity is the triple
``(bounded_context_ref, described_entity_ref, content_hash)``. Upserting the
same triple twice touches one row; changing the content yields a new hash and
therefore a new card, and the old card stays until someone deletes it.
Content is immutable once hashed; only auxiliary metadata (kind, viewpoint,
levels, meta, slot values) is updated in place.
"""
from __future__ import annotations

from typing import Any

import orjson

from specmodel.db import fetch_id, transaction
from specmodel.hashing import sha256_hex
from specmodel.spec_types import CardUpsertResult, KindRegisterResult

SLOT_TYPES: tuple[str, ...] = ("slot", "ref", "value")


def _json_or_none(value: Any) -> str | None:
    return orjson.dumps(value).decode("utf-8") if value is not None else None


def _replace_card_slots(conn: Any, card_id: int, slots: dict[str, Any]) -> None:
    conn.execute("DELETE FROM episteme_card_slots WHERE card_id = ?", [card_id])
    for name, value in slots.items():
        conn.execute(
            "INSERT INTO episteme_card_slots (card_id, slot_name, value_json) "
            "VALUES (?, ?, ?)",
            [card_id, name, orjson.dumps(value).decode("utf-8")],
        )


def upsert_card(conn: Any, card: dict[str, Any]) -> CardUpsertResult:
    """Create or refresh the card identified by its content triple.

    Required keys: ``kind_ref``, ``bounded_context_ref``,
    ``described_entity_ref``, ``content``. Optional: ``grounding_holon_ref``,
    ``viewpoint_ref``, ``reference_scheme``, ``meta``, ``formality_level``,
    ``assurance_level``, ``slots`` (name -> JSON-serialisable value; replaces
    the card's slot values when given).
    """
    content_hash = sha256_hex(card["content"])
    metadata = [
        card["kind_ref"],
        card.get("grounding_holon_ref"),
        card.get("viewpoint_ref"),
        card.get("reference_scheme"),
        _json_or_none(card.get("meta")),
        card.get("formality_level"),
        card.get("assurance_level"),
    ]

    with transaction(conn):
        row = conn.execute(
            "SELECT id FROM episteme_cards WHERE bounded_context_ref = ? "
            "AND described_entity_ref = ? AND content_hash = ?",
            [card["bounded_context_ref"], card["described_entity_ref"], content_hash],
        ).fetchone()

        if row is not None:
            card_id = int(row[0])
            conn.execute(
                """
                UPDATE episteme_cards SET
                    kind_ref = ?, grounding_holon_ref = ?, viewpoint_ref = ?,
                    reference_scheme = ?, meta_json = ?, formality_level = ?,
                    assurance_level = ?, updated_at = current_timestamp
                WHERE id = ?
                """,
                [*metadata, card_id],
            )
            created = False
        else:
            card_id = fetch_id(
                conn,
                """
                INSERT INTO episteme_cards
                (kind_ref, grounding_holon_ref, viewpoint_ref, reference_scheme,
                 meta_json, formality_level, assurance_level,
                 bounded_context_ref, described_entity_ref, content, content_hash)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING id
                """,
                [
                    *metadata,
                    card["bounded_context_ref"],
                    card["described_entity_ref"],
                    card["content"],
                    content_hash,
                ],
            )
            created = True

        if card.get("slots") is not None:
            _replace_card_slots(conn, card_id, card["slots"])

    return CardUpsertResult(id=card_id, created=created)


def register_kind(conn: Any, kind: dict[str, Any]) -> KindRegisterResult:
    """Create or update a kind by ``ref`` and replace its slot definitions.

    Slots are stored in the order given. The schema's lexical guard rejects
    a ``slot`` slot whose name does not end in ``Slot`` and a ``ref`` slot
    whose name does not end in ``Ref``; the whole registration is then
    rolled back.
    """
    signature = _json_or_none(kind.get("signature"))
    slots: list[dict[str, Any]] = list(kind.get("slots") or [])

    with transaction(conn):
        row = conn.execute(
            "SELECT id FROM episteme_kinds WHERE ref = ?", [kind["ref"]]
        ).fetchone()
        if row is not None:
            kind_id = int(row[0])
            conn.execute(
                "UPDATE episteme_kinds SET name = ?, parent_kind_ref = ?, "
                "signature_json = ?, description = ?, updated_at = current_timestamp "
                "WHERE id = ?",
                [
                    kind["name"],
                    kind.get("parent_kind_ref"),
                    signature,
                    kind.get("description"),
                    kind_id,
                ],
            )
            conn.execute("DELETE FROM episteme_kind_slots WHERE kind_id = ?", [kind_id])
            created = False
        else:
            kind_id = fetch_id(
                conn,
                "INSERT INTO episteme_kinds "
                "(ref, name, parent_kind_ref, signature_json, description) "
                "VALUES (?, ?, ?, ?, ?) RETURNING id",
                [
                    kind["ref"],
                    kind["name"],
                    kind.get("parent_kind_ref"),
                    signature,
                    kind.get("description"),
                ],
            )
            created = True

        for i, slot in enumerate(slots):
            if slot["slot_type"] not in SLOT_TYPES:
                raise ValueError(f"Unknown slot_type: {slot['slot_type']!r}")
            conn.execute(
                """
                INSERT INTO episteme_kind_slots
                (kind_id, slot_name, slot_type, value_kind_ref, cardinality,
                 is_required, description, ord)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    kind_id,
                    slot["slot_name"],
                    slot["slot_type"],
                    slot.get("value_kind_ref"),
                    slot.get("cardinality") or "1",
                    slot.get("is_required", True) is not False,
                    slot.get("description"),
                    i,
                ],
            )

    return KindRegisterResult(id=kind_id, created=created, slot_count=len(slots))
