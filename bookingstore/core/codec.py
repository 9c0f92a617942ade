"""JSON encoding of collection documents.

Layout on disk::

    {
      "items": [ {...}, {...} ],
      "lastUpdated": "2025-09-10T12:33:06.123000Z"
    }

Files written by the older per-collection stores keep their list under the
collection name (``{"cars": [...]}``); ``decode`` reads those when given the
``legacy_key`` and ``encode`` always writes ``items``.
"""

from __future__ import annotations

import json

from pydantic import ValidationError

from bookingstore.core.errors import CorruptDocument
from bookingstore.core.models import Document


def encode(document: Document) -> bytes:
    payload = document.model_dump(mode="json")
    text = json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False)
    return (text + "\n").encode("utf-8")


def decode(data: bytes, *, legacy_key: str | None = None) -> Document:
    if not data or not data.strip():
        raise CorruptDocument("empty document")
    try:
        raw = json.loads(data)
    except ValueError as e:
        raise CorruptDocument(f"invalid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise CorruptDocument(f"top level is {type(raw).__name__}, expected an object")

    if "items" not in raw:
        # A file without its item list would otherwise load as empty and be overwritten
        if not legacy_key or legacy_key not in raw:
            raise CorruptDocument("missing 'items'")
        raw = {"items": raw[legacy_key], "lastUpdated": raw.get("lastUpdated")}

    try:
        return Document.model_validate(raw)
    except ValidationError as e:
        raise CorruptDocument(f"invalid document: {e.error_count()} error(s)") from e
