"""Generic per-collection record store.

Each public operation is one load -> mutate -> write cycle against the
collection file, run under the collection lock so concurrent requests on the
same file cannot interleave (two concurrent ``increment_counters`` calls
always both land). Nothing is cached between calls.

Errors: ``NotFound`` for an unknown id, ``Conflict`` when ``create`` would
duplicate a unique field, ``IOFailure`` when the file cannot be read or
written. A corrupt file reads as an empty collection (see
``JSONStore.load``).
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from bookingstore.core.errors import Conflict, NotFound
from bookingstore.core.locks import collection_lock
from bookingstore.core.models import Document
from bookingstore.core.store import JSONStore
from bookingstore.core.utils import is_number, new_id, now_iso

if TYPE_CHECKING:
    from bookingstore.registry.catalog import CollectionSpec

LOGGER = logging.getLogger("bookingstore.entity_store")

IDENTITY_FIELDS = frozenset({"id", "createdAt"})
TIMESTAMP_FIELDS = frozenset({"createdAt", "updatedAt"})


class EntityStore:
    def __init__(self, spec: CollectionSpec, backend: JSONStore):
        self.spec = spec
        self.backend = backend
        self._immutable = IDENTITY_FIELDS | spec.protected_fields | frozenset(spec.counters)

    @property
    def name(self) -> str:
        return self.spec.name

    # --- cycle helpers ---

    def _lock(self) -> asyncio.Lock:
        return collection_lock(self.backend.path)

    async def _run_shielded(self, fn, *args):
        # load may bootstrap or quarantine the file, write replaces it: either must
        # finish before the lock is released, even when the caller is cancelled
        job = asyncio.ensure_future(asyncio.to_thread(fn, *args))
        try:
            return await asyncio.shield(job)
        except asyncio.CancelledError:
            await asyncio.wait({job})
            if not job.cancelled():
                job.exception()
            raise

    async def _read(self) -> Document:
        return await self._run_shielded(self.backend.load)

    async def _persist(self, document: Document) -> None:
        await self._run_shielded(self.backend.write, document)

    def _index_or_raise(self, document: Document, entity_id: str) -> int:
        idx = document.find_index(entity_id)
        if idx is None:
            raise NotFound(self.name, entity_id)
        return idx

    def _apply_defaults(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        entity = {
            k: self._normalize(k, v)
            for k, v in fields.items()
            if k != "id" and k not in TIMESTAMP_FIELDS
        }
        for field, default in self.spec.defaults.items():
            if entity.get(field) is None:
                entity[field] = default() if callable(default) else copy.deepcopy(default)
        for field in self.spec.counters:
            entity[field] = 0
        return entity

    # --- reads ---

    async def list(self) -> list[dict[str, Any]]:
        async with self._lock():
            document = await self._read()
        return document.items

    async def get_by_id(self, entity_id: str) -> dict[str, Any]:
        async with self._lock():
            document = await self._read()
        return document.items[self._index_or_raise(document, entity_id)]

    async def find_one(self, **match: Any) -> dict[str, Any] | None:
        """First entity whose fields equal every keyword given.

        Fields listed in the collection's ``normalized_fields`` (e.g. email)
        compare trimmed and case-insensitively.
        """
        wanted = {k: self._normalize(k, v) for k, v in match.items()}
        async with self._lock():
            document = await self._read()
        for item in document.items:
            if all(self._normalize(k, item.get(k)) == v for k, v in wanted.items()):
                return item
        return None

    def _normalize(self, field: str, value: Any) -> Any:
        if field in self.spec.normalized_fields and isinstance(value, str):
            return value.strip().lower()
        return value

    def _check_unique(self, document: Document, body: Mapping[str, Any]) -> None:
        for field in self.spec.unique_fields:
            value = body.get(field)
            if value is None:
                continue
            for item in document.items:
                if self._normalize(field, item.get(field)) == value:
                    raise Conflict(self.name, field, value)

    def redact(self, entity: Mapping[str, Any]) -> dict[str, Any]:
        """Copy of ``entity`` without the collection's private fields (password hashes, tokens)."""
        return {k: v for k, v in entity.items() if k not in self.spec.private_fields}

    # --- mutations ---

    async def create(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        body = self._apply_defaults(fields)
        now = now_iso()
        async with self._lock():
            document = await self._read()
            self._check_unique(document, body)
            taken = {item.get("id") for item in document.items}
            entity_id = new_id()
            while entity_id in taken:
                entity_id = new_id()
            entity = {"id": entity_id, **body, "createdAt": now, "updatedAt": now}
            document.items.append(entity)
            await self._persist(document)
        LOGGER.debug("[%s] created %s", self.name, entity_id)
        return entity

    async def update(self, entity_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Shallow-merge ``fields`` over the entity.

        ``id``, ``createdAt``, the aggregate counters and the collection's
        protected fields are dropped from ``fields`` silently.
        """
        changes = {k: v for k, v in fields.items() if k not in self._immutable}
        if len(changes) != len(fields):
            LOGGER.debug(
                "[%s] ignoring immutable fields %s on %s",
                self.name,
                sorted(set(fields) & self._immutable),
                entity_id,
            )
        async with self._lock():
            document = await self._read()
            idx = self._index_or_raise(document, entity_id)
            entity = {**document.items[idx], **changes, "updatedAt": now_iso()}
            document.items[idx] = entity
            await self._persist(document)
        return entity

    async def delete(self, entity_id: str) -> bool:
        async with self._lock():
            document = await self._read()
            idx = document.find_index(entity_id)
            if idx is None:
                return False
            del document.items[idx]
            await self._persist(document)
        LOGGER.debug("[%s] deleted %s", self.name, entity_id)
        return True

    async def increment_counters(
        self, entity_id: str, deltas: Mapping[str, int | float]
    ) -> dict[str, Any]:
        """Add each delta to its field, e.g. ``{"totalRentals": 1, "totalRevenue": 120.0}``.

        Missing or null fields count as 0. Raises ``TypeError`` when a delta or
        the stored value is not a number, before anything is written.
        """
        if not deltas:
            raise ValueError("increment_counters needs at least one counter")
        for field, delta in deltas.items():
            if not is_number(delta):
                raise TypeError(f"delta for {field!r} must be a number, got {delta!r}")

        async with self._lock():
            document = await self._read()
            idx = self._index_or_raise(document, entity_id)
            entity = dict(document.items[idx])
            for field, delta in deltas.items():
                current = entity.get(field)
                if current is None:
                    current = 0
                if not is_number(current):
                    raise TypeError(f"{field!r} of {entity_id} holds {current!r}, not a number")
                entity[field] = current + delta
            entity["updatedAt"] = now_iso()
            document.items[idx] = entity
            await self._persist(document)
        return entity

    async def record_booking(self, entity_id: str, amount: int | float) -> dict[str, Any]:
        """Count one rental/booking of ``amount`` against the entity's counters."""
        if self.spec.booking_counters is None:
            raise ValueError(f"{self.name} does not track bookings")
        count_field, revenue_field = self.spec.booking_counters
        return await self.increment_counters(entity_id, {count_field: 1, revenue_field: amount})

    async def append_to(self, entity_id: str, field: str, value: Any) -> dict[str, Any]:
        """Append ``value`` to the list held in ``field``, e.g. a user's bookings.

        A missing or null field starts as an empty list. Raises ``TypeError``
        when the stored value is not a list and ``ValueError`` for identity,
        counter or protected fields, before anything is written.
        """
        if field in self._immutable or field == "updatedAt":
            raise ValueError(f"{field!r} cannot be appended to")

        async with self._lock():
            document = await self._read()
            idx = self._index_or_raise(document, entity_id)
            entity = dict(document.items[idx])
            current = entity.get(field)
            if current is None:
                current = []
            if not isinstance(current, list):
                raise TypeError(f"{field!r} of {entity_id} holds {current!r}, not a list")
            entity[field] = [*current, copy.deepcopy(value)]
            entity["updatedAt"] = now_iso()
            document.items[idx] = entity
            await self._persist(document)
        return entity
