"""Collection registry: one row per entity kind.

Every kind shares the same ``EntityStore`` logic; a row only says where the
kind lives on disk and how its records are defaulted and protected. Adding a
kind means adding a row here.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from bookingstore.config import settings
from bookingstore.core.entity_store import EntityStore
from bookingstore.core.store import JSONStore
from bookingstore.registry.defaults import (
    ADMIN_DEFAULTS,
    CAR_DEFAULTS,
    CRUISE_DEFAULTS,
    HOTEL_DEFAULTS,
    USER_DEFAULTS,
)

_CREDENTIAL_FIELDS = frozenset({"passwordHash", "verificationToken", "resetPasswordToken"})


@dataclass(frozen=True)
class CollectionSpec:
    name: str
    filename: str
    defaults: Mapping[str, Any] = field(default_factory=dict)
    # Numeric fields only moved by increment_counters; start at 0
    counters: tuple[str, ...] = ()
    # (event count field, revenue field) bumped by record_booking
    booking_counters: tuple[str, str] | None = None
    # Stripped from updates on top of id/createdAt
    protected_fields: frozenset[str] = frozenset()
    # Left out of redact()
    private_fields: frozenset[str] = frozenset()
    # Compared trimmed and case-insensitively by find_one
    normalized_fields: frozenset[str] = frozenset()
    # Rejected by create when another entity already holds the value
    unique_fields: frozenset[str] = frozenset()
    # List key used by files written before the items layout
    legacy_key: str | None = None


REGISTRY: dict[str, CollectionSpec] = {
    spec.name: spec
    for spec in (
        CollectionSpec(
            name="cars",
            filename="cars.json",
            defaults=CAR_DEFAULTS,
            counters=("totalRentals", "totalRevenue"),
            booking_counters=("totalRentals", "totalRevenue"),
            legacy_key="cars",
        ),
        CollectionSpec(
            name="cruises",
            filename="cruises.json",
            defaults=CRUISE_DEFAULTS,
            counters=("totalBookings", "totalRevenue"),
            booking_counters=("totalBookings", "totalRevenue"),
            legacy_key="cruises",
        ),
        CollectionSpec(
            name="hotels",
            filename="hotels.json",
            defaults=HOTEL_DEFAULTS,
            counters=("totalBookings", "totalRevenue"),
            booking_counters=("totalBookings", "totalRevenue"),
            legacy_key="hotels",
        ),
        CollectionSpec(
            name="users",
            filename="users.json",
            defaults=USER_DEFAULTS,
            protected_fields=frozenset({"email"}) | _CREDENTIAL_FIELDS,
            private_fields=_CREDENTIAL_FIELDS,
            normalized_fields=frozenset({"email"}),
            unique_fields=frozenset({"email"}),
            legacy_key="users",
        ),
        CollectionSpec(
            name="admins",
            filename="admins.json",
            defaults=ADMIN_DEFAULTS,
            protected_fields=frozenset({"email", "passwordHash"}),
            private_fields=frozenset({"passwordHash"}),
            normalized_fields=frozenset({"email"}),
            unique_fields=frozenset({"email"}),
            legacy_key="admins",
        ),
    )
}


def get_collection(name: str) -> CollectionSpec:
    try:
        return REGISTRY[name]
    except KeyError:
        known = ", ".join(sorted(REGISTRY))
        raise KeyError(f"unknown collection {name!r} (known: {known})") from None


def collection_path(name: str, data_dir: Path | str | None = None) -> Path:
    base = Path(data_dir) if data_dir is not None else settings.DATA_DIR
    return base / get_collection(name).filename


def open_store(name: str, data_dir: Path | str | None = None) -> EntityStore:
    """Entity store for a registered collection, backed by its file under ``data_dir``."""
    spec = get_collection(name)
    backend = JSONStore(collection_path(name, data_dir), legacy_key=spec.legacy_key)
    return EntityStore(spec, backend)
