"""Default values applied at create time, one table per entity kind.

A value is either used as is (deep-copied, so list defaults are never shared
between records) or, when callable, called with no arguments.
"""

from __future__ import annotations

from datetime import date
from typing import Any


def current_year() -> int:
    return date.today().year


CAR_DEFAULTS: dict[str, Any] = {
    "year": current_year,
    "type": "sedan",  # sedan, suv, sports, luxury, van...
    "transmission": "automatic",
    "fuelType": "petrol",
    "seats": 5,
    "doors": 4,
    "luggage": 2,
    "pricePerDay": 0,
    "currency": "USD",
    "features": [],
    "images": [],
    "available": True,
    "status": "active",
}

CRUISE_DEFAULTS: dict[str, Any] = {
    "shipName": "",
    "duration": "7 nights",
    "ports": [],
    "description": "",
    "pricePerPerson": 0,
    "currency": "USD",
    "capacity": 0,
    "availableCabins": 0,
    "cabinTypes": [],
    "amenities": [],
    "images": [],
    "status": "active",
}

HOTEL_DEFAULTS: dict[str, Any] = {
    "address": "",
    "description": "",
    "rating": 0,
    "stars": 3,
    "pricePerNight": 0,
    "currency": "USD",
    "rooms": 0,
    "availableRooms": 0,
    "amenities": [],
    "images": [],
    "status": "active",
}

USER_DEFAULTS: dict[str, Any] = {
    "phone": None,
    "avatar": None,
    "isVerified": False,
    "verificationToken": None,
    "verificationExpires": None,
    "resetPasswordToken": None,
    "resetPasswordExpires": None,
    "lastLogin": None,
    "bookings": [],
}

ADMIN_DEFAULTS: dict[str, Any] = {
    "role": "admin",  # or super_admin
    "isActive": True,
    "lastLogin": None,
    "createdBy": None,
}
