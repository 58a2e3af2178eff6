"""
Domain value objects and the pure rules both engines share.

Patterns used
-------------
- **State Pattern** tables (``RIDE_TRANSITIONS`` / ``TRIP_TRANSITIONS``)
  checked here before any write is attempted; the write itself is then a
  compare-and-swap on the status that was checked.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Optional

from .enums import (
    RIDE_TRANSITIONS,
    TRIP_TRANSITIONS,
    RideStatus,
    Role,
    TripStatus,
)
from .errors import ForbiddenError, InvalidTransitionError

PICKUP_CODE_DIGITS = 4

HIDDEN_DROPOFF = {"address": "Hidden until OTP", "coordinates": [0.0, 0.0]}


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    address: str
    lng: float
    lat: float

    @property
    def coordinates(self) -> list[float]:
        return [self.lng, self.lat]

    def as_dict(self) -> dict:
        return {"address": self.address, "coordinates": self.coordinates}


@dataclass(frozen=True)
class Identity:
    """Authenticated caller, as vouched for by the identity collaborator."""

    actor_id: int
    role: Role

    @property
    def is_driver(self) -> bool:
        return self.role == Role.DRIVER


# ── Rules ─────────────────────────────────────────────────────────────


def resolve_party_role(
    actor_id: int, passenger_id: int, driver_id: Optional[int]
) -> Role:
    """Role of ``actor_id`` relative to a ride; non-parties are rejected."""
    if driver_id is not None and actor_id == driver_id:
        return Role.DRIVER
    if actor_id == passenger_id:
        return Role.PASSENGER
    raise ForbiddenError("Not authorized to act on this ride")


def check_ride_transition(
    role: Role, current: RideStatus, target: RideStatus
) -> None:
    allowed = RIDE_TRANSITIONS.get(role, {}).get(current, set())
    if target not in allowed:
        raise InvalidTransitionError(
            f"Cannot move from {current.value} to {target.value} as {role.value.lower()}"
        )


def check_trip_transition(current: TripStatus, target: TripStatus) -> None:
    if target not in TRIP_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(
            f"Cannot move trip from {current.value} to {target.value}"
        )


def generate_pickup_code() -> str:
    """Fresh 4-digit code.  Collisions within one manifest are acceptable."""
    low = 10 ** (PICKUP_CODE_DIGITS - 1)
    return str(low + secrets.randbelow(9 * low))
