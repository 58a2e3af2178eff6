"""
Fare Estimator  (Strategy Pattern)
==================================

Formula
-------
Fare = round_half_up(Base + Distance_km x Rate_per_km + Duration_min x Rate_per_min)

Rates depend on the vehicle class.  Metered (CITY) requests always use the
formula; every other trip kind is priced up-front by the client (the
driver's per-km rate for outstation / rental) and the formula is only a
fallback when no offer is supplied.

Complexity: O(1) per quote.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from .enums import TripKind, VehicleClass
from .errors import ValidationError


@dataclass(frozen=True)
class FareRates:
    base: float
    per_km: float
    per_min: float


RATES: dict[VehicleClass, FareRates] = {
    VehicleClass.CAR: FareRates(base=50, per_km=12, per_min=1.5),
    VehicleClass.AUTO: FareRates(base=30, per_km=9, per_min=1.0),
    VehicleClass.BIKE: FareRates(base=20, per_km=6, per_min=0.8),
}


def estimate_fare(
    distance_km: float,
    duration_mins: float,
    vehicle_class: VehicleClass | str = VehicleClass.CAR,
) -> float:
    """Metered estimate for a trip.  Unknown vehicle classes price as CAR."""
    if distance_km < 0 or duration_mins < 0:
        raise ValidationError("Distance and duration must be non-negative")
    try:
        rates = RATES[VehicleClass(vehicle_class)]
    except ValueError:
        rates = RATES[VehicleClass.CAR]
    raw = rates.base + distance_km * rates.per_km + duration_mins * rates.per_min
    return float(math.floor(raw + 0.5))


@dataclass(frozen=True)
class FareQuote:
    estimated_fare: float
    offered_fare: float
    final_fare: float


# ── Strategy hierarchy ────────────────────────────────────────────────


class FareStrategy(ABC):
    @abstractmethod
    def quote(
        self,
        distance_km: float,
        duration_mins: float,
        vehicle_class: VehicleClass,
        offered_fare: Optional[float],
    ) -> FareQuote: ...


class MeteredFare(FareStrategy):
    """CITY rides: the estimate always comes from the formula."""

    def quote(self, distance_km, duration_mins, vehicle_class, offered_fare):
        estimate = estimate_fare(distance_km, duration_mins, vehicle_class)
        accepted = offered_fare if offered_fare else estimate
        return FareQuote(estimate, accepted, accepted)


class NegotiatedFare(FareStrategy):
    """Pre-negotiated kinds trust the client's offer, falling back to the formula."""

    def quote(self, distance_km, duration_mins, vehicle_class, offered_fare):
        estimate = offered_fare or estimate_fare(
            distance_km, duration_mins, vehicle_class
        )
        return FareQuote(estimate, estimate, estimate)


# ── Engine facade ─────────────────────────────────────────────────────


class FareEstimator:
    """High-level API used by the ride lifecycle service."""

    def __init__(
        self, default_distance_km: float = 5.0, default_duration_mins: float = 15.0
    ):
        self.default_distance_km = default_distance_km
        self.default_duration_mins = default_duration_mins

    @staticmethod
    def strategy_for(trip_kind: TripKind) -> FareStrategy:
        if trip_kind == TripKind.CITY:
            return MeteredFare()
        return NegotiatedFare()

    def quote(
        self,
        trip_kind: TripKind,
        vehicle_class: VehicleClass,
        distance_km: Optional[float] = None,
        duration_mins: Optional[float] = None,
        offered_fare: Optional[float] = None,
    ) -> FareQuote:
        if offered_fare is not None and offered_fare < 0:
            raise ValidationError("Offered fare must be non-negative")
        return self.strategy_for(trip_kind).quote(
            distance_km or self.default_distance_km,
            duration_mins or self.default_duration_mins,
            vehicle_class,
            offered_fare,
        )
