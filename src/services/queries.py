"""
Query / Read Layer
==================

Role-scoped projections built from the engines' tables.  Nothing here
writes; results may be slightly stale, which is fine for feeds and history.

Visibility rules applied on every projection:

* a ride's dropoff is replaced with ``HIDDEN_DROPOFF`` for anyone but the
  passenger until the ride is ONGOING or COMPLETED;
* a manifest entry's pickup code is shown only to the passenger who owns it;
* rating averages are rounded to one decimal.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.distance import within_radius
from src.domain.entities import HIDDEN_DROPOFF, Identity, resolve_party_role
from src.domain.enums import DROPOFF_VISIBLE_STATUSES, TripType, VehicleClass
from src.domain.errors import ForbiddenError, NotFoundError, ValidationError
from src.infrastructure.models import (
    ActorModel,
    PassengerBookingModel,
    PublishedTripModel,
    RideRequestModel,
)
from src.infrastructure.repositories import (
    ActorRepository,
    PublishedTripRepository,
    RideRequestRepository,
)


# ── Projections ───────────────────────────────────────────────────────


def _rating(value, comment, given_at) -> Optional[dict]:
    if value is None:
        return None
    return {"value": value, "comment": comment, "given_at": given_at}


def project_ride(ride: RideRequestModel, viewer: Identity) -> dict:
    dropoff = {
        "address": ride.dropoff_address,
        "coordinates": [ride.dropoff_lng, ride.dropoff_lat],
    }
    if viewer.actor_id != ride.passenger_id and ride.status not in DROPOFF_VISIBLE_STATUSES:
        dropoff = dict(HIDDEN_DROPOFF)

    return {
        "id": ride.id,
        "passenger_id": ride.passenger_id,
        "driver_id": ride.driver_id,
        "pickup": {
            "address": ride.pickup_address,
            "coordinates": [ride.pickup_lng, ride.pickup_lat],
        },
        "dropoff": dropoff,
        "trip_kind": ride.trip_kind,
        "vehicle_class": ride.vehicle_class,
        "seats": ride.seats,
        "distance_km": ride.distance_km,
        "duration_mins": ride.duration_mins,
        "estimated_fare": ride.estimated_fare,
        "offered_fare": ride.offered_fare,
        "final_fare": ride.final_fare,
        "payment_method": ride.payment_method,
        "payment_settled": ride.payment_settled,
        "status": ride.status,
        "cancelled_by": ride.cancelled_by,
        "cancellation_reason": ride.cancellation_reason,
        "accepted_at": ride.accepted_at,
        "arrived_at": ride.arrived_at,
        "started_at": ride.started_at,
        "completed_at": ride.completed_at,
        "cancelled_at": ride.cancelled_at,
        "rating_by_passenger": _rating(
            ride.passenger_rating, ride.passenger_rating_comment, ride.passenger_rated_at
        ),
        "rating_by_driver": _rating(
            ride.driver_rating, ride.driver_rating_comment, ride.driver_rated_at
        ),
        "created_at": ride.created_at,
    }


def project_booking(entry: PassengerBookingModel, viewer: Identity) -> dict:
    return {
        "id": entry.id,
        "trip_id": entry.trip_id,
        "passenger_id": entry.passenger_id,
        "seats_booked": entry.seats_booked,
        "booking_status": entry.booking_status,
        "pickup_status": entry.pickup_status,
        "pickup_code": entry.pickup_code if viewer.actor_id == entry.passenger_id else None,
    }


def project_trip(trip: PublishedTripModel, viewer: Identity) -> dict:
    return {
        "id": trip.id,
        "host_driver_id": trip.host_driver_id,
        "trip_type": trip.trip_type,
        "status": trip.status,
        "origin": {
            "address": trip.origin_name,
            "coordinates": [trip.origin_lng, trip.origin_lat],
        },
        "destination": {
            "address": trip.destination_name,
            "coordinates": [trip.destination_lng, trip.destination_lat],
        },
        "scheduled_time": trip.scheduled_time,
        "vehicle": trip.vehicle,
        "total_seats": trip.total_seats,
        "available_seats": trip.available_seats,
        "price_per_seat": trip.price_per_seat,
        "preferences": trip.preferences or {},
        "manifest": [project_booking(e, viewer) for e in trip.manifest],
    }


def project_wallet(actor: ActorModel) -> dict:
    return {
        "actor_id": actor.id,
        "role": actor.role,
        "wallet_balance": actor.wallet_balance,
        "earnings_total": actor.earnings_total,
        "rating_average": round(actor.rating_average, 1),
        "rating_count": actor.rating_count,
    }


# ── Queries ───────────────────────────────────────────────────────────


class RideQueries:
    def __init__(self, session: AsyncSession):
        self.rides = RideRequestRepository(session)

    async def active_ride(self, viewer: Identity) -> Optional[dict]:
        if viewer.is_driver:
            ride = await self.rides.get_active_for_driver(viewer.actor_id)
        else:
            ride = await self.rides.get_active_for_passenger(viewer.actor_id)
        return project_ride(ride, viewer) if ride else None

    async def history(self, viewer: Identity, page: int = 1, limit: int = 10) -> dict:
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive")
        rides, total = await self.rides.list_history(
            viewer.actor_id, viewer.is_driver, page, limit
        )
        return {
            "data": [project_ride(r, viewer) for r in rides],
            "pagination": {
                "total": total,
                "page": page,
                "pages": math.ceil(total / limit),
            },
        }

    async def get_ride(self, viewer: Identity, ride_id: int) -> dict:
        ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise NotFoundError("Ride not found")
        resolve_party_role(viewer.actor_id, ride.passenger_id, ride.driver_id)
        return project_ride(ride, viewer)

    async def nearby(
        self,
        viewer: Identity,
        vehicle_class: Optional[VehicleClass] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """Open requests a driver could accept, newest first."""
        if not viewer.is_driver:
            raise ForbiddenError("Only drivers can browse ride requests")
        rides = await self.rides.list_pending(
            vehicle_class, limit or settings.nearby_rides_limit
        )
        return [project_ride(r, viewer) for r in rides]


class TripQueries:
    def __init__(self, session: AsyncSession):
        self.trips = PublishedTripRepository(session)

    async def search(
        self,
        viewer: Identity,
        *,
        trip_type: Optional[TripType] = None,
        after: Optional[datetime] = None,
        from_coords: Optional[tuple[float, float]] = None,
        to_coords: Optional[tuple[float, float]] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """
        Open trips with free seats, soonest first, capped.

        ``from_coords`` / ``to_coords`` are ``(lng, lat)``; origins must lie
        within the origin radius and destinations within the destination
        radius configured in settings.
        """
        limit = min(limit or settings.search_limit, settings.search_limit)
        if after is None:
            after = datetime.now(timezone.utc) - timedelta(
                hours=settings.search_lookback_hours
            )
        geo = from_coords is not None or to_coords is not None

        trips = await self.trips.search(
            scheduled_after=after,
            trip_type=trip_type,
            near_origin=(*from_coords, settings.search_origin_radius_km)
            if from_coords
            else None,
            near_destination=(*to_coords, settings.search_destination_radius_km)
            if to_coords
            else None,
            limit=None if geo else limit,
        )
        if from_coords:
            trips = [
                t
                for t in trips
                if within_radius(
                    (t.origin_lng, t.origin_lat),
                    from_coords,
                    settings.search_origin_radius_km,
                )
            ]
        if to_coords:
            trips = [
                t
                for t in trips
                if within_radius(
                    (t.destination_lng, t.destination_lat),
                    to_coords,
                    settings.search_destination_radius_km,
                )
            ]
        return [project_trip(t, viewer) for t in trips[:limit]]

    async def hosted(self, viewer: Identity) -> list[dict]:
        if not viewer.is_driver:
            raise ForbiddenError("Only drivers host trips")
        return [project_trip(t, viewer) for t in await self.trips.list_by_host(viewer.actor_id)]

    async def joined(self, viewer: Identity) -> list[dict]:
        return [
            project_trip(t, viewer)
            for t in await self.trips.list_by_passenger(viewer.actor_id)
        ]

    async def get_trip(self, viewer: Identity, trip_id: int) -> dict:
        trip = await self.trips.get_by_id(trip_id)
        if trip is None:
            raise NotFoundError("Trip not found")
        return project_trip(trip, viewer)


class AccountQueries:
    def __init__(self, session: AsyncSession):
        self.actors = ActorRepository(session)

    async def wallet(self, viewer: Identity) -> dict:
        actor = await self.actors.get_by_id(viewer.actor_id)
        if actor is None:
            raise NotFoundError("Actor not found")
        return project_wallet(actor)
