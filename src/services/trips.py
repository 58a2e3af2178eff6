"""
Seat Ledger Engine
==================

Owns the seat inventory of published trips and their passenger manifest.

Ledger invariant
----------------
For every trip, at every committed instant::

    available_seats + sum(seats_booked of entries not CANCELLED) == total_seats

Every operation below moves seats and manifest rows inside one transaction,
and the seat counter itself only ever changes through a conditional
``UPDATE`` (``available_seats >= n`` on claim, ``+ n <= total`` on release).
Two passengers racing for the last seats therefore cannot both win: the
loser's update matches no row and is reported as ``InsufficientSeatsError``.

Cancelling a whole trip does not return seats to inventory; the trip simply
stops being searchable and its manifest is kept as booked.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.entities import (
    Identity,
    Location,
    check_trip_transition,
    generate_pickup_code,
)
from src.domain.enums import BookingStatus, PickupStatus, TripStatus, TripType
from src.domain.errors import (
    ConflictError,
    ForbiddenError,
    InsufficientSeatsError,
    NotFoundError,
    SelfBookingError,
    ValidationError,
)
from src.infrastructure.models import PassengerBookingModel, PublishedTripModel
from src.infrastructure.repositories import (
    PassengerBookingRepository,
    PublishedTripRepository,
)
from src.services.settlement import SettlementService

logger = logging.getLogger(__name__)


class SeatLedgerService:
    def __init__(
        self, session: AsyncSession, settlement: Optional[SettlementService] = None
    ):
        self.session = session
        self.trips = PublishedTripRepository(session)
        self.bookings = PassengerBookingRepository(session)
        self.settlement = settlement or SettlementService(session)

    async def _get(self, trip_id: int) -> PublishedTripModel:
        trip = await self.trips.get_by_id(trip_id)
        if trip is None:
            raise NotFoundError("Trip not found")
        return trip

    async def _get_hosted(self, identity: Identity, trip_id: int) -> PublishedTripModel:
        trip = await self._get(trip_id)
        if trip.host_driver_id != identity.actor_id:
            raise ForbiddenError("Not authorized to update this trip")
        return trip

    async def _get_entry(
        self, trip: PublishedTripModel, booking_id: int
    ) -> PassengerBookingModel:
        entry = await self.bookings.get_by_id(booking_id)
        if entry is None or entry.trip_id != trip.id:
            raise NotFoundError("Booking not found on this trip")
        return entry

    async def publish(
        self,
        identity: Identity,
        origin: Location,
        destination: Location,
        scheduled_time: datetime,
        total_seats: int,
        price_per_seat: float,
        *,
        trip_type: TripType = TripType.LOCAL,
        vehicle: Optional[str] = None,
        preferences: Optional[dict] = None,
    ) -> PublishedTripModel:
        if not identity.is_driver:
            raise ForbiddenError("Only drivers can publish trips")
        if not origin.address or not destination.address:
            raise ValidationError("Origin and destination are required")
        if total_seats < 1:
            raise ValidationError("A trip needs at least one seat")
        if price_per_seat < 0:
            raise ValidationError("Price per seat must be non-negative")

        trip = await self.trips.create(
            PublishedTripModel(
                host_driver_id=identity.actor_id,
                trip_type=trip_type,
                status=TripStatus.SCHEDULED,
                origin_name=origin.address,
                origin_lng=origin.lng,
                origin_lat=origin.lat,
                destination_name=destination.address,
                destination_lng=destination.lng,
                destination_lat=destination.lat,
                scheduled_time=scheduled_time,
                vehicle=vehicle or "Sedan",
                total_seats=total_seats,
                available_seats=total_seats,
                price_per_seat=price_per_seat,
                preferences=preferences or {},
            )
        )
        logger.info(
            "Trip %d published by driver %d (%d seats @ %.2f)",
            trip.id,
            identity.actor_id,
            total_seats,
            price_per_seat,
        )
        return trip

    async def claim_seats(
        self, identity: Identity, trip_id: int, seats: int = 1
    ) -> PassengerBookingModel:
        if seats < 1:
            raise ValidationError("At least one seat must be booked")

        trip = await self._get(trip_id)
        if trip.host_driver_id == identity.actor_id:
            raise SelfBookingError("Cannot book your own published trip")
        if await self.bookings.get_live(trip_id, identity.actor_id):
            raise ConflictError("You have already booked a seat on this trip")

        if not await self.trips.reserve_seats(trip_id, seats):
            trip = await self._get(trip_id)
            if trip.status != TripStatus.SCHEDULED:
                raise ConflictError(f"Trip is {trip.status.value}, not open for booking")
            raise InsufficientSeatsError(
                f"Only {trip.available_seats} seats available"
            )

        try:
            entry = await self.bookings.create(
                PassengerBookingModel(
                    trip_id=trip_id,
                    passenger_id=identity.actor_id,
                    seats_booked=seats,
                    booking_status=BookingStatus.CONFIRMED,
                    pickup_status=PickupStatus.PENDING,
                    pickup_code=generate_pickup_code(),
                )
            )
        except IntegrityError as exc:
            raise ConflictError("You have already booked a seat on this trip") from exc

        logger.info(
            "Passenger %d booked %d seat(s) on trip %d",
            identity.actor_id,
            seats,
            trip_id,
        )
        return entry

    async def cancel_booking(
        self, identity: Identity, trip_id: int
    ) -> PassengerBookingModel:
        """Passenger withdraws their entry; its seats go back to inventory."""
        trip = await self._get(trip_id)
        entry = await self.bookings.get_live(trip_id, identity.actor_id)
        if entry is None:
            raise NotFoundError("No active booking on this trip")
        if trip.status != TripStatus.SCHEDULED:
            raise ConflictError(f"Trip is {trip.status.value}; booking can no longer be cancelled")

        won = await self.bookings.compare_and_set(
            entry.id,
            PassengerBookingModel.booking_status == BookingStatus.CONFIRMED,
            booking_status=BookingStatus.CANCELLED,
        )
        if not won:
            raise ConflictError("Booking changed concurrently; reload and retry")
        if not await self.trips.release_seats(trip_id, entry.seats_booked):
            raise ConflictError("Trip left SCHEDULED; booking can no longer be cancelled")

        logger.info(
            "Passenger %d cancelled booking %d on trip %d",
            identity.actor_id,
            entry.id,
            trip_id,
        )
        return await self.bookings.get_by_id(entry.id)

    async def update_status(
        self, identity: Identity, trip_id: int, target: TripStatus | str
    ) -> PublishedTripModel:
        try:
            target = TripStatus(target)
        except ValueError as exc:
            raise ValidationError("Invalid status") from exc

        trip = await self._get_hosted(identity, trip_id)
        current = trip.status
        check_trip_transition(current, target)

        if not await self.trips.compare_and_set_status(trip_id, current, target):
            raise ConflictError("Trip status changed concurrently; reload and retry")

        if target == TripStatus.COMPLETED:
            seats = await self.bookings.complete_confirmed(trip_id)
            await self.settlement.apply_trip_settlement(trip, seats * trip.price_per_seat)

        logger.info("Trip %d -> %s", trip_id, target.value)
        return await self._get(trip_id)

    async def verify_pickup(
        self, identity: Identity, trip_id: int, booking_id: int, code: str
    ) -> PassengerBookingModel:
        """Host confirms physical pickup with the code the passenger relayed."""
        trip = await self._get_hosted(identity, trip_id)
        entry = await self._get_entry(trip, booking_id)
        if entry.booking_status != BookingStatus.CONFIRMED:
            raise ConflictError(f"Booking is {entry.booking_status.value}")
        if entry.pickup_status != PickupStatus.PENDING:
            raise ConflictError(f"Passenger is already {entry.pickup_status.value}")
        if code != entry.pickup_code:
            raise ValidationError("Invalid pickup code")

        won = await self.bookings.compare_and_set(
            booking_id,
            PassengerBookingModel.booking_status == BookingStatus.CONFIRMED,
            PassengerBookingModel.pickup_status == PickupStatus.PENDING,
            pickup_status=PickupStatus.PICKED_UP,
        )
        if not won:
            raise ConflictError("Booking changed concurrently; reload and retry")
        return await self.bookings.get_by_id(booking_id)

    async def mark_drop_off(
        self, identity: Identity, trip_id: int, booking_id: int
    ) -> PassengerBookingModel:
        trip = await self._get_hosted(identity, trip_id)
        await self._get_entry(trip, booking_id)

        won = await self.bookings.compare_and_set(
            booking_id,
            PassengerBookingModel.pickup_status == PickupStatus.PICKED_UP,
            pickup_status=PickupStatus.DROPPED_OFF,
        )
        if not won:
            raise ConflictError("Passenger has not been picked up")
        return await self.bookings.get_by_id(booking_id)
